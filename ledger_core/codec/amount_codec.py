"""
Amount Codec

Converts amounts to and from the persisted envelope format:

    "<base64 12-byte IV>:<base64 AES-256-GCM ciphertext+tag>"

The key is derived with PBKDF2-HMAC-SHA256 (100 000 iterations, 256 bit).
The output is bit-compatible with envelopes written by the WebCrypto
clients that created the existing data.

DESIGN DECISION: The codec NEVER raises.
- Encoding failure  -> plain decimal string (logged confidentiality downgrade)
- Decoding failure  -> best-effort decimal parse of the stored value, else 0

IMPORTANT: With key material that ships with the client this is
obfuscation against casual database inspection, not confidentiality
against someone holding the source. Supply your own material through
CodecSettings if that matters.
"""

import asyncio
import base64
import binascii
import os
import threading
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Union

import structlog
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ledger_core.config import CodecSettings, get_settings
from ledger_core.models.amount import (
    ENVELOPE_DELIMITER,
    ZERO,
    AbsentValue,
    EnvelopeValue,
    LegacyPlainValue,
    NumericValue,
    classify_stored_amount,
    format_amount,
    parse_legacy_amount,
    to_amount,
)
from ledger_core.models.audit import LedgerEventType


logger = structlog.get_logger(__name__)

IV_LENGTH = 12
KEY_LENGTH = 32


# =============================================================================
# KEY DERIVATION
# =============================================================================

class KeyDerivation:
    """
    Derives the envelope key from caller-supplied material.

    Every call to derive() runs the full PBKDF2 computation.
    """

    def __init__(
        self,
        passphrase: Union[str, bytes],
        salt: Union[str, bytes],
        iterations: int = 100_000,
    ):
        self._passphrase = passphrase.encode("utf-8") if isinstance(passphrase, str) else passphrase
        self._salt = salt.encode("utf-8") if isinstance(salt, str) else salt
        self._iterations = iterations

    @classmethod
    def from_settings(cls, settings: CodecSettings) -> "KeyDerivation":
        """Build the derivation configured in settings (cached if enabled)."""
        derivation_cls = CachedKeyDerivation if settings.cache_key else cls
        return derivation_cls(
            passphrase=settings.passphrase.get_secret_value(),
            salt=settings.salt.get_secret_value(),
            iterations=settings.iterations,
        )

    def derive(self) -> bytes:
        # PBKDF2HMAC instances are single use
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=self._salt,
            iterations=self._iterations,
        )
        return kdf.derive(self._passphrase)


class CachedKeyDerivation(KeyDerivation):
    """
    Derives the key once, lazily, and keeps it for the object's lifetime.

    Hold one instance per process to pay the PBKDF2 cost once.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._key: Optional[bytes] = None
        self._lock = threading.Lock()

    def derive(self) -> bytes:
        if self._key is None:
            with self._lock:
                if self._key is None:
                    self._key = super().derive()
        return self._key

    def clear(self) -> None:
        """Forget the cached key (e.g. after rotating key material)."""
        with self._lock:
            self._key = None


# =============================================================================
# CODEC
# =============================================================================

class AmountCodec:
    """
    Encodes amounts into envelopes and decodes any stored shape back.

    The async methods run the CPU-bound crypto in a worker thread so an
    event loop is never blocked by key derivation.
    """

    def __init__(self, key_derivation: Optional[KeyDerivation] = None):
        self._key_derivation = key_derivation or KeyDerivation.from_settings(
            get_settings().codec
        )

    # -------------------------------------------------------------------------
    # Encoding
    # -------------------------------------------------------------------------

    def encode_sync(self, amount: Union[Decimal, int, float]) -> str:
        """
        Encode an amount into an envelope.

        Falls back to the plain decimal string if encryption fails.
        """
        try:
            plaintext = format_amount(amount)
        except (InvalidOperation, TypeError, ValueError) as e:
            logger.warning(
                LedgerEventType.AMOUNT_ENCODE_FAILED.value,
                reason="not_a_decimal",
                error=str(e),
            )
            return str(amount)

        try:
            key = self._key_derivation.derive()
            iv = os.urandom(IV_LENGTH)
            ciphertext = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), None)
        except Exception as e:
            # Confidentiality downgrade, not a crash
            logger.warning(
                LedgerEventType.AMOUNT_ENCODE_FAILED.value,
                reason="encryption_failed",
                error=str(e),
            )
            return plaintext

        return (
            base64.b64encode(iv).decode("ascii")
            + ENVELOPE_DELIMITER
            + base64.b64encode(ciphertext).decode("ascii")
        )

    async def encode(self, amount: Union[Decimal, int, float]) -> str:
        """Async variant of encode_sync()."""
        return await asyncio.to_thread(self.encode_sync, amount)

    # -------------------------------------------------------------------------
    # Decoding
    # -------------------------------------------------------------------------

    def decode_sync(self, value: Any) -> Decimal:
        """
        Decode any stored amount shape into a cent-precision Decimal.

        Never raises; the worst case is Decimal("0.00").
        """
        try:
            stored = classify_stored_amount(value)
        except (InvalidOperation, TypeError, ValueError) as e:
            logger.warning(
                LedgerEventType.AMOUNT_DECODE_FALLBACK.value,
                reason="unclassifiable",
                error=str(e),
            )
            return ZERO

        if isinstance(stored, AbsentValue):
            return ZERO

        if isinstance(stored, NumericValue):
            if not stored.value.is_finite():
                return ZERO
            try:
                return to_amount(stored.value)
            except InvalidOperation:
                return ZERO

        if isinstance(stored, LegacyPlainValue):
            return self._parse_or_zero(stored.raw)

        return self._decode_envelope(stored)

    async def decode(self, value: Any) -> Decimal:
        """Async variant of decode_sync()."""
        return await asyncio.to_thread(self.decode_sync, value)

    def _decode_envelope(self, stored: EnvelopeValue) -> Decimal:
        if not stored.iv_part or not stored.ciphertext_part:
            logger.info(LedgerEventType.ENVELOPE_MALFORMED.value, reason="missing_parts")
            if stored.raw.count(ENVELOPE_DELIMITER) == 1:
                # "iv:" or ":ct" is a broken envelope, not plaintext
                return ZERO
            return self._parse_or_zero(stored.raw)

        try:
            iv = base64.b64decode(stored.iv_part, validate=True)
            ciphertext = base64.b64decode(stored.ciphertext_part, validate=True)
        except (binascii.Error, ValueError):
            # Most likely legacy plaintext that happens to contain a colon
            logger.info(LedgerEventType.ENVELOPE_MALFORMED.value, reason="invalid_base64")
            return self._parse_or_zero(stored.raw)

        if len(iv) != IV_LENGTH:
            logger.info(
                LedgerEventType.ENVELOPE_MALFORMED.value,
                reason="bad_iv_length",
                iv_length=len(iv),
            )
            return self._parse_or_zero(stored.raw)

        try:
            key = self._key_derivation.derive()
            plaintext = AESGCM(key).decrypt(iv, ciphertext, None).decode("utf-8")
        except Exception as e:
            logger.warning(
                LedgerEventType.AMOUNT_DECODE_FALLBACK.value,
                reason="decryption_failed",
                error_type=type(e).__name__,
            )
            return self._parse_or_zero(stored.raw)

        amount = parse_legacy_amount(plaintext)
        if amount is None:
            logger.warning(
                LedgerEventType.AMOUNT_DECODE_FALLBACK.value,
                reason="plaintext_not_a_decimal",
            )
            return self._parse_or_zero(stored.raw)
        return amount

    @staticmethod
    def _parse_or_zero(text: str) -> Decimal:
        amount = parse_legacy_amount(text)
        return ZERO if amount is None else amount

