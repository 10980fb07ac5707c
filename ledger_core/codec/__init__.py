"""Amount codec package."""

from ledger_core.codec.amount_codec import (
    IV_LENGTH,
    AmountCodec,
    CachedKeyDerivation,
    KeyDerivation,
)

__all__ = [
    "IV_LENGTH",
    "AmountCodec",
    "CachedKeyDerivation",
    "KeyDerivation",
]
