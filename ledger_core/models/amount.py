"""
Amount Models

An amount can reach the core in four shapes, depending on who wrote it
and when:

1. Absent      - no value stored at all
2. Numeric     - a number written by a caller that bypassed the codec
3. Legacy      - a plain decimal string from before encryption existed
4. Envelope    - "<base64 iv>:<base64 ciphertext>"

DESIGN DECISION: The shape is classified ONCE, up front, into a tagged
union. Decoding then dispatches on the tag. Every fallback path is an
explicit branch that can be tested on its own.
"""

import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


CENT = Decimal("0.01")
ZERO = Decimal("0.00")

ENVELOPE_DELIMITER = ":"

# Longest leading decimal, the way older clients read stored text
LEADING_DECIMAL = re.compile(r"\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


def to_amount(value: Union[Decimal, int, float, str]) -> Decimal:
    """
    Convert a value to a cent-precision Decimal.

    Floats go through str() so 0.1 becomes Decimal("0.10"),
    not 0.1000000000000000055511151231257827.
    """
    if isinstance(value, float):
        value = str(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def format_amount(amount: Decimal) -> str:
    """Plain decimal string of an amount, always with two decimals."""
    return format(to_amount(amount), "f")


def parse_legacy_amount(text: str) -> Optional[Decimal]:
    """
    Parse a legacy plain value.

    Reads the longest decimal number at the start of the text and ignores
    the rest, so "42.50 EUR" is 42.50 and "12:30" is 12. Returns None if
    the text does not start with a number.
    """
    match = LEADING_DECIMAL.match(text)
    if match is None:
        return None
    try:
        return to_amount(Decimal(match.group(1)))
    except InvalidOperation:
        return None


# =============================================================================
# STORED AMOUNT - tagged union of persisted shapes
# =============================================================================

class AbsentValue(BaseModel):
    """Nothing stored."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["absent"] = "absent"


class NumericValue(BaseModel):
    """A number that never went through the codec."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["numeric"] = "numeric"
    value: Decimal = Field(allow_inf_nan=True)


class LegacyPlainValue(BaseModel):
    """Pre-encryption plain decimal string (no delimiter)."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["legacy"] = "legacy"
    raw: str


class EnvelopeValue(BaseModel):
    """
    Delimited value that looks like an envelope.

    It may still turn out to be legacy text containing a colon;
    the codec finds out when base64 decoding or decryption fails.
    """
    model_config = ConfigDict(frozen=True)

    kind: Literal["envelope"] = "envelope"
    raw: str
    iv_part: str
    ciphertext_part: str


StoredAmount = Union[AbsentValue, NumericValue, LegacyPlainValue, EnvelopeValue]


def classify_stored_amount(value: Any) -> StoredAmount:
    """
    Classify a raw persisted value.

    Booleans are not numbers here: they are classified by their
    string form and therefore decode to 0.
    """
    if value is None:
        return AbsentValue()

    if isinstance(value, (int, float, Decimal)) and not isinstance(value, bool):
        number = Decimal(str(value)) if isinstance(value, float) else Decimal(value)
        return NumericValue(value=number)

    text = str(value)
    if ENVELOPE_DELIMITER not in text:
        return LegacyPlainValue(raw=text)

    parts = text.split(ENVELOPE_DELIMITER)
    if len(parts) == 2:
        iv_part, ciphertext_part = parts
    else:
        iv_part, ciphertext_part = "", ""
    return EnvelopeValue(
        raw=text,
        iv_part=iv_part,
        ciphertext_part=ciphertext_part,
    )
