"""Classification code normalization — pure functions, no DB dependency."""

import re

from app.exceptions import InvalidInputError

HS_CODE_LENGTH = 10

_NON_DIGIT = re.compile(r"[^0-9]")


def normalize_hs_code(code: str | None) -> str:
    """Strip non-digits, then right-pad with zeros or truncate to 10 digits.

    Always returns exactly 10 ASCII digits; applied on ingestion, lookup and storage.
    """
    digits = _NON_DIGIT.sub("", code or "")
    return digits[:HS_CODE_LENGTH].ljust(HS_CODE_LENGTH, "0")


def validate_hs_code(code, field: str = "hs_code") -> str:
    """Normalize a caller-supplied code, rejecting values that carry no digits."""
    if not isinstance(code, str):
        raise InvalidInputError(field, "classification code must be a string")
    if not _NON_DIGIT.sub("", code):
        raise InvalidInputError(field, f"'{code}' contains no digits")
    return normalize_hs_code(code)


def hs_prefix(code: str, length: int) -> str:
    """Leading digits of the normalized code (6 = subheading, 8 = tariff line)."""
    return normalize_hs_code(code)[:length]
