"""
Input validation utilities for shipping addresses.

Delhivery rejects manifests with malformed PIN codes or phone numbers
long after checkout, so both are checked when the order is placed.
"""
import re

from domain.errors import ValidationError

_PINCODE_RE = re.compile(r"^[1-9][0-9]{5}$")
_PHONE_DIGITS_RE = re.compile(r"^[6-9][0-9]{9}$")


def validate_pincode(pincode: str | int | None) -> str:
    """
    Validate an Indian postal PIN code.

    Returns:
        The PIN code as a 6-character string

    Raises:
        ValidationError(400) if the PIN code is missing or malformed
    """
    value = str(pincode or "").strip().replace(" ", "")
    if not value:
        raise ValidationError("PIN code is required", field="zipCode")
    if not _PINCODE_RE.match(value):
        raise ValidationError(f"Invalid PIN code: {value}", field="zipCode")
    return value


def validate_phone(phone: str | None) -> str:
    """
    Validate an Indian mobile number and return its 10 digits.

    Accepts spaces, dashes and a +91 / 91 / 0 prefix.
    """
    digits = re.sub(r"[\s\-()]", "", str(phone or ""))
    if digits.startswith("+91"):
        digits = digits[3:]
    elif len(digits) == 12 and digits.startswith("91"):
        digits = digits[2:]
    elif len(digits) == 11 and digits.startswith("0"):
        digits = digits[1:]

    if not _PHONE_DIGITS_RE.match(digits):
        raise ValidationError("Invalid phone number", field="phoneNumber")
    return digits
