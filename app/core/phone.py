"""Phone number utilities for consistent handling across the application."""

import logging
import re

import phonenumbers
from phonenumbers import NumberParseException

from app.settings import settings

logger = logging.getLogger(__name__)


def _digits(phone: str) -> str:
    return re.sub(r'\D', '', phone)


def normalize_phone_e164(phone: str | None, default_region: str | None = None) -> str | None:
    """Normalize phone number to E.164 format.

    Uses libphonenumber metadata when the number is at least possible for its
    region, and falls back to digit heuristics for numbers it rejects:
        (281)788-2316 → +12817882316
        281-788-2316  → +12817882316
        +1 281 788 2316 → +12817882316
        1-281-788-2316 → +12817882316
        +44 20 7946 0958 → +442079460958

    Args:
        phone: Phone number in any format
        default_region: ISO region used for numbers without a country code

    Returns:
        Phone in E.164 format, or None if the input has no digits
    """
    if not phone:
        return None

    stripped = phone.strip()
    digits = _digits(stripped)
    if not digits:
        return None

    region = default_region or settings.telephony_default_region
    try:
        parsed = phonenumbers.parse(stripped, None if stripped.startswith("+") else region)
        if phonenumbers.is_possible_number(parsed):
            return phonenumbers.format_number(parsed, phonenumbers.PhoneNumberFormat.E164)
    except NumberParseException:
        pass

    if stripped.startswith('+'):
        return f"+{digits}"
    if len(digits) == 10:
        return f"+1{digits}"
    if len(digits) == 11 and digits.startswith('1'):
        return f"+{digits}"

    logger.debug("Could not canonicalize phone number", extra={"digits_length": len(digits)})
    return f"+{digits}"


def phone_match_key(phone: str | None, default_region: str | None = None) -> str | None:
    """Build the comparison key used to decide whether two numbers are the same.

    Canonical E.164 when libphonenumber accepts the number, otherwise the
    stripped digits behind a "+".
    """
    return normalize_phone_e164(phone, default_region)


def is_same_number(phone1: str | None, phone2: str | None) -> bool:
    """Check whether two phone strings denote the same number."""
    key1 = phone_match_key(phone1)
    key2 = phone_match_key(phone2)
    if not key1 or not key2:
        return False
    return key1 == key2


def phone_suffix(phone: str | None, length: int = 7) -> str | None:
    """Return the trailing subscriber digits, used to narrow SQL candidates."""
    if not phone:
        return None
    digits = _digits(phone)
    if len(digits) < length:
        return digits or None
    return digits[-length:]
