"""Contact identifier validation, normalization and masking."""

import re
from typing import List

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")
PHONE_SEPARATORS = re.compile(r"[\s\-()]")

DEFAULT_COUNTRY_CODE = "49"


def is_valid_email(value: str) -> bool:
    """Check the basic shape of an email address."""
    return bool(EMAIL_PATTERN.match(value))


def strip_phone(value: str) -> str:
    """Remove spaces, dashes and parentheses from a phone number."""
    return PHONE_SEPARATORS.sub("", value)


def is_valid_e164_phone(value: str) -> bool:
    """Check that a phone number is in E.164 format once separators are removed."""
    return bool(E164_PATTERN.match(strip_phone(value)))


def normalize_phone_to_e164(value: str) -> str:
    """Normalize a caller phone number to E.164.

    National numbers with a leading 0 are assumed to be German.

    Args:
        value: Phone number as received, e.g. "0151 2345 6789"

    Returns:
        E.164 number, e.g. "+4915123456789"
    """
    cleaned = strip_phone(value)
    if cleaned.startswith("+"):
        return cleaned
    if cleaned.startswith("00"):
        return "+" + cleaned[2:]
    if cleaned.startswith("0"):
        return "+" + DEFAULT_COUNTRY_CODE + cleaned[1:]
    return "+" + cleaned


def phone_variations(e164: str) -> List[str]:
    """Return the spellings a phone number may be stored under in FHIR."""
    variations = [e164]
    german_prefix = "+" + DEFAULT_COUNTRY_CODE
    if e164.startswith(german_prefix) and len(e164) > 6:
        national = e164[len(german_prefix):]
        variations.append(f"{german_prefix} {national[:3]} {national[3:]}")
    variations.append(e164.lstrip("+"))
    return variations


def normalize_identifier(value: str) -> str:
    """Key used for per-identifier rate limiting: lowercased, no whitespace."""
    return re.sub(r"\s+", "", value).lower()


def mask_email(email: str) -> str:
    """Mask an email address for display, e.g. "m***@example.com"."""
    local, sep, domain = email.partition("@")
    if not sep or not local or not domain:
        return "***@***.***"
    return f"{local[0]}***@{domain}"


def mask_phone(phone: str) -> str:
    """Mask a phone number for display, e.g. "+49 ****543"."""
    digits = re.sub(r"\D", "", phone)
    if len(digits) < 6:
        return "****" + digits[-3:]
    return f"+{digits[:2]} ****{digits[-3:]}"


def mask_identifier(identifier: str) -> str:
    """Mask an email or phone number."""
    if "@" in identifier:
        return mask_email(identifier)
    return mask_phone(identifier)
