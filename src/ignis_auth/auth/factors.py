"""Knowledge-factor validation against a patient's FHIR record.

All comparisons are case-insensitive and ignore surrounding whitespace.
Empty input never matches.
"""

import re
from typing import Optional

from ignis_auth.healthcare.patient_record import PatientRecord

HOUSE_NUMBER_SUFFIX = re.compile(r"\s+\d+[a-zA-Z]?\s*$")
MIN_STREET_INPUT_LENGTH = 3
MIN_STREET_PREFIX_LENGTH = 5


def _clean(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def validate_birth_date(patient: PatientRecord, birth_date: Optional[str]) -> bool:
    """Match YYYY-MM-DD against the date portion of the stored birth date."""
    given = (birth_date or "").strip()
    stored = patient.birth_date
    if not given or not stored:
        return False
    return stored[:10] == given[:10]


def validate_postal_code(patient: PatientRecord, postal_code: Optional[str]) -> bool:
    """True if any address on file carries this postal code."""
    given = _clean(postal_code)
    if not given:
        return False
    return any(_clean(address.postal_code) == given for address in patient.addresses)


def validate_city(patient: PatientRecord, city: Optional[str]) -> bool:
    """True if any address on file is in this city."""
    given = _clean(city)
    if not given:
        return False
    return any(_clean(address.city) == given for address in patient.addresses)


def street_name(address_line: str) -> str:
    """Strip a trailing house number ("Hauptstraße 12a" -> "hauptstraße")."""
    return HOUSE_NUMBER_SUFFIX.sub("", address_line).strip().lower()


def validate_street_name(patient: PatientRecord, street: Optional[str]) -> bool:
    """Match a spoken street name against every stored address line.

    Accepts an exact match, or a prefix match in either direction when the
    shorter side has at least five characters ("Hauptstr" matches
    "Hauptstraße", "Hau" does not).
    """
    given = _clean(street)
    if len(given) < MIN_STREET_INPUT_LENGTH:
        return False

    for address in patient.addresses:
        for line in address.lines:
            stored = street_name(line)
            if not stored:
                continue
            if stored == given:
                return True
            if given.startswith(stored) and len(stored) >= MIN_STREET_PREFIX_LENGTH:
                return True
            if stored.startswith(given) and len(given) >= MIN_STREET_PREFIX_LENGTH:
                return True
    return False
