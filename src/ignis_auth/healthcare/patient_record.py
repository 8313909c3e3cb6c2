"""Read-only view over a FHIR Patient resource."""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fhirclient.models.patient import Patient

SALUTATIONS = {"male": "Herr", "female": "Frau"}


@dataclass(frozen=True)
class PostalAddress:
    """The address parts used as knowledge factors."""

    lines: Tuple[str, ...]
    city: Optional[str]
    postal_code: Optional[str]


class PatientRecord:
    """Patient identity data as read from the FHIR store."""

    def __init__(self, resource: Patient):
        """Wrap a parsed fhirclient Patient."""
        self.resource = resource

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "PatientRecord":
        """Parse Patient JSON leniently; unknown extensions are ignored.

        Raises:
            ValueError: if the data is not a Patient resource
        """
        if not isinstance(data, dict) or data.get("resourceType") != "Patient":
            raise ValueError("Resource is not a Patient")
        return cls(Patient(data, strict=False))

    @property
    def id(self) -> str:
        return self.resource.id or ""

    @property
    def birth_date(self) -> Optional[str]:
        """Birth date as stored (YYYY-MM-DD, possibly with a time part)."""
        if self.resource.birthDate is None:
            return None
        value = self.resource.birthDate.as_json()
        return str(value) if value else None

    @property
    def gender(self) -> Optional[str]:
        return self.resource.gender

    @property
    def addresses(self) -> List[PostalAddress]:
        return [
            PostalAddress(
                lines=tuple(address.line or ()),
                city=address.city,
                postal_code=address.postalCode,
            )
            for address in self.resource.address or []
        ]

    def _telecom(self, system: str) -> List[str]:
        return [
            contact.value
            for contact in self.resource.telecom or []
            if contact.system == system and contact.value
        ]

    @property
    def phone_numbers(self) -> List[str]:
        return self._telecom("phone")

    @property
    def email_addresses(self) -> List[str]:
        return self._telecom("email")

    @property
    def primary_phone(self) -> Optional[str]:
        phones = self.phone_numbers
        return phones[0] if phones else None

    @property
    def display_name(self) -> str:
        """Name used to greet the patient.

        "Frau Weber" / "Herr Müller" when family name and gender are known,
        otherwise the full name.
        """
        names = self.resource.name or []
        if not names:
            return "Unknown"
        name = names[0]
        family = name.family or ""
        salutation = SALUTATIONS.get(self.gender or "")
        if salutation and family:
            return f"{salutation} {family}"
        parts = list(name.given or []) + ([family] if family else [])
        return " ".join(parts) or name.text or "Unknown"
