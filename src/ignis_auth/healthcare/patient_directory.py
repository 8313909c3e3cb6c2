"""Patient lookups used by the authentication flows.

Every lookup degrades to ``None`` on FHIR transport or server errors so an
unreachable store is indistinguishable from an unknown patient.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

import httpx

from ignis_auth.healthcare.fhir_client_async import FHIRClient, is_valid_resource_id
from ignis_auth.healthcare.patient_record import PatientRecord
from ignis_auth.utils.exceptions import FHIRClientError
from ignis_auth.utils.identifiers import normalize_phone_to_e164, phone_variations
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)


def _parse_patient(data: Dict) -> Optional[PatientRecord]:
    try:
        return PatientRecord.from_json(data)
    except ValueError as e:
        logger.warning("patient_parse_failed", error=str(e))
        return None


def _same_phone(stored: str, wanted_e164: str) -> bool:
    return normalize_phone_to_e164(stored) == wanted_e164


class PatientDirectory(ABC):
    """Source of patient identity data."""

    @abstractmethod
    async def get_patient_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        """Return the patient with this id, or None."""

    @abstractmethod
    async def find_patient_by_phone(self, phone: str) -> Optional[PatientRecord]:
        """Return the patient whose telecom carries this phone number, or None."""

    @abstractmethod
    async def find_patient_by_email(self, email: str) -> Optional[PatientRecord]:
        """Return the patient whose telecom carries this email, or None."""

    async def close(self) -> None:
        """Release resources."""


class FHIRPatientDirectory(PatientDirectory):
    """Patient directory backed by a FHIR server."""

    def __init__(self, client: FHIRClient):
        self.client = client

    async def get_patient_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        if not is_valid_resource_id(patient_id):
            return None
        try:
            data = await self.client.read_resource("Patient", patient_id)
        except (FHIRClientError, httpx.HTTPError, ValueError) as e:
            logger.warning("patient_read_failed", error=str(e))
            return None
        return _parse_patient(data) if data else None

    async def _search_telecom(self, system: str, value: str) -> List[PatientRecord]:
        try:
            resources = await self.client.search(
                "Patient", {"telecom": f"{system}|{value}"}
            )
        except (FHIRClientError, httpx.HTTPError, ValueError) as e:
            logger.warning("patient_search_failed", system=system, error=str(e))
            return []
        patients = [_parse_patient(resource) for resource in resources]
        return [p for p in patients if p is not None]

    async def find_patient_by_phone(self, phone: str) -> Optional[PatientRecord]:
        wanted = normalize_phone_to_e164(phone)
        for variation in phone_variations(wanted):
            for patient in await self._search_telecom("phone", variation):
                if any(_same_phone(p, wanted) for p in patient.phone_numbers):
                    return patient
        return None

    async def find_patient_by_email(self, email: str) -> Optional[PatientRecord]:
        wanted = email.strip().lower()
        for patient in await self._search_telecom("email", wanted):
            if any(e.lower() == wanted for e in patient.email_addresses):
                return patient
        return None

    async def close(self) -> None:
        await self.client.close()


class InMemoryPatientDirectory(PatientDirectory):
    """Patient directory over a fixed set of records (local runs and tests)."""

    def __init__(self, patients: Iterable[PatientRecord] = ()):
        self._patients: Dict[str, PatientRecord] = {p.id: p for p in patients}

    def add(self, patient: PatientRecord) -> None:
        self._patients[patient.id] = patient

    async def get_patient_by_id(self, patient_id: str) -> Optional[PatientRecord]:
        return self._patients.get(patient_id)

    async def find_patient_by_phone(self, phone: str) -> Optional[PatientRecord]:
        wanted = normalize_phone_to_e164(phone)
        for patient in self._patients.values():
            if any(_same_phone(p, wanted) for p in patient.phone_numbers):
                return patient
        return None

    async def find_patient_by_email(self, email: str) -> Optional[PatientRecord]:
        wanted = email.strip().lower()
        for patient in self._patients.values():
            if any(e.lower() == wanted for e in patient.email_addresses):
                return patient
        return None
