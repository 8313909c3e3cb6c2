"""Shared fixtures for the Ignis Patient Auth test suite.

Patients live in an in-memory directory, delivered tokens are captured in
memory and time is driven by a manual clock.
"""

from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from ignis_auth.api.dependencies import AuthContainer
from ignis_auth.config import Settings
from ignis_auth.healthcare.patient_directory import InMemoryPatientDirectory
from ignis_auth.healthcare.patient_record import PatientRecord
from ignis_auth.main import create_app
from ignis_auth.services.notification_service import MemoryTokenDelivery, TokenDelivery
from ignis_auth.utils.exceptions import TokenDeliveryError

JWT_SECRET = "test-jwt-secret-key-for-unit-tests-only-0123456789"
VOICE_API_KEY = "test-voice-api-key-0123456789"
START_TIME = 1_700_000_000.0


class FailingDelivery(TokenDelivery):
    """Delivery whose gateway is down."""

    def __init__(self) -> None:
        self.attempts = 0

    async def deliver(self, method, recipient, raw_token) -> None:
        self.attempts += 1
        raise TokenDeliveryError("gateway unavailable")


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: float = START_TIME):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def patient_json(
    patient_id: str,
    family: str,
    given: str,
    gender: str,
    birth_date: str,
    line: str,
    city: str,
    postal_code: str,
    phone: str,
    email: str,
) -> Dict[str, Any]:
    return {
        "resourceType": "Patient",
        "id": patient_id,
        "name": [{"family": family, "given": [given]}],
        "gender": gender,
        "birthDate": birth_date,
        "address": [{"line": [line], "city": city, "postalCode": postal_code}],
        "telecom": [
            {"system": "phone", "value": phone},
            {"system": "email", "value": email},
        ],
    }


ANNA = patient_json(
    "patient-anna",
    "Weber",
    "Anna",
    "female",
    "1985-03-22",
    "Hauptstraße 12a",
    "Berlin",
    "10115",
    "+49 151 23456789",
    "anna.weber@example.com",
)

MAX = patient_json(
    "patient-max",
    "Müller",
    "Max",
    "male",
    "1970-11-02",
    "Lindenallee 7",
    "München",
    "80331",
    "+4917612345678",
    "max.mueller@example.com",
)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        environment="test",
        jwt_secret_key=JWT_SECRET,
        voice_api_key=VOICE_API_KEY,
        frontend_url="https://app.example.com",
        enable_test_routes=True,
    )


@pytest.fixture
def anna() -> PatientRecord:
    return PatientRecord.from_json(ANNA)


@pytest.fixture
def max_mueller() -> PatientRecord:
    return PatientRecord.from_json(MAX)


@pytest.fixture
def directory(anna: PatientRecord, max_mueller: PatientRecord) -> InMemoryPatientDirectory:
    return InMemoryPatientDirectory([anna, max_mueller])


@pytest.fixture
def delivery() -> MemoryTokenDelivery:
    return MemoryTokenDelivery()


@pytest.fixture
def app(settings, directory, delivery, clock):
    return create_app(settings, directory=directory, delivery=delivery, clock=clock)


@pytest.fixture
def container(app) -> AuthContainer:
    return app.state.container


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def voice_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {VOICE_API_KEY}"}
