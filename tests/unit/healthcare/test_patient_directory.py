"""Tests for FHIR-backed patient lookups using httpx.MockTransport."""

import httpx
import pytest

from ignis_auth.healthcare.fhir_client_async import FHIRClient
from ignis_auth.healthcare.patient_directory import FHIRPatientDirectory
from tests.conftest import ANNA


def bundle(*resources):
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "entry": [{"resource": r} for r in resources],
    }


def make_directory(handler) -> FHIRPatientDirectory:
    client = FHIRClient(
        "http://fhir.test/fhir",
        max_retries=2,
        username="aidbox",
        password="secret",
        transport=httpx.MockTransport(handler),
    )
    return FHIRPatientDirectory(client)


class TestFHIRPatientDirectory:
    """Test patient reads and telecom searches."""

    @pytest.mark.asyncio
    async def test_get_patient_by_id(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json=ANNA)

        directory = make_directory(handler)
        patient = await directory.get_patient_by_id("patient-anna")

        assert patient is not None
        assert patient.id == "patient-anna"
        assert seen["path"] == "/fhir/Patient/patient-anna"
        assert seen["auth"].startswith("Basic ")
        await directory.close()

    @pytest.mark.asyncio
    async def test_missing_patient_is_none(self):
        directory = make_directory(lambda request: httpx.Response(404, json={}))
        assert await directory.get_patient_by_id("nobody") is None

    @pytest.mark.asyncio
    async def test_server_error_degrades_to_none(self):
        directory = make_directory(lambda request: httpx.Response(500, text="boom"))
        assert await directory.get_patient_by_id("patient-anna") is None

    @pytest.mark.asyncio
    async def test_transport_error_degrades_to_none(self):
        attempts = []

        def handler(request: httpx.Request) -> httpx.Response:
            attempts.append(request)
            raise httpx.ConnectError("refused", request=request)

        directory = make_directory(handler)
        assert await directory.get_patient_by_id("patient-anna") is None
        assert len(attempts) == 2

    @pytest.mark.asyncio
    async def test_find_by_phone_tries_variations(self):
        queries = []

        def handler(request: httpx.Request) -> httpx.Response:
            telecom = request.url.params["telecom"]
            queries.append(telecom)
            if telecom == "phone|+49 151 23456789":
                return httpx.Response(200, json=bundle(ANNA))
            return httpx.Response(200, json=bundle())

        directory = make_directory(handler)
        patient = await directory.find_patient_by_phone("0151 23456789")

        assert patient is not None and patient.id == "patient-anna"
        assert queries == ["phone|+4915123456789", "phone|+49 151 23456789"]

    @pytest.mark.asyncio
    async def test_find_by_email_filters_exact_match(self):
        other = dict(ANNA, id="other", telecom=[{"system": "email", "value": "anna@example.org"}])

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json=bundle(other, ANNA))

        directory = make_directory(handler)
        patient = await directory.find_patient_by_email("Anna.Weber@example.com")

        assert patient is not None and patient.id == "patient-anna"


class TestInMemoryPatientDirectory:
    """Test the in-memory directory used for local runs."""

    @pytest.mark.asyncio
    async def test_lookups(self, directory):
        assert (await directory.find_patient_by_phone("+4915123456789")).id == "patient-anna"
        assert (await directory.find_patient_by_email("MAX.MUELLER@example.com")).id == "patient-max"
        assert await directory.get_patient_by_id("missing") is None


class TestFHIRResourceIds:
    """Test that ids and payloads from callers cannot escape the Patient type."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("patient_id", ["../Practitioner/x", "a/b", "", "x" * 65, "anna\n"])
    async def test_invalid_id_is_not_requested(self, patient_id):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=ANNA)

        directory = make_directory(handler)
        assert await directory.get_patient_by_id(patient_id) is None
        assert requests == []

    @pytest.mark.asyncio
    async def test_client_rejects_invalid_id(self):
        directory = make_directory(lambda request: httpx.Response(200, json=ANNA))
        with pytest.raises(ValueError):
            await directory.client.read_resource("Patient", "../Practitioner/x")

    @pytest.mark.asyncio
    async def test_other_resource_type_is_none(self):
        practitioner = {"resourceType": "Practitioner", "id": "patient-anna"}
        directory = make_directory(lambda request: httpx.Response(200, json=practitioner))
        assert await directory.get_patient_by_id("patient-anna") is None
