"""Tests for the FHIR Patient view."""

from ignis_auth.healthcare.patient_record import PatientRecord
from tests.conftest import ANNA


class TestPatientRecord:
    """Test reading identity data from Patient JSON."""

    def test_fields(self, anna):
        assert anna.id == "patient-anna"
        assert anna.birth_date == "1985-03-22"
        assert anna.gender == "female"
        assert anna.phone_numbers == ["+49 151 23456789"]
        assert anna.email_addresses == ["anna.weber@example.com"]
        assert anna.addresses[0].city == "Berlin"
        assert anna.addresses[0].postal_code == "10115"
        assert anna.addresses[0].lines == ("Hauptstraße 12a",)

    def test_display_name_uses_salutation(self, anna, max_mueller):
        assert anna.display_name == "Frau Weber"
        assert max_mueller.display_name == "Herr Müller"

    def test_display_name_without_gender(self):
        data = dict(ANNA, gender="unknown")
        assert PatientRecord.from_json(data).display_name == "Anna Weber"

    def test_missing_optional_parts(self):
        record = PatientRecord.from_json({"resourceType": "Patient", "id": "bare"})
        assert record.birth_date is None
        assert record.addresses == []
        assert record.primary_phone is None
        assert record.display_name == "Unknown"
