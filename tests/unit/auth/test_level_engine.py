"""Tests for mapping supplied factors to an authentication level."""

from ignis_auth.auth.level_engine import (
    FactorBag,
    evaluate_voice,
    evaluate_web_elevation,
    evaluate_web_verification,
)
from ignis_auth.auth.levels import AuthLevel, Factor

ALL_CORRECT = dict(
    birth_date="1985-03-22", postal_code="10115", city="Berlin", street_name="Hauptstraße"
)


class TestVoiceEvaluation:
    """Test the voice level walk."""

    def test_no_factors(self, anna):
        outcome = evaluate_voice(anna, FactorBag())
        assert outcome.level == AuthLevel.NONE
        assert outcome.failed_factor is None

    def test_all_factors_reach_level3(self, anna):
        outcome = evaluate_voice(anna, FactorBag(**ALL_CORRECT))
        assert outcome.level == AuthLevel.ADDRESS
        assert not outcome.failed

    def test_birth_date_only(self, anna):
        assert evaluate_voice(anna, FactorBag(birth_date="1985-03-22")).level == 1

    def test_wrong_birth_date_short_circuits(self, anna):
        outcome = evaluate_voice(anna, FactorBag(**dict(ALL_CORRECT, birth_date="2000-01-01")))
        assert outcome.level == AuthLevel.NONE
        assert outcome.failed_factor == Factor.BIRTH_DATE

    def test_city_fallback_when_postal_code_wrong(self, anna):
        outcome = evaluate_voice(
            anna, FactorBag(birth_date="1985-03-22", postal_code="99999", city="Berlin")
        )
        assert outcome.level == AuthLevel.POSSESSION
        assert outcome.failed_factor is None

    def test_postal_code_reported_when_both_wrong(self, anna):
        outcome = evaluate_voice(
            anna, FactorBag(birth_date="1985-03-22", postal_code="99999", city="Köln")
        )
        assert outcome.level == AuthLevel.BIRTH_DATE
        assert outcome.failed_factor == Factor.POSTAL_CODE

    def test_city_reported_when_only_city_given(self, anna):
        outcome = evaluate_voice(anna, FactorBag(birth_date="1985-03-22", city="Köln"))
        assert outcome.failed_factor == Factor.CITY

    def test_wrong_street_caps_at_level2(self, anna):
        outcome = evaluate_voice(anna, FactorBag(**dict(ALL_CORRECT, street_name="Ringweg")))
        assert outcome.level == AuthLevel.POSSESSION
        assert outcome.failed_factor == Factor.STREET_NAME

    def test_skipped_tier_stops_walk(self, anna):
        outcome = evaluate_voice(anna, FactorBag(postal_code="10115", street_name="Hauptstraße"))
        assert outcome.level == AuthLevel.NONE
        assert outcome.failed_factor is None

    def test_blank_values_count_as_absent(self, anna):
        outcome = evaluate_voice(anna, FactorBag(birth_date="1985-03-22", postal_code="  "))
        assert outcome.level == AuthLevel.BIRTH_DATE
        assert not outcome.failed


class TestWebEvaluation:
    """Test web verification and elevation."""

    def test_verification_grants_exactly_level2(self, anna):
        assert evaluate_web_verification(anna, "1985-03-22").level == AuthLevel.POSSESSION

    def test_verification_failure(self, anna):
        outcome = evaluate_web_verification(anna, "1985-03-21")
        assert outcome.failed_factor == Factor.BIRTH_DATE

    def test_elevation_with_postal_code(self, anna):
        outcome = evaluate_web_elevation(anna, AuthLevel.POSSESSION, FactorBag(postal_code="10115"))
        assert outcome.level == AuthLevel.ADDRESS

    def test_elevation_with_city(self, anna):
        outcome = evaluate_web_elevation(anna, AuthLevel.POSSESSION, FactorBag(city="berlin"))
        assert outcome.level == AuthLevel.ADDRESS

    def test_elevation_wrong_factor(self, anna):
        outcome = evaluate_web_elevation(anna, AuthLevel.POSSESSION, FactorBag(postal_code="12345"))
        assert outcome.level == AuthLevel.POSSESSION
        assert outcome.failed_factor == Factor.POSTAL_CODE

    def test_elevation_from_level1_climbs_two_steps(self, anna):
        outcome = evaluate_web_elevation(
            anna, AuthLevel.BIRTH_DATE, FactorBag(birth_date="1985-03-22", city="Berlin")
        )
        assert outcome.level == AuthLevel.ADDRESS

    def test_factor_bag_from_mapping(self):
        bag = FactorBag.from_mapping({"birthDate": "1985-03-22", "city": 12, "streetName": "X"})
        assert bag.birth_date == "1985-03-22"
        assert bag.city is None
        assert bag.street_name == "X"
