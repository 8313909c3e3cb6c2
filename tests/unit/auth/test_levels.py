"""Tests for the level, hint and action tables."""

from ignis_auth.auth.levels import (
    ACTION_LEVELS,
    ELEVATION_HINTS,
    AuthLevel,
    Factor,
    ProtectedAction,
    action_token_actions,
    missing_voice_factors,
    parse_action,
)


class TestTables:
    """Test the static tables."""

    def test_every_action_has_a_level(self):
        assert set(ACTION_LEVELS) == set(ProtectedAction)

    def test_hint_for_level3(self):
        hint = ELEVATION_HINTS[AuthLevel.ADDRESS].to_dict()
        assert hint["factors"] == ["postalCode", "city"]
        assert hint["prompt"] == "Please enter your postal code to continue"
        assert hint["promptDe"] == "Bitte geben Sie Ihre Postleitzahl ein"
        assert "message" not in hint
        assert "requiresOtp" not in hint

    def test_level4_hint_requires_otp(self):
        assert ELEVATION_HINTS[AuthLevel.ACTION].to_dict()["requiresOtp"] is True

    def test_action_token_actions(self):
        assert set(action_token_actions()) == {
            ProtectedAction.VIEW_TEST_RESULTS,
            ProtectedAction.CHANGE_EMAIL,
        }

    def test_unknown_action_does_not_parse(self):
        assert parse_action("launch_rockets") is None
        assert parse_action("sick_note") == ProtectedAction.SICK_NOTE

    def test_missing_voice_factors(self):
        assert missing_voice_factors(0, 3) == [
            Factor.BIRTH_DATE,
            Factor.POSTAL_CODE,
            Factor.CITY,
            Factor.STREET_NAME,
        ]
        assert missing_voice_factors(2, 3) == [Factor.STREET_NAME]
        assert missing_voice_factors(3, 3) == []
