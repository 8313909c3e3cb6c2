"""Tests for the possession token lifecycle."""

import asyncio

import pytest

from ignis_auth.auth.levels import AuthMethod
from ignis_auth.auth.results import AuthErrorCode, AuthFailure
from ignis_auth.auth.tokens import (
    InitiateMethod,
    InitiateResult,
    TokenLifecycleManager,
    TokenPurpose,
    VerifiedToken,
)
from ignis_auth.utils.crypto import hash_value
from tests.conftest import FailingDelivery


@pytest.fixture
def tokens(settings, directory, delivery, clock):
    return TokenLifecycleManager(settings, directory, delivery, clock=clock)


class TestInitiate:
    """Test token requests."""

    @pytest.mark.asyncio
    async def test_magic_link_for_known_patient(self, tokens, delivery):
        result = await tokens.initiate(InitiateMethod.MAGIC_LINK, "anna.weber@example.com")

        assert isinstance(result, InitiateResult)
        assert result.masked_identifier == "a***@example.com"
        assert result.expires_in_seconds == 900
        assert len(delivery.sent) == 1
        assert len(delivery.last_token) == 64

    @pytest.mark.asyncio
    async def test_only_hash_is_stored(self, tokens, delivery):
        await tokens.initiate(InitiateMethod.MAGIC_LINK, "anna.weber@example.com")
        raw = delivery.last_token

        assert tokens.store.get(raw) is None
        stored = tokens.store.get(hash_value(raw))
        assert stored is not None
        assert stored.patient_id == "patient-anna"

    @pytest.mark.asyncio
    async def test_sms_code_for_known_patient(self, tokens, delivery):
        result = await tokens.initiate(InitiateMethod.SMS_OTP, "+49 151 23456789")

        assert result.masked_identifier == "+49 ****789"
        assert result.expires_in_seconds == 600
        assert delivery.last_token.isdigit() and len(delivery.last_token) == 6

    @pytest.mark.asyncio
    async def test_unknown_patient_gets_same_answer(self, tokens, delivery):
        known = await tokens.initiate(InitiateMethod.MAGIC_LINK, "anna.weber@example.com")
        unknown = await tokens.initiate(InitiateMethod.MAGIC_LINK, "nobody@example.com")

        assert type(known) is type(unknown)
        assert unknown.expires_in_seconds == known.expires_in_seconds
        assert len(delivery.sent) == 1

    @pytest.mark.asyncio
    async def test_invalid_identifiers(self, tokens):
        email = await tokens.initiate(InitiateMethod.MAGIC_LINK, "not-an-email")
        phone = await tokens.initiate(InitiateMethod.SMS_OTP, "015123456789")

        assert email.code == AuthErrorCode.VALIDATION_FAILED
        assert phone.code == AuthErrorCode.VALIDATION_FAILED

    @pytest.mark.asyncio
    async def test_rate_limit_applies_to_unknown_identifiers(self, tokens, delivery):
        for _ in range(3):
            await tokens.initiate(InitiateMethod.MAGIC_LINK, "nobody@example.com")
        result = await tokens.initiate(InitiateMethod.MAGIC_LINK, "NOBODY@example.com")

        assert isinstance(result, AuthFailure)
        assert result.code == AuthErrorCode.RATE_LIMITED
        assert result.details["retryAfterSeconds"] > 0
        assert delivery.sent == []

    @pytest.mark.asyncio
    async def test_delivery_failure_looks_like_unknown_patient(self, settings, directory, clock):
        failing = FailingDelivery()
        tokens = TokenLifecycleManager(settings, directory, failing, clock=clock)

        known = await tokens.initiate(InitiateMethod.MAGIC_LINK, "anna.weber@example.com")
        unknown = await tokens.initiate(InitiateMethod.MAGIC_LINK, "nobody@example.com")

        assert isinstance(known, InitiateResult)
        assert isinstance(unknown, InitiateResult)
        assert known.expires_in_seconds == unknown.expires_in_seconds
        assert failing.attempts == 1
        assert len(tokens.store) == 0


class TestVerify:
    """Test token plus birth date verification."""

    async def _issue(self, tokens, delivery) -> str:
        await tokens.initiate(InitiateMethod.MAGIC_LINK, "anna.weber@example.com")
        return delivery.last_token

    @pytest.mark.asyncio
    async def test_success_consumes_token(self, tokens, delivery):
        raw = await self._issue(tokens, delivery)

        first = await tokens.verify(raw, "1985-03-22")
        second = await tokens.verify(raw, "1985-03-22")

        assert isinstance(first, VerifiedToken)
        assert first.patient.id == "patient-anna"
        assert first.method == AuthMethod.MAGIC_LINK
        assert second.code == AuthErrorCode.INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_unknown_token(self, tokens):
        result = await tokens.verify("0" * 64, "1985-03-22")
        assert result.code == AuthErrorCode.INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_expired_token(self, tokens, delivery, clock):
        raw = await self._issue(tokens, delivery)
        clock.advance(900)
        result = await tokens.verify(raw, "1985-03-22")
        assert result.code == AuthErrorCode.INVALID_TOKEN

    @pytest.mark.asyncio
    async def test_wrong_birth_date_counts_down(self, tokens, delivery):
        raw = await self._issue(tokens, delivery)

        remaining = []
        for _ in range(5):
            result = await tokens.verify(raw, "2000-01-01")
            assert result.code == AuthErrorCode.INVALID_BIRTHDATE
            remaining.append(result.details["attemptsRemaining"])

        assert remaining == [4, 3, 2, 1, 0]
        exhausted = await tokens.verify(raw, "1985-03-22")
        assert exhausted.code == AuthErrorCode.MAX_ATTEMPTS

    @pytest.mark.asyncio
    async def test_concurrent_verification_succeeds_once(self, tokens, delivery):
        raw = await self._issue(tokens, delivery)

        results = await asyncio.gather(*[tokens.verify(raw, "1985-03-22") for _ in range(5)])

        successes = [r for r in results if isinstance(r, VerifiedToken)]
        assert len(successes) == 1
        assert all(r.code == AuthErrorCode.INVALID_TOKEN for r in results if r not in successes)

    @pytest.mark.asyncio
    async def test_action_code_cannot_log_in(self, tokens):
        raw, _ = tokens.issue_for_patient("patient-anna", AuthMethod.SMS_OTP, TokenPurpose.ACTION)
        result = await tokens.verify(raw, "1985-03-22")
        assert result.code == AuthErrorCode.INVALID_TOKEN


class TestRedeemCode:
    """Test one-time codes for the Level-4 step-up."""

    def test_redeem_once(self, tokens):
        raw, _ = tokens.issue_for_patient("patient-anna", AuthMethod.SMS_OTP, TokenPurpose.ACTION)
        assert tokens.redeem_code(raw, "patient-anna", AuthMethod.SMS_OTP)
        assert not tokens.redeem_code(raw, "patient-anna", AuthMethod.SMS_OTP)

    def test_other_patient_cannot_redeem(self, tokens):
        raw, _ = tokens.issue_for_patient("patient-anna", AuthMethod.SMS_OTP, TokenPurpose.ACTION)
        assert not tokens.redeem_code(raw, "patient-max", AuthMethod.SMS_OTP)

    def test_login_code_cannot_be_redeemed(self, tokens):
        raw, _ = tokens.issue_for_patient("patient-anna", AuthMethod.SMS_OTP)
        assert not tokens.redeem_code(raw, "patient-anna", AuthMethod.SMS_OTP)


class TestMaintenance:
    """Test cleanup of expired state."""

    @pytest.mark.asyncio
    async def test_cleanup_expired(self, tokens, clock):
        tokens.issue_for_patient("patient-anna", AuthMethod.MAGIC_LINK)
        await tokens.initiate(InitiateMethod.MAGIC_LINK, "nobody@example.com")
        clock.advance(3600)
        assert tokens.cleanup_expired() == 2
