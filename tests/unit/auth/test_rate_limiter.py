"""Tests for token issuance rate limiting."""

from ignis_auth.auth.rate_limiter import IssuanceRateLimiter
from tests.conftest import ManualClock


class TestIssuanceRateLimiter:
    """Test the rolling one-hour window."""

    def test_fourth_request_is_rejected(self):
        clock = ManualClock()
        limiter = IssuanceRateLimiter(limit=3, window_seconds=3600, clock=clock)

        for _ in range(3):
            assert limiter.acquire("anna@example.com").allowed
            clock.advance(60)

        decision = limiter.acquire("anna@example.com")
        assert not decision.allowed
        assert decision.retry_after_seconds == 3600 - 180

    def test_identifier_variants_share_budget(self):
        limiter = IssuanceRateLimiter(limit=3, window_seconds=3600, clock=ManualClock())
        limiter.acquire("anna@example.com")
        limiter.acquire("ANNA@example.com")
        limiter.acquire(" anna@example.com ")
        assert not limiter.acquire("Anna@Example.com").allowed

    def test_window_rolls(self):
        clock = ManualClock()
        limiter = IssuanceRateLimiter(limit=3, window_seconds=3600, clock=clock)
        for _ in range(3):
            limiter.acquire("+4915123456789")
        clock.advance(3600)
        decision = limiter.acquire("+4915123456789")
        assert decision.allowed
        assert decision.remaining == 2

    def test_other_identifiers_are_unaffected(self):
        limiter = IssuanceRateLimiter(limit=3, window_seconds=3600, clock=ManualClock())
        for _ in range(3):
            limiter.acquire("anna@example.com")
        assert not limiter.acquire("anna@example.com").allowed

        decision = limiter.acquire("max.mueller@example.com")
        assert decision.allowed
        assert decision.remaining == 2
