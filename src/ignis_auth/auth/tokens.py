"""Possession tokens: magic links and SMS one-time codes.

Only the SHA-256 hash of a token is stored. A token is single use, expires
after its method's lifetime and is burned after too many wrong birth dates.
"""

import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Tuple, Union

from ignis_auth.auth.factors import validate_birth_date
from ignis_auth.auth.levels import AuthMethod
from ignis_auth.auth.rate_limiter import IssuanceRateLimiter
from ignis_auth.auth.results import AuthErrorCode, AuthFailure
from ignis_auth.auth.store import Clock, InMemoryStore, StateStore
from ignis_auth.config import Settings
from ignis_auth.healthcare.patient_directory import PatientDirectory
from ignis_auth.healthcare.patient_record import PatientRecord
from ignis_auth.services.notification_service import TokenDelivery
from ignis_auth.utils.crypto import (
    generate_numeric_code,
    generate_token,
    hash_value,
)
from ignis_auth.utils.identifiers import (
    is_valid_e164_phone,
    is_valid_email,
    mask_email,
    mask_phone,
    normalize_phone_to_e164,
    strip_phone,
)
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)

MAX_GENERATION_ATTEMPTS = 5


class TokenPurpose(str, Enum):
    LOGIN = "login"
    ACTION = "action"


class InitiateMethod(str, Enum):
    """Channels a patient can request a possession token on."""

    MAGIC_LINK = "magic_link"
    SMS_OTP = "sms_otp"


@dataclass(frozen=True)
class AuthToken:
    token_hash: str
    patient_id: str
    method: AuthMethod
    created_at: float
    expires_at: float
    purpose: TokenPurpose = TokenPurpose.LOGIN
    failed_attempts: int = 0
    used: bool = False

    def is_expired(self, now: float) -> bool:
        return now >= self.expires_at


@dataclass(frozen=True)
class InitiateResult:
    """Response to a token request; identical whether or not the patient exists."""

    method: InitiateMethod
    masked_identifier: str
    expires_in_seconds: int


@dataclass(frozen=True)
class VerifiedToken:
    patient: PatientRecord
    method: AuthMethod


class _Outcome(str, Enum):
    OK = "ok"
    INVALID = "invalid"
    EXHAUSTED = "exhausted"
    WRONG_FACTOR = "wrong_factor"


class TokenLifecycleManager:
    """Issues possession tokens and verifies them together with a birth date."""

    def __init__(
        self,
        settings: Settings,
        directory: PatientDirectory,
        delivery: TokenDelivery,
        rate_limiter: Optional[IssuanceRateLimiter] = None,
        store: Optional[StateStore[AuthToken]] = None,
        clock: Clock = time.time,
    ):
        self.settings = settings
        self.directory = directory
        self.delivery = delivery
        self.clock = clock
        self.max_attempts = settings.token_max_attempts
        self.rate_limiter = rate_limiter or IssuanceRateLimiter(
            limit=settings.issuance_rate_limit,
            window_seconds=settings.issuance_rate_window_seconds,
            clock=clock,
        )
        self.store: StateStore[AuthToken] = store if store is not None else InMemoryStore(clock)

    def ttl_for(self, method: AuthMethod) -> int:
        if method == AuthMethod.SMS_OTP:
            return self.settings.sms_otp_ttl_seconds
        return self.settings.magic_link_ttl_seconds

    @staticmethod
    def _generate(method: AuthMethod) -> str:
        if method == AuthMethod.SMS_OTP:
            return generate_numeric_code(6)
        return generate_token(32)

    def issue_for_patient(
        self,
        patient_id: str,
        method: AuthMethod,
        purpose: TokenPurpose = TokenPurpose.LOGIN,
    ) -> Tuple[str, AuthToken]:
        """Create and store a token for a known patient; returns the raw value once."""
        now = self.clock()
        ttl = self.ttl_for(method)
        for _ in range(MAX_GENERATION_ATTEMPTS):
            raw = self._generate(method)
            token = AuthToken(
                token_hash=hash_value(raw),
                patient_id=patient_id,
                method=method,
                purpose=purpose,
                created_at=now,
                expires_at=now + ttl,
            )
            # Short numeric codes can collide with a live code of another patient
            if self.store.add(token.token_hash, token, ttl_seconds=ttl):
                return raw, token
        raise RuntimeError("Could not generate a unique token")

    async def initiate(
        self, method: InitiateMethod, identifier: str
    ) -> Union[InitiateResult, AuthFailure]:
        """Request a magic link or SMS code for an email address or phone number.

        The result does not reveal whether a patient matched the identifier.
        """
        identifier = (identifier or "").strip()
        if method == InitiateMethod.MAGIC_LINK:
            if not is_valid_email(identifier):
                return AuthFailure(AuthErrorCode.VALIDATION_FAILED, "Invalid email address")
            masked = mask_email(identifier)
        else:
            if not is_valid_e164_phone(identifier):
                return AuthFailure(
                    AuthErrorCode.VALIDATION_FAILED,
                    "Invalid phone number, expected E.164 format",
                )
            identifier = strip_phone(identifier)
            masked = mask_phone(identifier)

        decision = self.rate_limiter.acquire(identifier)
        if not decision.allowed:
            logger.warning("token_request_rate_limited", method=method.value)
            return AuthFailure(
                AuthErrorCode.RATE_LIMITED,
                "Too many requests. Please try again later.",
                {"retryAfterSeconds": decision.retry_after_seconds},
            )

        auth_method = AuthMethod(method.value)
        if method == InitiateMethod.MAGIC_LINK:
            patient = await self.directory.find_patient_by_email(identifier)
        else:
            patient = await self.directory.find_patient_by_phone(
                normalize_phone_to_e164(identifier)
            )

        if patient is not None:
            raw, token = self.issue_for_patient(patient.id, auth_method)
            try:
                await self.delivery.deliver(auth_method, identifier, raw)
            except Exception as e:
                # The response must not depend on whether delivery succeeded
                self.store.delete(token.token_hash)
                logger.error(
                    "token_delivery_failed",
                    method=method.value,
                    recipient=masked,
                    error=str(e),
                )
            else:
                logger.info("token_issued", method=method.value, recipient=masked)
        else:
            logger.info("token_request_unmatched", method=method.value, recipient=masked)

        return InitiateResult(
            method=method,
            masked_identifier=masked,
            expires_in_seconds=self.ttl_for(auth_method),
        )

    def _lookup(self, raw_token: str) -> Optional[AuthToken]:
        # Keyed by the SHA-256 digest; the raw value is never compared directly
        token_hash = hash_value(raw_token or "")
        return self.store.get(token_hash)

    def _invalid(self) -> AuthFailure:
        return AuthFailure(AuthErrorCode.INVALID_TOKEN, "Invalid or expired token")

    def _exhausted(self) -> AuthFailure:
        return AuthFailure(
            AuthErrorCode.MAX_ATTEMPTS,
            "Too many failed attempts. Please request a new link.",
        )

    async def verify(
        self, raw_token: str, birth_date: str
    ) -> Union[VerifiedToken, AuthFailure]:
        """Check a possession token plus the patient's birth date.

        The token is consumed only on success. A wrong birth date counts
        against the token; once the limit is reached it can no longer be
        used, even with the right birth date.
        """
        now = self.clock()
        token = self._lookup(raw_token)
        if (
            token is None
            or token.purpose != TokenPurpose.LOGIN
            or token.used
            or token.is_expired(now)
        ):
            return self._invalid()
        if token.failed_attempts >= self.max_attempts:
            return self._exhausted()

        patient = await self.directory.get_patient_by_id(token.patient_id)
        if patient is None:
            logger.warning("token_patient_missing")
            return self._invalid()
        matched = validate_birth_date(patient, birth_date)

        # Re-check under the store lock: a concurrent request may have
        # consumed or exhausted the token while the patient was being read.
        def settle(current: Optional[AuthToken]) -> Tuple[Optional[AuthToken], Tuple[_Outcome, int]]:
            if current is None or current.used or current.is_expired(self.clock()):
                return current, (_Outcome.INVALID, 0)
            if current.failed_attempts >= self.max_attempts:
                return current, (_Outcome.EXHAUSTED, 0)
            if matched:
                return replace(current, used=True), (_Outcome.OK, 0)
            failed = current.failed_attempts + 1
            return replace(current, failed_attempts=failed), (
                _Outcome.WRONG_FACTOR,
                max(0, self.max_attempts - failed),
            )

        outcome, remaining = self.store.update(token.token_hash, settle)

        if outcome == _Outcome.INVALID:
            return self._invalid()
        if outcome == _Outcome.EXHAUSTED:
            return self._exhausted()
        if outcome == _Outcome.WRONG_FACTOR:
            logger.info("token_birthdate_mismatch", attempts_remaining=remaining)
            return AuthFailure(
                AuthErrorCode.INVALID_BIRTHDATE,
                "Birth date does not match",
                {"attemptsRemaining": remaining},
            )

        logger.info("token_verified", method=token.method.value)
        return VerifiedToken(patient=patient, method=token.method)

    def redeem_code(self, raw_code: str, patient_id: str, method: AuthMethod) -> bool:
        """Consume a one-time code issued to this patient for a step-up action."""
        token = self._lookup(raw_code)
        if token is None:
            return False

        def consume(current: Optional[AuthToken]) -> Tuple[Optional[AuthToken], bool]:
            if (
                current is None
                or current.used
                or current.is_expired(self.clock())
                or current.purpose != TokenPurpose.ACTION
                or current.patient_id != patient_id
                or current.method != method
                or current.failed_attempts >= self.max_attempts
            ):
                return current, False
            return replace(current, used=True), True

        return self.store.update(token.token_hash, consume)

    def cleanup_expired(self) -> int:
        """Drop expired tokens and stale rate-limit windows."""
        removed = self.store.purge_expired() + self.rate_limiter.cleanup()
        if removed:
            logger.debug("auth_state_cleaned", removed=removed)
        return removed

    def clear(self) -> None:
        """Forget all tokens and rate-limit state (test routes only)."""
        self.store.clear()
        self.rate_limiter.store.clear()
