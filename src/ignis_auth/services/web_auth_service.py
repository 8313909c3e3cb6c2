"""Web channel: possession token -> Level 2, knowledge factors -> Level 3,
one-time code -> action-scoped Level 4."""

from dataclasses import dataclass
from typing import Union

from ignis_auth.auth.attempts import AttemptTracker
from ignis_auth.auth.credentials import IssuedCredential, SessionClaims, SessionCredentialIssuer
from ignis_auth.auth.level_engine import FactorBag, evaluate_web_elevation
from ignis_auth.auth.levels import AuthLevel, AuthMethod, ProtectedAction, required_level
from ignis_auth.auth.results import AuthErrorCode, AuthFailure
from ignis_auth.auth.tokens import (
    InitiateMethod,
    InitiateResult,
    TokenLifecycleManager,
    TokenPurpose,
    VerifiedToken,
)
from ignis_auth.healthcare.patient_directory import PatientDirectory
from ignis_auth.utils.exceptions import ElevationError, InvalidCredentialError
from ignis_auth.utils.identifiers import mask_phone, strip_phone
from ignis_auth.utils.logging import audit_logger, get_logger

logger = get_logger(__name__)

CHANNEL = "web"


@dataclass(frozen=True)
class SessionResult:
    credential: IssuedCredential
    patient_id: str
    patient_name: str


@dataclass(frozen=True)
class ActionCodeResult:
    masked_phone: str
    expires_in_seconds: int


class WebAuthService:
    """Orchestrates the web flows on top of tokens, factors and credentials."""

    def __init__(
        self,
        tokens: TokenLifecycleManager,
        issuer: SessionCredentialIssuer,
        directory: PatientDirectory,
        elevation_attempts: AttemptTracker,
    ):
        self.tokens = tokens
        self.issuer = issuer
        self.directory = directory
        self.elevation_attempts = elevation_attempts

    async def initiate(
        self, method: InitiateMethod, identifier: str
    ) -> Union[InitiateResult, AuthFailure]:
        return await self.tokens.initiate(method, identifier)

    async def verify_token(
        self, raw_token: str, birth_date: str
    ) -> Union[SessionResult, AuthFailure]:
        """Exchange a possession token plus birth date for a Level-2 session."""
        verified = await self.tokens.verify(raw_token, birth_date)
        if isinstance(verified, AuthFailure):
            audit_logger.log_authentication(
                CHANNEL, "verify_token", False, details={"error": verified.code.value}
            )
            return verified

        return self._level2_session(verified)

    def _level2_session(self, verified: VerifiedToken) -> SessionResult:
        credential = self.issuer.issue_level2(verified.patient.id, verified.method)
        audit_logger.log_authentication(
            CHANNEL,
            "verify_token",
            True,
            patient_id=verified.patient.id,
            level=int(credential.level),
            details={"method": verified.method.value},
        )
        return SessionResult(
            credential=credential,
            patient_id=verified.patient.id,
            patient_name=verified.patient.display_name,
        )

    def _blocked(self) -> AuthFailure:
        return AuthFailure(
            AuthErrorCode.BLOCKED,
            "Too many failed attempts. Please try again later.",
        )

    async def elevate(
        self, claims: SessionClaims, factors: FactorBag
    ) -> Union[SessionResult, AuthFailure]:
        """Raise a session with additional knowledge factors, keeping its expiry."""
        if factors.is_empty():
            return AuthFailure(
                AuthErrorCode.VALIDATION_FAILED, "At least one factor is required"
            )
        if claims.level >= AuthLevel.ADDRESS:
            return AuthFailure(
                AuthErrorCode.VALIDATION_FAILED,
                "Session is already at the highest knowledge level",
            )

        subject = f"{CHANNEL}:{claims.patient_id}"
        if self.elevation_attempts.is_blocked(subject):
            return self._blocked()

        patient = await self.directory.get_patient_by_id(claims.patient_id)
        if patient is None:
            return AuthFailure(AuthErrorCode.INVALID_TOKEN, "Unknown session subject")

        outcome = evaluate_web_elevation(patient, claims.level, factors)
        if outcome.failed_factor is not None:
            blocked = self.elevation_attempts.record_failure(subject)
            audit_logger.log_authentication(
                CHANNEL,
                "elevate",
                False,
                details={"failedFactor": outcome.failed_factor.value, "blocked": blocked},
            )
            if blocked:
                return self._blocked()
            return AuthFailure(
                AuthErrorCode.INVALID_FACTOR,
                "The provided information does not match",
                {"failedFactor": outcome.failed_factor.value},
            )

        if outcome.level <= claims.level:
            return AuthFailure(
                AuthErrorCode.VALIDATION_FAILED,
                "None of the provided factors raises the current level",
            )

        try:
            credential = self.issuer.elevate(claims, outcome.level)
        except (ElevationError, InvalidCredentialError) as e:
            return AuthFailure(AuthErrorCode.INVALID_TOKEN, e.message)

        self.elevation_attempts.clear(subject)
        audit_logger.log_authentication(
            CHANNEL, "elevate", True, patient_id=claims.patient_id, level=int(outcome.level)
        )
        return SessionResult(
            credential=credential,
            patient_id=patient.id,
            patient_name=patient.display_name,
        )

    async def request_action_code(
        self, claims: SessionClaims
    ) -> Union[ActionCodeResult, AuthFailure]:
        """Send a one-time code to the phone on file for a Level-4 step-up."""
        patient = await self.directory.get_patient_by_id(claims.patient_id)
        phone = patient.primary_phone if patient else None
        if not phone:
            return AuthFailure(
                AuthErrorCode.VALIDATION_FAILED, "No phone number on file for this patient"
            )
        phone = strip_phone(phone)

        decision = self.tokens.rate_limiter.acquire(phone)
        if not decision.allowed:
            return AuthFailure(
                AuthErrorCode.RATE_LIMITED,
                "Too many requests. Please try again later.",
                {"retryAfterSeconds": decision.retry_after_seconds},
            )

        raw, _ = self.tokens.issue_for_patient(
            claims.patient_id, AuthMethod.SMS_OTP, TokenPurpose.ACTION
        )
        await self.tokens.delivery.deliver(AuthMethod.SMS_OTP, phone, raw)
        logger.info("action_code_sent")
        return ActionCodeResult(
            masked_phone=mask_phone(phone),
            expires_in_seconds=self.tokens.ttl_for(AuthMethod.SMS_OTP),
        )

    async def issue_action_token(
        self, claims: SessionClaims, action: ProtectedAction, code: str
    ) -> Union[IssuedCredential, AuthFailure]:
        """Redeem a one-time code for a Level-4 credential scoped to ``action``."""
        if required_level(action) != AuthLevel.ACTION:
            return AuthFailure(
                AuthErrorCode.VALIDATION_FAILED,
                f"{action.value} does not require an action credential",
            )

        subject = f"{CHANNEL}:{claims.patient_id}"
        if self.elevation_attempts.is_blocked(subject):
            return self._blocked()

        if not self.tokens.redeem_code(code, claims.patient_id, AuthMethod.SMS_OTP):
            blocked = self.elevation_attempts.record_failure(subject)
            audit_logger.log_authentication(
                CHANNEL, "action_token", False, details={"failedFactor": "otp", "blocked": blocked}
            )
            if blocked:
                return self._blocked()
            return AuthFailure(
                AuthErrorCode.INVALID_FACTOR,
                "Invalid or expired code",
                {"failedFactor": "otp"},
            )

        self.elevation_attempts.clear(subject)
        credential = self.issuer.issue_action_token(claims, action.value)
        audit_logger.log_authentication(
            CHANNEL,
            "action_token",
            True,
            patient_id=claims.patient_id,
            level=int(AuthLevel.ACTION),
            details={"action": action.value},
        )
        return credential
