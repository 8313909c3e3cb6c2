"""Voice channel: caller identification, knowledge-factor authentication
and per-action authorization for the phone agent."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from ignis_auth.auth.attempts import AttemptTracker
from ignis_auth.auth.credentials import IssuedCredential, SessionCredentialIssuer
from ignis_auth.auth.level_engine import FactorBag, evaluate_voice
from ignis_auth.auth.levels import (
    AuthLevel,
    AuthMethod,
    Factor,
    ProtectedAction,
    missing_voice_factors,
    required_level,
)
from ignis_auth.healthcare.patient_directory import PatientDirectory
from ignis_auth.utils.identifiers import normalize_phone_to_e164
from ignis_auth.utils.logging import audit_logger, get_logger

logger = get_logger(__name__)

HUMAN_VERIFICATION_REASON = (
    "This action requires human verification for security. "
    "Please call during office hours."
)


class VoiceAuthStatus(str, Enum):
    EVALUATED = "evaluated"
    BLOCKED = "blocked"
    PATIENT_NOT_FOUND = "patient_not_found"


@dataclass(frozen=True)
class IdentifyResult:
    found: bool
    patient_id: Optional[str] = None
    patient_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"found": self.found}
        if self.found:
            body["patientId"] = self.patient_id
            body["patientName"] = self.patient_name
        return body


@dataclass(frozen=True)
class VoiceAuthResult:
    status: VoiceAuthStatus
    authenticated: bool
    level: AuthLevel
    failed_factor: Optional[Factor] = None
    blocked: bool = False
    credential: Optional[IssuedCredential] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "authenticated": self.authenticated,
            "level": int(self.level),
        }
        if self.failed_factor is not None:
            body["failedFactor"] = self.failed_factor.value
        if self.status != VoiceAuthStatus.PATIENT_NOT_FOUND:
            body["blocked"] = self.blocked
        if self.credential is not None:
            body["sessionToken"] = self.credential.token
            body["expiresAt"] = self.credential.expires_at_iso
        return body


@dataclass(frozen=True)
class ActionAuthorization:
    authorized: bool
    required_level: AuthLevel
    current_level: int
    missing_factors: List[Factor] = field(default_factory=list)
    cannot_authorize: bool = False
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "authorized": self.authorized,
            "requiredLevel": int(self.required_level),
            "currentLevel": self.current_level,
        }
        if self.missing_factors:
            body["missingFactors"] = [f.value for f in self.missing_factors]
        if self.cannot_authorize:
            body["cannotAuthorize"] = True
            body["reason"] = self.reason
        return body


class VoiceAuthService:
    """Authentication for calls handled by the voice agent."""

    def __init__(
        self,
        directory: PatientDirectory,
        attempts: AttemptTracker,
        issuer: SessionCredentialIssuer,
        session_ttl_seconds: int = 60 * 60,
    ):
        self.directory = directory
        self.attempts = attempts
        self.issuer = issuer
        self.session_ttl_seconds = session_ttl_seconds

    async def identify(self, caller_phone: str) -> IdentifyResult:
        """Look up the caller by caller-ID."""
        patient = await self.directory.find_patient_by_phone(
            normalize_phone_to_e164(caller_phone)
        )
        if patient is None:
            logger.info("voice_caller_unknown")
            return IdentifyResult(found=False)
        logger.info("voice_caller_identified")
        return IdentifyResult(True, patient.id, patient.display_name)

    async def authenticate(self, patient_id: str, factors: FactorBag) -> VoiceAuthResult:
        """Evaluate the factors a caller gave against the patient's record.

        A blocked patient is refused before any factor is looked at. Every
        wrong factor counts toward the lockout; a successful authentication
        at level 1 or above resets the count.
        """
        if self.attempts.is_blocked(patient_id):
            audit_logger.log_voice_auth_event(patient_id, False, 0, blocked=True)
            return VoiceAuthResult(
                VoiceAuthStatus.BLOCKED, False, AuthLevel.NONE, blocked=True
            )

        patient = await self.directory.get_patient_by_id(patient_id)
        if patient is None:
            audit_logger.log_voice_auth_event(
                patient_id, False, 0, failed_factor=Factor.PATIENT_ID.value
            )
            return VoiceAuthResult(
                VoiceAuthStatus.PATIENT_NOT_FOUND,
                False,
                AuthLevel.NONE,
                failed_factor=Factor.PATIENT_ID,
            )

        outcome = evaluate_voice(patient, factors)
        if outcome.failed_factor is not None:
            blocked = self.attempts.record_failure(patient_id)
            audit_logger.log_voice_auth_event(
                patient_id,
                False,
                int(outcome.level),
                failed_factor=outcome.failed_factor.value,
                blocked=blocked,
            )
            return VoiceAuthResult(
                VoiceAuthStatus.EVALUATED,
                False,
                outcome.level,
                failed_factor=outcome.failed_factor,
                blocked=blocked,
            )

        if outcome.level == AuthLevel.NONE:
            return VoiceAuthResult(VoiceAuthStatus.EVALUATED, False, AuthLevel.NONE)

        self.attempts.clear(patient_id)
        credential = self.issuer.issue(
            patient.id, outcome.level, AuthMethod.VOICE, ttl_seconds=self.session_ttl_seconds
        )
        audit_logger.log_voice_auth_event(patient_id, True, int(outcome.level))
        return VoiceAuthResult(
            VoiceAuthStatus.EVALUATED, True, outcome.level, credential=credential
        )

    def authorize_action(self, current_level: int, action: ProtectedAction) -> ActionAuthorization:
        """Tell the agent whether the caller's level allows an action."""
        needed = required_level(action)
        if needed == AuthLevel.ACTION:
            return ActionAuthorization(
                authorized=False,
                required_level=needed,
                current_level=current_level,
                cannot_authorize=True,
                reason=HUMAN_VERIFICATION_REASON,
            )
        if current_level >= needed:
            return ActionAuthorization(True, needed, current_level)
        return ActionAuthorization(
            authorized=False,
            required_level=needed,
            current_level=current_level,
            missing_factors=missing_voice_factors(current_level, needed),
        )
