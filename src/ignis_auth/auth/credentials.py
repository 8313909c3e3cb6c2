"""Signed session credentials (HS256 JWT).

A credential records the patient, the level reached and how the patient
first authenticated. Elevation re-signs the payload at a higher level but
keeps the original expiry; Level-4 credentials are separate, short-lived
and scoped to a single action.
"""

import re
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt

from ignis_auth.auth.levels import AuthLevel, AuthMethod
from ignis_auth.auth.store import Clock
from ignis_auth.config import Settings
from ignis_auth.utils.exceptions import ElevationError, InvalidCredentialError
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)

ACTION_SCOPE_PATTERN = re.compile(r"^[a-z][a-z0-9_]{0,63}$")


@dataclass(frozen=True)
class SessionClaims:
    """Verified payload of a session credential."""

    patient_id: str
    level: AuthLevel
    method: AuthMethod
    issued_at: int
    expires_at: int
    elevated_at: Optional[str] = None
    action_scope: Optional[str] = None

    def to_jwt_claims(self) -> Dict[str, Any]:
        claims: Dict[str, Any] = {
            "sub": self.patient_id,
            "level": int(self.level),
            "method": self.method.value,
            "iat": self.issued_at,
            "exp": self.expires_at,
        }
        if self.elevated_at:
            claims["elevatedAt"] = self.elevated_at
        if self.action_scope:
            claims["actionScope"] = self.action_scope
        return claims

    @classmethod
    def from_jwt_claims(cls, claims: Dict[str, Any]) -> "SessionClaims":
        """Build claims from a decoded payload, rejecting anything malformed."""
        level = claims.get("level")
        if isinstance(level, bool) or not isinstance(level, int):
            raise InvalidCredentialError("Credential level is not an integer")
        if not AuthLevel.BIRTH_DATE <= level <= AuthLevel.ACTION:
            raise InvalidCredentialError("Credential level out of range")

        try:
            method = AuthMethod(claims.get("method"))
        except ValueError:
            raise InvalidCredentialError("Unknown authentication method")

        patient_id = claims.get("sub")
        if not isinstance(patient_id, str) or not patient_id:
            raise InvalidCredentialError("Credential has no subject")

        action_scope = claims.get("actionScope")
        if level == AuthLevel.ACTION:
            if not isinstance(action_scope, str) or not ACTION_SCOPE_PATTERN.match(action_scope):
                raise InvalidCredentialError("Level 4 credential without a valid action scope")
        elif action_scope is not None:
            raise InvalidCredentialError("Action scope on a non-action credential")

        issued_at = claims.get("iat")
        expires_at = claims.get("exp")
        for value in (issued_at, expires_at):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidCredentialError("Credential timestamps missing or malformed")

        elevated_at = claims.get("elevatedAt")
        if elevated_at is not None and not isinstance(elevated_at, str):
            raise InvalidCredentialError("Malformed elevation timestamp")

        return cls(
            patient_id=patient_id,
            level=AuthLevel(level),
            method=method,
            issued_at=issued_at,
            expires_at=expires_at,
            elevated_at=elevated_at,
            action_scope=action_scope,
        )

    def to_public_dict(self) -> Dict[str, Any]:
        """Session description returned to the client."""
        return {
            "patientId": self.patient_id,
            "level": int(self.level),
            "method": self.method.value,
            "expiresAt": iso_timestamp(self.expires_at),
            "elevatedAt": self.elevated_at,
            "actionScope": self.action_scope,
        }


@dataclass(frozen=True)
class IssuedCredential:
    token: str
    claims: SessionClaims

    @property
    def level(self) -> AuthLevel:
        return self.claims.level

    @property
    def expires_at_iso(self) -> str:
        return iso_timestamp(self.claims.expires_at)


def iso_timestamp(epoch_seconds: float) -> str:
    return (
        datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
        .isoformat()
        .replace("+00:00", "Z")
    )


class SessionCredentialIssuer:
    """Issues, elevates and verifies session credentials."""

    def __init__(self, settings: Settings, clock: Clock = time.time):
        self.secret_key = settings.jwt_secret_key
        self.algorithm = settings.jwt_algorithm
        self.session_ttl = settings.session_ttl_seconds
        self.action_ttl = settings.action_token_ttl_seconds
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def _sign(self, claims: SessionClaims) -> IssuedCredential:
        token = jwt.encode(claims.to_jwt_claims(), self.secret_key, algorithm=self.algorithm)
        return IssuedCredential(token=token, claims=claims)

    def issue(
        self,
        patient_id: str,
        level: AuthLevel,
        method: AuthMethod,
        ttl_seconds: Optional[int] = None,
    ) -> IssuedCredential:
        """Issue a fresh session credential at a knowledge/possession level (1-3)."""
        if not AuthLevel.BIRTH_DATE <= level <= AuthLevel.ADDRESS:
            raise ElevationError(f"Sessions are issued at levels 1-3, not {int(level)}")
        now = self._now()
        claims = SessionClaims(
            patient_id=patient_id,
            level=AuthLevel(level),
            method=method,
            issued_at=now,
            expires_at=now + (ttl_seconds if ttl_seconds is not None else self.session_ttl),
        )
        logger.info("session_issued", level=int(level), method=method.value)
        return self._sign(claims)

    def issue_level2(self, patient_id: str, method: AuthMethod) -> IssuedCredential:
        """Credential for a verified possession token plus birth date."""
        return self.issue(patient_id, AuthLevel.POSSESSION, method)

    def elevate(self, current: SessionClaims, new_level: AuthLevel) -> IssuedCredential:
        """Re-issue a credential at a higher level, keeping its expiry."""
        if new_level <= current.level:
            raise ElevationError(
                f"Cannot elevate from level {int(current.level)} to {int(new_level)}"
            )
        if new_level > AuthLevel.ADDRESS:
            raise ElevationError("Level 4 is only available as an action credential")
        now = self._now()
        if current.expires_at <= now:
            raise InvalidCredentialError("Token has expired")

        claims = replace(
            current,
            level=AuthLevel(new_level),
            issued_at=now,
            elevated_at=iso_timestamp(now),
        )
        logger.info("session_elevated", from_level=int(current.level), to_level=int(new_level))
        return self._sign(claims)

    def issue_action_token(self, current: SessionClaims, action: str) -> IssuedCredential:
        """Issue a short-lived Level-4 credential valid for one action only."""
        if not ACTION_SCOPE_PATTERN.match(action):
            raise ElevationError(f"Malformed action scope: {action!r}")
        now = self._now()
        claims = replace(
            current,
            level=AuthLevel.ACTION,
            issued_at=now,
            expires_at=now + self.action_ttl,
            elevated_at=iso_timestamp(now),
            action_scope=action,
        )
        logger.info("action_token_issued", action=action)
        return self._sign(claims)

    def verify(self, token: str) -> SessionClaims:
        """Verify signature, expiry and payload shape.

        Raises:
            InvalidCredentialError: for any credential that is not fully valid
        """
        try:
            payload = jwt.decode(
                token,
                self.secret_key,
                algorithms=[self.algorithm],
                options={
                    # Expiry is checked against the issuer clock below
                    "verify_exp": False,
                    "require_sub": True,
                },
            )
        except JWTError as e:
            logger.debug("credential_rejected", reason=str(e))
            raise InvalidCredentialError() from e

        claims = SessionClaims.from_jwt_claims(payload)
        if claims.expires_at <= self._now():
            raise InvalidCredentialError("Token has expired")
        return claims
