"""Level-based access control for protected routes.

``AccessController.check`` is a pure decision over the Authorization
header; ``require_level`` and ``require_action`` wrap it as FastAPI
dependencies that raise ``AccessDeniedError`` with the JSON error body.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Coroutine, Dict, Optional

from fastapi import Request

from ignis_auth.auth.credentials import SessionClaims, SessionCredentialIssuer
from ignis_auth.auth.levels import ELEVATION_HINTS, AuthLevel, ProtectedAction, required_level
from ignis_auth.auth.results import AuthErrorCode
from ignis_auth.utils.exceptions import AccessDeniedError, InvalidCredentialError
from ignis_auth.utils.logging import audit_logger

BEARER_PATTERN = re.compile(r"^Bearer\s+(\S+)\s*$", re.IGNORECASE)


def extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Return the credential of a ``Bearer <token>`` header, or None."""
    if not authorization:
        return None
    match = BEARER_PATTERN.match(authorization.strip())
    return match.group(1) if match else None


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    claims: Optional[SessionClaims] = None
    status_code: int = 200
    body: Dict[str, Any] = field(default_factory=dict)

    def raise_if_denied(self) -> SessionClaims:
        if not self.allowed or self.claims is None:
            headers = {"WWW-Authenticate": "Bearer"} if self.status_code == 401 else None
            raise AccessDeniedError(self.status_code, self.body, headers)
        return self.claims


def _unauthorized(code: AuthErrorCode, message: str) -> AccessDecision:
    return AccessDecision(
        allowed=False,
        status_code=401,
        body={"error": code.value, "message": message},
    )


def insufficient_level_body(current: int, required: AuthLevel) -> Dict[str, Any]:
    return {
        "error": AuthErrorCode.INSUFFICIENT_LEVEL.value,
        "message": f"This action requires authentication level {int(required)}",
        "currentLevel": current,
        "requiredLevel": int(required),
        "elevation": ELEVATION_HINTS[required].to_dict(),
    }


class AccessController:
    """Decides whether a bearer credential meets a required level."""

    def __init__(self, issuer: SessionCredentialIssuer):
        self.issuer = issuer

    def check(self, authorization: Optional[str], minimum: AuthLevel) -> AccessDecision:
        token = extract_bearer_token(authorization)
        if token is None:
            return _unauthorized(AuthErrorCode.UNAUTHORIZED, "Authentication required")

        try:
            claims = self.issuer.verify(token)
        except InvalidCredentialError as e:
            return _unauthorized(AuthErrorCode.INVALID_TOKEN, e.message)

        if claims.level < minimum:
            return AccessDecision(
                allowed=False,
                claims=claims,
                status_code=403,
                body=insufficient_level_body(int(claims.level), minimum),
            )
        return AccessDecision(allowed=True, claims=claims)

    def check_action(self, authorization: Optional[str], action: ProtectedAction) -> AccessDecision:
        """Like ``check`` for an action; Level-4 actions also need a matching scope."""
        minimum = required_level(action)
        decision = self.check(authorization, minimum)
        if not decision.allowed or minimum < AuthLevel.ACTION:
            return decision

        claims = decision.claims
        if claims is None or claims.action_scope != action.value:
            body = insufficient_level_body(int(claims.level) if claims else 0, minimum)
            body["message"] = f"This credential is not valid for {action.value}"
            body["actionScope"] = action.value
            return AccessDecision(allowed=False, claims=claims, status_code=403, body=body)
        return decision


def get_access_controller(request: Request) -> AccessController:
    controller: AccessController = request.app.state.container.access_controller
    return controller


def _audit_denial(request: Request, decision: AccessDecision, minimum: AuthLevel) -> None:
    audit_logger.log_access_denied(
        path=request.url.path,
        reason=str(decision.body.get("error")),
        current_level=int(decision.claims.level) if decision.claims else None,
        required_level=int(minimum),
    )


def require_level(
    minimum: AuthLevel,
) -> Callable[[Request], Coroutine[Any, Any, SessionClaims]]:
    """Dependency that admits credentials at or above ``minimum``."""

    async def dependency(request: Request) -> SessionClaims:
        decision = get_access_controller(request).check(
            request.headers.get("Authorization"), minimum
        )
        if not decision.allowed:
            _audit_denial(request, decision, minimum)
        claims = decision.raise_if_denied()
        request.state.auth_claims = claims
        return claims

    return dependency


def require_action(
    action: ProtectedAction,
) -> Callable[[Request], Coroutine[Any, Any, SessionClaims]]:
    """Dependency guarding the route that performs ``action``."""

    async def dependency(request: Request) -> SessionClaims:
        decision = get_access_controller(request).check_action(
            request.headers.get("Authorization"), action
        )
        if not decision.allowed:
            _audit_denial(request, decision, required_level(action))
        claims = decision.raise_if_denied()
        request.state.auth_claims = claims
        return claims

    return dependency
