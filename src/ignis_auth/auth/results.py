"""Typed outcomes shared by the authentication services and the HTTP layer."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class AuthErrorCode(str, Enum):
    VALIDATION_FAILED = "validation_failed"
    RATE_LIMITED = "rate_limited"
    INVALID_TOKEN = "invalid_token"
    INVALID_BIRTHDATE = "invalid_birthdate"
    INVALID_FACTOR = "invalid_factor"
    MAX_ATTEMPTS = "max_attempts"
    BLOCKED = "blocked"
    UNAUTHORIZED = "unauthorized"
    INSUFFICIENT_LEVEL = "insufficient_level"
    NOT_FOUND = "not_found"


HTTP_STATUS: Dict[AuthErrorCode, int] = {
    AuthErrorCode.VALIDATION_FAILED: 400,
    AuthErrorCode.RATE_LIMITED: 429,
    AuthErrorCode.INVALID_TOKEN: 401,
    AuthErrorCode.INVALID_BIRTHDATE: 401,
    AuthErrorCode.INVALID_FACTOR: 401,
    AuthErrorCode.MAX_ATTEMPTS: 401,
    AuthErrorCode.BLOCKED: 403,
    AuthErrorCode.UNAUTHORIZED: 401,
    AuthErrorCode.INSUFFICIENT_LEVEL: 403,
    AuthErrorCode.NOT_FOUND: 404,
}


@dataclass(frozen=True)
class AuthFailure:
    """A rejected authentication step.

    ``details`` holds the extra camelCase fields of the JSON error body,
    e.g. ``attemptsRemaining`` or ``failedFactor``.
    """

    code: AuthErrorCode
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def status_code(self) -> int:
        return HTTP_STATUS[self.code]

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.code.value, "message": self.message, **self.details}
