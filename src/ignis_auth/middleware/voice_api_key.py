"""Shared-secret guard for the voice agent routes."""

from fastapi import Request

from ignis_auth.auth.results import AuthErrorCode
from ignis_auth.middleware.access_control import extract_bearer_token
from ignis_auth.utils.crypto import constant_time_compare
from ignis_auth.utils.exceptions import AccessDeniedError
from ignis_auth.utils.logging import get_logger

logger = get_logger(__name__)


def client_address(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def require_voice_api_key(request: Request) -> None:
    """Reject requests that do not carry the voice agent's API key."""
    expected: str = request.app.state.container.settings.voice_api_key
    presented = extract_bearer_token(request.headers.get("Authorization"))

    if presented is None or not constant_time_compare(presented, expected):
        logger.warning(
            "voice_api_key_rejected",
            path=request.url.path,
            client=client_address(request),
            reason="missing" if presented is None else "mismatch",
        )
        raise AccessDeniedError(
            401,
            {
                "error": AuthErrorCode.UNAUTHORIZED.value,
                "message": "Invalid or missing API key",
            },
            {"WWW-Authenticate": "Bearer"},
        )
