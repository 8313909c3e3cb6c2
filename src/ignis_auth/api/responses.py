"""JSON rendering of authentication failures."""

from typing import Any, Dict, List

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ignis_auth.auth.results import AuthErrorCode, AuthFailure
from ignis_auth.utils.exceptions import AccessDeniedError


def failure_response(failure: AuthFailure) -> JSONResponse:
    headers: Dict[str, str] = {}
    retry_after = failure.details.get("retryAfterSeconds")
    if failure.code == AuthErrorCode.RATE_LIMITED and retry_after:
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(
        status_code=failure.status_code, content=failure.to_body(), headers=headers
    )


def _format_validation_errors(errors: List[Dict[str, Any]]) -> str:
    messages = []
    for error in errors:
        location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        messages.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(messages) or "Invalid request"


async def access_denied_handler(request: Request, exc: AccessDeniedError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.body, headers=exc.headers)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={
            "error": AuthErrorCode.VALIDATION_FAILED.value,
            "message": _format_validation_errors(list(exc.errors())),
        },
    )
