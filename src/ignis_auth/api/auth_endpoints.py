"""Web authentication endpoints.

Magic link / SMS code request, token verification to Level 2, elevation
with knowledge factors and the Level-4 action step-up.
"""

from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator, model_validator

from ignis_auth.api.dependencies import get_web_auth_service
from ignis_auth.api.monitoring import record_auth_event
from ignis_auth.api.responses import failure_response
from ignis_auth.auth.credentials import IssuedCredential, SessionClaims
from ignis_auth.auth.level_engine import FactorBag
from ignis_auth.auth.levels import AuthLevel, ProtectedAction
from ignis_auth.auth.results import AuthFailure
from ignis_auth.auth.tokens import InitiateMethod
from ignis_auth.middleware.access_control import require_level
from ignis_auth.services.web_auth_service import SessionResult, WebAuthService
from ignis_auth.utils.logging import get_logger

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
logger = get_logger(__name__)

CHANNEL = "web"

level1_dependency = Depends(require_level(AuthLevel.BIRTH_DATE))
level3_dependency = Depends(require_level(AuthLevel.ADDRESS))
web_auth_dependency = Depends(get_web_auth_service)


# Request Models
class InitiateRequest(BaseModel):
    """Request a magic link (email) or SMS code (E.164 phone)."""

    method: InitiateMethod
    identifier: str = Field(..., min_length=1, max_length=320)


class VerifyTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=256)
    birth_date: str = Field(..., alias="birthDate", pattern=r"^\d{4}-\d{2}-\d{2}$")


class ElevateRequest(BaseModel):
    """Additional knowledge factors; at least one must be given."""

    birth_date: Optional[str] = Field(None, alias="birthDate", pattern=r"^\d{4}-\d{2}-\d{2}$")
    postal_code: Optional[str] = Field(None, alias="postalCode", max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    street_name: Optional[str] = Field(None, alias="streetName", max_length=200)

    @field_validator("postal_code", "city", "street_name")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()

    @model_validator(mode="after")
    def require_a_factor(self) -> "ElevateRequest":
        if not any((self.birth_date, self.postal_code, self.city, self.street_name)):
            raise ValueError("At least one factor is required")
        return self

    def to_factors(self) -> FactorBag:
        return FactorBag(
            birth_date=self.birth_date,
            postal_code=self.postal_code,
            city=self.city,
            street_name=self.street_name,
        )


class ActionTokenRequest(BaseModel):
    action: ProtectedAction
    code: str = Field(..., pattern=r"^\d{6}$")


# Helpers
def session_body(result: SessionResult) -> Dict[str, Any]:
    return {
        "jwt": result.credential.token,
        "level": int(result.credential.level),
        "expiresAt": result.credential.expires_at_iso,
        "patient": {"id": result.patient_id, "name": result.patient_name},
    }


def action_token_body(credential: IssuedCredential) -> Dict[str, Any]:
    return {
        "jwt": credential.token,
        "level": int(credential.level),
        "expiresAt": credential.expires_at_iso,
        "actionScope": credential.claims.action_scope,
    }


def _outcome(result: Any) -> str:
    return result.code.value if isinstance(result, AuthFailure) else "success"


# Endpoints
@router.post("/initiate", response_model=None)
async def initiate(
    payload: InitiateRequest, service: WebAuthService = web_auth_dependency
) -> Union[Dict[str, Any], JSONResponse]:
    """Send a magic link or SMS code if the identifier belongs to a patient.

    The answer is the same whether or not a patient was found.
    """
    result = await service.initiate(payload.method, payload.identifier)
    record_auth_event(CHANNEL, "initiate", _outcome(result))
    if isinstance(result, AuthFailure):
        return failure_response(result)

    return {
        "success": True,
        "message": "If this contact is registered, a verification message has been sent.",
        "method": result.method.value,
        "maskedIdentifier": result.masked_identifier,
        "expiresIn": result.expires_in_seconds,
    }


@router.post("/verify-token", response_model=None)
async def verify_token(
    payload: VerifyTokenRequest, service: WebAuthService = web_auth_dependency
) -> Union[Dict[str, Any], JSONResponse]:
    """Exchange a magic link token or SMS code plus birth date for a Level-2 session."""
    result = await service.verify_token(payload.token, payload.birth_date)
    record_auth_event(CHANNEL, "verify_token", _outcome(result))
    if isinstance(result, AuthFailure):
        return failure_response(result)
    return session_body(result)


@router.post("/elevate", response_model=None)
async def elevate(
    payload: ElevateRequest,
    claims: SessionClaims = level1_dependency,
    service: WebAuthService = web_auth_dependency,
) -> Union[Dict[str, Any], JSONResponse]:
    """Raise the current session with additional knowledge factors."""
    result = await service.elevate(claims, payload.to_factors())
    record_auth_event(CHANNEL, "elevate", _outcome(result))
    if isinstance(result, AuthFailure):
        return failure_response(result)
    return session_body(result)


@router.post("/action-code", response_model=None)
async def request_action_code(
    claims: SessionClaims = level3_dependency,
    service: WebAuthService = web_auth_dependency,
) -> Union[Dict[str, Any], JSONResponse]:
    """Send a one-time code to the patient's phone for a Level-4 action."""
    result = await service.request_action_code(claims)
    record_auth_event(CHANNEL, "action_code", _outcome(result))
    if isinstance(result, AuthFailure):
        return failure_response(result)
    return {
        "success": True,
        "maskedIdentifier": result.masked_phone,
        "expiresIn": result.expires_in_seconds,
    }


@router.post("/action-token", response_model=None)
async def issue_action_token(
    payload: ActionTokenRequest,
    claims: SessionClaims = level3_dependency,
    service: WebAuthService = web_auth_dependency,
) -> Union[Dict[str, Any], JSONResponse]:
    """Redeem a one-time code for a short-lived credential scoped to one action."""
    result = await service.issue_action_token(claims, payload.action, payload.code)
    record_auth_event(CHANNEL, "action_token", _outcome(result))
    if isinstance(result, AuthFailure):
        return failure_response(result)
    return action_token_body(result)


@router.get("/session")
async def get_session(claims: SessionClaims = level1_dependency) -> Dict[str, Any]:
    """Describe the presented credential."""
    return claims.to_public_dict()
