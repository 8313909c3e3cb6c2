"""Endpoints called by the phone agent.

All routes require the voice agent's API key. Responses stay minimal: no
birth dates, addresses or other factors are ever echoed back.
"""

from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ignis_auth.api.dependencies import get_voice_auth_service
from ignis_auth.api.monitoring import record_auth_event
from ignis_auth.auth.level_engine import FactorBag
from ignis_auth.auth.levels import ProtectedAction
from ignis_auth.middleware.voice_api_key import require_voice_api_key
from ignis_auth.services.voice_auth_service import VoiceAuthService, VoiceAuthStatus

router = APIRouter(
    prefix="/api/voice",
    tags=["Voice"],
    dependencies=[Depends(require_voice_api_key)],
)

CHANNEL = "voice"

STATUS_CODES = {
    VoiceAuthStatus.EVALUATED: 200,
    VoiceAuthStatus.BLOCKED: 403,
    VoiceAuthStatus.PATIENT_NOT_FOUND: 404,
}

voice_auth_dependency = Depends(get_voice_auth_service)


class IdentifyRequest(BaseModel):
    caller_phone_number: str = Field(..., alias="callerPhoneNumber", min_length=1, max_length=32)


class VoiceFactors(BaseModel):
    birth_date: Optional[str] = Field(None, alias="birthDate", max_length=32)
    postal_code: Optional[str] = Field(None, alias="postalCode", max_length=20)
    city: Optional[str] = Field(None, max_length=100)
    street_name: Optional[str] = Field(None, alias="streetName", max_length=200)


class AuthenticateRequest(BaseModel):
    patient_id: str = Field(..., alias="patientId", min_length=1, max_length=128)
    factors: VoiceFactors = Field(default_factory=VoiceFactors)

    def to_factors(self) -> FactorBag:
        return FactorBag(
            birth_date=self.factors.birth_date,
            postal_code=self.factors.postal_code,
            city=self.factors.city,
            street_name=self.factors.street_name,
        )


class AuthorizeActionRequest(BaseModel):
    auth_level: int = Field(..., alias="authLevel", ge=0, le=3)
    action: ProtectedAction


@router.post("/identify")
async def identify(
    payload: IdentifyRequest, service: VoiceAuthService = voice_auth_dependency
) -> Dict[str, Any]:
    """Identify the caller from caller-ID."""
    result = await service.identify(payload.caller_phone_number)
    record_auth_event(CHANNEL, "identify", "found" if result.found else "not_found")
    return result.to_dict()


@router.post("/authenticate", response_model=None)
async def authenticate(
    payload: AuthenticateRequest, service: VoiceAuthService = voice_auth_dependency
) -> Union[Dict[str, Any], JSONResponse]:
    """Determine the caller's level from the knowledge factors they gave."""
    result = await service.authenticate(payload.patient_id, payload.to_factors())

    if result.status == VoiceAuthStatus.EVALUATED:
        outcome = "success" if result.authenticated else "failure"
    else:
        outcome = result.status.value
    record_auth_event(CHANNEL, "authenticate", outcome)

    status_code = STATUS_CODES[result.status]
    if status_code != 200:
        return JSONResponse(status_code=status_code, content=result.to_dict())
    return result.to_dict()


@router.post("/authorize-action")
async def authorize_action(
    payload: AuthorizeActionRequest, service: VoiceAuthService = voice_auth_dependency
) -> Dict[str, Any]:
    """Tell the agent whether the caller may perform an action."""
    result = service.authorize_action(payload.auth_level, payload.action)
    record_auth_event(
        CHANNEL, "authorize_action", "authorized" if result.authorized else "denied"
    )
    return result.to_dict()
