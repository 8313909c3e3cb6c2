"""Routes for exercising level protection outside production."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ignis_auth.api.dependencies import get_container
from ignis_auth.auth.credentials import SessionClaims
from ignis_auth.auth.levels import AuthLevel, ProtectedAction
from ignis_auth.middleware.access_control import require_action, require_level

router = APIRouter(prefix="/api/auth-test", tags=["Auth testing"])


def _protected(claims: SessionClaims, required: int) -> Dict[str, Any]:
    return {
        "success": True,
        "requiredLevel": required,
        "session": claims.to_public_dict(),
    }


@router.get("/level1")
async def level1(claims: SessionClaims = Depends(require_level(AuthLevel.BIRTH_DATE))) -> Dict[str, Any]:
    return _protected(claims, 1)


@router.get("/level2")
async def level2(claims: SessionClaims = Depends(require_level(AuthLevel.POSSESSION))) -> Dict[str, Any]:
    return _protected(claims, 2)


@router.get("/level3")
async def level3(claims: SessionClaims = Depends(require_level(AuthLevel.ADDRESS))) -> Dict[str, Any]:
    return _protected(claims, 3)


@router.post("/actions/{action}", response_model=None)
async def perform_action(action: ProtectedAction, request: Request) -> Any:
    """Run the guard for ``action`` against the presented credential."""
    claims = await require_action(action)(request)
    return {"success": True, "action": action.value, "session": claims.to_public_dict()}


@router.post("/clear")
async def clear_state(request: Request) -> JSONResponse:
    """Forget all tokens, rate limits and lockouts."""
    get_container(request).clear_state()
    return JSONResponse({"success": True})
