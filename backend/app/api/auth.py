from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from backend.app.services import Services, current_user_id, get_services

router = APIRouter()


@router.get("/auth/google/url")
def google_auth_url(
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    return {"ok": True, "auth_url": services.oauth.authorization_url(user_id)}


@router.get("/auth/google/callback")
def google_auth_callback(
    code: str = "",
    state: str = "",
    services: Services = Depends(get_services),
) -> HTMLResponse:
    # Called by Google's redirect, so there is no identity header here; the
    # state token carries the user id.
    services.oauth.complete(state, code)
    return HTMLResponse(
        "<h2>Google account connected</h2><p>You can close this window now.</p>"
    )


@router.get("/auth/profile")
def profile(
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    data = services.auth.with_auth(user_id, lambda client: client.get_profile())
    return {"ok": True, "profile": data}


@router.post("/auth/disconnect")
def disconnect(
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    details = services.oauth.disconnect(user_id)
    services.history.clear(user_id)
    return {
        "ok": True,
        "message": "Google account disconnected successfully",
        "details": details,
    }
