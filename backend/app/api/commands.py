from __future__ import annotations

from fastapi import APIRouter, Depends

from backend.app.services import Services, current_user_id, get_services

router = APIRouter()


@router.get("/commands/history")
def command_history(
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    return {"ok": True, "history": services.history.snapshot(user_id)}
