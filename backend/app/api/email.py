from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from backend.app.services import Services, current_user_id, get_services
from mail_copilot.contacts.resolver import NotFoundPolicy, RecipientResolver
from mail_copilot.errors import BadRequestError
from mail_copilot.models import Command, Intent

router = APIRouter()


class EntitiesRequest(BaseModel):
    entities: Dict[str, Any] = Field(default_factory=dict)


class ExecuteRequest(BaseModel):
    intent: str
    entities: Dict[str, Any] = Field(default_factory=dict)


class ResolveContactRequest(BaseModel):
    name: str = ""


class FindRecipientRequest(BaseModel):
    search_term: str = ""


def _run(services: Services, user_id: str, command: Command) -> Dict[str, Any]:
    result = services.auth.with_auth(
        user_id,
        lambda client: services.executor.execute(client, command, user_id=user_id),
    )
    services.history.record(user_id, command=command, result=result)
    return result


@router.post("/email/send")
def send_email(
    payload: EntitiesRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    return _run(services, user_id, Command(Intent.SEND_EMAIL.value, payload.entities))


@router.post("/email/fetch")
def fetch_emails(
    payload: EntitiesRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    return _run(services, user_id, Command(Intent.FETCH_EMAIL.value, payload.entities))


@router.post("/email/execute")
def execute_command(
    payload: ExecuteRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    return _run(services, user_id, Command(payload.intent, payload.entities))


@router.post("/email/resolve-contact")
def resolve_contact(
    payload: ResolveContactRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    name = payload.name.strip()
    if not name:
        raise BadRequestError("Contact name is required.")

    page_size = services.settings.contacts_page_size
    resolution = services.auth.with_auth(
        user_id,
        lambda client: RecipientResolver(client, contacts_page_size=page_size).resolve(
            name, NotFoundPolicy.SYNTHESIZE_DEFAULT
        ),
    )
    return {
        "success": True,
        "original_name": name,
        "resolved_email": resolution.email,
        "confidence": resolution.confidence.value,
        "source": resolution.source.value,
    }


@router.post("/email/find-recipient")
def find_recipient(
    payload: FindRecipientRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    term = payload.search_term.strip()
    if not term:
        raise BadRequestError("Search term is required.")

    page_size = services.settings.contacts_page_size
    resolution = services.auth.with_auth(
        user_id,
        lambda client: RecipientResolver(client, contacts_page_size=page_size).resolve(term),
    )
    if resolution is None:
        message = f'No recipient found for "{term}"'
    else:
        message = (
            f"Found recipient: {resolution.email} "
            f"(confidence: {resolution.confidence.value}, source: {resolution.source.value})"
        )
    return {
        "success": True,
        "search_term": term,
        "recipient_found": resolution is not None,
        "recipient": resolution.to_dict() if resolution else None,
        "message": message,
    }
