from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, UploadFile
from pydantic import BaseModel

from backend.app.services import Services, current_user_id, get_services
from mail_copilot.contacts.directory import ContactDirectory
from mail_copilot.errors import BadRequestError

logger = logging.getLogger(__name__)

router = APIRouter()


class TextCommandRequest(BaseModel):
    command: str = ""
    execute: bool = False


@router.post("/speech/transcribe")
def transcribe(
    audio: UploadFile = File(...),
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    content = audio.file.read()
    if not content:
        raise BadRequestError("No audio file provided.")
    transcriber = services.require_transcriber()
    interpreter = services.require_interpreter()

    page_size = services.settings.contacts_page_size
    phrases = services.auth.with_auth(
        user_id, lambda client: ContactDirectory(client, page_size=page_size).phrases()
    )
    transcript = transcriber.transcribe(
        content, filename=audio.filename or "command.mp3", phrases=phrases
    )
    command = interpreter.interpret(transcript)

    result = services.auth.with_auth(
        user_id,
        lambda client: services.executor.execute(client, command, user_id=user_id),
    )
    logger.info("Command execution result for user %s: success=%s", user_id, result.get("success"))
    services.history.record(user_id, command=command, result=result, transcript=transcript)
    return {
        "ok": True,
        "transcript": transcript,
        "nlu": command.to_dict(),
        "execution_result": result,
    }


@router.post("/speech/text")
def process_text(
    payload: TextCommandRequest,
    user_id: str = Depends(current_user_id),
    services: Services = Depends(get_services),
) -> dict:
    command = services.require_interpreter().interpret(payload.command)
    response = {"ok": True, "transcript": payload.command, "nlu": command.to_dict()}
    if not payload.execute:
        return response

    result = services.auth.with_auth(
        user_id,
        lambda client: services.executor.execute(client, command, user_id=user_id),
    )
    services.history.record(user_id, command=command, result=result, transcript=payload.command)
    response["execution_result"] = result
    return response
