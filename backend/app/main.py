# backend/app/main.py
import logging
import os

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from googleapiclient.errors import HttpError

from backend.app.api.auth import router as auth_router
from backend.app.api.commands import router as commands_router
from backend.app.api.email import router as email_router
from backend.app.api.speech import router as speech_router
from mail_copilot.errors import (
    RECONNECT_GUIDANCE,
    ErrorKind,
    MailCopilotError,
    classify_error,
)

logging.basicConfig(
    level=os.getenv("MAIL_COPILOT_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)-8s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="mail-copilot API")
app.include_router(auth_router, prefix="/api")
app.include_router(email_router, prefix="/api")
app.include_router(speech_router, prefix="/api")
app.include_router(commands_router, prefix="/api")


def _error_response(status_code: int, kind: ErrorKind, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "error": {"code": kind.value, "message": message}},
    )


@app.exception_handler(MailCopilotError)
async def handle_app_error(_request: Request, exc: MailCopilotError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", exc.kind.value, exc.message)
    return _error_response(exc.status_code, exc.kind, exc.message)


@app.exception_handler(HttpError)
async def handle_provider_error(_request: Request, exc: HttpError) -> JSONResponse:
    # Reaches here only when the refresh-and-retry could not recover.
    kind = classify_error(exc)
    if kind is ErrorKind.AUTHORIZATION_EXPIRED:
        return _error_response(401, kind, RECONNECT_GUIDANCE)
    logger.error("Mail provider error: %s", exc)
    return _error_response(502, kind, "Mail provider request failed.")


@app.get("/health", include_in_schema=False)
def health() -> dict:
    return {"ok": True}
