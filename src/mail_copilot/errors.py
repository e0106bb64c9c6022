from __future__ import annotations

from enum import Enum
from typing import Any, Iterable, Optional

from google.auth.exceptions import GoogleAuthError
from googleapiclient.errors import HttpError


class ErrorKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    ACCOUNT_NOT_CONNECTED = "account_not_connected"
    AUTHORIZATION_EXPIRED = "authorization_expired"
    TOKEN_REFRESH_FAILED = "token_refresh_failed"
    RECIPIENT_NOT_FOUND = "recipient_not_found"
    INVALID_OAUTH_STATE = "invalid_oauth_state"
    TRANSCRIPTION_FAILED = "transcription_failed"
    INTERPRETATION_FAILED = "interpretation_failed"
    BAD_REQUEST = "bad_request"
    PROVIDER_ERROR = "provider_error"
    UNKNOWN = "unknown"


RECONNECT_GUIDANCE = (
    "Google access expired and could not be renewed. "
    "Please reconnect your Google account."
)


class MailCopilotError(Exception):
    """Base error. `status_code` is what the HTTP layer responds with."""

    kind: ErrorKind = ErrorKind.UNKNOWN
    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class UnauthenticatedError(MailCopilotError):
    kind = ErrorKind.UNAUTHENTICATED
    status_code = 401

    def __init__(self, message: str = "User not authenticated.") -> None:
        super().__init__(message)


class AccountNotConnectedError(MailCopilotError):
    kind = ErrorKind.ACCOUNT_NOT_CONNECTED
    status_code = 404

    def __init__(self, message: str = "Google account not connected.") -> None:
        super().__init__(message)


class AuthorizationExpiredError(MailCopilotError):
    kind = ErrorKind.AUTHORIZATION_EXPIRED
    status_code = 401

    def __init__(self, message: str = RECONNECT_GUIDANCE) -> None:
        super().__init__(message)


class TokenRefreshError(MailCopilotError):
    kind = ErrorKind.TOKEN_REFRESH_FAILED
    status_code = 401

    def __init__(self, message: str = "Failed to refresh Google access token. " + RECONNECT_GUIDANCE) -> None:
        super().__init__(message)


class RecipientNotFoundError(MailCopilotError):
    kind = ErrorKind.RECIPIENT_NOT_FOUND
    status_code = 404

    def __init__(self, recipient: str) -> None:
        super().__init__(
            f'Could not find an email address for "{recipient}". '
            "Please check your Google Contacts, email history, or say the full email address."
        )
        self.recipient = recipient


class InvalidOAuthStateError(MailCopilotError):
    kind = ErrorKind.INVALID_OAUTH_STATE
    status_code = 400

    def __init__(self, message: str = "Invalid state or session has expired. Please try again.") -> None:
        super().__init__(message)


class TranscriptionError(MailCopilotError):
    kind = ErrorKind.TRANSCRIPTION_FAILED
    status_code = 422

    def __init__(self, message: str = "Could not transcribe audio.") -> None:
        super().__init__(message)


class InterpretationError(MailCopilotError):
    kind = ErrorKind.INTERPRETATION_FAILED
    status_code = 502


class BadRequestError(MailCopilotError):
    kind = ErrorKind.BAD_REQUEST
    status_code = 400


class ProviderError(MailCopilotError):
    kind = ErrorKind.PROVIDER_ERROR
    status_code = 502


def _status_candidates(exc: Any) -> Iterable[Any]:
    # Provider errors come in different shapes; collect every field that may
    # carry an HTTP status.
    for attr in ("code", "status", "status_code"):
        yield getattr(exc, attr, None)
    for attr in ("resp", "response"):
        nested = getattr(exc, attr, None)
        if nested is not None:
            yield getattr(nested, "status", None)
            yield getattr(nested, "status_code", None)


def _as_status(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any error raised around a provider call onto an ErrorKind."""
    if isinstance(exc, MailCopilotError):
        return exc.kind
    if any(_as_status(value) == 401 for value in _status_candidates(exc)):
        return ErrorKind.AUTHORIZATION_EXPIRED
    if isinstance(exc, (HttpError, GoogleAuthError)):
        return ErrorKind.PROVIDER_ERROR
    return ErrorKind.UNKNOWN


def is_unauthorized(exc: BaseException) -> bool:
    return classify_error(exc) is ErrorKind.AUTHORIZATION_EXPIRED
