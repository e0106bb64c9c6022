import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

# Load .env once, globally
load_dotenv()

# Project root (independent of current working directory).
PROJECT_ROOT = Path(__file__).resolve().parents[3]

GOOGLE_SCOPES = [
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/contacts.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"
GOOGLE_REVOKE_URI = "https://oauth2.googleapis.com/revoke"


def resolve_dir(env_key: str, default: str) -> Path:
    """
    Resolve a directory path from ENV.
    Relative paths are resolved against PROJECT_ROOT.
    """
    value = os.getenv(env_key, default)
    path = Path(value)

    if not path.is_absolute():
        path = PROJECT_ROOT / path

    path.mkdir(parents=True, exist_ok=True)
    return path


def _env_int(env_key: str, default: int) -> int:
    value = os.getenv(env_key)
    if value is None or not value.strip():
        return default
    return int(value)


@dataclass(frozen=True)
class EmailSettings:
    min_fetch_count: int = 1
    default_fetch_count: int = 5
    max_fetch_count: int = 10
    snippet_max_length: int = 160


@dataclass(frozen=True)
class Settings:
    google_client_id: str = ""
    google_client_secret: str = ""
    # Public base URL of this backend, used for the OAuth callback.
    public_url: str = "http://localhost:8000"
    scopes: List[str] = field(default_factory=lambda: list(GOOGLE_SCOPES))
    openai_api_key: str = ""
    nlu_model: str = "gpt-4.1-mini"
    stt_model: str = "whisper-1"
    language: str = "en"
    oauth_state_ttl_seconds: int = 600
    contacts_page_size: int = 500
    # Header carrying the user id verified by the upstream identity provider.
    identity_header: str = "X-User-Id"
    token_store_path: Path = PROJECT_ROOT / ".state" / "tokens.json"
    email: EmailSettings = field(default_factory=EmailSettings)

    @property
    def redirect_uri(self) -> str:
        return f"{self.public_url.rstrip('/')}/api/auth/google/callback"

    def google_client_config(self) -> dict:
        # Same shape as the "web" block of a downloaded client_secret.json.
        return {
            "web": {
                "client_id": self.google_client_id,
                "client_secret": self.google_client_secret,
                "auth_uri": "https://accounts.google.com/o/oauth2/auth",
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [self.redirect_uri],
            }
        }


def load_settings() -> Settings:
    state_dir = resolve_dir("MAIL_COPILOT_STATE_DIR", ".state")
    return Settings(
        google_client_id=os.getenv("GOOGLE_CLIENT_ID", ""),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET", ""),
        public_url=os.getenv("BACKEND_PUBLIC_URL", "http://localhost:8000"),
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        nlu_model=os.getenv("MAIL_COPILOT_NLU_MODEL", "gpt-4.1-mini"),
        stt_model=os.getenv("MAIL_COPILOT_STT_MODEL", "whisper-1"),
        language=os.getenv("MAIL_COPILOT_LANGUAGE", "en"),
        oauth_state_ttl_seconds=_env_int("MAIL_COPILOT_OAUTH_STATE_TTL", 600),
        contacts_page_size=_env_int("MAIL_COPILOT_CONTACTS_PAGE_SIZE", 500),
        identity_header=os.getenv("MAIL_COPILOT_IDENTITY_HEADER", "X-User-Id"),
        token_store_path=state_dir / "tokens.json",
        email=EmailSettings(
            min_fetch_count=_env_int("MAIL_COPILOT_MIN_FETCH_COUNT", 1),
            default_fetch_count=_env_int("MAIL_COPILOT_DEFAULT_FETCH_COUNT", 5),
            max_fetch_count=_env_int("MAIL_COPILOT_MAX_FETCH_COUNT", 10),
            snippet_max_length=_env_int("MAIL_COPILOT_SNIPPET_MAX_LENGTH", 160),
        ),
    )
