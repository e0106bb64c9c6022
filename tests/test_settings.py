from __future__ import annotations

from mail_copilot.config.settings import GOOGLE_SCOPES, load_settings


def test_load_settings_reads_environment(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MAIL_COPILOT_STATE_DIR", str(tmp_path / "state"))
    monkeypatch.setenv("GOOGLE_CLIENT_ID", "client-id")
    monkeypatch.setenv("BACKEND_PUBLIC_URL", "https://copilot.example.com")
    monkeypatch.setenv("MAIL_COPILOT_MAX_FETCH_COUNT", "20")
    monkeypatch.setenv("MAIL_COPILOT_DEFAULT_FETCH_COUNT", " ")

    settings = load_settings()

    assert settings.google_client_id == "client-id"
    assert settings.redirect_uri == "https://copilot.example.com/api/auth/google/callback"
    assert settings.token_store_path == tmp_path / "state" / "tokens.json"
    assert (tmp_path / "state").is_dir()
    assert settings.email.max_fetch_count == 20
    assert settings.email.default_fetch_count == 5
    assert settings.scopes == GOOGLE_SCOPES


def test_google_client_config_is_web_shaped(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("MAIL_COPILOT_STATE_DIR", str(tmp_path))
    monkeypatch.setenv("GOOGLE_CLIENT_SECRET", "secret")

    config = load_settings().google_client_config()

    assert config["web"]["client_secret"] == "secret"
    assert config["web"]["redirect_uris"] == [load_settings().redirect_uri]
