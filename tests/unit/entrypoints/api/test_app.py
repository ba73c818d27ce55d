"""Tests for the assembled FastAPI application."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from clibridge.adapters.db.memory import InMemoryCliAuthRepository
from clibridge.entrypoints.api import deps
from clibridge.entrypoints.api.app import app as clibridge_app


@pytest.fixture
def dev_settings(monkeypatch: pytest.MonkeyPatch) -> deps.Settings:
    """Point the app at in-memory storage with GitHub configured."""
    monkeypatch.setattr(deps.settings, "app_database_url", "")
    monkeypatch.setattr(deps.settings, "public_base_url", "https://auth.example.com")
    monkeypatch.setattr(deps.settings, "google_client_id", "")
    monkeypatch.setattr(deps.settings, "microsoft_client_id", "")
    monkeypatch.setattr(deps.settings, "github_client_id", "gh-id")
    monkeypatch.setattr(deps.settings, "github_client_secret", "gh-secret")
    monkeypatch.setattr(deps.settings, "smtp_host", "")
    monkeypatch.setattr(deps.settings, "token_hash_rounds", 4)
    return deps.settings


def test_health() -> None:
    """Test the health endpoint."""
    client = TestClient(clibridge_app)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_lifespan_wires_in_memory_services(dev_settings: deps.Settings) -> None:
    """Test that startup builds the services over in-memory storage."""
    with TestClient(clibridge_app) as client:
        assert isinstance(clibridge_app.state.repo, InMemoryCliAuthRepository)
        assert clibridge_app.state.app_db is None

        response = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": "http://127.0.0.1:53682/callback", "provider": "github"},
        )
        unconfigured = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": "http://127.0.0.1:53682/callback", "provider": "google"},
        )

    assert response.status_code == 200
    assert response.json()["authUrl"].startswith("https://github.com/login/oauth/authorize?")
    assert unconfigured.status_code == 400
    assert unconfigured.json()["detail"]["code"] == "UNSUPPORTED_PROVIDER"


def test_settings_skip_email_without_host(dev_settings: deps.Settings) -> None:
    """Test that email is off unless SMTP_HOST is set."""
    assert dev_settings.email_config() is None


def test_settings_from_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that settings are read from the environment."""
    monkeypatch.setenv("SMTP_HOST", "smtp.example.com")
    monkeypatch.setenv("SMTP_PORT", "2525")
    monkeypatch.setenv("PUBLIC_BASE_URL", "https://auth.example.com")

    settings = deps.Settings()
    email = settings.email_config()

    assert email is not None
    assert email.smtp_port == 2525
    assert email.app_url == "https://auth.example.com"
