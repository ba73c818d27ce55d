"""Tests for CLI login routes."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

from fastapi.testclient import TestClient

from clibridge.core.auth.orchestrator import LoginInitiation, LoginResult
from clibridge.core.auth.types import ProviderName
from clibridge.core.exceptions import InvalidState, ProviderExchangeFailed, UnsupportedProvider
from tests.fixtures.api import NOW, ORG_ID, USER_ID

CALLBACK = "http://127.0.0.1:53682/callback"


class TestInitiate:
    """Test POST /api/v1/cli/login/initiate."""

    def test_initiate_with_provider(
        self,
        client: TestClient,
        mock_orchestrator: MagicMock,
    ) -> None:
        """Should return the provider URL and state in camelCase."""
        mock_orchestrator.initiate = AsyncMock(
            return_value=LoginInitiation(
                auth_url="https://github.com/login/oauth/authorize?state=abc",
                state="abc",
                provider=ProviderName.GITHUB,
            )
        )

        response = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": CALLBACK, "provider": "github"},
        )

        assert response.status_code == 200
        assert response.json() == {
            "authUrl": "https://github.com/login/oauth/authorize?state=abc",
            "state": "abc",
            "provider": "github",
        }
        mock_orchestrator.initiate.assert_awaited_once_with(CALLBACK, ProviderName.GITHUB)

    def test_initiate_without_provider(
        self,
        client: TestClient,
        mock_orchestrator: MagicMock,
    ) -> None:
        """Should pass no hint and return a null provider."""
        mock_orchestrator.initiate = AsyncMock(
            return_value=LoginInitiation(
                auth_url="https://auth.example.com/auth/cli-login?state=abc",
                state="abc",
                provider=None,
            )
        )

        response = client.post("/api/v1/cli/login/initiate", json={"callbackUrl": CALLBACK})

        assert response.status_code == 200
        assert response.json()["provider"] is None
        mock_orchestrator.initiate.assert_awaited_once_with(CALLBACK, None)

    def test_initiate_rejects_non_http_callback(self, client: TestClient) -> None:
        """Should return 422 for callback URLs a browser cannot be sent to."""
        response = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": "javascript:alert(1)"},
        )

        assert response.status_code == 422

    def test_initiate_rejects_unknown_provider_name(self, client: TestClient) -> None:
        """Should return 422 for providers outside the enum."""
        response = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": CALLBACK, "provider": "myspace"},
        )

        assert response.status_code == 422

    def test_initiate_unconfigured_provider(
        self,
        client: TestClient,
        mock_orchestrator: MagicMock,
    ) -> None:
        """Should return 400 UNSUPPORTED_PROVIDER."""
        mock_orchestrator.initiate = AsyncMock(
            side_effect=UnsupportedProvider("Provider not configured: microsoft")
        )

        response = client.post(
            "/api/v1/cli/login/initiate",
            json={"callbackUrl": CALLBACK, "provider": "microsoft"},
        )

        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "UNSUPPORTED_PROVIDER"


class TestComplete:
    """Test POST /api/v1/cli/login/complete."""

    def test_complete_success(self, client: TestClient, mock_orchestrator: MagicMock) -> None:
        """Should return the session token and its owner."""
        expires_at = NOW + timedelta(days=30)
        mock_orchestrator.complete = AsyncMock(
            return_value=LoginResult(
                token="cli_session_" + "b" * 64,
                user_id=USER_ID,
                email="jane@example.com",
                organization_id=ORG_ID,
                expires_at=expires_at,
                is_new_user=True,
            )
        )

        response = client.post(
            "/api/v1/cli/login/complete",
            json={"state": "abc", "code": "good-code", "provider": "google"},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["token"] == "cli_session_" + "b" * 64
        assert data["userId"] == str(USER_ID)
        assert data["organizationId"] == str(ORG_ID)
        assert data["expiresAt"].startswith("2026-04-01T09:30:00")
        assert "isNewUser" not in data
        mock_orchestrator.complete.assert_awaited_once_with("abc", "good-code", "google")

    def test_complete_invalid_state(self, client: TestClient, mock_orchestrator: MagicMock) -> None:
        """Should return 400 INVALID_OR_EXPIRED_STATE."""
        mock_orchestrator.complete = AsyncMock(side_effect=InvalidState("Invalid or expired state"))

        response = client.post(
            "/api/v1/cli/login/complete",
            json={"state": "gone", "code": "c", "provider": "google"},
        )

        assert response.status_code == 400
        assert response.json()["detail"] == {
            "error": "Invalid or expired state",
            "code": "INVALID_OR_EXPIRED_STATE",
        }

    def test_complete_exchange_failed(
        self,
        client: TestClient,
        mock_orchestrator: MagicMock,
    ) -> None:
        """Should return 400 with the provider named."""
        mock_orchestrator.complete = AsyncMock(
            side_effect=ProviderExchangeFailed("github", "bad_verification_code")
        )

        response = client.post(
            "/api/v1/cli/login/complete",
            json={"state": "abc", "code": "bad", "provider": "github"},
        )

        assert response.status_code == 400
        detail = response.json()["detail"]
        assert detail["code"] == "PROVIDER_EXCHANGE_FAILED"
        assert detail["provider"] == "github"

    def test_complete_requires_all_fields(self, client: TestClient) -> None:
        """Should return 422 for an empty code."""
        response = client.post(
            "/api/v1/cli/login/complete",
            json={"state": "abc", "code": "", "provider": "github"},
        )

        assert response.status_code == 422


class TestProviderCallback:
    """Test GET /api/auth/cli/callback."""

    def test_callback_redirects_to_cli(
        self,
        client: TestClient,
        mock_orchestrator: MagicMock,
    ) -> None:
        """Should bounce the browser to the CLI's local listener."""
        target = f"{CALLBACK}?state=abc&code=xyz"
        mock_orchestrator.resolve_callback = AsyncMock(return_value=target)

        response = client.get(
            "/api/auth/cli/callback",
            params={"state": "abc", "code": "xyz"},
            follow_redirects=False,
        )

        assert response.status_code == 302
        assert response.headers["location"] == target
        mock_orchestrator.resolve_callback.assert_awaited_once_with(
            "abc", code="xyz", error=None
        )

    def test_callback_unknown_state(self, client: TestClient, mock_orchestrator: MagicMock) -> None:
        """Should not redirect anywhere for an unknown state."""
        mock_orchestrator.resolve_callback = AsyncMock(side_effect=InvalidState("Invalid state"))

        response = client.get(
            "/api/auth/cli/callback",
            params={"state": str(uuid4()), "code": "xyz"},
            follow_redirects=False,
        )

        assert response.status_code == 400

    def test_callback_requires_state(self, client: TestClient) -> None:
        """Should return 422 without a state."""
        response = client.get("/api/auth/cli/callback", params={"code": "xyz"})

        assert response.status_code == 422
