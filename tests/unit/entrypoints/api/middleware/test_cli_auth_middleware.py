"""Unit tests for CLI session and API key authentication."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials

from clibridge.core.auth.types import ApiKey, OrganizationSummary, SessionInfo
from clibridge.core.exceptions import InvalidOrExpiredSession
from clibridge.entrypoints.api.middleware.auth import (
    CallerContext,
    CliSessionContext,
    authenticate_request,
    ensure_organization_access,
    require_bearer_token,
    require_scope,
    verify_cli_session,
)

NOW = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)
TOKEN = "cli_session_" + "b" * 64


@pytest.fixture
def mock_request() -> MagicMock:
    """Return a mock request."""
    return MagicMock()


@pytest.fixture
def session_info() -> SessionInfo:
    """Return a validated session with one membership."""
    org_id = uuid.uuid4()
    return SessionInfo(
        session_id=uuid.uuid4(),
        user_id=uuid.uuid4(),
        email="jane@example.com",
        organization_id=org_id,
        organizations=[OrganizationSummary(id=org_id, name="Jane's Org", slug="janes-org")],
        expires_at=NOW + timedelta(days=30),
    )


@pytest.fixture
def mock_sessions(session_info: SessionInfo) -> MagicMock:
    """Return a session manager that accepts TOKEN."""
    sessions = MagicMock()
    sessions.validate = AsyncMock(return_value=session_info)
    return sessions


@pytest.fixture
def api_key_record() -> ApiKey:
    """Return an active read-only API key."""
    return ApiKey(
        id=uuid.uuid4(),
        organization_id=uuid.uuid4(),
        name="CI",
        secret_hash="$2b$04$hash",
        prefix="sk_live_1a2b",
        scopes=["applications:read"],
        created_at=NOW,
    )


@pytest.fixture
def mock_api_keys(api_key_record: ApiKey) -> MagicMock:
    """Return an API key issuer that accepts any key."""
    api_keys = MagicMock()
    api_keys.verify = AsyncMock(return_value=api_key_record)
    return api_keys


def bearer(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestRequireBearerToken:
    """Tests for require_bearer_token."""

    async def test_returns_raw_token(self) -> None:
        """Test that the token is passed through unvalidated."""
        assert await require_bearer_token(bearer("anything")) == "anything"

    async def test_missing_token(self) -> None:
        """Test that a missing header raises 401."""
        with pytest.raises(HTTPException) as exc_info:
            await require_bearer_token(None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["code"] == "UNAUTHENTICATED"
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}


class TestVerifyCliSession:
    """Tests for verify_cli_session."""

    async def test_valid_session(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        session_info: SessionInfo,
    ) -> None:
        """Test that a valid token yields the session context."""
        context = await verify_cli_session(mock_request, mock_sessions, TOKEN)

        assert context.user_id == session_info.user_id
        assert context.organization_id == session_info.organization_id
        assert context.token == TOKEN
        assert mock_request.state.auth_context is context
        mock_sessions.validate.assert_awaited_once_with(TOKEN)

    async def test_invalid_session(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
    ) -> None:
        """Test that an invalid token raises 401 INVALID_SESSION."""
        mock_sessions.validate.side_effect = InvalidOrExpiredSession()

        with pytest.raises(HTTPException) as exc_info:
            await verify_cli_session(mock_request, mock_sessions, TOKEN)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == {
            "error": "Invalid or expired CLI session",
            "code": "INVALID_SESSION",
        }


class TestAuthenticateRequest:
    """Tests for authenticate_request."""

    async def test_cli_session(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        mock_api_keys: MagicMock,
        session_info: SessionInfo,
    ) -> None:
        """Test that a session caller reaches its memberships with every scope."""
        context = await authenticate_request(
            mock_request, mock_sessions, mock_api_keys, credentials=bearer(TOKEN), api_key=None
        )

        assert context.method == "cli_session"
        assert context.user_id == session_info.user_id
        assert context.organization_ids == {session_info.organization_id}
        assert context.has_scope("applications:write")

    async def test_api_key(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        mock_api_keys: MagicMock,
        api_key_record: ApiKey,
    ) -> None:
        """Test that an API key caller is confined to its organization and scopes."""
        context = await authenticate_request(
            mock_request, mock_sessions, mock_api_keys, credentials=None, api_key="sk_live_x"
        )

        assert context.method == "api_key"
        assert context.api_key_id == api_key_record.id
        assert context.organization_ids == {api_key_record.organization_id}
        assert context.scopes == ["applications:read"]
        assert mock_request.state.auth_context is context
        mock_sessions.validate.assert_not_awaited()

    async def test_invalid_api_key(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        mock_api_keys: MagicMock,
    ) -> None:
        """Test that an unknown or revoked key raises 401."""
        mock_api_keys.verify.return_value = None

        with pytest.raises(HTTPException) as exc_info:
            await authenticate_request(
                mock_request, mock_sessions, mock_api_keys, credentials=None, api_key="bad"
            )

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["error"] == "Invalid API key"

    async def test_bearer_wins(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        mock_api_keys: MagicMock,
    ) -> None:
        """Test that the API key is ignored when a bearer token is sent."""
        context = await authenticate_request(
            mock_request,
            mock_sessions,
            mock_api_keys,
            credentials=bearer(TOKEN),
            api_key="sk_live_x",
        )

        assert context.method == "cli_session"
        mock_api_keys.verify.assert_not_awaited()

    async def test_no_credentials(
        self,
        mock_request: MagicMock,
        mock_sessions: MagicMock,
        mock_api_keys: MagicMock,
    ) -> None:
        """Test that a request with neither credential raises 401."""
        with pytest.raises(HTTPException) as exc_info:
            await authenticate_request(
                mock_request, mock_sessions, mock_api_keys, credentials=None, api_key=None
            )

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail["code"] == "UNAUTHENTICATED"


class TestRequireScope:
    """Tests for require_scope."""

    @pytest.fixture
    def api_key_caller(self) -> CallerContext:
        """Return a read-only API key caller."""
        org_id = uuid.uuid4()
        return CallerContext(
            method="api_key",
            organization_id=org_id,
            api_key_id=uuid.uuid4(),
            scopes=["applications:read"],
            organization_ids={org_id},
        )

    async def test_scope_granted(self, api_key_caller: CallerContext) -> None:
        """Test that a matching scope passes."""
        checker = require_scope("applications:read")

        assert await checker(api_key_caller) is api_key_caller

    async def test_scope_denied(self, api_key_caller: CallerContext) -> None:
        """Test that a missing scope raises 403."""
        checker = require_scope("applications:write")

        with pytest.raises(HTTPException) as exc_info:
            await checker(api_key_caller)

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail == {
            "error": "Scope 'applications:write' required",
            "code": "INSUFFICIENT_PERMISSIONS",
        }

    async def test_wildcard_scope(self, api_key_caller: CallerContext) -> None:
        """Test that the wildcard scope grants everything."""
        api_key_caller.scopes = ["*"]
        checker = require_scope("applications:write")

        assert await checker(api_key_caller) is api_key_caller


class TestEnsureOrganizationAccess:
    """Tests for ensure_organization_access."""

    def test_member_allowed(self, session_info: SessionInfo) -> None:
        """Test that members pass."""
        context = CliSessionContext(
            session_id=session_info.session_id,
            user_id=session_info.user_id,
            email=session_info.email,
            organization_id=session_info.organization_id,
            organizations=session_info.organizations,
            token=TOKEN,
        )

        ensure_organization_access(context, session_info.organization_id)

    def test_non_member_denied(self) -> None:
        """Test that other organizations raise 403 UNAUTHORIZED."""
        context = CallerContext(method="cli_session", organization_id=uuid.uuid4())

        with pytest.raises(HTTPException) as exc_info:
            ensure_organization_access(context, uuid.uuid4())

        assert exc_info.value.status_code == 403
        assert exc_info.value.detail["code"] == "UNAUTHORIZED"
