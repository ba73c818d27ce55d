"""Dependency injection and application lifespan management."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import Request

from clibridge.adapters.db.app_db import AppDatabase
from clibridge.adapters.db.memory import InMemoryCliAuthRepository
from clibridge.adapters.db.postgres import PostgresCliAuthRepository
from clibridge.adapters.db.schema import create_schema
from clibridge.adapters.identity.base import ProviderConfig
from clibridge.adapters.identity.registry import build_identity_providers
from clibridge.adapters.notifications.email import EmailConfig, EmailNotifier
from clibridge.core.auth.api_keys import ApiKeyIssuer
from clibridge.core.auth.applications import ApplicationRegistry
from clibridge.core.auth.orchestrator import LoginOrchestrator, OrchestratorConfig
from clibridge.core.auth.provisioner import AccountProvisioner
from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.sessions import SessionManager
from clibridge.core.auth.state_store import AuthorizationStateStore
from clibridge.core.auth.tokens import DEFAULT_HASH_ROUNDS
from clibridge.core.auth.types import ProviderName
from clibridge.core.entitlements.config import get_entitlements_adapter
from clibridge.services.scheduler import BackgroundScheduler

if TYPE_CHECKING:
    from fastapi import FastAPI

logger = logging.getLogger(__name__)


class Settings:
    """Application settings loaded from environment."""

    def __init__(self) -> None:
        """Load settings from environment variables."""
        # Unset means the in-memory repository (development only)
        self.app_database_url = os.getenv("APP_DATABASE_URL", "")
        self.create_schema = os.getenv("APP_CREATE_SCHEMA", "true").lower() == "true"
        self.public_base_url = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000")

        self.google_client_id = os.getenv("GOOGLE_OAUTH_CLIENT_ID", "")
        self.google_client_secret = os.getenv("GOOGLE_OAUTH_CLIENT_SECRET", "")
        self.microsoft_client_id = os.getenv("MICROSOFT_CLIENT_ID", "")
        self.microsoft_client_secret = os.getenv("MICROSOFT_CLIENT_SECRET", "")
        self.github_client_id = os.getenv("GITHUB_OAUTH_CLIENT_ID", "")
        self.github_client_secret = os.getenv("GITHUB_OAUTH_CLIENT_SECRET", "")
        self.provider_http_timeout = float(os.getenv("PROVIDER_HTTP_TIMEOUT", "10"))

        self.token_hash_rounds = int(os.getenv("TOKEN_HASH_ROUNDS", str(DEFAULT_HASH_ROUNDS)))
        self.license_plan = os.getenv("LICENSE_PLAN", "")

        # Welcome email is skipped when SMTP_HOST is unset
        self.smtp_host = os.getenv("SMTP_HOST", "")
        self.smtp_port = int(os.getenv("SMTP_PORT", "587"))
        self.smtp_user = os.getenv("SMTP_USER") or None
        self.smtp_password = os.getenv("SMTP_PASSWORD") or None
        self.email_from = os.getenv("EMAIL_FROM", "noreply@example.com")

    def provider_configs(self) -> dict[ProviderName, ProviderConfig]:
        """OAuth client registrations by provider."""
        return {
            ProviderName.GOOGLE: ProviderConfig(self.google_client_id, self.google_client_secret),
            ProviderName.MICROSOFT: ProviderConfig(
                self.microsoft_client_id, self.microsoft_client_secret
            ),
            ProviderName.GITHUB: ProviderConfig(self.github_client_id, self.github_client_secret),
        }

    def email_config(self) -> EmailConfig | None:
        """SMTP settings, or None when email is not configured."""
        if not self.smtp_host:
            return None
        return EmailConfig(
            smtp_host=self.smtp_host,
            smtp_port=self.smtp_port,
            smtp_user=self.smtp_user,
            smtp_password=self.smtp_password,
            from_email=self.email_from,
            app_url=self.public_base_url,
        )


settings = Settings()


def configure_services(app: FastAPI, repo: CliAuthRepository, config: Settings) -> None:
    """Build the CLI auth services on top of ``repo`` and store them in app state."""
    providers = build_identity_providers(
        config.provider_configs(),
        timeout=config.provider_http_timeout,
    )
    email_config = config.email_config()
    scheduler = BackgroundScheduler()

    sessions = SessionManager(repo, hash_rounds=config.token_hash_rounds)
    provisioner = AccountProvisioner(repo)
    api_keys = ApiKeyIssuer(
        repo,
        entitlements=get_entitlements_adapter(repo, config.license_plan),
        hash_rounds=config.token_hash_rounds,
    )

    app.state.repo = repo
    app.state.scheduler = scheduler
    app.state.sessions = sessions
    app.state.provisioner = provisioner
    app.state.api_keys = api_keys
    app.state.applications = ApplicationRegistry(repo, api_keys)
    app.state.orchestrator = LoginOrchestrator(
        state_store=AuthorizationStateStore(repo),
        providers=providers,
        provisioner=provisioner,
        sessions=sessions,
        scheduler=scheduler,
        notifier=EmailNotifier(email_config) if email_config else None,
        config=OrchestratorConfig(public_base_url=config.public_base_url),
    )

    logger.info(f"cli_auth_configured: providers={sorted(p.value for p in providers)}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan - setup and teardown.

    This context manager handles:
    - Database connection pool setup and schema creation
    - Identity provider, session and API key service wiring
    - Draining background email work on shutdown
    """
    app_db: AppDatabase | None = None
    repo: CliAuthRepository

    if settings.app_database_url:
        app_db = AppDatabase(settings.app_database_url)
        await app_db.connect()
        if settings.create_schema:
            await create_schema(app_db)
        repo = PostgresCliAuthRepository(app_db)
    else:
        logger.warning("APP_DATABASE_URL not set, using in-memory storage")
        repo = InMemoryCliAuthRepository()

    app.state.app_db = app_db
    configure_services(app, repo, settings)

    yield

    await app.state.scheduler.drain()
    if app_db is not None:
        await app_db.close()


def get_orchestrator(request: Request) -> LoginOrchestrator:
    """Get the login orchestrator from app state.

    Args:
        request: The current request.

    Returns:
        The configured LoginOrchestrator.
    """
    orchestrator: LoginOrchestrator = request.app.state.orchestrator
    return orchestrator


def get_session_manager(request: Request) -> SessionManager:
    """Get the CLI session manager from app state."""
    sessions: SessionManager = request.app.state.sessions
    return sessions


def get_provisioner(request: Request) -> AccountProvisioner:
    """Get the account provisioner from app state."""
    provisioner: AccountProvisioner = request.app.state.provisioner
    return provisioner


def get_api_key_issuer(request: Request) -> ApiKeyIssuer:
    """Get the API key issuer from app state."""
    api_keys: ApiKeyIssuer = request.app.state.api_keys
    return api_keys


def get_application_registry(request: Request) -> ApplicationRegistry:
    """Get the connected application registry from app state."""
    applications: ApplicationRegistry = request.app.state.applications
    return applications
