"""API key and connected application models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, Index, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from clibridge.models.base import BaseModel


class ApiKey(BaseModel):
    """Organization-scoped API key."""

    __tablename__ = "api_keys"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    secret_hash: Mapped[str] = mapped_column(String(72), nullable=False)  # bcrypt
    prefix: Mapped[str] = mapped_column(String(12), nullable=False, index=True)
    scopes: Mapped[list[str]] = mapped_column(JSONB, default=lambda: ["*"])
    status: Mapped[str] = mapped_column(String(20), default="active", server_default="active")
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Application(BaseModel):
    """Application connected from the CLI, holding at most one API key."""

    __tablename__ = "applications"

    organization_id: Mapped[UUID] = mapped_column(
        ForeignKey("organizations.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="active", server_default="active")
    api_key_id: Mapped[UUID | None] = mapped_column(ForeignKey("api_keys.id"), nullable=True)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    __table_args__ = (
        # One key, one live application
        Index(
            "uq_applications_active_api_key",
            "api_key_id",
            unique=True,
            postgresql_where=text("status <> 'archived'"),
        ),
    )
