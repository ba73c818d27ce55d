"""CLI login state and session models."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from clibridge.models.base import BaseModel


class CliLoginState(BaseModel):
    """Pending CLI login, consumed exactly once."""

    __tablename__ = "cli_login_states"

    state: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    # Not yet a valid credential: no session row references it until completion
    pending_session_token: Mapped[str] = mapped_column(String(128), nullable=False)
    callback_url: Mapped[str] = mapped_column(Text, nullable=False)
    provider_hint: Mapped[str | None] = mapped_column(String(20))
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)


class CliSession(BaseModel):
    """Long-lived CLI session. Holds a selector and a bcrypt hash, never the token."""

    __tablename__ = "cli_sessions"

    token_lookup: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    token_hash: Mapped[str] = mapped_column(String(72), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    organization_id: Mapped[UUID] = mapped_column(ForeignKey("organizations.id"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    last_used_at: Mapped[datetime | None] = mapped_column(nullable=True)
