"""Base model with common fields for all models."""

from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import DateTime, MetaData, func, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# Custom naming conventions for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)


class BaseModel(DeclarativeBase):
    """Base model with common fields."""

    metadata = metadata

    # Mark as abstract so child classes are concrete tables
    __abstract__ = True

    # All timestamps are timestamptz
    type_annotation_map = {datetime: DateTime(timezone=True)}

    # Raw SQL inserts rely on the server-side default
    id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4, server_default=text("gen_random_uuid()")
    )
    created_at: Mapped[datetime] = mapped_column(server_default=func.now(), nullable=False)
