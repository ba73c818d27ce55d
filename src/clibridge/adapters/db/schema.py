"""Create the application schema from the SQLAlchemy table declarations."""

import structlog
from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex, CreateTable

from clibridge.adapters.db.app_db import AppDatabase
from clibridge.models import metadata

logger = structlog.get_logger()


def schema_statements() -> list[str]:
    """DDL for every table and index, in dependency order."""
    dialect = postgresql.dialect()
    statements: list[str] = []
    for table in metadata.sorted_tables:
        statements.append(str(CreateTable(table, if_not_exists=True).compile(dialect=dialect)))
        for index in sorted(table.indexes, key=lambda ix: str(ix.name)):
            statements.append(str(CreateIndex(index, if_not_exists=True).compile(dialect=dialect)))
    return statements


async def create_schema(db: AppDatabase) -> None:
    """Create missing tables and indexes. Safe to run on every start."""
    statements = schema_statements()
    async with db.acquire() as conn:
        async with conn.transaction():
            for statement in statements:
                await conn.execute(statement)
    logger.info("app_schema_ready", statements=len(statements))
