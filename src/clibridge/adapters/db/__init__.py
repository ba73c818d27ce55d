"""Storage adapters for the CLI auth repository."""

from clibridge.adapters.db.app_db import AppDatabase
from clibridge.adapters.db.memory import InMemoryCliAuthRepository
from clibridge.adapters.db.postgres import PostgresCliAuthRepository
from clibridge.adapters.db.schema import create_schema

__all__ = [
    "AppDatabase",
    "InMemoryCliAuthRepository",
    "PostgresCliAuthRepository",
    "create_schema",
]
