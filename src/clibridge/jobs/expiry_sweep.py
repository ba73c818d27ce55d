"""Expired login state and CLI session cleanup job.

Run via: python -m clibridge.jobs.expiry_sweep
"""

import asyncio
import os
from collections.abc import Callable
from datetime import datetime

import structlog

from clibridge.adapters.db.app_db import AppDatabase
from clibridge.adapters.db.postgres import PostgresCliAuthRepository
from clibridge.core.auth.repository import CliAuthRepository
from clibridge.core.auth.sessions import SessionManager
from clibridge.core.auth.state_store import AuthorizationStateStore
from clibridge.core.auth.tokens import utcnow

logger = structlog.get_logger()


async def sweep(
    repo: CliAuthRepository,
    clock: Callable[[], datetime] = utcnow,
) -> tuple[int, int]:
    """Delete expired authorization states and sessions.

    Returns:
        Number of states and sessions removed.
    """
    states = await AuthorizationStateStore(repo, clock=clock).sweep_expired()
    sessions = await SessionManager(repo, clock=clock).sweep_expired()
    return states, sessions


async def main() -> None:
    """Run the expiry sweep against the application database."""
    database_url = os.getenv("APP_DATABASE_URL")
    if not database_url:
        logger.error("APP_DATABASE_URL not set")
        return

    logger.info("Connecting to database...")
    db = AppDatabase(database_url, min_size=1, max_size=2)
    await db.connect()

    try:
        states, sessions = await sweep(PostgresCliAuthRepository(db))
        logger.info("expiry_sweep_finished", states=states, sessions=sessions)
    finally:
        await db.close()


if __name__ == "__main__":
    asyncio.run(main())
