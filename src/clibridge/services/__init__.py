"""Application services."""

from clibridge.services.scheduler import BackgroundScheduler

__all__ = ["BackgroundScheduler"]
