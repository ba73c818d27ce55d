"""Unit tests for BackgroundScheduler."""

from __future__ import annotations

import asyncio

from structlog.testing import capture_logs

from clibridge.services.scheduler import BackgroundScheduler


class TestBackgroundScheduler:
    """Tests for BackgroundScheduler."""

    async def test_runs_work(self) -> None:
        """Test that scheduled work runs to completion."""
        scheduler = BackgroundScheduler()
        done = asyncio.Event()

        async def work() -> None:
            done.set()

        scheduler.schedule("work", work())
        await scheduler.drain()

        assert done.is_set()
        assert scheduler.pending == 0

    async def test_failure_is_logged_not_raised(self) -> None:
        """Test that a failing task never reaches the caller."""
        scheduler = BackgroundScheduler()

        async def boom() -> None:
            raise RuntimeError("smtp down")

        with capture_logs() as logs:
            scheduler.schedule("welcome_email", boom())
            await scheduler.drain()

        failures = [log for log in logs if log["event"] == "background_task_failed"]
        assert failures == [
            {
                "event": "background_task_failed",
                "log_level": "error",
                "task": "welcome_email",
                "error": "smtp down",
                "error_type": "RuntimeError",
            }
        ]

    async def test_drain_cancels_stragglers(self) -> None:
        """Test that work outliving the drain timeout is cancelled."""
        scheduler = BackgroundScheduler()
        scheduler.schedule("slow", asyncio.sleep(60))

        with capture_logs() as logs:
            await scheduler.drain(timeout=0.01)
            await asyncio.sleep(0)

        assert any(log["event"] == "background_task_abandoned" for log in logs)
        assert scheduler.pending == 0

    async def test_drain_with_nothing_pending(self) -> None:
        """Test that draining an idle scheduler returns immediately."""
        await BackgroundScheduler().drain()
