"""In-process scheduler for the daily payment reminder run.

``ReminderScheduler`` owns its own asyncio task; the application lifespan
creates one, starts it, and stops it on shutdown. ``start()`` is a no-op if
the loop is already running. The first run happens immediately, then one
every ``interval``. Each run is bounded by ``run_timeout`` so a hung SMTP
relay or database cannot starve later runs.

There is no cross-process lock: running several API processes with the
scheduler enabled can send duplicate reminders. Enable it on one process only.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta

from casual_lease.core.config import settings
from casual_lease.core.database import async_session_factory
from casual_lease.core.time import utc_now
from casual_lease.services.payment_reminders import ReminderRunResult, send_payment_reminders

logger = logging.getLogger(__name__)


async def run_payment_reminders() -> ReminderRunResult:
    """One reminder run on a dedicated session."""
    async with async_session_factory() as db:
        return await send_payment_reminders(db)


class ReminderScheduler:
    def __init__(
        self,
        job: Callable[[], Awaitable[ReminderRunResult]] = run_payment_reminders,
        interval: timedelta | None = None,
        run_timeout: timedelta | None = None,
    ) -> None:
        self._job = job
        self.interval = interval or timedelta(hours=settings.reminder_interval_hours)
        self.run_timeout = run_timeout or timedelta(seconds=settings.reminder_run_timeout_seconds)
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the loop on the running event loop. Idempotent."""
        if self.running:
            logger.info("Payment reminder scheduler already running")
            return

        self._task = asyncio.get_running_loop().create_task(self._loop(), name="payment-reminder-scheduler")
        logger.info("Payment reminder scheduler started (every %s)", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Payment reminder scheduler stopped")

    async def run_once(self) -> ReminderRunResult | None:
        """Run the job under the per-run deadline. Never raises."""
        logger.info("Payment reminder run starting at %s", utc_now().isoformat())
        try:
            async with asyncio.timeout(self.run_timeout.total_seconds()):
                result = await self._job()
        except TimeoutError:
            logger.error("Payment reminder run exceeded %s and was abandoned", self.run_timeout)
            return None
        except Exception:
            logger.exception("Payment reminder run failed")
            return None

        logger.info("Payment reminder run completed: %d sent, %d failed", result.sent, result.failed)
        return result

    async def _loop(self) -> None:
        while True:
            await self.run_once()
            await asyncio.sleep(self.interval.total_seconds())
