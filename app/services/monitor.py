import asyncio
import logging
from contextlib import suppress
from datetime import datetime
from typing import List, Optional

from sqlmodel import col, select

from app.core.time import utc_now
from app.models import Actor, Poll, QueueAction, QueueSettings, QueueStatus
from app.schemas import CompletionResult
from app.services.scheduler import QueueScheduler, seconds_since


class AutoAdvanceMonitor:
    """Periodically completes active polls whose time is up, across all sessions.

    One instance per process, started and stopped by the application
    lifespan. Safe to run next to manual controls: each completion goes
    through the scheduler, which re-checks expiry under the session lock.
    """

    def __init__(self, scheduler: QueueScheduler, interval_seconds: float = 10.0):
        self.logger = logging.getLogger("monitor")
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self.task is not None and not self.task.done()

    def start(self) -> None:
        if self.running:
            return
        self.task = asyncio.create_task(self._loop(), name="auto-advance-monitor")
        self.logger.info("Poll queue auto-advance monitor started interval=%ss", self.interval_seconds)

    async def stop(self) -> None:
        if not self.task:
            return
        self.task.cancel()
        with suppress(asyncio.CancelledError):
            await self.task
        self.task = None
        self.logger.info("Poll queue auto-advance monitor stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await self.check_and_advance()
            except Exception:
                self.logger.exception("Auto-advance tick failed")
            await asyncio.sleep(self.interval_seconds)

    async def find_expired(self, now: datetime) -> List[Poll]:
        async with self.scheduler.session_factory() as db:
            result = await db.exec(
                select(Poll, QueueSettings)
                .join(QueueSettings, QueueSettings.session_id == Poll.session_id)
                .where(
                    Poll.queue_status == QueueStatus.ACTIVE,
                    QueueSettings.auto_advance == True,  # noqa: E712
                    col(Poll.activated_at).is_not(None),
                )
            )
            rows = result.all()
        return [
            poll
            for poll, settings_row in rows
            if seconds_since(poll.activated_at, now) > settings_row.poll_duration
        ]

    async def check_and_advance(self, now: Optional[datetime] = None) -> List[CompletionResult]:
        """Run one scan. Errors on one poll are logged and do not stop the others."""
        now = now or utc_now()
        completed: List[CompletionResult] = []
        for poll in await self.find_expired(now):
            self.logger.info("Auto-advancing expired poll %s in session %s", poll.id, poll.session_id)
            try:
                result = await self.scheduler.complete_and_advance(
                    poll.id,
                    action=QueueAction.EXPIRED,
                    actor=Actor.SYSTEM,
                    expired_as_of=now,
                )
            except Exception:
                self.logger.exception("Failed to auto-advance poll %s in session %s", poll.id, poll.session_id)
                continue
            if result.changed:
                completed.append(result)
        return completed
