"""Debounced per-user interest recomputation.

Each tracked activity (re)schedules a one-shot APScheduler job for its user.
A new activity inside the quiet period replaces the pending job, so a burst
of activity produces a single recomputation once the user goes quiet.

Pending jobs live in the scheduler's memory store and are lost on restart.
The set of pending users is bounded; when full, the least recently scheduled
user is dropped.
"""

from collections import OrderedDict
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from learnhub.config import config
from learnhub.jobs.scheduler import get_scheduler
from learnhub.logging import get_logger

logger = get_logger(__name__)

INTEREST_UPDATE_JOB_PREFIX = "interest_update:"


class InterestUpdateScheduler:
    """One pending interest recomputation per user, LRU-bounded."""

    def __init__(
        self,
        callback: Callable[[str], Awaitable[object]],
        delay_seconds: float | None = None,
        max_pending: int | None = None,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        self._callback = callback
        self.delay_seconds = (
            config.interest_update_delay_seconds if delay_seconds is None else delay_seconds
        )
        self.max_pending = max_pending or config.interest_update_max_pending
        self._scheduler = scheduler
        self._pending: OrderedDict[str, str] = OrderedDict()

    @property
    def scheduler(self) -> AsyncIOScheduler:
        return self._scheduler or get_scheduler()

    @staticmethod
    def job_id_for(user_id: str) -> str:
        return f"{INTEREST_UPDATE_JOB_PREFIX}{user_id}"

    def schedule(self, user_id: str) -> str:
        """Schedule (or push back) the recomputation for a user.

        Returns:
            The scheduler job ID
        """
        job_id = self.job_id_for(user_id)
        run_at = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)

        self.scheduler.add_job(
            self._fire,
            "date",
            run_date=run_at,
            args=[user_id],
            id=job_id,
            name=f"Interest update ({user_id})",
            replace_existing=True,
        )
        self._pending[user_id] = job_id
        self._pending.move_to_end(user_id)

        while len(self._pending) > self.max_pending:
            evicted_user, evicted_job = self._pending.popitem(last=False)
            self._remove_job(evicted_job)
            logger.warning(
                "Interest update queue full, dropped pending update",
                extra={"context": {"user_id": evicted_user, "max_pending": self.max_pending}},
            )

        logger.debug(
            "Interest update scheduled",
            extra={"context": {"user_id": user_id, "delay": self.delay_seconds}},
        )
        return job_id

    def cancel(self, user_id: str) -> bool:
        """Drop a user's pending recomputation, if any."""
        job_id = self._pending.pop(user_id, None)
        if job_id is None:
            return False
        self._remove_job(job_id)
        return True

    def is_pending(self, user_id: str) -> bool:
        return user_id in self._pending

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def _remove_job(self, job_id: str) -> None:
        try:
            self.scheduler.remove_job(job_id)
        except JobLookupError:
            pass

    async def _fire(self, user_id: str) -> None:
        self._pending.pop(user_id, None)
        try:
            await self._callback(user_id)
        except Exception as e:
            logger.exception(
                f"Scheduled interest update failed: {e}",
                extra={"context": {"user_id": user_id}},
            )
