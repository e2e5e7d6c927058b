from __future__ import annotations

import logging
import asyncio
from collections.abc import Awaitable, Callable
from typing import Protocol

from apscheduler.job import Job
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler

logger = logging.getLogger(__name__)

PollCallback = Callable[[], Awaitable[object]]


class PollHandle(Protocol):
    def cancel(self) -> None: ...


class PollScheduler(Protocol):
    def every(self, seconds: float, callback: PollCallback) -> PollHandle: ...


class _JobHandle:
    def __init__(self, job: Job) -> None:
        self._job: Job | None = job

    def cancel(self) -> None:
        if self._job is None:
            return
        try:
            self._job.remove()
        except JobLookupError:
            pass
        self._job = None


class ApschedulerPoller:
    """Interval jobs on an ``AsyncIOScheduler`` running in the app's event loop."""

    def __init__(self, scheduler: AsyncIOScheduler | None = None) -> None:
        self._scheduler = scheduler or AsyncIOScheduler(timezone="UTC")

    def every(self, seconds: float, callback: PollCallback) -> PollHandle:
        job = self._scheduler.add_job(
            callback,
            "interval",
            seconds=seconds,
            max_instances=1,
            coalesce=True,
        )
        if not self._scheduler.running:
            self._scheduler.start()
        logger.debug("Poll job registered", extra={"job_id": job.id, "seconds": seconds})
        return _JobHandle(job)

    async def shutdown(self) -> None:
        if not self._scheduler.running:
            return
        self._scheduler.shutdown(wait=False)
        # AsyncIOScheduler stops on the next loop iteration
        await asyncio.sleep(0)
