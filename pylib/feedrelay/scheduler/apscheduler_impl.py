'''APScheduler-based heartbeat. Install with: pip install feedrelay[scheduler-apscheduler]'''

import asyncio
from collections.abc import Callable, Coroutine
from datetime import datetime
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from feedrelay.scheduler.base import Scheduler

logger = structlog.get_logger()


class APSchedulerImpl(Scheduler):
    '''Interval job on APScheduler; overlapping ticks are skipped (max_instances=1).'''

    def __init__(self, interval_seconds: float = 900) -> None:
        self._interval = interval_seconds
        self._scheduler = AsyncIOScheduler()
        self._callback: Callable[..., Coroutine[Any, Any, None]] | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}
        self._idle = asyncio.Event()
        self._idle.set()

    def schedule(
        self,
        callback: Callable[..., Coroutine[Any, Any, None]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        self._callback = callback
        self._args = args
        self._kwargs = kwargs

    @property
    def running(self) -> bool:
        return self._scheduler.running

    async def _job_wrapper(self) -> None:
        self._idle.clear()
        try:
            await self._callback(*self._args, **self._kwargs)
        except Exception:
            logger.exception('heartbeat tick failed')
        finally:
            self._idle.set()

    async def start(self) -> None:
        if not self._callback:
            raise RuntimeError('No callback scheduled; call schedule() first')
        self._scheduler.add_job(
            self._job_wrapper,
            IntervalTrigger(seconds=self._interval),
            id='feedrelay_heartbeat',
            next_run_time=datetime.now(),
            max_instances=1,
            coalesce=True,
        )
        self._scheduler.start()

    async def stop(self) -> None:
        if not self._scheduler.running:
            return
        # APScheduler's asyncio executor cancels pending jobs on shutdown
        self._scheduler.pause()
        await self._idle.wait()
        self._scheduler.shutdown(wait=False)
