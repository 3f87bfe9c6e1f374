'''Heartbeat loop on plain asyncio.'''

import asyncio
from collections.abc import Callable, Coroutine
from typing import Any

import structlog

from feedrelay.scheduler.base import Scheduler

logger = structlog.get_logger()


class AsyncioLoopScheduler(Scheduler):
    '''
    Runs the callback immediately, then every interval_seconds. The stop event
    is checked between ticks and interrupts the sleep, never a tick.
    '''

    def __init__(self, interval_seconds: float = 900) -> None:
        self._interval = interval_seconds
        self._callback: Callable[..., Coroutine[Any, Any, None]] | None = None
        self._args: tuple[Any, ...] = ()
        self._kwargs: dict[str, Any] = {}
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()
        self.ticks = 0

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
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if not self._callback:
            raise RuntimeError('No callback scheduled; call schedule() first')
        if self.running:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._run_loop())

    async def stop(self) -> None:
        self._stop_event.set()
        if self._task:
            await self._task
            self._task = None

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self._callback(*self._args, **self._kwargs)
            except Exception:
                logger.exception('heartbeat tick failed')
            self.ticks += 1
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass
