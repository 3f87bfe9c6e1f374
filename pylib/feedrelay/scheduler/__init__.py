'''Scheduler implementations. Swap via scheduler= param or FEEDRELAY_SCHEDULER.'''

from feedrelay.scheduler.base import Scheduler
from feedrelay.scheduler.asyncio_loop import AsyncioLoopScheduler

__all__ = ['Scheduler', 'AsyncioLoopScheduler', 'get_scheduler']


def get_scheduler(kind: str = 'asyncio', interval_seconds: float = 900) -> Scheduler:
    '''
    Factory for scheduler. kind: asyncio (default), apscheduler (if installed).
    '''
    if kind == 'asyncio':
        return AsyncioLoopScheduler(interval_seconds=interval_seconds)
    if kind == 'apscheduler':
        from feedrelay.scheduler.apscheduler_impl import APSchedulerImpl
        return APSchedulerImpl(interval_seconds=interval_seconds)
    raise ValueError(f'unknown scheduler: {kind}')
