'''Heartbeat scheduler abstraction.'''

from abc import ABC, abstractmethod
from collections.abc import Callable, Coroutine
from typing import Any


class Scheduler(ABC):
    '''Run a callback repeatedly. stop() lets a tick already in progress finish.'''

    @abstractmethod
    async def start(self) -> None:
        '''Start the scheduler.'''

    @abstractmethod
    async def stop(self) -> None:
        '''Signal stop and wait for any in-flight tick.'''

    @abstractmethod
    def schedule(
        self,
        callback: Callable[..., Coroutine[Any, Any, None]],
        *args: Any,
        **kwargs: Any,
    ) -> None:
        '''Register the tick callback.'''

    @property
    @abstractmethod
    def running(self) -> bool:
        ...
