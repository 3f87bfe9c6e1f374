'''Delivery sinks: where finished batches go. The host normally supplies its own.'''

import os
from abc import ABC, abstractmethod

import httpx
import structlog
from rich.console import Console
from rich.panel import Panel
from rich.text import Text
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from feedrelay.batcher import Batch
from feedrelay.errors import DeliveryError

logger = structlog.get_logger()


class DeliverySink(ABC):
    @abstractmethod
    async def post(self, channel: str, batch: Batch) -> None:
        '''Deliver one batch to channel. Raises DeliveryError on failure.'''


class MemorySink(DeliverySink):
    '''Collects (channel, batch) pairs; for embedding and tests.'''

    def __init__(self) -> None:
        self.posts: list[tuple[str, Batch]] = []

    async def post(self, channel: str, batch: Batch) -> None:
        self.posts.append((channel, list(batch)))


class ConsoleSink(DeliverySink):
    '''Print each payload as a rich panel. Feed text is never read as console markup.'''

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    async def post(self, channel: str, batch: Batch) -> None:
        for payload in batch:
            body = '\n'.join(part for part in (payload.link, payload.text) if part)
            subtitle = payload.author_name or None
            self.console.print(
                Panel(
                    Text(body or payload.title),
                    title=Text(f'[{channel}] {payload.title}'),
                    subtitle=Text(subtitle) if subtitle else None,
                    border_style=payload.color or 'blue',
                )
            )


class WebhookSink(DeliverySink):
    '''
    POST each batch as JSON {"channel": ..., "attachments": [...]} to a webhook.
    Transport errors and 5xx responses are retried with exponential backoff.
    '''

    def __init__(
        self,
        url: str | None = None,
        timeout: float = 30.0,
        attempts: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url or os.environ.get('FEEDRELAY_WEBHOOK_URL', '')
        if not self.url:
            raise ValueError('webhook URL required (FEEDRELAY_WEBHOOK_URL)')
        self.timeout = timeout
        self.attempts = attempts
        self.transport = transport

    async def post(self, channel: str, batch: Batch) -> None:
        payload = {'channel': channel, 'attachments': [p.to_dict() for p in batch]}

        @retry(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential(multiplier=1, min=2, max=10),
            retry=retry_if_exception_type(httpx.TransportError) | retry_if_exception_type(_ServerError),
            reraise=True,
        )
        async def _send():
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(self.url, json=payload)
                if resp.status_code >= 500:
                    raise _ServerError(resp.status_code)
                resp.raise_for_status()

        try:
            await _send()
        except (httpx.HTTPError, _ServerError) as e:
            raise DeliveryError(f'webhook delivery to {channel} failed: {e}') from e
        logger.debug('batch delivered', channel=channel, size=len(batch))


class _ServerError(Exception):
    def __init__(self, status: int) -> None:
        super().__init__(f'HTTP {status}')
        self.status = status
