'''CLI for feedrelay: manage channel subscriptions and run the poll heartbeat.'''

import asyncio

import fire
import structlog
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from feedrelay.config import RelayConfig
from feedrelay.errors import FeedRelayError
from feedrelay.scheduler import get_scheduler
from feedrelay.service import FeedService

console = Console()


def _configure_plain_tracebacks() -> None:
    '''Use standard Python tracebacks instead of Rich's fancy format.'''
    from structlog.contextvars import merge_contextvars
    from structlog.dev import ConsoleRenderer, plain_traceback, set_exc_info
    from structlog.processors import StackInfoRenderer, TimeStamper, add_log_level

    structlog.configure(
        processors=[
            merge_contextvars,
            add_log_level,
            StackInfoRenderer(),
            set_exc_info,
            TimeStamper(fmt='%Y-%m-%d %H:%M:%S', utc=False),
            ConsoleRenderer(exception_formatter=plain_traceback),
        ],
    )


def _service(config: RelayConfig) -> FeedService:
    return FeedService.from_config(config)


def _run(coro):
    try:
        return asyncio.run(coro)
    except FeedRelayError as e:
        console.print(Text(str(e), style='red'))
        raise SystemExit(1) from e


def main() -> None:
    '''feedrelay: RSS/Atom feed subscriptions delivered to channels.'''
    load_dotenv()
    _configure_plain_tracebacks()
    fire.Fire({
        'subscribe': subscribe,
        'unsubscribe': unsubscribe,
        'list': list_subscriptions,
        'fetch': fetch,
        'run': run_once,
        'serve': serve,
    })


def subscribe(channel: str, url: str, user_id: str = '') -> None:
    '''Validate url with one fetch and subscribe channel to it.'''
    config = RelayConfig.from_env()
    sub, info = _run(_service(config).subscribe(channel, url, user_id=user_id))
    body = f'{sub.url}\nformat: {info.format.name}  id: {sub.id}'
    if info.generator:
        body += f'\ngenerator: {info.generator}'
    console.print(Panel(Text(body), title=Text(f'Subscribed to {sub.title or sub.url}'), border_style=sub.color))


def unsubscribe(channel: str, target) -> None:
    '''Remove a subscription by numeric id or URL.'''
    config = RelayConfig.from_env()
    identifier = target if isinstance(target, int) else str(target)
    removed = _run(_service(config).unsubscribe(channel, identifier))
    console.print(f'Unsubscribed from {removed.title or removed.url}', markup=False)


def list_subscriptions(channel: str) -> None:
    '''Show the channel's subscriptions in insertion order.'''
    config = RelayConfig.from_env()
    subs = _run(_service(config).list_subscriptions(channel))
    if not len(subs):
        console.print(f'No subscriptions in {channel}')
        return
    table = Table(title=f'Subscriptions in {channel}')
    table.add_column('ID', justify='right')
    table.add_column('Title')
    table.add_column('Format')
    if not config.hide_urls:
        table.add_column('URL')
    for sub in subs:
        row = [str(sub.id), Text(sub.title), sub.format.name]
        if not config.hide_urls:
            row.append(Text(sub.url))
        table.add_row(*row)
    console.print(table)


def fetch(channel: str, target) -> None:
    '''Poll one subscription now, by numeric id or URL.'''
    config = RelayConfig.from_env()
    identifier = target if isinstance(target, int) else str(target)
    sub = _run(_service(config).poll_one(channel, identifier))
    console.print(f'Fetched {sub.title or sub.url}', markup=False)


def run_once() -> None:
    '''Run one heartbeat over every stored channel.'''
    config = RelayConfig.from_env()
    _run(_service(config).run_heartbeat())


def serve(interval_minutes: float = 0, scheduler: str = 'asyncio') -> None:
    '''
    Run the heartbeat every interval_minutes (default FEEDRELAY_HEARTBEAT_MINUTES, 15).
    scheduler: asyncio | apscheduler
    '''
    config = RelayConfig.from_env()
    interval = interval_minutes * 60 if interval_minutes else config.heartbeat_seconds
    service = _service(config)

    sched = get_scheduler(kind=scheduler, interval_seconds=interval)
    sched.schedule(service.run_heartbeat)

    console.print(Panel(f'Starting feedrelay heartbeat (interval={interval:g}s)', title='feedrelay'))
    try:
        asyncio.run(_serve(sched))
    except KeyboardInterrupt:
        pass


async def _serve(scheduler) -> None:
    await scheduler.start()
    try:
        while True:
            await asyncio.sleep(3600)
    except asyncio.CancelledError:
        pass
    finally:
        await scheduler.stop()
