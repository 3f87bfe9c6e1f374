'''
Poll cycle: fetch, parse, diff, render, batch, deliver, persist.
FeedPoller.run_heartbeat is the callback for the scheduler.
'''

import asyncio
from dataclasses import replace

import structlog

from feedrelay.batcher import NotificationBatcher
from feedrelay.delivery import DeliverySink
from feedrelay.diff import FeedDiffEngine
from feedrelay.errors import NotSubscribed
from feedrelay.fetchers import FeedFetcher
from feedrelay.models import FeedFormat
from feedrelay.parser import decode_document, parse, sniff
from feedrelay.render import Renderer
from feedrelay.repository import SubscriptionRepository
from feedrelay.subscription import Subscription, SubscriptionList, UnresolvedState, initial_state

logger = structlog.get_logger()


class FeedPoller:
    def __init__(
        self,
        repository: SubscriptionRepository,
        fetcher: FeedFetcher,
        sink: DeliverySink,
        renderer: Renderer | None = None,
        batcher: NotificationBatcher | None = None,
        diff_engine: FeedDiffEngine | None = None,
        keys_page_size: int = 50,
    ) -> None:
        self.repository = repository
        self.fetcher = fetcher
        self.sink = sink
        self.renderer = renderer or Renderer()
        self.batcher = batcher or NotificationBatcher()
        self.diff_engine = diff_engine or FeedDiffEngine()
        self.keys_page_size = keys_page_size

    async def poll_subscription(self, channel: str, sub: Subscription) -> Subscription:
        '''
        One cycle for one subscription. Returns the subscription with validator
        and diff state advanced, or sub itself when the server answered 304.
        Any failure raises and nothing is advanced.
        '''
        log = logger.bind(channel=channel, url=sub.url)
        result = await self.fetcher.fetch(sub.url, sub.etag)
        if result.not_modified:
            return sub

        if sub.format == FeedFormat.UNKNOWN:
            feed = sniff(result.content)
            if isinstance(sub.state, UnresolvedState):
                state = sub.state.resolve(feed.format)
            else:
                state = initial_state(feed.format)
            sub = replace(sub, format=feed.format, state=state)
            log.info('feed format detected', format=feed.format.name)
        else:
            feed = parse(sub.format, result.content)

        diff = self.diff_engine.diff(sub.state, feed, decode_document(result.content, feed))
        if diff.entries:
            payloads = self.renderer.render(sub, diff.entries)
            batches = self.batcher.group(payloads)
            for batch in batches:
                await self.sink.post(channel, batch)
            log.info('new entries delivered', entries=len(diff.entries), batches=len(batches))
        return sub.advance(diff.state, result.etag)

    async def _poll_guarded(self, channel: str, sub: Subscription) -> Subscription:
        try:
            return await self.poll_subscription(channel, sub)
        except Exception:
            logger.exception('subscription poll failed', channel=channel, url=sub.url)
            return sub

    async def poll_channel(self, channel: str) -> SubscriptionList:
        '''Poll every subscription of channel concurrently, then store the list once if anything moved.'''
        subs = await self.repository.load(channel)
        if not len(subs):
            return subs
        results = await asyncio.gather(*(self._poll_guarded(channel, s) for s in subs))
        updated = SubscriptionList(list(results))
        if updated.subscriptions != subs.subscriptions:
            await self.repository.store(channel, updated)
        return updated

    async def poll_one(self, channel: str, identifier: int | str) -> Subscription:
        '''
        Poll a single subscription on demand; identifier is an id (int) or URL (str).
        Errors propagate to the caller.
        '''
        subs = await self.repository.load(channel)
        sub = subs.find_id(identifier) if isinstance(identifier, int) else subs.find(identifier)
        if sub is None:
            raise NotSubscribed(channel, identifier)
        updated = await self.poll_subscription(channel, sub)
        if updated != sub:
            # Reload so subscriptions changed during the fetch are not clobbered
            current = await self.repository.load(channel)
            if current.replace(updated):
                await self.repository.store(channel, current)
        return updated

    async def run_heartbeat(self) -> None:
        '''One tick: poll every channel in the store.'''
        channels = [key async for key in self.repository.channels(self.keys_page_size)]
        logger.info('heartbeat', channels=len(channels))
        results = await asyncio.gather(*(self.poll_channel(c) for c in channels), return_exceptions=True)
        for channel, result in zip(channels, results):
            if isinstance(result, BaseException):
                logger.error('channel poll failed', channel=channel, error=str(result))
