'''Host-facing facade: subscription commands plus on-demand and scheduled polling.'''

from urllib.parse import urlparse

import structlog

from feedrelay.batcher import NotificationBatcher
from feedrelay.config import RelayConfig
from feedrelay.delivery import ConsoleSink, DeliverySink, WebhookSink
from feedrelay.diff import FeedDiffEngine
from feedrelay.errors import DuplicateSubscription, InvalidFeedURL
from feedrelay.fetchers import FeedFetcher, SubscriptionInfo, create_fetcher, fetch_feed_info
from feedrelay.kvstore import FileKVStore, KVStore
from feedrelay.poller import FeedPoller
from feedrelay.render import Renderer
from feedrelay.repository import SubscriptionRepository
from feedrelay.subscription import Subscription, SubscriptionList

logger = structlog.get_logger()


def validate_feed_url(url: str) -> str:
    url = url.strip()
    parts = urlparse(url)
    if parts.scheme not in ('http', 'https') or not parts.netloc:
        raise InvalidFeedURL(f'not an http(s) URL: {url!r}')
    return url


class FeedService:
    def __init__(
        self,
        store: KVStore,
        fetcher: FeedFetcher,
        sink: DeliverySink,
        renderer: Renderer | None = None,
        batcher: NotificationBatcher | None = None,
        diff_engine: FeedDiffEngine | None = None,
        keys_page_size: int = 50,
    ) -> None:
        self.repository = SubscriptionRepository(store)
        self.fetcher = fetcher
        self.poller = FeedPoller(
            self.repository,
            fetcher,
            sink,
            renderer=renderer,
            batcher=batcher,
            diff_engine=diff_engine,
            keys_page_size=keys_page_size,
        )

    @classmethod
    def from_config(cls, config: RelayConfig, sink: DeliverySink | None = None) -> 'FeedService':
        '''Wire a service from config: file store, HTTP fetcher, webhook sink if configured else console.'''
        if sink is None:
            sink = WebhookSink(config.webhook_url) if config.webhook_url else ConsoleSink()
        return cls(
            FileKVStore(config.store_dir),
            create_fetcher(connect_timeout=config.connect_timeout, header_timeout=config.header_timeout),
            sink,
            renderer=Renderer(
                show_description=config.show_description,
                gravatar_default=config.gravatar_default,
                sort_by_timestamp=config.sort_by_timestamp,
            ),
            batcher=NotificationBatcher(config.max_batch_runes, group_messages=config.group_messages),
            diff_engine=FeedDiffEngine(strict_rss=config.strict_rss_diff),
            keys_page_size=config.keys_page_size,
        )

    async def subscribe(self, channel: str, url: str, user_id: str = '') -> tuple[Subscription, SubscriptionInfo]:
        '''
        Validate url with one fetch and add it to channel. Raises InvalidFeedURL,
        DuplicateSubscription, FetchError or UnknownFormat; nothing is stored on error.
        '''
        url = validate_feed_url(url)
        if await self.repository.find_by_url(channel, url) is not None:
            raise DuplicateSubscription(channel, url)
        info, _, _ = await fetch_feed_info(self.fetcher, url)
        sub = Subscription.create(url, info.title, info.format, user_id=user_id)
        await self.repository.add(channel, sub)
        return sub, info

    async def unsubscribe(self, channel: str, identifier: int | str) -> Subscription:
        '''identifier is a numeric id (int) or URL (str). Raises NotSubscribed.'''
        if isinstance(identifier, int):
            return await self.repository.remove_by_id(channel, identifier)
        return await self.repository.remove_by_url(channel, identifier)

    async def list_subscriptions(self, channel: str) -> SubscriptionList:
        return await self.repository.load(channel)

    async def poll_once(self, channel: str) -> SubscriptionList:
        return await self.poller.poll_channel(channel)

    async def poll_one(self, channel: str, identifier: int | str) -> Subscription:
        return await self.poller.poll_one(channel, identifier)

    async def run_heartbeat(self) -> None:
        await self.poller.run_heartbeat()
