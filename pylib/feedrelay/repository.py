'''
Per-channel subscription persistence over a KVStore.

Record layout: {"Subscriptions": [{URL, Title, Format, XML|Timestamp, ETag, Color, ID, UserID}]}.
Older records keyed subscriptions by URL ({"Subscriptions": {url: {...}}}); those are
converted on read and only ever written back in list form. Records with no format
keep both XML and Timestamp until the first fetch decides which one applies.
'''

import json

import structlog

from feedrelay.errors import DuplicateSubscription, NotSubscribed, StoreError
from feedrelay.kvstore import KVStore
from feedrelay.models import FeedFormat
from feedrelay.subscription import (
    AtomState,
    RSSState,
    Subscription,
    SubscriptionList,
    UnresolvedState,
    url_color,
    url_id,
)

logger = structlog.get_logger()


class _SchemaMismatch(ValueError):
    pass


def _format(value) -> FeedFormat:
    try:
        return FeedFormat(int(value or 0))
    except (TypeError, ValueError):
        return FeedFormat.UNKNOWN


def subscription_from_record(record: dict) -> Subscription:
    '''Decode one stored subscription, backfilling id and color for older records.'''
    url = record['URL']
    fmt = _format(record.get('Format'))
    if fmt == FeedFormat.RSS2:
        state = RSSState(snapshot=record.get('XML') or '')
    elif fmt == FeedFormat.ATOM:
        state = AtomState(last_seen=int(record.get('Timestamp') or 0))
    else:
        state = UnresolvedState(
            snapshot=record.get('XML') or '',
            last_seen=int(record.get('Timestamp') or 0),
        )
    return Subscription(
        url=url,
        title=record.get('Title') or '',
        format=fmt,
        state=state,
        etag=record.get('ETag') or '',
        color=record.get('Color') or url_color(url),
        id=int(record.get('ID') or 0) or url_id(url),
        user_id=record.get('UserID') or '',
    )


def subscription_to_record(sub: Subscription) -> dict:
    record = {
        'URL': sub.url,
        'Title': sub.title,
        'Format': int(sub.format),
        'ETag': sub.etag,
        'Color': sub.color,
        'ID': sub.id,
        'UserID': sub.user_id,
    }
    if isinstance(sub.state, RSSState):
        record['XML'] = sub.state.snapshot
    elif isinstance(sub.state, AtomState):
        record['Timestamp'] = sub.state.last_seen
    elif isinstance(sub.state, UnresolvedState):
        record['XML'] = sub.state.snapshot
        record['Timestamp'] = sub.state.last_seen
    return record


def _decode_current(data) -> SubscriptionList:
    subs = data.get('Subscriptions') if isinstance(data, dict) else None
    if not isinstance(subs, list):
        raise _SchemaMismatch('Subscriptions is not a list')
    return SubscriptionList([subscription_from_record(r) for r in subs])


def _decode_legacy(data) -> SubscriptionList:
    subs = data.get('Subscriptions') if isinstance(data, dict) else None
    if not isinstance(subs, dict):
        raise _SchemaMismatch('Subscriptions is not a map')
    return SubscriptionList([subscription_from_record({'URL': url, **r}) for url, r in subs.items()])


def decode_subscriptions(raw: bytes) -> SubscriptionList:
    '''Try the list schema, then the legacy map schema. Raises StoreError if neither fits.'''
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise StoreError(f'subscription record is not JSON: {e}') from e
    if data is None:
        return SubscriptionList()
    try:
        return _decode_current(data)
    except (_SchemaMismatch, KeyError, TypeError, ValueError) as current_err:
        try:
            subs = _decode_legacy(data)
        except (_SchemaMismatch, KeyError, TypeError, ValueError) as e:
            raise StoreError(f'unreadable subscription record: {current_err}; legacy: {e}') from e
        logger.info('migrated legacy subscription record', count=len(subs))
        return subs


def encode_subscriptions(subs: SubscriptionList) -> bytes:
    return json.dumps({'Subscriptions': [subscription_to_record(s) for s in subs]}).encode('utf-8')


class SubscriptionRepository:
    '''
    All mutations are read-modify-write of the full channel list. Two writers on
    the same channel (heartbeat and a manual command) can still lose an update.
    '''

    def __init__(self, store: KVStore) -> None:
        self.kv = store

    async def load(self, channel: str) -> SubscriptionList:
        raw = await self.kv.get(channel)
        if raw is None:
            return SubscriptionList()
        return decode_subscriptions(raw)

    async def store(self, channel: str, subs: SubscriptionList) -> None:
        await self.kv.set(channel, encode_subscriptions(subs))

    async def find_by_url(self, channel: str, url: str) -> Subscription | None:
        return (await self.load(channel)).find(url)

    async def find_by_id(self, channel: str, sub_id: int) -> Subscription | None:
        return (await self.load(channel)).find_id(sub_id)

    async def add(self, channel: str, sub: Subscription) -> SubscriptionList:
        subs = await self.load(channel)
        if subs.find(sub.url) is not None:
            raise DuplicateSubscription(channel, sub.url)
        subs.append(sub)
        await self.store(channel, subs)
        logger.info('subscription added', channel=channel, url=sub.url, id=sub.id)
        return subs

    async def remove_by_url(self, channel: str, url: str) -> Subscription:
        subs = await self.load(channel)
        index = subs.index_of(url)
        if index < 0:
            raise NotSubscribed(channel, url)
        return await self._remove(channel, subs, index)

    async def remove_by_id(self, channel: str, sub_id: int) -> Subscription:
        subs = await self.load(channel)
        index = subs.index_of_id(sub_id)
        if index < 0:
            raise NotSubscribed(channel, sub_id)
        return await self._remove(channel, subs, index)

    async def _remove(self, channel: str, subs: SubscriptionList, index: int) -> Subscription:
        removed = subs.pop(index)
        await self.store(channel, subs)
        logger.info('subscription removed', channel=channel, url=removed.url, id=removed.id)
        return removed

    async def channels(self, page_size: int = 50):
        '''Yield every stored channel key, page by page.'''
        page = 0
        while True:
            keys = await self.kv.list_keys(page, page_size)
            for key in keys:
                yield key
            if len(keys) < page_size:
                return
            page += 1
