'''
Tests for subscriptions and their persistence.

Covers id/color derivation, the list and legacy map record layouts, and
add/remove ordering.
'''

import json

import pytest

from feedrelay.errors import DuplicateSubscription, NotSubscribed, StoreError
from feedrelay.kvstore import MemoryKVStore
from feedrelay.models import FeedFormat
from feedrelay.repository import SubscriptionRepository, decode_subscriptions, encode_subscriptions
from feedrelay.subscription import (
    AtomState,
    RSSState,
    Subscription,
    SubscriptionList,
    UnresolvedState,
    url_color,
    url_id,
)


class TestSubscription:
    '''Subscription value semantics.'''

    def test_url_id_is_fnv1a(self):
        assert url_id('') == 0x811C9DC5
        assert url_id('a') == 0xE40C292C

    def test_color_is_stable(self):
        color = url_color('https://example.com/feed')
        assert color == url_color('https://example.com/feed')
        assert color.startswith('#') and len(color) == 7

    def test_create_sets_initial_state(self):
        rss = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        atom = Subscription.create('https://example.com/atom', 'A', FeedFormat.ATOM, user_id='u1')
        assert rss.state == RSSState('')
        assert atom.state == AtomState(0)
        assert atom.user_id == 'u1'
        assert rss.id == url_id('https://example.com/rss')

    def test_advance_moves_state_and_etag_together(self):
        sub = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        moved = sub.advance(RSSState('<rss/>'), '"v2"')
        assert (moved.state, moved.etag) == (RSSState('<rss/>'), '"v2"')
        assert sub.etag == ''


class TestRecordLayout:
    '''Encoding and decoding of a channel record.'''

    def test_round_trip_keeps_state_variants(self):
        subs = SubscriptionList([
            Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2).advance(RSSState('<rss/>'), 'e1'),
            Subscription.create('https://example.com/atom', 'A', FeedFormat.ATOM).advance(AtomState(1234), ''),
        ])
        raw = encode_subscriptions(subs)
        record = json.loads(raw)['Subscriptions']

        assert record[0]['XML'] == '<rss/>' and 'Timestamp' not in record[0]
        assert record[1]['Timestamp'] == 1234 and 'XML' not in record[1]
        assert decode_subscriptions(raw) == subs

    def test_legacy_map_is_migrated(self):
        '''URL-keyed records decode into a list with ids and colors backfilled.'''
        legacy = {
            'Subscriptions': {
                'https://example.com/one': {'URL': 'https://example.com/one', 'XML': ''},
                'https://example.com/two': {'XML': ''},
            }
        }
        subs = decode_subscriptions(json.dumps(legacy).encode())

        assert [s.url for s in subs] == ['https://example.com/one', 'https://example.com/two']
        assert subs.find('https://example.com/two').id == url_id('https://example.com/two')
        assert subs.find('https://example.com/one').color == url_color('https://example.com/one')
        assert subs.find('https://example.com/one').format == FeedFormat.UNKNOWN

    def test_formatless_record_keeps_legacy_state(self):
        '''Snapshot and timestamp of a record with no format survive decode and re-encode.'''
        legacy = {'Subscriptions': {'https://example.com/old': {'XML': '<rss/>', 'Timestamp': 77}}}
        subs = decode_subscriptions(json.dumps(legacy).encode())
        sub = subs.find('https://example.com/old')

        assert sub.state == UnresolvedState(snapshot='<rss/>', last_seen=77)
        assert sub.state.resolve(FeedFormat.RSS2) == RSSState('<rss/>')
        assert sub.state.resolve(FeedFormat.ATOM) == AtomState(77)
        assert decode_subscriptions(encode_subscriptions(subs)) == subs

    def test_missing_ids_backfilled(self):
        raw = json.dumps({'Subscriptions': [{'URL': 'https://example.com/x', 'Format': 1}]}).encode()
        sub = decode_subscriptions(raw).find('https://example.com/x')
        assert sub.id == url_id('https://example.com/x')
        assert sub.state == RSSState('')

    def test_garbage_record_is_store_error(self):
        with pytest.raises(StoreError):
            decode_subscriptions(b'{"Subscriptions": 42}')
        with pytest.raises(StoreError):
            decode_subscriptions(b'not json')


class TestSubscriptionRepository:
    '''Channel-level add/remove over a KV store.'''

    @pytest.fixture
    def repo(self):
        return SubscriptionRepository(MemoryKVStore())

    @pytest.mark.asyncio
    async def test_empty_channel(self, repo):
        assert len(await repo.load('nowhere')) == 0

    @pytest.mark.asyncio
    async def test_duplicate_add_rejected(self, repo):
        sub = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        await repo.add('c1', sub)
        with pytest.raises(DuplicateSubscription):
            await repo.add('c1', sub)
        assert len(await repo.load('c1')) == 1

    @pytest.mark.asyncio
    async def test_same_url_allowed_in_other_channel(self, repo):
        sub = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        await repo.add('c1', sub)
        await repo.add('c2', sub)
        assert len(await repo.load('c2')) == 1

    @pytest.mark.asyncio
    async def test_remove_by_id_keeps_remaining_order(self, repo):
        '''Removal is positional; the rest stay in insertion order.'''
        urls = [f'https://example.com/{n}' for n in 'abcd']
        for url in urls:
            await repo.add('c1', Subscription.create(url, url, FeedFormat.RSS2))

        removed = await repo.remove_by_id('c1', url_id(urls[1]))

        assert removed.url == urls[1]
        assert [s.url for s in await repo.load('c1')] == [urls[0], urls[2], urls[3]]

    @pytest.mark.asyncio
    async def test_remove_unknown_raises(self, repo):
        with pytest.raises(NotSubscribed):
            await repo.remove_by_url('c1', 'https://example.com/missing')
        with pytest.raises(NotSubscribed):
            await repo.remove_by_id('c1', 7)

    @pytest.mark.asyncio
    async def test_channels_paginates_past_first_page(self, repo):
        for n in range(7):
            await repo.store(f'chan-{n}', SubscriptionList())
        keys = [k async for k in repo.channels(page_size=3)]
        assert keys == [f'chan-{n}' for n in range(7)]
