'''Shared fixtures: feed document builders, in-memory store and sink, mocked HTTP.'''

from datetime import datetime, timezone
from xml.sax.saxutils import escape

import httpx
import pytest

from feedrelay.delivery import MemorySink
from feedrelay.fetchers import HttpFeedFetcher, build_client
from feedrelay.kvstore import MemoryKVStore


def iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def rss_document(items, title='Example News', encoding='UTF-8') -> str:
    '''items: iterable of (guid, title, description)'''
    body = ''.join(
        f'<item><title>{escape(t)}</title><link>https://example.com/{g}</link>'
        f'<guid isPermaLink="false">{g}</guid><description>{escape(d)}</description></item>'
        for g, t, d in items
    )
    return (
        f'<?xml version="1.0" encoding="{encoding}"?>'
        '<rss version="2.0"><channel>'
        f'<title>{escape(title)}</title><link>https://example.com/</link>'
        '<description>Example feed</description><generator>feedgen-test</generator>'
        f'{body}</channel></rss>'
    )


def atom_document(updated: int, entries, title='Example Atom') -> str:
    '''entries: iterable of (entry_id, title, updated_ts)'''
    body = ''.join(
        f'<entry><id>urn:entry:{eid}</id><title>{escape(t)}</title>'
        f'<link rel="alternate" href="https://example.org/{eid}"/>'
        f'<updated>{iso(ts)}</updated>'
        '<author><name>Ann Author</name><email>Ann@Example.org</email><uri>https://example.org/ann</uri></author>'
        f'<content type="html">&lt;p&gt;Body of {escape(t)}&lt;/p&gt;</content></entry>'
        for eid, t, ts in entries
    )
    return (
        '<?xml version="1.0" encoding="utf-8"?>'
        '<feed xmlns="http://www.w3.org/2005/Atom">'
        f'<title>{escape(title)}</title><id>urn:feed:example</id>'
        '<link rel="alternate" href="https://example.org/"/>'
        f'<updated>{iso(updated)}</updated>{body}</feed>'
    )


@pytest.fixture
def make_rss():
    return rss_document


@pytest.fixture
def make_atom():
    return atom_document


@pytest.fixture
def latin1_rss() -> bytes:
    '''RSS declared and encoded as ISO-8859-1.'''
    return rss_document([('c1', 'Café crème', 'Déjà vu')], title='Nouvelles à la une', encoding='ISO-8859-1').encode(
        'iso-8859-1'
    )


@pytest.fixture
def kv() -> MemoryKVStore:
    return MemoryKVStore()


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


class FeedServer:
    '''
    Mock HTTP origin. routes maps URL to (status, body, etag); requests records
    (url, If-None-Match) for each call. A route whose etag matches the request's
    If-None-Match answers 304.
    '''

    def __init__(self) -> None:
        self.routes: dict[str, tuple[int, bytes | str, str]] = {}
        self.requests: list[tuple[str, str | None]] = []

    def serve(self, url: str, body: bytes | str, status: int = 200, etag: str = '') -> None:
        self.routes[url] = (status, body, etag)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        sent = request.headers.get('If-None-Match')
        self.requests.append((url, sent))
        if url not in self.routes:
            return httpx.Response(404)
        status, body, etag = self.routes[url]
        if etag and sent == etag:
            return httpx.Response(304, headers={'ETag': etag})
        headers = {'ETag': etag} if etag else {}
        content = body.encode('utf-8') if isinstance(body, str) else body
        return httpx.Response(status, content=content, headers=headers)


@pytest.fixture
def feed_server() -> FeedServer:
    return FeedServer()


@pytest.fixture
def fetcher(feed_server) -> HttpFeedFetcher:
    return HttpFeedFetcher(client=build_client(transport=httpx.MockTransport(feed_server.handler)))
