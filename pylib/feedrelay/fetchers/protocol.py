'''
Conditional feed fetching. Pluggable so hosts and tests can supply their own transport.
'''

from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx
import structlog

from feedrelay.errors import FetchError
from feedrelay.fetchers.http import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HEADER_TIMEOUT, build_client

logger = structlog.get_logger()


@dataclass(frozen=True)
class FetchResult:
    '''Result of a conditional GET. On not_modified, content is empty and etag is the one sent.'''

    url: str
    content: bytes
    etag: str
    not_modified: bool = False
    status: int = 200


class FeedFetcher(ABC):
    '''Protocol for feed fetchers.'''

    @abstractmethod
    async def fetch(self, url: str, etag: str = '') -> FetchResult:
        '''
        Fetch url, sending etag as a cache validator when non-empty.

        Raises FetchError for transport failures and any status other than 200 or 304.
        '''


class HttpFeedFetcher(FeedFetcher):
    '''
    httpx-based fetcher. With no client supplied, a short-lived client is
    opened per fetch; a shared client is used as-is and left open.
    '''

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
        header_timeout: float = DEFAULT_HEADER_TIMEOUT,
    ) -> None:
        self._client = client
        self.connect_timeout = connect_timeout
        self.header_timeout = header_timeout

    async def _get(self, url: str, headers: dict[str, str]) -> httpx.Response:
        if self._client is not None:
            return await self._client.get(url, headers=headers)
        async with build_client(self.connect_timeout, self.header_timeout) as client:
            return await client.get(url, headers=headers)

    async def fetch(self, url: str, etag: str = '') -> FetchResult:
        headers = {'If-None-Match': etag} if etag else {}
        try:
            resp = await self._get(url, headers)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise FetchError(url, f'{type(e).__name__}: {e}') from e

        if resp.status_code == httpx.codes.NOT_MODIFIED:
            logger.debug('feed not modified', url=url)
            return FetchResult(url=url, content=b'', etag=etag, not_modified=True, status=resp.status_code)
        if resp.status_code != httpx.codes.OK:
            raise FetchError(url, f'HTTP {resp.status_code}', status=resp.status_code)
        return FetchResult(
            url=url,
            content=resp.content,
            etag=resp.headers.get('ETag', etag),
            status=resp.status_code,
        )


def create_fetcher(
    client: httpx.AsyncClient | None = None,
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    header_timeout: float = DEFAULT_HEADER_TIMEOUT,
) -> FeedFetcher:
    '''Factory for the default fetcher.'''
    return HttpFeedFetcher(client=client, connect_timeout=connect_timeout, header_timeout=header_timeout)
