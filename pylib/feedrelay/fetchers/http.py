'''HTTP client construction using httpx.'''

import httpx

DEFAULT_CONNECT_TIMEOUT = 30.0
DEFAULT_HEADER_TIMEOUT = 10.0
DEFAULT_USER_AGENT = 'feedrelay/0.1 (+https://pypi.org/project/feedrelay/)'


def build_client(
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT,
    header_timeout: float = DEFAULT_HEADER_TIMEOUT,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    '''
    Client with a bounded connect time and a bounded wait for response data,
    so one stalled feed cannot hold up a whole poll tick indefinitely.
    '''
    return httpx.AsyncClient(
        timeout=httpx.Timeout(header_timeout, connect=connect_timeout),
        follow_redirects=True,
        headers={'User-Agent': DEFAULT_USER_AGENT},
        transport=transport,
    )
