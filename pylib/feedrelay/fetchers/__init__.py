'''Feed fetchers: conditional HTTP GET and subscribe-time feed info.'''

from feedrelay.fetchers.http import build_client
from feedrelay.fetchers.protocol import (
    FeedFetcher,
    FetchResult,
    HttpFeedFetcher,
    create_fetcher,
)
from feedrelay.fetchers.rss import SubscriptionInfo, describe_feed, fetch_feed_info

__all__ = [
    'FeedFetcher',
    'FetchResult',
    'HttpFeedFetcher',
    'SubscriptionInfo',
    'build_client',
    'create_fetcher',
    'describe_feed',
    'fetch_feed_info',
]
