'''Subscribe-time feed validation: fetch once, sniff the format, describe the feed.'''

from dataclasses import dataclass

from feedrelay.fetchers.protocol import FeedFetcher, FetchResult
from feedrelay.models import FeedFormat, ParsedFeed
from feedrelay.parser import sniff


@dataclass(frozen=True)
class SubscriptionInfo:
    title: str
    format: FeedFormat
    author_name: str = ''
    author_url: str = ''
    alternate: str = ''
    icon: str = ''
    generator: str = ''


def describe_feed(feed: ParsedFeed) -> SubscriptionInfo:
    return SubscriptionInfo(
        title=feed.title,
        format=feed.format,
        author_name=feed.author.name,
        author_url=feed.author.url,
        alternate=feed.link,
        icon=feed.icon,
        generator=feed.generator,
    )


async def fetch_feed_info(fetcher: FeedFetcher, url: str) -> tuple[SubscriptionInfo, FetchResult, ParsedFeed]:
    '''
    Unconditional fetch of url, sniffed RSS 2.0 first. Raises FetchError or UnknownFormat.
    '''
    result = await fetcher.fetch(url)
    feed = sniff(result.content)
    return describe_feed(feed), result, feed
