'''
Subscription entity, its format-specific poll state, and the per-channel list.

Numeric ids are 32-bit FNV-1a hashes of the URL. Two URLs in one channel can
collide; lookups by id then return the first match. This is accepted.
'''

import hashlib
from dataclasses import dataclass, field, replace

from feedrelay.models import FeedFormat


@dataclass(frozen=True)
class RSSState:
    '''Last successfully processed RSS document.'''

    snapshot: str = ''


@dataclass(frozen=True)
class AtomState:
    '''Unix-second watermark of the last processed Atom feed update.'''

    last_seen: int = 0


FeedState = RSSState | AtomState


@dataclass(frozen=True)
class UnresolvedState:
    '''
    Poll state of a record stored before its format was known. Both fields are
    carried until the first fetch sniffs the format and picks one.
    '''

    snapshot: str = ''
    last_seen: int = 0

    def resolve(self, fmt: FeedFormat) -> FeedState | None:
        if fmt == FeedFormat.RSS2:
            return RSSState(snapshot=self.snapshot)
        if fmt == FeedFormat.ATOM:
            return AtomState(last_seen=self.last_seen)
        return None


def initial_state(fmt: FeedFormat) -> FeedState | None:
    if fmt == FeedFormat.RSS2:
        return RSSState()
    if fmt == FeedFormat.ATOM:
        return AtomState()
    return None


def url_id(url: str) -> int:
    '''FNV-1a 32-bit hash of the URL.'''
    h = 0x811C9DC5
    for byte in url.encode('utf-8'):
        h ^= byte
        h = (h * 0x01000193) & 0xFFFFFFFF
    return h


def url_color(url: str) -> str:
    '''Display color derived from the URL; stable across restarts.'''
    return '#' + hashlib.md5(url.encode('utf-8')).hexdigest()[:6]


@dataclass(frozen=True)
class Subscription:
    url: str
    title: str = ''
    format: FeedFormat = FeedFormat.UNKNOWN
    state: FeedState | UnresolvedState | None = None
    etag: str = ''
    color: str = ''
    id: int = 0
    user_id: str = ''

    @classmethod
    def create(cls, url: str, title: str, fmt: FeedFormat, user_id: str = '') -> 'Subscription':
        return cls(
            url=url,
            title=title,
            format=fmt,
            state=initial_state(fmt),
            color=url_color(url),
            id=url_id(url),
            user_id=user_id,
        )

    def advance(self, state: FeedState | None, etag: str) -> 'Subscription':
        '''Validator and diff state move together.'''
        return replace(self, state=state, etag=etag)


@dataclass
class SubscriptionList:
    '''Ordered subscriptions of one channel; insertion order is the only ordering.'''

    subscriptions: list[Subscription] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.subscriptions)

    def __iter__(self):
        return iter(self.subscriptions)

    def index_of(self, url: str) -> int:
        for index, sub in enumerate(self.subscriptions):
            if sub.url == url:
                return index
        return -1

    def index_of_id(self, sub_id: int) -> int:
        for index, sub in enumerate(self.subscriptions):
            if sub.id == sub_id:
                return index
        return -1

    def find(self, url: str) -> Subscription | None:
        index = self.index_of(url)
        return self.subscriptions[index] if index >= 0 else None

    def find_id(self, sub_id: int) -> Subscription | None:
        index = self.index_of_id(sub_id)
        return self.subscriptions[index] if index >= 0 else None

    def append(self, sub: Subscription) -> None:
        self.subscriptions.append(sub)

    def pop(self, index: int) -> Subscription:
        return self.subscriptions.pop(index)

    def replace(self, sub: Subscription) -> bool:
        '''Swap in an updated subscription with the same URL, keeping its position.'''
        index = self.index_of(sub.url)
        if index < 0:
            return False
        self.subscriptions[index] = sub
        return True
