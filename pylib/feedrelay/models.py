'''Feed and notification value objects.'''

import json
from dataclasses import asdict, dataclass, field
from enum import Enum, IntEnum


class FeedFormat(IntEnum):
    '''Feed format tag. Integer values are what gets persisted.'''

    UNKNOWN = 0
    RSS2 = 1
    ATOM = 2


class ContentKind(str, Enum):
    TEXT = 'text'
    HTML = 'html'


RELATION_ALTERNATE = 'alternate'


@dataclass(frozen=True)
class Author:
    name: str = ''
    url: str = ''
    email: str = ''


@dataclass(frozen=True)
class Link:
    href: str
    rel: str = RELATION_ALTERNATE
    type: str = ''


@dataclass(frozen=True)
class FeedEntry:
    '''One item (RSS) or entry (Atom), normalized. Timestamps are Unix seconds.'''

    id: str
    title: str = ''
    link: str = ''
    author: Author = field(default_factory=Author)
    published: int | None = None
    updated: int | None = None
    content: str = ''
    content_kind: ContentKind = ContentKind.TEXT
    links: tuple[Link, ...] = ()

    @property
    def alternate_link(self) -> str:
        '''First rel="alternate" link, else the plain link.'''
        for link in self.links:
            if link.rel == RELATION_ALTERNATE and link.href:
                return link.href
        return self.link


@dataclass(frozen=True)
class ParsedFeed:
    '''Result of parsing one document. Entries are in document order.'''

    format: FeedFormat
    title: str = ''
    link: str = ''
    icon: str = ''
    generator: str = ''
    author: Author = field(default_factory=Author)
    updated: int | None = None
    encoding: str = 'utf-8'
    entries: tuple[FeedEntry, ...] = ()


@dataclass(frozen=True)
class NotificationPayload:
    '''
    One rendered notification. Serializes to a compact JSON object (empty fields omitted);
    the encoded length is what the batcher budgets against.
    '''

    title: str
    link: str = ''
    text: str = ''
    author_name: str = ''
    author_link: str = ''
    author_icon: str = ''
    timestamp: int | None = None
    color: str = ''
    fallback: str = ''

    def to_dict(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v not in ('', None)}

    def encode(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(',', ':'))
