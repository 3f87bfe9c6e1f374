'''
Parse RSS 2.0 and Atom documents into ParsedFeed, using feedparser.

Bytes are decoded per the document's own encoding declaration; str input is
treated as already decoded (UTF-8 is declared to feedparser so a stale XML
declaration in a stored snapshot cannot cause mis-decoding).
'''

import calendar
import io

import feedparser
from feedparser.exceptions import CharacterEncodingOverride, NonXMLContentType

from feedrelay.errors import ParseError, UnknownFormat
from feedrelay.models import Author, ContentKind, FeedEntry, FeedFormat, Link, ParsedFeed

# feedparser reports RSS 1.0 (RDF) as rss10; everything else under rss* is the <rss><channel> family
_RSS_VERSIONS = frozenset({'rss', 'rss090', 'rss091n', 'rss091u', 'rss092', 'rss093', 'rss094', 'rss20'})
_ATOM_VERSIONS = frozenset({'atom', 'atom01', 'atom02', 'atom03', 'atom10'})

# bozo conditions that still leave a correctly decoded, well-formed document
_TOLERATED = (CharacterEncodingOverride, NonXMLContentType)

_UTF8_HEADERS = {'content-type': 'application/xml; charset=utf-8'}

# Sniffing order decides which diff semantics a subscription gets for its lifetime
SNIFF_ORDER = (FeedFormat.RSS2, FeedFormat.ATOM)


def parse(fmt: FeedFormat, raw: bytes | str) -> ParsedFeed:
    '''
    Parse raw as a feed of the given format.

    Empty input yields an empty feed. Raises ParseError for malformed XML,
    for a document of the other format, or for a document that is not a feed.
    '''
    if fmt not in SNIFF_ORDER:
        raise ParseError(f'cannot parse feed format {fmt!r}')
    if not raw or not raw.strip():
        return ParsedFeed(format=fmt)

    result = _feedparse(raw)
    if result.get('bozo') and not isinstance(result.get('bozo_exception'), _TOLERATED):
        exc = result.get('bozo_exception')
        err = ParseError(f'malformed feed document: {exc}', cause=exc)
        if isinstance(exc, BaseException):
            raise err from exc
        raise err

    version = result.get('version') or ''
    expected = _RSS_VERSIONS if fmt == FeedFormat.RSS2 else _ATOM_VERSIONS
    if version not in expected:
        raise ParseError(f'expected {fmt.name} document, found {version or "no feed"}')
    return _build_feed(fmt, result)


def sniff(raw: bytes | str) -> ParsedFeed:
    '''
    Determine the format of unknown content: RSS 2.0 first, then Atom.
    Raises UnknownFormat if neither parses (including empty input).
    '''
    if not raw or not raw.strip():
        raise UnknownFormat('empty document')
    errors = []
    for fmt in SNIFF_ORDER:
        try:
            return parse(fmt, raw)
        except ParseError as e:
            errors.append(f'{fmt.name}: {e}')
    raise UnknownFormat('not an RSS 2.0 or Atom feed (' + '; '.join(errors) + ')')


def decode_document(raw: bytes, feed: ParsedFeed) -> str:
    '''Decode a fetched body with the encoding the parser detected, for storing as a snapshot.'''
    try:
        return raw.decode(feed.encoding or 'utf-8', errors='replace')
    except LookupError:
        return raw.decode('utf-8', errors='replace')


def _feedparse(raw: bytes | str):
    if isinstance(raw, str):
        return feedparser.parse(io.BytesIO(raw.encode('utf-8')), response_headers=_UTF8_HEADERS)
    return feedparser.parse(io.BytesIO(raw))


def _timestamp(time_struct) -> int | None:
    if not time_struct:
        return None
    try:
        return calendar.timegm(time_struct)
    except (TypeError, ValueError, OverflowError):
        return None


def _author(detail) -> Author:
    if not detail:
        return Author()
    return Author(
        name=detail.get('name', '') or '',
        url=detail.get('href', '') or '',
        email=detail.get('email', '') or '',
    )


def _content(entry) -> tuple[str, ContentKind]:
    '''Prefer full content (Atom content, RSS content:encoded) over summary/description.'''
    contents = entry.get('content') or []
    if contents:
        detail = contents[0]
        value = detail.get('value', '')
        ctype = detail.get('type', '')
    else:
        value = entry.get('summary', '')
        ctype = (entry.get('summary_detail') or {}).get('type', '')
    kind = ContentKind.TEXT if ctype == 'text/plain' else ContentKind.HTML
    return value or '', kind


def _entry_id(fmt: FeedFormat, entry, title: str, link: str) -> str:
    explicit = entry.get('id')
    if explicit:
        return explicit
    if fmt == FeedFormat.RSS2:
        return f'{title}|{link}'
    return link or title


def _build_entry(fmt: FeedFormat, entry) -> FeedEntry:
    title = entry.get('title', '') or ''
    link = entry.get('link', '') or ''
    content, kind = _content(entry)
    links = tuple(
        Link(href=l.get('href', ''), rel=l.get('rel', 'alternate'), type=l.get('type', '') or '')
        for l in entry.get('links', [])
    )
    return FeedEntry(
        id=_entry_id(fmt, entry, title, link),
        title=title,
        link=link,
        author=_author(entry.get('author_detail')),
        published=_timestamp(entry.get('published_parsed')),
        updated=_timestamp(entry.get('updated_parsed')),
        content=content,
        content_kind=kind,
        links=links,
    )


def _build_feed(fmt: FeedFormat, result) -> ParsedFeed:
    meta = result.get('feed', {})
    icon = meta.get('icon', '') or (meta.get('image') or {}).get('href', '') or ''
    link = ''
    for l in meta.get('links', []):
        if l.get('rel') == 'alternate' and l.get('href'):
            link = l['href']
            break
    return ParsedFeed(
        format=fmt,
        title=meta.get('title', '') or '',
        link=link or meta.get('link', '') or '',
        icon=icon,
        generator=meta.get('generator', '') or '',
        author=_author(meta.get('author_detail')),
        updated=_timestamp(meta.get('updated_parsed')),
        encoding=result.get('encoding') or 'utf-8',
        entries=tuple(_build_entry(fmt, e) for e in result.get('entries', [])),
    )
