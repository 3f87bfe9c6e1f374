'''
New-entry detection. RSS feeds are diffed against a stored snapshot of the
previous document; Atom feeds against a stored updated-timestamp watermark.
'''

from dataclasses import dataclass

from feedrelay.models import FeedEntry, FeedFormat, ParsedFeed
from feedrelay.parser import parse
from feedrelay.subscription import AtomState, FeedState, RSSState


@dataclass(frozen=True)
class AtomDiff:
    entries: list[FeedEntry]
    watermark: int


@dataclass(frozen=True)
class DiffResult:
    '''New entries (new feed's document order) and the state to commit once they are delivered.'''

    entries: list[FeedEntry]
    state: FeedState


def diff_rss(old: ParsedFeed, new: ParsedFeed, strict: bool = False) -> list[FeedEntry]:
    '''
    Entries of new whose id does not appear in old.

    Unless strict, feeds with equal entry counts are taken as unchanged and
    yield nothing, even if their ids differ.
    '''
    if not strict and len(old.entries) == len(new.entries):
        return []
    seen = {entry.id for entry in old.entries}
    return [entry for entry in new.entries if entry.id not in seen]


def diff_atom(feed: ParsedFeed, last_seen: int) -> AtomDiff:
    '''
    Entries updated strictly after last_seen. The watermark advances to the
    feed's own updated timestamp, not the newest entry's.
    '''
    stamps = [e.updated for e in feed.entries if e.updated is not None]
    feed_updated = feed.updated if feed.updated is not None else max(stamps, default=None)
    if feed_updated is None or last_seen >= feed_updated:
        return AtomDiff(entries=[], watermark=last_seen)
    entries = [e for e in feed.entries if e.updated is not None and e.updated > last_seen]
    return AtomDiff(entries=entries, watermark=feed_updated)


class FeedDiffEngine:
    '''Dispatch on the subscription's state variant.'''

    def __init__(self, strict_rss: bool = False) -> None:
        self.strict_rss = strict_rss

    def diff(self, state: FeedState, feed: ParsedFeed, body: str) -> DiffResult:
        '''
        body is the decoded text of feed, stored as the next RSS snapshot when
        new entries were found. Raises ParseError if the stored snapshot is corrupt.
        '''
        if isinstance(state, RSSState):
            if feed.format != FeedFormat.RSS2:
                raise TypeError(f'RSS state cannot diff a {feed.format.name} feed')
            old = parse(FeedFormat.RSS2, state.snapshot)
            entries = diff_rss(old, feed, strict=self.strict_rss)
            return DiffResult(entries=entries, state=RSSState(snapshot=body) if entries else state)
        if isinstance(state, AtomState):
            if feed.format != FeedFormat.ATOM:
                raise TypeError(f'Atom state cannot diff a {feed.format.name} feed')
            result = diff_atom(feed, state.last_seen)
            return DiffResult(entries=result.entries, state=AtomState(last_seen=result.watermark))
        raise TypeError(f'unsupported feed state {state!r}')
