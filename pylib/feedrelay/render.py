'''Render new feed entries into notification payloads.'''

import hashlib

from bs4 import BeautifulSoup

from feedrelay.models import ContentKind, FeedEntry, FeedFormat, NotificationPayload
from feedrelay.subscription import Subscription

_BLOCK_TAGS = ['p', 'div', 'li', 'blockquote', 'pre', 'tr', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6']


def html_to_text(html: str) -> str:
    '''Flatten markup to text; links become [text](href), blocks and <br> become line breaks.'''
    if not html:
        return ''
    soup = BeautifulSoup(html, 'html.parser')
    for a in soup.find_all('a', href=True):
        label = a.get_text(strip=True)
        href = a['href']
        a.replace_with(f'[{label}]({href})' if label and label != href else href)
    for br in soup.find_all('br'):
        br.replace_with('\n')
    for tag in soup.find_all(_BLOCK_TAGS):
        tag.insert_after('\n')

    lines: list[str] = []
    for line in soup.get_text().splitlines():
        line = ' '.join(line.split())
        if line or (lines and lines[-1]):
            lines.append(line)
    return '\n'.join(lines).strip()


def gravatar_icon(email: str, default: str = 'mp') -> str:
    email = email.strip()
    digest = hashlib.md5(email.lower().encode('utf-8')).hexdigest() if email else '0' * 32
    return f'https://www.gravatar.com/avatar/{digest}?d={default}&s=40'


class Renderer:
    def __init__(
        self,
        show_description: bool = True,
        gravatar_default: str = 'mp',
        sort_by_timestamp: bool = False,
    ) -> None:
        self.show_description = show_description
        self.gravatar_default = gravatar_default
        self.sort_by_timestamp = sort_by_timestamp

    def _body(self, entry: FeedEntry) -> str:
        if entry.content_kind == ContentKind.TEXT:
            return entry.content.strip()
        return html_to_text(entry.content)

    def render_rss(self, sub: Subscription, entry: FeedEntry) -> NotificationPayload:
        return NotificationPayload(
            title=entry.title,
            link=entry.link,
            text=self._body(entry) if self.show_description else '',
            timestamp=entry.published if entry.published is not None else entry.updated,
            color=sub.color,
            fallback=entry.title,
        )

    def render_atom(self, sub: Subscription, entry: FeedEntry) -> NotificationPayload:
        return NotificationPayload(
            title=entry.title,
            link=entry.alternate_link,
            text=self._body(entry),
            author_name=entry.author.name,
            author_link=entry.author.url,
            author_icon=gravatar_icon(entry.author.email, self.gravatar_default),
            timestamp=entry.published if entry.published is not None else entry.updated,
            color=sub.color,
            fallback=entry.title,
        )

    def render(self, sub: Subscription, entries: list[FeedEntry]) -> list[NotificationPayload]:
        '''Payloads in entry order, or oldest first when sort_by_timestamp is set.'''
        if sub.format == FeedFormat.ATOM:
            payloads = [self.render_atom(sub, e) for e in entries]
        else:
            payloads = [self.render_rss(sub, e) for e in entries]
        if self.sort_by_timestamp:
            payloads.sort(key=lambda p: p.timestamp or 0)
        return payloads
