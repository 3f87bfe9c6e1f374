'''Tests for payload rendering.'''

from feedrelay.models import Author, ContentKind, FeedEntry, FeedFormat, Link
from feedrelay.render import Renderer, gravatar_icon, html_to_text
from feedrelay.subscription import Subscription


class TestHtmlToText:
    '''Markup flattening.'''

    def test_links_become_markdown(self):
        assert html_to_text('<p>See <a href="https://x.test/">this</a></p>') == 'See [this](https://x.test/)'

    def test_breaks_and_blocks(self):
        assert html_to_text('<p>one</p><p>two<br>three</p>') == 'one\ntwo\nthree'

    def test_empty(self):
        assert html_to_text('') == ''


class TestGravatar:
    def test_hash_of_trimmed_lowercased_email(self):
        assert gravatar_icon(' MyEmailAddress@example.com ') == (
            'https://www.gravatar.com/avatar/0bc83cb571cd1c50ba6f3e8a78ef1346?d=mp&s=40'
        )

    def test_no_email_uses_zero_hash(self):
        assert gravatar_icon('', default='identicon') == (
            'https://www.gravatar.com/avatar/' + '0' * 32 + '?d=identicon&s=40'
        )


class TestRenderer:
    '''Per-format payloads.'''

    def test_rss_payload(self):
        sub = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        entry = FeedEntry(
            id='a', title='Alpha', link='https://example.com/a', content='<b>bold</b>', content_kind=ContentKind.HTML
        )
        [payload] = Renderer().render(sub, [entry])
        assert payload.title == 'Alpha'
        assert payload.link == 'https://example.com/a'
        assert payload.text == 'bold'
        assert payload.color == sub.color

    def test_rss_description_hidden(self):
        sub = Subscription.create('https://example.com/rss', 'R', FeedFormat.RSS2)
        entry = FeedEntry(id='a', title='Alpha', content='hello')
        [payload] = Renderer(show_description=False).render(sub, [entry])
        assert payload.text == ''

    def test_atom_payload(self):
        sub = Subscription.create('https://example.org/atom', 'A', FeedFormat.ATOM)
        entry = FeedEntry(
            id='e1',
            title='Entry',
            link='https://example.org/self',
            author=Author(name='Ann', url='https://example.org/ann', email=''),
            updated=1100,
            content='plain body',
            content_kind=ContentKind.TEXT,
            links=(Link(href='https://example.org/e1'),),
        )
        [payload] = Renderer().render(sub, [entry])
        assert payload.link == 'https://example.org/e1'
        assert payload.fallback == 'Entry'
        assert payload.author_name == 'Ann'
        assert payload.author_icon.endswith('0' * 32 + '?d=mp&s=40')
        assert payload.timestamp == 1100
        assert payload.text == 'plain body'

    def test_published_preferred_for_timestamp(self):
        sub = Subscription.create('https://example.org/atom', 'A', FeedFormat.ATOM)
        entry = FeedEntry(id='e1', published=900, updated=1100)
        [payload] = Renderer().render(sub, [entry])
        assert payload.timestamp == 900

    def test_sort_by_timestamp(self):
        sub = Subscription.create('https://example.org/atom', 'A', FeedFormat.ATOM)
        entries = [FeedEntry(id='b', title='B', updated=20), FeedEntry(id='a', title='A', updated=10)]
        assert [p.title for p in Renderer().render(sub, entries)] == ['B', 'A']
        assert [p.title for p in Renderer(sort_by_timestamp=True).render(sub, entries)] == ['A', 'B']
