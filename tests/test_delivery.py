'''Tests for delivery sinks.'''

import json

import httpx
import pytest

from feedrelay.delivery import ConsoleSink, MemorySink, WebhookSink
from feedrelay.errors import DeliveryError
from feedrelay.models import NotificationPayload

HOOK_URL = 'https://hooks.example.com/relay'


class TestWebhookSink:
    '''JSON POST delivery.'''

    @pytest.mark.asyncio
    async def test_posts_channel_and_attachments(self):
        seen = []

        def handler(request):
            seen.append(json.loads(request.content))
            return httpx.Response(200)

        sink = WebhookSink(HOOK_URL, transport=httpx.MockTransport(handler))
        await sink.post('town', [NotificationPayload(title='A', link='https://example.com/a')])

        assert seen == [{'channel': 'town', 'attachments': [{'title': 'A', 'link': 'https://example.com/a'}]}]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(400)

        sink = WebhookSink(HOOK_URL, transport=httpx.MockTransport(handler))
        with pytest.raises(DeliveryError):
            await sink.post('town', [NotificationPayload(title='A')])
        assert len(calls) == 1

    def test_url_required(self, monkeypatch):
        monkeypatch.delenv('FEEDRELAY_WEBHOOK_URL', raising=False)
        with pytest.raises(ValueError):
            WebhookSink()


class TestLocalSinks:
    @pytest.mark.asyncio
    async def test_memory_sink_records(self):
        sink = MemorySink()
        batch = [NotificationPayload(title='A')]
        await sink.post('town', batch)
        assert sink.posts == [('town', batch)]

    @pytest.mark.asyncio
    async def test_console_sink_prints_panel(self):
        from rich.console import Console

        console = Console(record=True, width=80)
        await ConsoleSink(console).post('town', [NotificationPayload(title='Hello', text='world', color='#336699')])
        output = console.export_text()
        assert 'Hello' in output
        assert 'world' in output
