import pytest
import pytest_asyncio
from aiohttp import test_utils, web

from vision_gateway.utils.notifications import WebhookNotifier


@pytest_asyncio.fixture
async def webhook():
    received = []

    async def handle(request):
        received.append(await request.json())
        return web.json_response({"ok": True})

    app = web.Application()
    app.router.add_post("/hook", handle)
    server = test_utils.TestServer(app)
    await server.start_server()
    yield str(server.make_url("/hook")), received
    await server.close()


@pytest.mark.asyncio
async def test_disabled_without_url():
    notifier = WebhookNotifier(None)
    assert notifier.enabled is False
    assert notifier.notify({"result": 1}, {"imageUrl": "x"}) is None


@pytest.mark.asyncio
async def test_delivers_event_in_background(webhook):
    url, received = webhook
    notifier = WebhookNotifier(url)

    task = notifier.notify({"data": "result"}, {"imageUrl": "https://example.com/a.jpg"})
    assert task is not None
    assert await task is True
    await notifier.drain()

    assert len(received) == 1
    event = received[0]
    assert event["analysisResult"] == {"data": "result"}
    assert event["originalRequest"] == {"imageUrl": "https://example.com/a.jpg"}
    assert "timestamp" in event
    assert notifier.pending == 0


@pytest.mark.asyncio
async def test_failure_is_swallowed():
    server = test_utils.TestServer(web.Application())
    await server.start_server()
    url = str(server.make_url("/hook"))
    await server.close()

    notifier = WebhookNotifier(url, timeout_seconds=1)
    task = notifier.notify({"data": "result"}, {})
    assert await task is False


@pytest.mark.asyncio
async def test_rejected_status_is_logged_not_raised(webhook):
    url, _ = webhook
    notifier = WebhookNotifier(url.replace("/hook", "/missing"))
    assert await notifier.notify({}, {}) is False
