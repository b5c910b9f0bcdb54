"""
Notification dispatcher tests against a local aiohttp webhook receiver.
"""

import pytest
from aiohttp import test_utils, web

from teleconsult.adapters.notifications.log_notification_dispatcher import LogNotificationDispatcher
from teleconsult.adapters.notifications.webhook_notification_dispatcher import WebhookNotificationDispatcher
from teleconsult.core.exceptions import ExternalServiceError


async def _start_receiver(status: int = 204):
    received = []

    async def hook(request: web.Request) -> web.Response:
        received.append(await request.json())
        if status >= 400:
            return web.Response(status=status, text="receiver failed")
        return web.Response(status=status)

    app = web.Application()
    app.router.add_post("/hooks/teleconsult", hook)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server, received


@pytest.mark.asyncio
async def test_webhook_posts_event_envelope():
    server, received = await _start_receiver()
    dispatcher = WebhookNotificationDispatcher(str(server.make_url("/hooks/teleconsult")))
    try:
        await dispatcher.dispatch("request_assigned", "dr_a", {"request_id": "CREQ-20240304-deadbeef"})
        await dispatcher.dispatch("status_changed", "patient_1", {"status": "accepted"})
    finally:
        await dispatcher.close()
        await server.close()

    assert [body["event"] for body in received] == ["request_assigned", "status_changed"]
    assert received[0]["recipient"] == "dr_a"
    assert received[0]["payload"] == {"request_id": "CREQ-20240304-deadbeef"}
    assert "sent_at" in received[0]


@pytest.mark.asyncio
async def test_webhook_error_status_raises():
    server, _ = await _start_receiver(status=500)
    dispatcher = WebhookNotificationDispatcher(str(server.make_url("/hooks/teleconsult")))
    try:
        with pytest.raises(ExternalServiceError) as exc_info:
            await dispatcher.dispatch("request_queued", "patient_1", {})
    finally:
        await dispatcher.close()
        await server.close()

    assert exc_info.value.error_code == "EXTERNAL_SERVICE_ERROR"
    assert exc_info.value.details["response"] == "receiver failed"


@pytest.mark.asyncio
async def test_webhook_unreachable_raises():
    server, _ = await _start_receiver()
    url = str(server.make_url("/hooks/teleconsult"))
    await server.close()

    dispatcher = WebhookNotificationDispatcher(url, timeout_seconds=2)
    try:
        with pytest.raises(ExternalServiceError):
            await dispatcher.dispatch("request_queued", "patient_1", {})
    finally:
        await dispatcher.close()


@pytest.mark.asyncio
async def test_log_dispatcher_never_raises():
    await LogNotificationDispatcher().dispatch("request_assigned", "dr_a", {"request_id": "CREQ-20240304-deadbeef"})
