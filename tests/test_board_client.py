"""Tests for the board's HTTP client."""

import json

import httpx
import pytest

from graphpos.board.client import DEFAULT_ERROR_MESSAGE, BackendError, OrdersApiClient


def _client(handler, **kwargs):
    return OrdersApiClient(
        token="tok",
        base_url="http://api.test/api/v1",
        tenant_id="company-1",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def test_update_status_sends_patch_with_headers():
    seen = {}

    def handler(request: httpx.Request):
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["auth"] = request.headers["Authorization"]
        seen["tenant"] = request.headers["X-Tenant-ID"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"status": "finalizado", "version": 3})

    result = await _client(handler).update_status("abc", "finalizado", user_id="u1")

    assert result == {"status": "finalizado", "version": 3}
    assert seen == {
        "method": "PATCH",
        "path": "/api/v1/orders/abc/status",
        "auth": "Bearer tok",
        "tenant": "company-1",
        "body": {"status": "finalizado", "user_id": "u1"},
    }


async def test_list_orders_passes_search():
    def handler(request: httpx.Request):
        assert request.url.params["search"] == "Maria"
        return httpx.Response(200, json=[{"id": "1"}])

    assert await _client(handler).list_orders(search="Maria") == [{"id": "1"}]


@pytest.mark.parametrize(
    "response,message",
    [
        (httpx.Response(400, json={"detail": "Mudança de status não permitida"}), "Mudança de status não permitida"),
        (httpx.Response(500, json={"error": "Internal server error"}), "Internal server error"),
        (httpx.Response(422, json={"detail": [{"msg": "field required"}]}), "field required"),
        (httpx.Response(502, text=""), DEFAULT_ERROR_MESSAGE),
    ],
)
async def test_error_bodies_become_backend_errors(response, message):
    with pytest.raises(BackendError) as exc_info:
        await _client(lambda request: response).list_orders()

    assert exc_info.value.message == message
    assert exc_info.value.status_code == response.status_code


async def test_connection_failure_has_no_status_code():
    def handler(request):
        raise httpx.ConnectError("recusado", request=request)

    with pytest.raises(BackendError) as exc_info:
        await _client(handler).list_orders()
    assert exc_info.value.status_code is None


async def test_events_parse_data_lines():
    body = (
        ": keep-alive\n\n"
        'data: {"type": "order_created", "order_id": "1"}\n\n'
        'data: {"type": "order_status_changed", "order_id": "2"}\n\n'
    )

    def handler(request):
        assert request.url.path == "/api/v1/orders/events"
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    events = [event async for event in _client(handler).events()]
    assert [e["type"] for e in events] == ["order_created", "order_status_changed"]
