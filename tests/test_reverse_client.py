import json
from unittest.mock import AsyncMock

import pytest

from whatsapp_mcp.reverse_client import MCPReverseClient
from whatsapp_mcp.tools import create_tool_registry


@pytest.fixture
def relay(registry):
    client = MCPReverseClient("ws://relay.test/ws", registry, device_id="wa-test")
    client.websocket = AsyncMock()
    return client


def _sent(relay) -> dict:
    return json.loads(relay.websocket.send.await_args.args[0])


@pytest.mark.unit
def test_register_message_lists_all_tools(relay):
    message = relay.register_message()
    assert message["type"] == "register"
    assert message["device_id"] == "wa-test"
    assert len(message["tools"]) == 9
    assert {"name", "description", "inputSchema"} <= set(message["tools"][0])
    json.dumps(message)


@pytest.mark.asyncio
async def test_call_success(relay, graph):
    await relay.handle_message(json.dumps({
        "type": "call",
        "request_id": "r1",
        "tool": "wa_mark_message_as_read",
        "args": {"message_id": "wamid.1"},
    }))

    response = _sent(relay)
    assert response == {"type": "result", "request_id": "r1", "success": True, "data": graph.payload}
    assert graph.last_json()["status"] == "read"


@pytest.mark.asyncio
async def test_call_validation_error(relay, graph):
    await relay.handle_message(json.dumps({
        "type": "call",
        "request_id": "r2",
        "tool": "wa_send_document",
        "args": {"to": "1"},
    }))

    response = _sent(relay)
    assert response["success"] is False
    assert "document_url" in response["error"]
    assert response["errors"]
    assert graph.requests == []


@pytest.mark.asyncio
async def test_call_unknown_tool(relay):
    await relay.handle_message(json.dumps({"type": "call", "request_id": "r3", "tool": "nope"}))

    response = _sent(relay)
    assert response["success"] is False
    assert "nope" in response["error"]


@pytest.mark.asyncio
async def test_call_graph_error(relay, graph):
    graph.status_code = 500
    graph.payload = {"error": {"message": "Service unavailable", "code": 2}}

    await relay.handle_message(json.dumps({
        "type": "call",
        "request_id": "r4",
        "tool": "wa_send_text",
        "args": {"to": "1", "body": "x"},
    }))

    response = _sent(relay)
    assert response["success"] is False
    assert response["details"]["code"] == 2


@pytest.mark.asyncio
async def test_ignores_pong_and_bad_json(relay):
    await relay.handle_message(json.dumps({"type": "pong"}))
    await relay.handle_message("{not json")
    relay.websocket.send.assert_not_called()


@pytest.mark.asyncio
async def test_stop_closes_socket(relay):
    await relay.stop()
    relay.websocket.close.assert_awaited_once()


@pytest.mark.asyncio
@pytest.mark.parametrize("frame", ["[1, 2]", '"call"', "null", "42"])
async def test_non_object_frame_is_ignored(relay, frame):
    await relay.handle_message(frame)
    relay.websocket.send.assert_not_called()


@pytest.mark.asyncio
async def test_unexpected_handler_error_is_reported():
    manager = AsyncMock()
    manager.send_text.side_effect = RuntimeError("boom")
    relay = MCPReverseClient("ws://relay.test/ws", create_tool_registry(manager))
    relay.websocket = AsyncMock()

    await relay.handle_message(json.dumps({
        "type": "call",
        "request_id": "r5",
        "tool": "wa_send_text",
        "args": {"to": "1", "body": "x"},
    }))

    response = _sent(relay)
    assert response["request_id"] == "r5"
    assert response["success"] is False
    assert "RuntimeError" in response["error"]
    assert "boom" in response["error"]


class _FakeSocket:
    """只推送固定几条消息的 websocket"""

    def __init__(self, messages):
        self.messages = list(messages)

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self.messages:
            raise StopAsyncIteration
        return self.messages.pop(0)


@pytest.mark.asyncio
async def test_run_reconnects_after_unexpected_error(registry, monkeypatch):
    relay = MCPReverseClient("ws://relay.test/ws", registry, reconnect_delay=0)
    attempts = []

    async def fake_connect():
        attempts.append(len(attempts))
        if len(attempts) == 1:
            relay.websocket = _FakeSocket(["{}"])
            return True
        relay._running = False
        return False

    monkeypatch.setattr(relay, "connect", fake_connect)
    monkeypatch.setattr(relay, "handle_message", AsyncMock(side_effect=RuntimeError("boom")))

    await relay.run()

    assert len(attempts) == 2
    relay.handle_message.assert_awaited_once_with("{}")
