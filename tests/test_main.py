import json

import pytest
from mcp.server.fastmcp.exceptions import ToolError as MCPToolError
from starlette.applications import Starlette
from starlette.routing import Route
from starlette.testclient import TestClient

from whatsapp_mcp import main
from whatsapp_mcp.config import ConfigurationError
from whatsapp_mcp.schemas import DEFAULT_PROFILE_FIELDS


@pytest.fixture
def app_client(registry, monkeypatch):
    monkeypatch.setattr(main, "_registry", registry)
    app = Starlette(routes=[
        Route("/health", main.health_check, methods=["GET"]),
        Route("/tools/list", main.list_tools, methods=["GET"]),
        Route("/tools/call", main.call_tool, methods=["POST"]),
    ])
    return TestClient(app)


@pytest.mark.unit
def test_health(app_client):
    response = app_client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["tools_count"] == 9


@pytest.mark.unit
def test_tools_list(app_client):
    tools = app_client.get("/tools/list").json()["tools"]
    assert {t["name"] for t in tools} == {
        "wa_send_text",
        "wa_send_template",
        "wa_send_image",
        "wa_send_video",
        "wa_send_document",
        "wa_send_location",
        "wa_send_contact",
        "wa_mark_message_as_read",
        "wa_get_business_profile",
    }
    assert all(t["description"] for t in tools)


@pytest.mark.unit
def test_tools_call_success(app_client, graph):
    response = app_client.post("/tools/call", json={
        "name": "wa_send_text",
        "arguments": {"to": "15551234567", "body": "hello"},
    })

    assert response.status_code == 200
    body = response.json()
    assert body["isError"] is False
    assert json.loads(body["content"][0]["text"]) == graph.payload
    assert graph.last_json()["text"] == {"body": "hello", "preview_url": False}


@pytest.mark.unit
def test_tools_call_unknown_tool(app_client):
    response = app_client.post("/tools/call", json={"name": "wa_send_sticker"})
    assert response.status_code == 404
    assert response.json()["isError"] is True


@pytest.mark.unit
def test_tools_call_validation_error(app_client, graph):
    response = app_client.post("/tools/call", json={
        "name": "wa_send_video",
        "arguments": {"to": "15551234567"},
    })

    assert response.status_code == 400
    detail = json.loads(response.json()["content"][0]["text"])
    assert "Either video_url or video_id must be provided" in detail["errors"][0]["message"]
    assert graph.requests == []


@pytest.mark.unit
def test_tools_call_graph_error(app_client, graph):
    graph.status_code = 400
    graph.payload = {"error": {"message": "Template name does not exist", "code": 132001}}

    response = app_client.post("/tools/call", json={
        "name": "wa_send_template",
        "arguments": {"to": "1", "template": {"name": "nope", "language": {"code": "en"}}},
    })

    assert response.status_code == 502
    detail = json.loads(response.json()["content"][0]["text"])
    assert detail["code"] == 132001
    assert detail["status_code"] == 400


@pytest.mark.unit
def test_tools_call_bad_body(app_client):
    response = app_client.post("/tools/call", content=b"not json", headers={"content-type": "application/json"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_mcp_tool_function_forwards_to_registry(registry, graph, monkeypatch):
    monkeypatch.setattr(main, "_registry", registry)

    await main.wa_send_image(to="15551234567", image_id="123")

    assert graph.last_json()["image"] == {"id": "123"}


@pytest.mark.asyncio
async def test_mcp_template_tool_dumps_model(registry, graph, monkeypatch):
    monkeypatch.setattr(main, "_registry", registry)
    template = main.Template.model_validate({"name": "hello_world", "language": {"code": "en_US"}})

    await main.wa_send_template(to="15551234567", template=template)

    assert graph.last_json()["template"] == {"name": "hello_world", "language": {"code": "en_US"}}


# ========== FastMCP 入口 ==========

@pytest.mark.asyncio
@pytest.mark.parametrize("tool, arguments", [
    ("wa_send_text", {"to": "15551234567", "body": "hello", "preview_url": "true"}),
    ("wa_send_text", {"to": "", "body": "hello"}),
    ("wa_send_text", {"to": "15551234567", "body": ""}),
    ("wa_send_image", {"to": "15551234567", "image_url": "not a url"}),
    ("wa_send_location", {"to": "15551234567", "latitude": "37.0", "longitude": -122.0}),
    ("wa_send_contact", {"to": "15551234567", "contacts": []}),
    ("wa_mark_message_as_read", {"message_id": ""}),
])
async def test_mcp_call_rejects_what_registry_rejects(registry, graph, monkeypatch, tool, arguments):
    monkeypatch.setattr(main, "_registry", registry)

    with pytest.raises(MCPToolError):
        await main.mcp.call_tool(tool, arguments)
    assert graph.requests == []


@pytest.mark.asyncio
async def test_mcp_call_sends_image(registry, graph, monkeypatch):
    monkeypatch.setattr(main, "_registry", registry)

    await main.mcp.call_tool("wa_send_image", {"to": "15551234567", "image_id": "123"})

    assert graph.last_json()["image"] == {"id": "123"}


@pytest.mark.asyncio
async def test_mcp_call_business_profile_defaults(registry, graph, monkeypatch):
    monkeypatch.setattr(main, "_registry", registry)

    await main.mcp.call_tool("wa_get_business_profile", {})

    assert graph.last.method == "GET"
    assert graph.last.url.params["fields"] == ",".join(DEFAULT_PROFILE_FIELDS)


@pytest.mark.asyncio
async def test_mcp_schemas_match_tool_definitions(registry):
    definitions = {d.name: d.inputSchema for d in registry.list_tools()}
    tools = await main.mcp.list_tools()

    assert {t.name for t in tools} == set(definitions)
    for tool in tools:
        expected = definitions[tool.name]
        assert set(tool.inputSchema["properties"]) == set(expected.properties), tool.name
        assert set(tool.inputSchema.get("required", [])) == set(expected.required), tool.name

    schemas = {t.name: t.inputSchema for t in tools}
    assert schemas["wa_send_text"]["properties"]["to"]["minLength"] == 1
    assert schemas["wa_send_text"]["properties"]["preview_url"]["type"] == "boolean"
    fields = schemas["wa_get_business_profile"]["properties"]["fields"]
    assert fields["type"] == "array"
    assert "anyOf" not in fields


# ========== 健康检查 ==========

@pytest.mark.unit
def test_health_reports_missing_configuration(monkeypatch):
    def missing_token(*args, **kwargs):
        raise ConfigurationError("WHATSAPP_ACCESS_TOKEN 未设置")

    monkeypatch.setattr(main, "_registry", None)
    monkeypatch.setattr(main, "WhatsAppManager", missing_token)
    app = Starlette(routes=[Route("/health", main.health_check, methods=["GET"])])

    response = TestClient(app).get("/health")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "unhealthy"
    assert "WHATSAPP_ACCESS_TOKEN" in body["error"]
    assert main._registry is None
