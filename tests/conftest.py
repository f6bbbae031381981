"""Pytest configuration and fixtures."""

import json

import httpx
import pytest

from whatsapp_mcp.config import WhatsAppConfig
from whatsapp_mcp.graph_client import GraphApiClient
from whatsapp_mcp.manager import WhatsAppManager
from whatsapp_mcp.tools import create_tool_registry

PHONE_NUMBER_ID = "1098765432"
BASE_URL = "https://graph.example.test/v21.0"

SEND_OK = {
    "messaging_product": "whatsapp",
    "contacts": [{"input": "15551234567", "wa_id": "15551234567"}],
    "messages": [{"id": "wamid.HBgLMTU1NTEyMzQ1NjcVAgARGBI"}],
}


class GraphRecorder:
    """Fake Graph API: records every request and answers with a canned response."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.payload: dict = SEND_OK

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

    def last_json(self) -> dict:
        return json.loads(self.last.content)


@pytest.fixture
def graph():
    return GraphRecorder()


@pytest.fixture
def whatsapp_config():
    return WhatsAppConfig(
        access_token="test-token",
        phone_number_id=PHONE_NUMBER_ID,
        base_url=BASE_URL,
    )


@pytest.fixture
def client(graph, whatsapp_config):
    return GraphApiClient(
        access_token=whatsapp_config.access_token,
        base_url=whatsapp_config.base_url,
        transport=httpx.MockTransport(graph.handler),
    )


@pytest.fixture
def manager(whatsapp_config, client):
    return WhatsAppManager(whatsapp_config, client=client)


@pytest.fixture
def registry(manager):
    return create_tool_registry(manager)
