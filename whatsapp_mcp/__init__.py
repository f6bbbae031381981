"""WhatsApp Cloud API MCP 服务"""

from .config import ConfigurationError
from .graph_client import GraphApiClient, GraphApiError, GraphRequest
from .manager import WhatsAppManager
from .tools import ToolRegistry, create_tool_registry

__all__ = [
    "ConfigurationError",
    "GraphApiClient",
    "GraphApiError",
    "GraphRequest",
    "ToolRegistry",
    "WhatsAppManager",
    "create_tool_registry",
]
