# 工具模块
from .registry import BaseTool, ToolError, ToolRegistry, ToolValidationError, UnknownToolError
from .whatsapp import WhatsAppTool, create_tool_registry

__all__ = [
    "BaseTool",
    "ToolError",
    "ToolRegistry",
    "ToolValidationError",
    "UnknownToolError",
    "WhatsAppTool",
    "create_tool_registry",
]
