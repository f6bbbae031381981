"""WhatsApp 工具 - 名称 -> (Schema, 处理函数) 的绑定"""

from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from ..manager import WhatsAppManager
from ..schemas import TOOL_DESCRIPTIONS, TOOL_SCHEMAS, ToolName
from .registry import BaseTool, ToolRegistry

Handler = Callable[[Any], Awaitable[Any]]


class WhatsAppTool(BaseTool):
    """Schema 与描述来自 schema 表，执行交给 manager 方法"""

    def __init__(self, tool_name: ToolName, handler: Handler):
        self.tool_name = tool_name
        self.name = tool_name.value
        self.description = TOOL_DESCRIPTIONS[tool_name]
        self.args_model: type[BaseModel] = TOOL_SCHEMAS[tool_name]
        self._handler = handler

    async def execute(self, args: BaseModel) -> Any:
        return await self._handler(args)


def tool_handlers(manager: WhatsAppManager) -> dict[ToolName, Handler]:
    """每个工具对应的 manager 方法"""
    return {
        ToolName.SEND_TEXT: manager.send_text,
        ToolName.SEND_TEMPLATE: manager.send_template,
        ToolName.SEND_IMAGE: manager.send_image,
        ToolName.SEND_VIDEO: manager.send_video,
        ToolName.SEND_DOCUMENT: manager.send_document,
        ToolName.SEND_LOCATION: manager.send_location,
        ToolName.SEND_CONTACT: manager.send_contact,
        ToolName.MARK_MESSAGE_AS_READ: manager.mark_message_as_read,
        ToolName.GET_BUSINESS_PROFILE: manager.get_business_profile,
    }


def create_tool_registry(manager: WhatsAppManager) -> ToolRegistry:
    """创建包含全部 WhatsApp 工具的注册表"""
    registry = ToolRegistry()
    for tool_name, handler in tool_handlers(manager).items():
        registry.register(WhatsAppTool(tool_name, handler))
    return registry
