"""WhatsApp Cloud API MCP 服务 - 基于 FastMCP 实现"""

import json
import logging
from typing import Annotated, Any

from mcp.server import FastMCP
from pydantic import BaseModel, Field, StrictBool, ValidationError
from starlette.responses import JSONResponse
from starlette.requests import Request

from .config import ConfigurationError, get_config
from .graph_client import GraphApiError
from .manager import WhatsAppManager
from .schemas import (
    DEFAULT_PROFILE_FIELDS,
    TOOL_DESCRIPTIONS,
    Contact,
    Coordinate,
    ContentItem,
    HealthResponse,
    MessageBody,
    MessageId,
    PhoneNumber,
    Template,
    ToolCallRequest,
    ToolCallResponse,
    ToolName,
    ToolsListResponse,
    Url,
)
from .tools import ToolRegistry, ToolValidationError, UnknownToolError, create_tool_registry

logger = logging.getLogger(__name__)

_config = get_config()

# 创建 FastMCP 服务器
mcp = FastMCP(
    name="WhatsApp Cloud API MCP 服务",
    instructions="通过 WhatsApp Business Cloud API 发送消息、标记已读、读取商家资料",
    host=_config.server.host,
    port=_config.server.port,
    sse_path="/sse",
    message_path="/messages/",
)

# 全局工具注册表实例
_registry: ToolRegistry | None = None


def get_registry() -> ToolRegistry:
    """获取全局工具注册表（首次调用时创建 manager，配置缺失立即报错）"""
    global _registry
    if _registry is None:
        _registry = create_tool_registry(WhatsAppManager())
    return _registry


def _arguments(**kwargs: Any) -> dict[str, Any]:
    """去掉未提供的参数，模型转回普通 dict"""
    arguments: dict[str, Any] = {}
    for key, value in kwargs.items():
        if value is None:
            continue
        if isinstance(value, BaseModel):
            value = value.model_dump(exclude_none=True)
        elif isinstance(value, list):
            value = [v.model_dump(exclude_none=True) if isinstance(v, BaseModel) else v for v in value]
        arguments[key] = value
    return arguments


async def _call(tool_name: ToolName, **kwargs: Any) -> dict:
    return await get_registry().call(tool_name.value, _arguments(**kwargs))


# ========== MCP 工具定义 ==========
# 参数类型与 schema 表一致，FastMCP 入口与注册表的校验规则相同

@mcp.tool(name=ToolName.SEND_TEXT.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_TEXT])
async def wa_send_text(to: PhoneNumber, body: MessageBody, preview_url: StrictBool = False) -> dict:
    """
    Args:
        to: 收件人号码（国际格式，不带 +）
        body: 文本内容
        preview_url: 是否为消息中的链接生成预览
    """
    return await _call(ToolName.SEND_TEXT, to=to, body=body, preview_url=preview_url)


@mcp.tool(name=ToolName.SEND_TEMPLATE.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_TEMPLATE])
async def wa_send_template(to: PhoneNumber, template: Template) -> dict:
    """发送模板消息（主动发起会话时必须使用模板）"""
    return await _call(ToolName.SEND_TEMPLATE, to=to, template=template)


@mcp.tool(name=ToolName.SEND_IMAGE.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_IMAGE])
async def wa_send_image(
    to: PhoneNumber,
    image_url: Url | None = None,
    image_id: str | None = None,
    caption: str | None = None,
) -> dict:
    """image_url 和 image_id 至少提供一个"""
    return await _call(ToolName.SEND_IMAGE, to=to, image_url=image_url, image_id=image_id, caption=caption)


@mcp.tool(name=ToolName.SEND_VIDEO.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_VIDEO])
async def wa_send_video(
    to: PhoneNumber,
    video_url: Url | None = None,
    video_id: str | None = None,
    caption: str | None = None,
) -> dict:
    """video_url 和 video_id 至少提供一个"""
    return await _call(ToolName.SEND_VIDEO, to=to, video_url=video_url, video_id=video_id, caption=caption)


@mcp.tool(name=ToolName.SEND_DOCUMENT.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_DOCUMENT])
async def wa_send_document(
    to: PhoneNumber,
    document_url: Url | None = None,
    document_id: str | None = None,
    caption: str | None = None,
    filename: str | None = None,
) -> dict:
    """document_url 和 document_id 至少提供一个"""
    return await _call(
        ToolName.SEND_DOCUMENT,
        to=to,
        document_url=document_url,
        document_id=document_id,
        caption=caption,
        filename=filename,
    )


@mcp.tool(name=ToolName.SEND_LOCATION.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_LOCATION])
async def wa_send_location(
    to: PhoneNumber,
    latitude: Coordinate,
    longitude: Coordinate,
    name: str | None = None,
    address: str | None = None,
) -> dict:
    return await _call(
        ToolName.SEND_LOCATION,
        to=to,
        latitude=latitude,
        longitude=longitude,
        name=name,
        address=address,
    )


@mcp.tool(name=ToolName.SEND_CONTACT.value, description=TOOL_DESCRIPTIONS[ToolName.SEND_CONTACT])
async def wa_send_contact(to: PhoneNumber, contacts: Annotated[list[Contact], Field(min_length=1)]) -> dict:
    return await _call(ToolName.SEND_CONTACT, to=to, contacts=contacts)


@mcp.tool(
    name=ToolName.MARK_MESSAGE_AS_READ.value,
    description=TOOL_DESCRIPTIONS[ToolName.MARK_MESSAGE_AS_READ],
)
async def wa_mark_message_as_read(message_id: MessageId) -> dict:
    return await _call(ToolName.MARK_MESSAGE_AS_READ, message_id=message_id)


@mcp.tool(
    name=ToolName.GET_BUSINESS_PROFILE.value,
    description=TOOL_DESCRIPTIONS[ToolName.GET_BUSINESS_PROFILE],
)
async def wa_get_business_profile(fields: list[str] = list(DEFAULT_PROFILE_FIELDS)) -> dict:
    """
    Args:
        fields: 需要的字段，默认 about/address/description/email/profile_picture_url/websites/vertical
    """
    return await _call(ToolName.GET_BUSINESS_PROFILE, fields=fields)


# ========== 自定义路由 ==========

@mcp.custom_route("/health", methods=["GET"])
async def health_check(request: Request) -> JSONResponse:
    """健康检查接口（配置缺失时返回 unhealthy）"""
    phone_number_id = get_config().whatsapp.phone_number_id or None
    try:
        registry = get_registry()
    except ConfigurationError as e:
        return JSONResponse(HealthResponse(
            status="unhealthy",
            phone_number_id=phone_number_id,
            error=str(e),
        ).model_dump(), status_code=503)

    return JSONResponse(HealthResponse(
        status="healthy",
        phone_number_id=phone_number_id,
        tools_count=len(registry.names()),
    ).model_dump())


@mcp.custom_route("/tools/list", methods=["GET"])
async def list_tools(request: Request) -> JSONResponse:
    """列出工具定义"""
    response = ToolsListResponse(tools=get_registry().list_tools())
    return JSONResponse(response.model_dump())


def _error_response(message: str, status_code: int) -> JSONResponse:
    response = ToolCallResponse(content=[ContentItem(text=message)], isError=True)
    return JSONResponse(response.model_dump(), status_code=status_code)


@mcp.custom_route("/tools/call", methods=["POST"])
async def call_tool(request: Request) -> JSONResponse:
    """按名称调用工具

    Body: {"name": "wa_send_text", "arguments": {...}}
    """
    try:
        call = ToolCallRequest.model_validate(await request.json())
    except (ValueError, ValidationError) as e:
        return _error_response(f"无效的请求: {e}", 400)

    try:
        result = await get_registry().call(call.name, call.arguments)
    except UnknownToolError as e:
        return _error_response(str(e), 404)
    except ToolValidationError as e:
        return _error_response(json.dumps({"message": str(e), "errors": e.errors}, ensure_ascii=False), 400)
    except GraphApiError as e:
        logger.error(f"工具调用失败: {call.name} - {e}")
        return _error_response(json.dumps(e.to_dict(), ensure_ascii=False), 502)

    response = ToolCallResponse(content=[ContentItem(text=json.dumps(result, ensure_ascii=False))])
    return JSONResponse(response.model_dump())


def main() -> None:
    """主函数"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    config = get_config()
    registry = get_registry()
    logger.info(f"启动服务: {config.server.host}:{config.server.port}")
    logger.info(f"已注册 {len(registry.names())} 个工具, phone_number_id={config.whatsapp.phone_number_id}")
    logger.info(f"MCP 服务已启动，SSE 端点: http://{config.server.host}:{config.server.port}/sse")

    # 使用 FastMCP 的 SSE 模式运行
    mcp.run(transport="sse")


if __name__ == "__main__":
    main()
