"""Pydantic 模型定义 - 工具参数 Schema 与 MCP 协议格式"""

from enum import Enum
from typing import Annotated, Any, ClassVar, Literal

from email_validator import EmailNotValidError, validate_email
from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    TypeAdapter,
    ValidationError,
    model_validator,
)


# ============ 通用字段 ============

_url_adapter = TypeAdapter(AnyUrl)


def _check_url(value: str) -> str:
    """校验 URL 格式，原样返回（不做规范化）"""
    try:
        _url_adapter.validate_python(value)
    except ValidationError as e:
        raise ValueError(f"Invalid url: {e.errors()[0]['msg']}") from None
    return value


def _check_email(value: str) -> str:
    """校验邮箱格式，原样返回（不改大小写，不接受 "Name <addr>" 形式）"""
    try:
        validate_email(value, check_deliverability=False, allow_display_name=False)
    except EmailNotValidError as e:
        raise ValueError(f"Invalid email: {e}") from None
    return value


Url = Annotated[str, AfterValidator(_check_url)]
Email = Annotated[str, AfterValidator(_check_email), Field(json_schema_extra={"format": "email"})]
PhoneNumber = Annotated[str, Field(min_length=1)]
MessageId = Annotated[str, Field(min_length=1)]
MessageBody = Annotated[str, Field(min_length=1)]
# 坐标只接受数字，不把字符串转成数字
Coordinate = StrictInt | StrictFloat


class ToolName(str, Enum):
    """支持的工具名称"""
    SEND_TEXT = "wa_send_text"
    SEND_TEMPLATE = "wa_send_template"
    SEND_IMAGE = "wa_send_image"
    SEND_VIDEO = "wa_send_video"
    SEND_DOCUMENT = "wa_send_document"
    SEND_LOCATION = "wa_send_location"
    SEND_CONTACT = "wa_send_contact"
    MARK_MESSAGE_AS_READ = "wa_mark_message_as_read"
    GET_BUSINESS_PROFILE = "wa_get_business_profile"


# ============ 模板消息 ============

class CurrencyParameter(BaseModel):
    """货币参数，amount_1000 = 金额 * 1000"""
    fallback_value: str
    code: str
    amount_1000: StrictInt


class DateTimeParameter(BaseModel):
    fallback_value: str


class MediaParameter(BaseModel):
    link: Url | None = None
    id: str | None = None


class DocumentParameter(MediaParameter):
    filename: str | None = None


class TemplateParameter(BaseModel):
    """模板组件参数，type 决定使用哪个字段"""
    type: Literal["text", "currency", "date_time", "image", "document", "video", "payload"]
    text: str | None = None
    currency: CurrencyParameter | None = None
    date_time: DateTimeParameter | None = None
    image: MediaParameter | None = None
    document: DocumentParameter | None = None
    video: MediaParameter | None = None
    payload: str | None = None  # 按钮回传


class TemplateComponent(BaseModel):
    type: Literal["header", "body", "button"]
    sub_type: Literal["quick_reply", "url"] | None = None
    index: int | float | None = None  # 按钮在列表中的位置，接受数字字符串
    parameters: list[TemplateParameter]


class TemplateLanguage(BaseModel):
    code: str = Field(min_length=2, description="语言代码，如 en_US")


class Template(BaseModel):
    name: str = Field(min_length=1)
    language: TemplateLanguage
    components: list[TemplateComponent] | None = None


# ============ 联系人消息 ============

class ContactName(BaseModel):
    formatted_name: str
    first_name: str | None = None
    last_name: str | None = None


class ContactPhone(BaseModel):
    phone: str
    type: Literal["CELL", "MAIN", "IPHONE", "HOME", "WORK"] | None = None
    wa_id: str | None = None


class ContactEmail(BaseModel):
    email: Email
    type: Literal["HOME", "WORK"] | None = None


class ContactOrg(BaseModel):
    company: str | None = None
    department: str | None = None
    title: str | None = None


class ContactUrl(BaseModel):
    url: Url
    type: Literal["HOME", "WORK"] | None = None


class Contact(BaseModel):
    name: ContactName
    phones: list[ContactPhone] | None = None
    emails: list[ContactEmail] | None = None
    org: ContactOrg | None = None
    urls: list[ContactUrl] | None = None


# ============ 工具参数 ============

class SendTextArgs(BaseModel):
    to: PhoneNumber = Field(description="Recipient phone number in international format without +")
    body: MessageBody = Field(description="The text message content")
    preview_url: StrictBool = Field(default=False, description="Whether to show a preview for URLs in the message")


class SendTemplateArgs(BaseModel):
    to: PhoneNumber = Field(description="Recipient phone number")
    template: Template = Field(description="The template details")


class _MediaArgs(BaseModel):
    """图片/视频/文档的公共校验：URL 与媒体 ID 至少提供一个"""

    media_kind: ClassVar[str]

    @model_validator(mode="after")
    def _require_source(self):
        kind = self.media_kind
        if not (getattr(self, f"{kind}_url") or getattr(self, f"{kind}_id")):
            raise ValueError(f"Either {kind}_url or {kind}_id must be provided")
        return self


class SendImageArgs(_MediaArgs):
    media_kind = "image"

    to: PhoneNumber
    image_url: Url | None = None
    image_id: str | None = None
    caption: str | None = None


class SendVideoArgs(_MediaArgs):
    media_kind = "video"

    to: PhoneNumber
    video_url: Url | None = None
    video_id: str | None = None
    caption: str | None = None


class SendDocumentArgs(_MediaArgs):
    media_kind = "document"

    to: PhoneNumber
    document_url: Url | None = None
    document_id: str | None = None
    caption: str | None = None
    filename: str | None = None


class SendLocationArgs(BaseModel):
    to: PhoneNumber
    latitude: Coordinate
    longitude: Coordinate
    name: str | None = None
    address: str | None = None


class SendContactArgs(BaseModel):
    to: PhoneNumber
    contacts: list[Contact] = Field(min_length=1)


class MarkMessageAsReadArgs(BaseModel):
    message_id: MessageId


DEFAULT_PROFILE_FIELDS = [
    "about",
    "address",
    "description",
    "email",
    "profile_picture_url",
    "websites",
    "vertical",
]


class GetBusinessProfileArgs(BaseModel):
    fields: list[str] = Field(default_factory=lambda: list(DEFAULT_PROFILE_FIELDS))


TOOL_SCHEMAS: dict[ToolName, type[BaseModel]] = {
    ToolName.SEND_TEXT: SendTextArgs,
    ToolName.SEND_TEMPLATE: SendTemplateArgs,
    ToolName.SEND_IMAGE: SendImageArgs,
    ToolName.SEND_VIDEO: SendVideoArgs,
    ToolName.SEND_DOCUMENT: SendDocumentArgs,
    ToolName.SEND_LOCATION: SendLocationArgs,
    ToolName.SEND_CONTACT: SendContactArgs,
    ToolName.MARK_MESSAGE_AS_READ: MarkMessageAsReadArgs,
    ToolName.GET_BUSINESS_PROFILE: GetBusinessProfileArgs,
}

TOOL_DESCRIPTIONS: dict[ToolName, str] = {
    ToolName.SEND_TEXT: "Send a text message to a WhatsApp user.",
    ToolName.SEND_TEMPLATE: "Send a template message (required for initiating conversations).",
    ToolName.SEND_IMAGE: "Send an image to a WhatsApp user via URL or Media ID.",
    ToolName.SEND_VIDEO: "Send a video to a WhatsApp user via URL or Media ID.",
    ToolName.SEND_DOCUMENT: "Send a document to a WhatsApp user via URL or Media ID.",
    ToolName.SEND_LOCATION: "Send a location to a WhatsApp user.",
    ToolName.SEND_CONTACT: "Send one or more contacts to a WhatsApp user.",
    ToolName.MARK_MESSAGE_AS_READ: "Mark a message as read.",
    ToolName.GET_BUSINESS_PROFILE: "Retrieve the business profile information.",
}


# ============ 工具定义 ============

class ToolInputSchema(BaseModel):
    """工具输入 Schema（保留 $defs 等额外的 JSON Schema 字段）"""
    model_config = ConfigDict(extra="allow")

    type: str = "object"
    properties: dict[str, Any] = Field(default_factory=dict)
    required: list[str] = Field(default_factory=list)


class ToolDefinition(BaseModel):
    """工具定义"""
    name: str
    description: str
    inputSchema: ToolInputSchema


class ToolsListResponse(BaseModel):
    """工具列表响应"""
    tools: list[ToolDefinition]


# ============ 工具调用 ============

class ToolCallRequest(BaseModel):
    """工具调用请求"""
    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class ContentItem(BaseModel):
    """MCP 内容项"""
    type: str = "text"
    text: str


class ToolCallResponse(BaseModel):
    """工具调用响应 (MCP 格式)"""
    content: list[ContentItem]
    isError: bool = False


# ============ 健康检查 ============

class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str
    phone_number_id: str | None = None
    tools_count: int = 0
    error: str | None = None
