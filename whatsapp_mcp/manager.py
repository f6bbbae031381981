"""WhatsApp 操作管理器

每个方法接收已校验的参数，构造对应的 Graph API 请求并交给客户端执行。
"""

from typing import Any

from .config import ConfigurationError, WhatsAppConfig, get_config
from .graph_client import GraphApiClient, GraphRequest
from .schemas import (
    GetBusinessProfileArgs,
    MarkMessageAsReadArgs,
    SendContactArgs,
    SendDocumentArgs,
    SendImageArgs,
    SendLocationArgs,
    SendTemplateArgs,
    SendTextArgs,
    SendVideoArgs,
)


class WhatsAppManager:
    """WhatsApp Cloud API 操作"""

    def __init__(self, config: WhatsAppConfig | None = None, client: GraphApiClient | None = None):
        """
        Args:
            config: WhatsApp 配置，为 None 时读取全局配置
            client: Graph API 客户端，为 None 时按配置创建

        Raises:
            ConfigurationError: access token 或 phone number id 未设置
        """
        config = config or get_config().whatsapp
        if not config.access_token:
            raise ConfigurationError("WHATSAPP_ACCESS_TOKEN 未设置")
        if not config.phone_number_id:
            raise ConfigurationError("WHATSAPP_PHONE_NUMBER_ID 未设置")

        self.config = config
        self.phone_number_id = config.phone_number_id
        self.client = client or GraphApiClient(
            access_token=config.access_token,
            base_url=config.base_url,
            timeout=config.timeout,
        )

    @property
    def messages_endpoint(self) -> str:
        return f"{self.phone_number_id}/messages"

    @property
    def business_profile_endpoint(self) -> str:
        return f"{self.phone_number_id}/whatsapp_business_profile"

    async def aclose(self) -> None:
        """关闭 Graph API 客户端连接"""
        await self.client.aclose()

    def _message(self, to: str, message_type: str, payload: Any) -> GraphRequest:
        """发送消息的公共信封"""
        return GraphRequest(
            method="POST",
            endpoint=self.messages_endpoint,
            body={
                "messaging_product": "whatsapp",
                "recipient_type": "individual",
                "to": to,
                "type": message_type,
                message_type: payload,
            },
        )

    @staticmethod
    def _media(media_id: str | None, link: str | None, **extra: str | None) -> dict[str, str]:
        """只放入提供了的字段"""
        body: dict[str, str] = {}
        if media_id:
            body["id"] = media_id
        if link:
            body["link"] = link
        for key, value in extra.items():
            if value:
                body[key] = value
        return body

    # ========== 请求构造 ==========

    def build_send_text(self, args: SendTextArgs) -> GraphRequest:
        return self._message(args.to, "text", {
            "body": args.body,
            "preview_url": args.preview_url,
        })

    def build_send_template(self, args: SendTemplateArgs) -> GraphRequest:
        return self._message(args.to, "template", args.template.model_dump(exclude_none=True))

    def build_send_image(self, args: SendImageArgs) -> GraphRequest:
        return self._message(args.to, "image", self._media(
            args.image_id, args.image_url, caption=args.caption,
        ))

    def build_send_video(self, args: SendVideoArgs) -> GraphRequest:
        return self._message(args.to, "video", self._media(
            args.video_id, args.video_url, caption=args.caption,
        ))

    def build_send_document(self, args: SendDocumentArgs) -> GraphRequest:
        return self._message(args.to, "document", self._media(
            args.document_id, args.document_url, caption=args.caption, filename=args.filename,
        ))

    def build_send_location(self, args: SendLocationArgs) -> GraphRequest:
        location: dict[str, Any] = {
            "latitude": args.latitude,
            "longitude": args.longitude,
        }
        if args.name is not None:
            location["name"] = args.name
        if args.address is not None:
            location["address"] = args.address
        return self._message(args.to, "location", location)

    def build_send_contact(self, args: SendContactArgs) -> GraphRequest:
        contacts = [contact.model_dump(exclude_none=True) for contact in args.contacts]
        return self._message(args.to, "contacts", contacts)

    def build_mark_message_as_read(self, args: MarkMessageAsReadArgs) -> GraphRequest:
        return GraphRequest(
            method="POST",
            endpoint=self.messages_endpoint,
            body={
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": args.message_id,
            },
        )

    def build_get_business_profile(self, args: GetBusinessProfileArgs) -> GraphRequest:
        # business_account_id 对这个接口不是必需的：GET /<PHONE_NUMBER_ID>/whatsapp_business_profile
        params = {"fields": ",".join(args.fields)} if args.fields else None
        return GraphRequest(
            method="GET",
            endpoint=self.business_profile_endpoint,
            params=params,
        )

    # ========== 执行 ==========

    async def send_text(self, args: SendTextArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_text(args))

    async def send_template(self, args: SendTemplateArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_template(args))

    async def send_image(self, args: SendImageArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_image(args))

    async def send_video(self, args: SendVideoArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_video(args))

    async def send_document(self, args: SendDocumentArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_document(args))

    async def send_location(self, args: SendLocationArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_location(args))

    async def send_contact(self, args: SendContactArgs) -> dict[str, Any]:
        return await self.client.send(self.build_send_contact(args))

    async def mark_message_as_read(self, args: MarkMessageAsReadArgs) -> dict[str, Any]:
        return await self.client.send(self.build_mark_message_as_read(args))

    async def get_business_profile(self, args: GetBusinessProfileArgs) -> dict[str, Any]:
        return await self.client.send(self.build_get_business_profile(args))
