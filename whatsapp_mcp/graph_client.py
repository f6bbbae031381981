"""Graph API HTTP 客户端

只负责一次请求的收发与错误归一化：不重试、不缓存。
"""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class GraphApiError(Exception):
    """Graph API 调用失败（远端拒绝或网络错误）"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        code: int | None = None,
        error_subcode: int | None = None,
        fbtrace_id: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.code = code
        self.error_subcode = error_subcode
        self.fbtrace_id = fbtrace_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "status_code": self.status_code,
            "type": self.error_type,
            "code": self.code,
            "error_subcode": self.error_subcode,
            "fbtrace_id": self.fbtrace_id,
        }

    @classmethod
    def from_response(cls, response: httpx.Response) -> "GraphApiError":
        """从 Graph 错误响应构造

        Graph 错误格式: {"error": {"message", "type", "code", "error_subcode", "fbtrace_id"}}
        """
        try:
            data = response.json()
        except ValueError:
            data = {}
        error = data.get("error") if isinstance(data, dict) else None
        if not isinstance(error, dict):
            error = {}

        return cls(
            error.get("message") or f"Graph API 返回 {response.status_code}: {response.text[:200]}",
            status_code=response.status_code,
            error_type=error.get("type"),
            code=error.get("code"),
            error_subcode=error.get("error_subcode"),
            fbtrace_id=error.get("fbtrace_id"),
        )


@dataclass(frozen=True)
class GraphRequest:
    """一次出站请求的完整形状"""
    method: str
    endpoint: str
    body: dict[str, Any] | None = None
    params: dict[str, str] | None = None


class GraphApiClient:
    """Graph API 客户端"""

    def __init__(
        self,
        access_token: str,
        base_url: str = "https://graph.facebook.com/v21.0",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            access_token: Bearer token
            base_url: 带版本号的 Graph API 根地址
            timeout: 单次请求超时（秒）
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._access_token = access_token
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def http(self) -> httpx.AsyncClient:
        """长连接的 httpx 客户端（首次使用时创建，复用连接池）"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Authorization": f"Bearer {self._access_token}"},
            )
        return self._client

    async def aclose(self) -> None:
        """关闭底层连接"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GraphApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def request(
        self,
        method: str,
        endpoint: str,
        body: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """发送请求并返回 JSON 响应

        Raises:
            GraphApiError: 非 2xx 响应、响应体不是 JSON 或网络错误
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        query = {k: v for k, v in (params or {}).items() if v is not None}

        logger.debug(f"Graph API 请求: {method} {endpoint}")

        try:
            response = await self.http.request(
                method,
                url,
                json=body,
                params=query or None,
            )
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning(f"Graph API 请求失败: {method} {endpoint} - {e}")
            raise GraphApiError(f"Graph API 请求失败: {e}") from e

        if response.is_error:
            error = GraphApiError.from_response(response)
            logger.warning(f"Graph API 错误: {method} {endpoint} - {response.status_code} {error.message}")
            raise error

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError as e:
            logger.warning(f"Graph API 响应不是 JSON: {method} {endpoint} - {response.text[:200]}")
            raise GraphApiError(
                f"Graph API 返回了非 JSON 响应: {response.text[:200]}",
                status_code=response.status_code,
            ) from e

    async def send(self, request: GraphRequest) -> dict[str, Any]:
        """执行一个已构造好的 GraphRequest"""
        return await self.request(
            request.method,
            request.endpoint,
            body=request.body,
            params=request.params,
        )
