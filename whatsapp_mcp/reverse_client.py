"""MCP 反向连接客户端 - 主动连接服务器 Relay"""
import asyncio
import json
import logging
import signal
from typing import Any

import websockets

from .config import get_config
from .graph_client import GraphApiError
from .tools import ToolError, ToolRegistry, ToolValidationError, create_tool_registry
from .manager import WhatsAppManager

logger = logging.getLogger(__name__)


class MCPReverseClient:
    """MCP 反向连接客户端"""

    def __init__(
        self,
        relay_url: str,
        registry: ToolRegistry,
        device_id: str = "whatsapp-mcp",
        reconnect_delay: float = 5.0,
    ):
        """
        初始化反向连接客户端

        Args:
            relay_url: 服务器 Relay WebSocket URL，例如 ws://api.example.com/api/v1/mcp/ws/whatsapp-mcp
            registry: 工具注册表
            device_id: 设备标识
            reconnect_delay: 重连延迟（秒）
        """
        self.relay_url = relay_url
        self.registry = registry
        self.device_id = device_id
        self.websocket = None
        self._running = False
        self._reconnect_delay = reconnect_delay

    def register_message(self) -> dict[str, Any]:
        """注册消息：设备 ID 与全部工具定义"""
        return {
            "type": "register",
            "device_id": self.device_id,
            "tools": [tool.model_dump() for tool in self.registry.list_tools()],
        }

    async def connect(self) -> bool:
        """连接到服务器 Relay"""
        logger.info(f"🔌 正在连接服务器: {self.relay_url}")

        try:
            self.websocket = await websockets.connect(
                self.relay_url,
                ping_interval=30,
                ping_timeout=10
            )

            await self.websocket.send(json.dumps(self.register_message(), ensure_ascii=False))

            # 等待注册确认
            response = await self.websocket.recv()
            response_data = json.loads(response)

            if response_data.get("type") == "registered":
                logger.info(f"✅ 注册成功! 设备ID: {response_data.get('device_id')}, 工具数: {response_data.get('tools_count')}")
                return True
            else:
                logger.error(f"❌ 注册失败: {response_data}")
                return False

        except (OSError, websockets.WebSocketException, json.JSONDecodeError) as e:
            logger.error(f"❌ 连接失败: {e}")
            return False

    async def handle_call(self, data: dict[str, Any]) -> dict[str, Any]:
        """执行一次工具调用，返回要回给 Relay 的结果消息"""
        request_id = data.get("request_id")
        tool_name = data.get("tool")
        args = data.get("args") or {}

        logger.info(f"🔧 收到工具调用: {tool_name} (request_id={request_id})")

        try:
            result = await self.registry.call(tool_name, args)
        except ToolValidationError as e:
            logger.warning(f"❌ 参数校验失败: {tool_name} - {e}")
            return {
                "type": "result",
                "request_id": request_id,
                "success": False,
                "error": str(e),
                "errors": e.errors,
            }
        except ToolError as e:
            logger.warning(f"❌ 工具调用失败: {tool_name} - {e}")
            return {
                "type": "result",
                "request_id": request_id,
                "success": False,
                "error": str(e),
            }
        except GraphApiError as e:
            logger.error(f"❌ 工具调用失败: {tool_name} - {e}")
            return {
                "type": "result",
                "request_id": request_id,
                "success": False,
                "error": str(e),
                "details": e.to_dict(),
            }
        except Exception as e:
            logger.exception(f"❌ 工具调用异常: {tool_name}")
            return {
                "type": "result",
                "request_id": request_id,
                "success": False,
                "error": f"{type(e).__name__}: {e}",
            }

        logger.info(f"✅ 工具调用成功: {tool_name}")
        return {
            "type": "result",
            "request_id": request_id,
            "success": True,
            "data": result,
        }

    async def handle_message(self, message: str) -> None:
        """处理服务器发来的消息"""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("⚠️ 无效的 JSON 消息")
            return
        if not isinstance(data, dict):
            logger.warning(f"⚠️ 消息不是 JSON 对象: {type(data).__name__}")
            return

        msg_type = data.get("type")

        if msg_type == "call":
            response = await self.handle_call(data)
            await self.websocket.send(json.dumps(response, ensure_ascii=False))

        elif msg_type == "pong":
            # 心跳响应
            pass

        else:
            logger.debug(f"收到其他消息: {msg_type}")

    async def run(self) -> None:
        """运行客户端（含自动重连）"""
        self._running = True

        while self._running:
            try:
                if await self.connect():
                    async for message in self.websocket:
                        await self.handle_message(message)

            except websockets.ConnectionClosed as e:
                logger.warning(f"⚠️ 连接断开: {e}")
            except Exception:
                logger.exception("❌ 运行错误")

            if self._running:
                logger.info(f"🔄 {self._reconnect_delay}秒后重连...")
                await asyncio.sleep(self._reconnect_delay)

    async def stop(self) -> None:
        """停止客户端"""
        self._running = False
        if self.websocket:
            await self.websocket.close()
            logger.info("🔌 连接已关闭")


async def main() -> None:
    """主函数"""
    config = get_config()

    relay_url = config.relay.url
    if not relay_url:
        raise SystemExit("MCP_RELAY_URL 未设置")

    # 先创建注册表，配置缺失时直接失败
    manager = WhatsAppManager(config.whatsapp)
    registry = create_tool_registry(manager)

    logger.info("=" * 50)
    logger.info("🤖 MCP 反向连接客户端启动")
    logger.info(f"📡 Relay URL: {relay_url}")
    logger.info("=" * 50)

    client = MCPReverseClient(
        relay_url,
        registry,
        device_id=config.relay.device_id,
        reconnect_delay=config.relay.reconnect_delay,
    )

    # 设置信号处理
    def signal_handler():
        logger.info("收到退出信号...")
        asyncio.create_task(client.stop())

    loop = asyncio.get_running_loop()
    loop.add_signal_handler(signal.SIGINT, signal_handler)
    loop.add_signal_handler(signal.SIGTERM, signal_handler)

    try:
        await client.run()
    finally:
        await manager.aclose()


def run() -> None:
    """命令行入口"""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    asyncio.run(main())


if __name__ == "__main__":
    run()
