#!/usr/bin/env python3
"""调用运行中的 MCP 服务 HTTP 接口的脚本"""

import asyncio
import json
import sys

import httpx


MCP_URL = "http://localhost:8765"


async def list_tools() -> dict:
    """列出工具"""
    async with httpx.AsyncClient(timeout=30) as client:
        response = await client.get(f"{MCP_URL}/tools/list")
        return response.json()


async def call_tool(name: str, arguments: dict) -> dict:
    """调用 MCP 工具"""
    async with httpx.AsyncClient(timeout=60) as client:
        response = await client.post(
            f"{MCP_URL}/tools/call",
            json={"name": name, "arguments": arguments}
        )
        return response.json()


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("用法: python call_tool.py list")
        print("      python call_tool.py <tool_name> '<json 参数>'")
        print("示例: python call_tool.py wa_send_text '{\"to\": \"15551234567\", \"body\": \"hi\"}'")
        sys.exit(1)

    cmd = sys.argv[1]

    if cmd == "list":
        result = asyncio.run(list_tools())
    else:
        arguments = json.loads(sys.argv[2]) if len(sys.argv) > 2 else {}
        result = asyncio.run(call_tool(cmd, arguments))

    print(json.dumps(result, ensure_ascii=False, indent=2))
