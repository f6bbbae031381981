"""配置加载模块"""

import os
from pathlib import Path
from typing import Any
import yaml
from pydantic import BaseModel


class ConfigurationError(RuntimeError):
    """必需配置缺失（启动即失败）"""


class ServerConfig(BaseModel):
    """服务器配置"""
    host: str = "0.0.0.0"
    port: int = 8765


class WhatsAppConfig(BaseModel):
    """WhatsApp Cloud API 配置"""
    access_token: str = ""  # 留空则使用环境变量 WHATSAPP_ACCESS_TOKEN
    phone_number_id: str = ""  # 留空则使用环境变量 WHATSAPP_PHONE_NUMBER_ID
    business_account_id: str = ""
    base_url: str = "https://graph.facebook.com/v21.0"
    timeout: float = 30.0


class RelayConfig(BaseModel):
    """反向连接 Relay 配置"""
    url: str = ""  # 留空则使用环境变量 MCP_RELAY_URL
    device_id: str = "whatsapp-mcp"
    reconnect_delay: float = 5.0


class Config(BaseModel):
    """应用配置"""
    server: ServerConfig = ServerConfig()
    whatsapp: WhatsAppConfig = WhatsAppConfig()
    relay: RelayConfig = RelayConfig()


# 环境变量 -> (配置段, 字段)
ENV_OVERRIDES: dict[str, tuple[str, str]] = {
    "WHATSAPP_ACCESS_TOKEN": ("whatsapp", "access_token"),
    "WHATSAPP_PHONE_NUMBER_ID": ("whatsapp", "phone_number_id"),
    "WHATSAPP_BUSINESS_ACCOUNT_ID": ("whatsapp", "business_account_id"),
    "WHATSAPP_API_BASE_URL": ("whatsapp", "base_url"),
    "MCP_RELAY_URL": ("relay", "url"),
}


def _apply_env(data: dict[str, Any]) -> dict[str, Any]:
    """用环境变量覆盖配置文件中的空值"""
    for env_key, (section, field) in ENV_OVERRIDES.items():
        value = os.environ.get(env_key)
        if not value:
            continue
        block = data.setdefault(section, {}) or {}
        if not block.get(field):
            block[field] = value
        data[section] = block
    return data


def load_config(config_path: str | Path | None = None) -> Config:
    """加载配置文件（不存在时使用默认值），再叠加环境变量"""
    if config_path is None:
        config_path = os.environ.get("WHATSAPP_MCP_CONFIG") or Path(__file__).parent.parent / "config.yaml"
    config_path = Path(config_path)

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

    return Config(**_apply_env(data))


# 全局配置实例
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例"""
    global _config
    if _config is None:
        _config = load_config()
    return _config
