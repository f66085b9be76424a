# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  配置 - 环境变量设置（pydantic-settings）与 YAML 配置字典
  Configuration - environment-driven settings (pydantic-settings) plus the YAML config dict.

使用示例 / Usage:
    from lianyu.config import settings, config

    settings.upstream_url
    config.get("offline", {}).get("cache_generation")
"""

import copy
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict

from lianyu.exceptions import ConfigurationError

BACKEND_DIR = Path(__file__).resolve().parent.parent


class Settings(BaseSettings):
    """Process-level settings, overridable with ``LIANYU_*`` environment variables."""

    model_config = SettingsConfigDict(env_prefix="LIANYU_", env_file=".env", extra="ignore")

    app_name: str = "恋语AI"
    version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    data_dir: str = str(BACKEND_DIR / "data")
    log_dir: str = str(BACKEND_DIR / "logs")
    config_path: str = str(BACKEND_DIR / "config.yaml")
    upstream_url: str = "http://152.32.218.174:3001"
    # Forces a platform instead of probing host globals (web / miniprogram / cordova / capacitor)
    platform: Optional[str] = None
    monitor_enabled: bool = True


# Built-in defaults; config.yaml is merged over these.
DEFAULT_CONFIG: Dict[str, Any] = {
    "platforms": {
        "web": {
            "api": {"timeout": 10000},
            "storage": {"type": "localStorage", "prefix": "lianyuai_"},
            "features": {"pwa": True, "serviceWorker": True, "notification": True, "fileUpload": True},
        },
        "miniprogram": {
            "api": {"timeout": 10000},
            "storage": {"type": "wxStorage", "prefix": "lianyuai_"},
            "features": {"pwa": False, "serviceWorker": False, "notification": False, "fileUpload": True},
        },
        "cordova": {
            "api": {"timeout": 15000},
            "storage": {"type": "localStorage", "prefix": "lianyuai_"},
            "features": {"pwa": False, "serviceWorker": False, "notification": True, "fileUpload": True},
        },
        "capacitor": {
            "api": {"timeout": 15000},
            "storage": {"type": "capacitorStorage", "prefix": "lianyuai_"},
            "features": {"pwa": False, "serviceWorker": False, "notification": True, "fileUpload": True},
        },
    },
    "storage": {
        "local_file": "local_storage.json",
        "quota_bytes": 5 * 1024 * 1024,
    },
    "offline": {
        "cache_generation": "lianyuai-v1.1.9",
        "cache_dir": "snapshots",
        "precache_urls": ["/", "/index.html", "/manifest.json"],
        "api_marker": "/api/",
        "offline_document": "/index.html",
        "cache_api_responses": False,
        "sync_tag": "background-sync",
        "must_deliver": [{"method": "POST", "path": "/api/messages/send"}],
    },
    "queue": {
        "storage_key": "pendingMessages",
        "max_entries": 200,
        "max_age_hours": 168,
    },
    "sync": {
        "probe_path": "/api/health",
        "probe_timeout": 5.0,
        "check_interval_online": 30.0,
        "check_interval_offline": 10.0,
        "retry_delays": [5, 10, 20, 40, 80],
        "max_retry_delay": 300.0,
    },
}


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    加载 YAML 配置并合并到默认值之上

    Load the YAML config file and merge it over the built-in defaults.

    Args:
        path: YAML 文件路径，缺失时仅使用默认值 / YAML path; defaults only when missing

    Returns:
        合并后的配置字典 / Merged configuration dict

    Raises:
        ConfigurationError: 文件无法解析或顶层不是映射 / File is unparseable or not a mapping
    """
    if not path or not Path(path).exists():
        return copy.deepcopy(DEFAULT_CONFIG)

    try:
        with open(path, "r", encoding="utf-8") as f:
            loaded = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Invalid config file {path}: {exc}") from exc

    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return _deep_merge(DEFAULT_CONFIG, loaded)


settings = Settings()
config = load_config(settings.config_path)
