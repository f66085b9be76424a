# -*- coding: utf-8 -*-
"""
恋语AI - 跨平台聊天客户端离线核心
LianyuAI - Cross-platform chat client offline core

Copyright © 2025-2026 LianyuAI Team
License: PolyForm Noncommercial License 1.0.0

模块说明 / Module Description:
  平台能力 - 平台检测、平台配置档案与注入式能力描述
  Platform capabilities - platform detection, per-platform profiles and the
  injected capability value every component is built from.

实现方式 / Implementation:
  宿主嵌入层在启动时调用一次 detect_platform()，再由 capabilities_for()
  生成不可变的 PlatformCapabilities，之后所有组件只读取该值，不再探测全局对象。

  The embedding layer calls detect_platform() once at startup and turns the
  result into an immutable PlatformCapabilities with capabilities_for();
  components only read that value and never probe host globals themselves.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional

from lianyu.exceptions import ConfigurationError
from lianyu.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_PREFIX = "lianyuai_"


class Platform(str, Enum):
    """Runtime the client is embedded in."""

    MINIPROGRAM = "miniprogram"
    CORDOVA = "cordova"
    CAPACITOR = "capacitor"
    WEB = "web"
    UNKNOWN = "unknown"


class StorageType(str, Enum):
    """Physical key-value store backing the storage adapter."""

    LOCAL_STORAGE = "localStorage"
    WX_STORAGE = "wxStorage"
    CAPACITOR_STORAGE = "capacitorStorage"


@dataclass(frozen=True)
class PlatformCapabilities:
    """
    平台能力描述 - 启动时确定一次，之后只读

    Platform capability description, decided once at startup.

    Attributes:
        platform (Platform): 检测到的平台 / Detected platform
        storage_type (StorageType): 选定的存储后端 / Selected storage backend
        prefix (str): 键命名空间前缀 / Key namespace prefix
        api_timeout_ms (int): API 请求超时（毫秒）/ API request timeout in ms
        features (FrozenSet[str]): 已启用的功能 / Enabled feature flags
    """

    platform: Platform
    storage_type: StorageType
    prefix: str = DEFAULT_PREFIX
    api_timeout_ms: int = 10000
    features: FrozenSet[str] = field(default_factory=frozenset)

    def __post_init__(self):
        if not self.prefix:
            raise ConfigurationError("Storage prefix must not be empty")

    def has_feature(self, feature: str) -> bool:
        return feature in self.features


@dataclass
class HostBridges:
    """
    宿主桥接对象 - 由嵌入层注入

    Host objects injected by the embedding layer.

    Attributes:
        wx: 小程序同步存储 API（set_storage_sync 等）/ Mini-program sync storage API
        capacitor_storage: 原生桥异步存储插件 / Native-bridge async storage plugin
        globals: 用于平台检测的宿主全局对象 / Host globals used for detection
    """

    wx: Optional[Any] = None
    capacitor_storage: Optional[Any] = None
    globals: Mapping[str, Any] = field(default_factory=dict)


def detect_platform(host_globals: Mapping[str, Any]) -> Platform:
    """
    检测当前运行平台

    Detect the runtime platform from the host globals.

    优先级 / Priority: 小程序 > 原生桥（cordova, Capacitor）> 浏览器 > 未知
    mini-program runtime > native bridge (cordova, Capacitor) > window+document > unknown

    Args:
        host_globals: 宿主暴露的全局对象映射 / Mapping of host-exposed globals

    Returns:
        检测到的平台 / Detected platform
    """
    wx = host_globals.get("wx")
    if wx is not None and hasattr(wx, "get_system_info"):
        return Platform.MINIPROGRAM

    if host_globals.get("window") is not None:
        if host_globals.get("cordova") is not None:
            return Platform.CORDOVA
        if host_globals.get("Capacitor") is not None:
            return Platform.CAPACITOR

    if host_globals.get("window") is not None and host_globals.get("document") is not None:
        return Platform.WEB

    return Platform.UNKNOWN


def capabilities_for(
    platform: Platform,
    profiles: Dict[str, Any],
) -> PlatformCapabilities:
    """
    将平台映射为能力描述

    Map a platform onto its configured profile. Unknown platforms use the web profile.

    Args:
        platform: 平台 / Platform
        profiles: config["platforms"] 配置档案 / Platform profiles from config

    Returns:
        平台能力 / Platform capabilities

    Raises:
        ConfigurationError: 配置档案缺失或存储类型未知 / Missing profile or unknown storage type
    """
    profile = profiles.get(platform.value) or profiles.get(Platform.WEB.value)
    if not profile:
        raise ConfigurationError(f"No platform profile for '{platform.value}' and no web fallback")

    storage_cfg = profile.get("storage", {})
    try:
        storage_type = StorageType(storage_cfg.get("type", StorageType.LOCAL_STORAGE.value))
    except ValueError as exc:
        raise ConfigurationError(f"Unknown storage type: {storage_cfg.get('type')}") from exc

    features = frozenset(
        name for name, enabled in (profile.get("features") or {}).items() if enabled
    )
    capabilities = PlatformCapabilities(
        platform=platform,
        storage_type=storage_type,
        prefix=storage_cfg.get("prefix", DEFAULT_PREFIX),
        api_timeout_ms=int((profile.get("api") or {}).get("timeout", 10000)),
        features=features,
    )
    logger.info(
        "Platform resolved: %s (storage=%s, prefix=%s)",
        platform.value,
        storage_type.value,
        capabilities.prefix,
    )
    return capabilities


def resolve_capabilities(
    bridges: HostBridges,
    profiles: Dict[str, Any],
    override: Optional[str] = None,
) -> PlatformCapabilities:
    """Detect (or take the forced ``override``) platform and build its capabilities."""
    if override:
        try:
            platform = Platform(override)
        except ValueError as exc:
            raise ConfigurationError(f"Unknown platform override: {override}") from exc
    else:
        platform = detect_platform(bridges.globals)
    return capabilities_for(platform, profiles)
