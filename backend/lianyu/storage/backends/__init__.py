"""
Storage backends / 存储后端
One physical key-value store per platform, selected once from the platform capabilities.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from lianyu.exceptions import ConfigurationError
from lianyu.platform import HostBridges, PlatformCapabilities, StorageType

from .base import KeyValueBackend
from .capacitor_storage import CapacitorStorageBackend
from .local_storage import DEFAULT_QUOTA_BYTES, LocalStorageBackend
from .wx_storage import WxStorageBackend


def create_backend(
    capabilities: PlatformCapabilities,
    bridges: Optional[HostBridges] = None,
    data_dir: Optional[Path] = None,
    storage_cfg: Optional[Dict[str, Any]] = None,
) -> KeyValueBackend:
    """
    Map the selected storage type onto exactly one backend.

    Args:
        capabilities: Resolved platform capabilities.
        bridges: Host objects for the mini-program / native-bridge backends.
        data_dir: Directory for the local storage file; memory-only when None.
        storage_cfg: ``config["storage"]`` section (file name, quota).

    Returns:
        The backend every adapter operation routes to for this process.
    """
    bridges = bridges or HostBridges()
    storage_cfg = storage_cfg or {}

    if capabilities.storage_type == StorageType.WX_STORAGE:
        return WxStorageBackend(bridges.wx)
    if capabilities.storage_type == StorageType.CAPACITOR_STORAGE:
        return CapacitorStorageBackend(bridges.capacitor_storage)
    if capabilities.storage_type == StorageType.LOCAL_STORAGE:
        path = None
        if data_dir is not None:
            path = Path(data_dir) / storage_cfg.get("local_file", "local_storage.json")
        return LocalStorageBackend(
            path=path,
            quota_bytes=int(storage_cfg.get("quota_bytes", DEFAULT_QUOTA_BYTES)),
        )
    raise ConfigurationError(f"Unsupported storage type: {capabilities.storage_type}")


__all__ = [
    "KeyValueBackend",
    "LocalStorageBackend",
    "WxStorageBackend",
    "CapacitorStorageBackend",
    "create_backend",
]
