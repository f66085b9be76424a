"""Physical key-value backend tests."""
import json

import pytest

from lianyu.exceptions import BackendUnavailableError, ConfigurationError, QuotaExceededError, StorageError
from lianyu.platform import HostBridges, Platform, PlatformCapabilities, StorageType
from lianyu.storage import StorageAdapter
from lianyu.storage.backends import (
    CapacitorStorageBackend,
    LocalStorageBackend,
    WxStorageBackend,
    create_backend,
)


@pytest.mark.asyncio
async def test_local_storage_persists_across_instances(tmp_path):
    path = tmp_path / "local_storage.json"
    first = LocalStorageBackend(path=path)
    await first.set("lianyuai_a", "1")
    await first.set("lianyuai_b", "two")
    await first.delete("lianyuai_a")

    assert json.loads(path.read_text(encoding="utf-8")) == {"lianyuai_b": "two"}

    second = LocalStorageBackend(path=path)
    assert await second.get("lianyuai_b") == "two"
    assert await second.get("lianyuai_a") is None
    assert await second.list_keys() == ["lianyuai_b"]


@pytest.mark.asyncio
async def test_local_storage_quota_rejects_write_and_keeps_state(tmp_path):
    backend = LocalStorageBackend(path=tmp_path / "ls.json", quota_bytes=20)
    await backend.set("k1", "12345")

    with pytest.raises(QuotaExceededError):
        await backend.set("k2", "x" * 50)

    assert await backend.get("k1") == "12345"
    assert await backend.get("k2") is None
    assert json.loads((tmp_path / "ls.json").read_text(encoding="utf-8")) == {"k1": "12345"}


@pytest.mark.asyncio
async def test_local_storage_corrupt_file_raises_storage_error(tmp_path):
    path = tmp_path / "ls.json"
    path.write_text("{not json", encoding="utf-8")
    backend = LocalStorageBackend(path=path)
    with pytest.raises(StorageError):
        await backend.get("anything")


@pytest.mark.asyncio
async def test_local_storage_memory_only():
    backend = LocalStorageBackend()
    await backend.set("k", "v")
    assert await backend.get("k") == "v"
    await backend.delete("missing")
    assert await backend.list_keys() == ["k"]


@pytest.mark.asyncio
async def test_wx_backend_missing_key_is_none(fake_wx):
    backend = WxStorageBackend(fake_wx)
    assert await backend.get("lianyuai_missing") is None

    await backend.set("lianyuai_k", "v")
    assert await backend.get("lianyuai_k") == "v"
    assert await backend.list_keys() == ["lianyuai_k"]

    await backend.delete("lianyuai_k")
    assert fake_wx.store == {}


@pytest.mark.asyncio
async def test_wx_backend_keeps_stored_empty_string(fake_wx):
    backend = WxStorageBackend(fake_wx)
    await backend.set("lianyuai_draft", "")
    assert await backend.get("lianyuai_draft") == ""

    adapter = StorageAdapter(backend, "lianyuai_")
    assert await adapter.set_item("note", "") is True
    assert await adapter.get_item("note") == ""


@pytest.mark.asyncio
async def test_wx_backend_serializes_foreign_values_as_json(fake_wx):
    fake_wx.store["lianyuai_profile"] = {"a": 1, "name": "小雨"}
    backend = WxStorageBackend(fake_wx)
    assert json.loads(await backend.get("lianyuai_profile")) == {"a": 1, "name": "小雨"}

    adapter = StorageAdapter(backend, "lianyuai_")
    assert await adapter.get_item("profile") == {"a": 1, "name": "小雨"}


@pytest.mark.asyncio
async def test_capacitor_backend_unwraps_envelopes(fake_capacitor):
    backend = CapacitorStorageBackend(fake_capacitor)
    assert await backend.get("lianyuai_missing") is None

    await backend.set("lianyuai_k", "v")
    assert await backend.get("lianyuai_k") == "v"
    assert await backend.list_keys() == ["lianyuai_k"]

    await backend.delete("lianyuai_k")
    assert fake_capacitor.store == {}


@pytest.mark.asyncio
async def test_missing_bridges_raise_backend_unavailable():
    with pytest.raises(BackendUnavailableError):
        await WxStorageBackend(None).get("k")
    with pytest.raises(BackendUnavailableError):
        await CapacitorStorageBackend(None).set("k", "v")


def test_create_backend_selects_by_storage_type(tmp_path, fake_wx, fake_capacitor):
    bridges = HostBridges(wx=fake_wx, capacitor_storage=fake_capacitor)

    web = PlatformCapabilities(platform=Platform.WEB, storage_type=StorageType.LOCAL_STORAGE)
    local = create_backend(web, bridges, data_dir=tmp_path, storage_cfg={"local_file": "ls.json", "quota_bytes": 100})
    assert isinstance(local, LocalStorageBackend)
    assert local.path == tmp_path / "ls.json"
    assert local.quota_bytes == 100

    mini = PlatformCapabilities(platform=Platform.MINIPROGRAM, storage_type=StorageType.WX_STORAGE)
    assert isinstance(create_backend(mini, bridges), WxStorageBackend)

    native = PlatformCapabilities(platform=Platform.CAPACITOR, storage_type=StorageType.CAPACITOR_STORAGE)
    assert isinstance(create_backend(native, bridges), CapacitorStorageBackend)


def test_create_backend_without_data_dir_is_memory_only():
    web = PlatformCapabilities(platform=Platform.WEB, storage_type=StorageType.LOCAL_STORAGE)
    backend = create_backend(web)
    assert isinstance(backend, LocalStorageBackend)
    assert backend.path is None


def test_capabilities_reject_empty_prefix():
    with pytest.raises(ConfigurationError):
        PlatformCapabilities(platform=Platform.WEB, storage_type=StorageType.LOCAL_STORAGE, prefix="")
