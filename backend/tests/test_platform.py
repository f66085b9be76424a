"""Platform detection and capability profile tests."""
import pytest

from conftest import FakeWx
from lianyu.config import DEFAULT_CONFIG, load_config
from lianyu.exceptions import ConfigurationError
from lianyu.platform import (
    HostBridges,
    Platform,
    StorageType,
    capabilities_for,
    detect_platform,
    resolve_capabilities,
)

PROFILES = DEFAULT_CONFIG["platforms"]


class WxWithoutSystemInfo:
    pass


def test_miniprogram_wins_over_everything():
    host = {"wx": FakeWx(), "window": object(), "document": object(), "cordova": object()}
    assert detect_platform(host) == Platform.MINIPROGRAM


def test_wx_without_system_info_is_not_miniprogram():
    host = {"wx": WxWithoutSystemInfo(), "window": object(), "document": object()}
    assert detect_platform(host) == Platform.WEB


def test_cordova_before_capacitor():
    host = {"window": object(), "cordova": object(), "Capacitor": object()}
    assert detect_platform(host) == Platform.CORDOVA


def test_capacitor_needs_window():
    assert detect_platform({"window": object(), "Capacitor": object()}) == Platform.CAPACITOR
    assert detect_platform({"Capacitor": object()}) == Platform.UNKNOWN


def test_browser_needs_window_and_document():
    assert detect_platform({"window": object(), "document": object()}) == Platform.WEB
    assert detect_platform({"window": object()}) == Platform.UNKNOWN
    assert detect_platform({}) == Platform.UNKNOWN


@pytest.mark.parametrize(
    "platform, storage_type, timeout",
    [
        (Platform.WEB, StorageType.LOCAL_STORAGE, 10000),
        (Platform.MINIPROGRAM, StorageType.WX_STORAGE, 10000),
        (Platform.CORDOVA, StorageType.LOCAL_STORAGE, 15000),
        (Platform.CAPACITOR, StorageType.CAPACITOR_STORAGE, 15000),
    ],
)
def test_profiles(platform, storage_type, timeout):
    capabilities = capabilities_for(platform, PROFILES)
    assert capabilities.storage_type == storage_type
    assert capabilities.api_timeout_ms == timeout
    assert capabilities.prefix == "lianyuai_"


def test_unknown_platform_uses_web_profile():
    capabilities = capabilities_for(Platform.UNKNOWN, PROFILES)
    assert capabilities.platform == Platform.UNKNOWN
    assert capabilities.storage_type == StorageType.LOCAL_STORAGE
    assert capabilities.has_feature("serviceWorker")


def test_feature_flags():
    mini = capabilities_for(Platform.MINIPROGRAM, PROFILES)
    assert mini.has_feature("fileUpload")
    assert not mini.has_feature("serviceWorker")


def test_empty_prefix_in_profile_is_rejected():
    profiles = {"web": {"storage": {"type": "localStorage", "prefix": ""}}}
    with pytest.raises(ConfigurationError):
        capabilities_for(Platform.WEB, profiles)


def test_unknown_storage_type_is_rejected():
    profiles = {"web": {"storage": {"type": "indexedDB"}}}
    with pytest.raises(ConfigurationError):
        capabilities_for(Platform.WEB, profiles)


def test_resolve_capabilities_override():
    bridges = HostBridges(globals={"window": object(), "document": object()})
    assert resolve_capabilities(bridges, PROFILES).platform == Platform.WEB
    assert resolve_capabilities(bridges, PROFILES, override="capacitor").storage_type == StorageType.CAPACITOR_STORAGE
    with pytest.raises(ConfigurationError):
        resolve_capabilities(bridges, PROFILES, override="symbian")


def test_load_config_merges_over_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("offline:\n  cache_generation: lianyuai-v2\nqueue:\n  max_entries: 5\n", encoding="utf-8")
    loaded = load_config(str(path))
    assert loaded["offline"]["cache_generation"] == "lianyuai-v2"
    assert loaded["offline"]["sync_tag"] == "background-sync"
    assert loaded["queue"]["max_entries"] == 5
    assert loaded["queue"]["storage_key"] == "pendingMessages"


def test_load_config_missing_file_gives_defaults(tmp_path):
    assert load_config(str(tmp_path / "absent.yaml")) == DEFAULT_CONFIG


def test_load_config_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("offline: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(path))

    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config(str(path))
