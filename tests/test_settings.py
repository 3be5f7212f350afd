import errno
import json

import pytest

from slmkit.settings import SettingsStore
from slmkit.util import AtCommandError


def test_save_and_load_round_trip(tmp_path):
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    store.modem_full_fota = True
    store.save_fota()

    fresh = SettingsStore(path)
    assert fresh.modem_full_fota is False
    fresh.load()
    assert fresh.modem_full_fota is True


def test_saved_key_name(tmp_path):
    path = tmp_path / "settings.json"
    store = SettingsStore(path)
    store.modem_full_fota = True
    store.save_fota()
    assert json.loads(path.read_text())["slm/modem_full_fota"] is True


def test_missing_file_loads_defaults(tmp_path):
    store = SettingsStore(tmp_path / "absent.json")
    store.load()
    assert store.modem_full_fota is False


def test_obsolete_and_foreign_keys_ignored_and_kept(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text(json.dumps({"slm/old_thing": 7, "other/key": "x"}))
    store = SettingsStore(path)
    store.load()
    assert store.modem_full_fota is False
    store.save_fota()
    data = json.loads(path.read_text())
    assert data["other/key"] == "x"
    assert data["slm/old_thing"] == 7
    assert data["slm/modem_full_fota"] is False


def test_apply_wrong_type_raises_einval(tmp_path):
    store = SettingsStore(tmp_path / "s.json")
    with pytest.raises(AtCommandError) as info:
        store.apply("modem_full_fota", "yes")
    assert info.value.errno == errno.EINVAL


def test_apply_unknown_name_ignored(tmp_path):
    store = SettingsStore(tmp_path / "s.json")
    store.apply("unknown", 5)
    assert store.modem_full_fota is False
    store.apply("modem_full_fota", True)
    assert store.modem_full_fota is True


def test_corrupt_file_raises(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json")
    with pytest.raises(AtCommandError) as info:
        SettingsStore(path).load()
    assert info.value.errno == errno.EINVAL