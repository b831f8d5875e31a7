import dataclasses
import json

import pytest

from clippal.errors import ConfigError, GlobalShortcutError
from clippal.settings import Settings, SettingsManager, validate_settings


def test_defaults():
    settings = Settings()
    assert settings.max_records == 200
    assert settings.shortcut_key == "Ctrl+`"
    assert settings.auto_paste == 1
    assert settings.auto_start == 0


def test_dict_round_trip():
    settings = Settings(max_records=300, shortcut_key="Alt+V", tutorial_completed=1)
    assert Settings.from_dict(settings.to_dict()) == settings


def test_from_dict_missing_field():
    data = Settings().to_dict()
    del data["cloud_sync"]
    with pytest.raises(ConfigError):
        Settings.from_dict(data)


@pytest.mark.parametrize(
    "changes, message",
    [
        ({"max_records": 49}, "最大记录条数必须在50-1000之间"),
        ({"max_records": 1001}, "最大记录条数必须在50-1000之间"),
        ({"shortcut_key": ""}, "快捷键不能为空"),
        ({"shortcut_key": "A+B"}, "快捷键格式无效"),
    ],
)
def test_validate_settings_errors(changes, message):
    with pytest.raises(ConfigError) as info:
        validate_settings(dataclasses.replace(Settings(), **changes))
    assert info.value.message == message


def test_load_missing_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    manager = SettingsManager(path)
    assert manager.load() == Settings()
    assert not path.exists()


def test_load_corrupt_file_gives_defaults(tmp_path):
    path = tmp_path / "settings.json"
    path.write_text("{not json", encoding="utf-8")
    assert SettingsManager(path).load() == Settings()


def test_save_then_load(tmp_path):
    path = tmp_path / "config" / "settings.json"
    manager = SettingsManager(path)
    manager.load()
    new = dataclasses.replace(Settings(), max_records=500)
    manager.save(new)
    assert manager.current() == new
    assert json.loads(path.read_text(encoding="utf-8"))["max_records"] == 500
    assert SettingsManager(path).load() == new


def test_save_invalid_leaves_state(tmp_path):
    manager = SettingsManager(tmp_path / "s.json")
    with pytest.raises(ConfigError):
        manager.save(dataclasses.replace(Settings(), max_records=10))
    assert manager.current() == Settings()


def test_shortcut_callback_only_on_change(tmp_path):
    calls = []
    manager = SettingsManager(tmp_path / "s.json", on_shortcut_change=calls.append)
    manager.save(Settings())
    assert calls == []
    manager.save(dataclasses.replace(Settings(), shortcut_key="Alt+V"))
    assert calls == ["Alt+V"]


def test_shortcut_failure(tmp_path):
    path = tmp_path / "s.json"

    def fail(_shortcut):
        raise RuntimeError("busy")

    manager = SettingsManager(path, on_shortcut_change=fail)
    with pytest.raises(GlobalShortcutError):
        manager.save(dataclasses.replace(Settings(), shortcut_key="Alt+V"))
    assert not path.exists()
    assert manager.current().shortcut_key == "Ctrl+`"


def test_autostart_failure_rolls_back_shortcut(tmp_path):
    shortcuts = []

    def fail(_enabled):
        raise RuntimeError("denied")

    manager = SettingsManager(
        tmp_path / "s.json", on_shortcut_change=shortcuts.append, on_autostart_change=fail
    )
    with pytest.raises(ConfigError):
        manager.save(dataclasses.replace(Settings(), shortcut_key="Alt+V", auto_start=1))
    assert shortcuts == ["Alt+V", "Ctrl+`"]
    assert manager.current() == Settings()


def test_autostart_callback_receives_flag(tmp_path):
    flags = []
    manager = SettingsManager(tmp_path / "s.json", on_autostart_change=flags.append)
    manager.save(dataclasses.replace(Settings(), auto_start=1))
    assert flags == [True]


def test_save_without_path_fails():
    manager = SettingsManager(None)
    with pytest.raises(ConfigError):
        manager.save(Settings())
    assert manager.current() == Settings()


@pytest.mark.parametrize(
    "shortcut, expected",
    [("Ctrl+`", True), ("Alt+Shift+K", True), ("K", False), ("A+B", False)],
)
def test_validate_shortcut(tmp_path, shortcut, expected):
    manager = SettingsManager(tmp_path / "s.json")
    assert manager.validate_shortcut(shortcut) is expected