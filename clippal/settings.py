"""User settings: validation, storage and applying changes."""

from __future__ import annotations

import dataclasses
import json
import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from .errors import ConfigError, GlobalShortcutError
from .shortcut import is_valid_shortcut_format, parse_shortcut

log = logging.getLogger(__name__)

MIN_RECORDS = 50
MAX_RECORDS = 1000

_INT_FIELDS = (
    "max_records",
    "auto_start",
    "cloud_sync",
    "auto_paste",
    "tutorial_completed",
)


@dataclass
class Settings:
    """Application settings; flags are 0 for off and 1 for on."""

    max_records: int = 200
    auto_start: int = 0
    shortcut_key: str = "Ctrl+`"
    cloud_sync: int = 0
    auto_paste: int = 1
    tutorial_completed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Any) -> "Settings":
        """Build settings from a mapping holding every field; extra keys are ignored."""
        if not isinstance(data, dict):
            raise ConfigError("设置格式无效")
        values = {}
        for name in _INT_FIELDS:
            if name not in data:
                raise ConfigError(f"缺少设置项: {name}")
            value = data[name]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ConfigError(f"设置项无效: {name}")
            values[name] = value
        shortcut = data.get("shortcut_key")
        if not isinstance(shortcut, str):
            raise ConfigError("设置项无效: shortcut_key")
        values["shortcut_key"] = shortcut
        return cls(**values)


def validate_settings(settings: Settings) -> None:
    """Raise :class:`ConfigError` if ``settings`` cannot be applied."""
    if not MIN_RECORDS <= settings.max_records <= MAX_RECORDS:
        raise ConfigError("最大记录条数必须在50-1000之间")
    if not settings.shortcut_key:
        raise ConfigError("快捷键不能为空")
    if not is_valid_shortcut_format(settings.shortcut_key):
        raise ConfigError("快捷键格式无效")


class SettingsManager:
    """Holds the current settings and applies, stores and rolls back changes.

    ``on_shortcut_change`` receives the new shortcut string and
    ``on_autostart_change`` whether autostart is enabled; either may raise
    to reject the change.
    """

    def __init__(
        self,
        path: Optional[Union[str, Path]],
        on_shortcut_change: Optional[Callable[[str], None]] = None,
        on_autostart_change: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self.path = Path(path) if path is not None else None
        self._on_shortcut_change = on_shortcut_change
        self._on_autostart_change = on_autostart_change
        self._lock = threading.Lock()
        self._current = Settings()

    def load(self) -> Settings:
        """Read settings from disk, falling back to defaults, and make them current."""
        settings = Settings()
        if self.path is not None and self.path.exists():
            try:
                settings = Settings.from_dict(
                    json.loads(self.path.read_text(encoding="utf-8"))
                )
            except (OSError, ValueError, ConfigError) as exc:
                log.warning("读取设置失败，使用默认设置: %s", exc)
                settings = Settings()
        with self._lock:
            self._current = dataclasses.replace(settings)
        return settings

    def current(self) -> Settings:
        """A copy of the settings in effect."""
        with self._lock:
            return dataclasses.replace(self._current)

    def _apply_shortcut(self, shortcut: str) -> None:
        if self._on_shortcut_change is not None:
            log.info("更新全局快捷键:%s", shortcut)
            parse_shortcut(shortcut)
            self._on_shortcut_change(shortcut)

    def _apply_autostart(self, enabled: bool) -> None:
        if self._on_autostart_change is not None:
            self._on_autostart_change(enabled)

    def _write(self, settings: Settings) -> None:
        if self.path is None:
            raise ConfigError("无法获取配置文件路径")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps(settings.to_dict(), ensure_ascii=False, indent=2),
            encoding="utf-8",
        )

    def _rollback(self, applied: list[str], previous: Settings) -> None:
        for kind in applied:
            try:
                if kind == "shortcut":
                    self._apply_shortcut(previous.shortcut_key)
                elif kind == "autostart":
                    self._apply_autostart(previous.auto_start == 1)
            except Exception as exc:
                log.error("回滚设置失败: %s", exc)

    def save(self, settings: Settings) -> None:
        """Validate, apply and store ``settings``; undo partial changes on failure."""
        validate_settings(settings)
        previous = self.current()
        applied: list[str] = []

        if settings.shortcut_key != previous.shortcut_key:
            try:
                self._apply_shortcut(settings.shortcut_key)
            except Exception as exc:
                self._rollback(applied, previous)
                raise GlobalShortcutError(f"快捷键设置失败: {exc}") from exc
            applied.append("shortcut")

        if settings.auto_start != previous.auto_start:
            try:
                self._apply_autostart(settings.auto_start == 1)
            except Exception as exc:
                self._rollback(applied, previous)
                raise ConfigError(f"开机自启设置失败: {exc}") from exc
            applied.append("autostart")

        try:
            self._write(settings)
        except (OSError, ConfigError) as exc:
            self._rollback(applied, previous)
            raise ConfigError(f"文件保存失败: {exc}") from exc

        with self._lock:
            self._current = dataclasses.replace(settings)

    def validate_shortcut(self, shortcut: str) -> bool:
        """Whether ``shortcut`` may be saved; conflicts surface only on registration."""
        if not is_valid_shortcut_format(shortcut):
            return False
        if shortcut == self.current().shortcut_key:
            return True
        parse_shortcut(shortcut)
        return True