"""Locations of the application's data, resource, config and log directories."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import platformdirs

log = logging.getLogger(__name__)

APP_NAME = "ClipPal"


def default_root() -> Path:
    """Return the per-user root directory of the application."""
    return Path(platformdirs.user_data_dir(APP_NAME, appauthor=False, roaming=True))


def _ensure_directory(path: Path) -> None:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        log.error("创建目录失败: %s", exc)


class AppPaths:
    """Subdirectories of an application root, created on first access."""

    def __init__(self, root: Optional[Union[str, Path]] = None) -> None:
        self.root = Path(root) if root is not None else default_root()

    def _subdir(self, name: str) -> Path:
        _ensure_directory(self.root)
        path = self.root / name
        _ensure_directory(path)
        return path

    def data_dir(self) -> Path:
        """Directory holding the database and the search index."""
        return self._subdir("data")

    def resources_dir(self) -> Path:
        """Directory holding saved clipboard images."""
        return self._subdir("resources")

    def config_dir(self) -> Path:
        """Directory holding the settings file."""
        return self._subdir("config")

    def logs_dir(self) -> Path:
        """Directory holding log files."""
        return self._subdir("logs")