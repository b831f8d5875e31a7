"""Application assembly: logging, startup, shutdown and the command line entry."""

from __future__ import annotations

import argparse
import logging
import sys
import threading
import time
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from .clipboard import ClipboardBackend, ClipboardPal
from .commands import ClipCommands
from .crypto import ContentCipher, load_or_create_key
from .errors import AppError, DatabaseError
from .events import ClipboardEvent, EventManager
from .paths import AppPaths, default_root
from .records import ClipRecord, ClipRecordStore
from .settings import SettingsManager
from .storage import open_database
from .sync import ClipboardSyncListener
from .token_index import INDEX_FILE_NAME, PersistentTokenIndex
from .window import WindowFocusCount, WindowHideFlag

log = logging.getLogger(__name__)

LOG_FILE_NAME = "clip_pal.log"
LOG_MAX_BYTES = 12 * 1024 * 1024
LOG_BACKUP_COUNT = 4
DB_FILE_NAME = "clip_record.db"
SETTINGS_FILE_NAME = "settings.json"
KEY_FILE_NAME = "content.key"
EVENT_QUEUE_CAPACITY = 100
SHUTDOWN_TIMEOUT = 5.0

_CONSOLE_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
_FILE_FORMAT = "[%(asctime)s] [%(levelname)s] [%(module)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_installed_handlers: list[logging.Handler] = []


def init_logging(logs_dir: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Log to the console and to a size-rotated file in ``logs_dir``.

    The file rolls over at 12 MB and four old files are kept. Without a
    directory the file goes to the current directory. Returns the log file
    path, or None if the file could not be opened and plain console logging
    was set up instead.
    """
    if logs_dir is not None:
        log_file = Path(logs_dir) / LOG_FILE_NAME
    else:
        print("无法获取logs目录，使用当前目录", file=sys.stderr)
        log_file = Path(LOG_FILE_NAME)

    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()

    try:
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
    except OSError as exc:
        print(f"创建滚动日志文件失败: {exc}, 路径: {log_file}", file=sys.stderr)
        logging.basicConfig(level=logging.INFO)
        return None
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT, _DATE_FORMAT))

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT, _DATE_FORMAT))

    for handler in (console, file_handler):
        root.addHandler(handler)
        _installed_handlers.append(handler)
    root.setLevel(logging.INFO)
    log.info("日志系统初始化成功，日志文件: %s", log_file)
    return log_file


def _load_cipher(path: Path) -> ContentCipher:
    key: Any = load_or_create_key(path)
    if isinstance(key, ContentCipher):
        return key
    if isinstance(key, str):
        return ContentCipher.from_base64(key)
    return ContentCipher(key)


class ClipPalApp:
    """The clipboard history service: storage, search index and watching.

    ``on_records_changed`` may be set to a callable that runs after each
    clipboard change has been stored.
    """

    def __init__(
        self,
        root: Optional[Union[str, Path]] = None,
        clipboard_backend: Optional[ClipboardBackend] = None,
    ) -> None:
        self.paths = AppPaths(Path(root) if root is not None else default_root())
        self.clipboard = ClipboardPal(clipboard_backend)
        self.hide_flag = WindowHideFlag()
        self.focus_count = WindowFocusCount()
        self.on_records_changed: Optional[Callable[[], None]] = None
        self.settings: Optional[SettingsManager] = None
        self.cipher: Optional[ContentCipher] = None
        self.store: Optional[ClipRecordStore] = None
        self.index: Optional[PersistentTokenIndex] = None
        self.events: Optional[EventManager[ClipboardEvent]] = None
        self.commands: Optional[ClipCommands] = None
        self._conn = None
        self._started = False
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._started

    def _notify(self) -> None:
        callback = self.on_records_changed
        if callback is not None:
            callback()

    def _all_records(self) -> list[ClipRecord]:
        try:
            return self.store.select_order_by()
        except DatabaseError as exc:
            log.error("获取剪贴板记录失败: %s", exc)
            return []

    def _init_settings(self) -> SettingsManager:
        settings = SettingsManager(self.paths.config_dir() / SETTINGS_FILE_NAME)
        loaded = settings.load()
        if not settings.path.exists():
            try:
                settings.save(loaded)
            except AppError as exc:
                log.error("保存默认设置失败: %s", exc)
        return settings

    def _init_index(self) -> PersistentTokenIndex:
        index = PersistentTokenIndex(self.paths.data_dir() / INDEX_FILE_NAME)
        try:
            index.load()
        except AppError as exc:
            log.error("索引文件初始化失败: %s", exc)
        try:
            index.rebuild_after_crash(self._all_records)
        except AppError as exc:
            log.error("重建索引失败: %s", exc)
        return index

    def start(self) -> None:
        """Open storage, load the index and begin recording clipboard changes."""
        with self._lock:
            if self._started:
                return
            try:
                self.settings = self._init_settings()
                self.cipher = _load_cipher(self.paths.config_dir() / KEY_FILE_NAME)
                self._conn = open_database(self.paths.data_dir() / DB_FILE_NAME)
                self.store = ClipRecordStore(self._conn)
                self.index = self._init_index()

                settings = self.settings
                self.events = EventManager(EVENT_QUEUE_CAPACITY)
                self.events.add_event_listener(
                    ClipboardSyncListener(
                        self.store,
                        self.cipher,
                        self.index,
                        self.paths.resources_dir(),
                        lambda: settings.current().max_records,
                        self._notify,
                    )
                )
                self.commands = ClipCommands(
                    self.store,
                    self.clipboard,
                    self.cipher,
                    self.index,
                    self.paths.resources_dir(),
                    self.settings,
                    self.hide_flag,
                    None,
                )
                self.events.start_event_loop()
                self.clipboard.start_monitor(self.events)
            except BaseException:
                self._release()
                raise
            self._started = True

    def _release(self) -> None:
        self.clipboard.stop_monitor()
        if self.events is not None:
            self.events.shutdown()
            self.events.join(SHUTDOWN_TIMEOUT)
            self.events = None
        if self.index is not None:
            try:
                self.index.close()
            except AppError as exc:
                log.error("保存索引失败: %s", exc)
            self.index = None
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def stop(self) -> None:
        """Stop watching the clipboard, flush the index and close storage."""
        with self._lock:
            if not self._started:
                return
            self._release()
            self._started = False

    def __enter__(self) -> "ClipPalApp":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def _wait_for_interrupt() -> None:
    try:
        while True:
            time.sleep(3600)
    except KeyboardInterrupt:
        log.info("收到退出信号")


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the clipboard history service until interrupted."""
    parser = argparse.ArgumentParser(
        prog="clippal", description="Record clipboard history."
    )
    parser.add_argument("--root", type=Path, default=None, help="data directory")
    parser.add_argument(
        "--autostart", action="store_true", help="started at login"
    )
    args = parser.parse_args(argv)

    root = args.root if args.root is not None else default_root()
    try:
        logs_dir: Optional[Path] = AppPaths(root).logs_dir()
    except OSError:
        logs_dir = None
    init_logging(logs_dir)

    app = ClipPalApp(root)
    try:
        app.start()
    except (AppError, OSError, ValueError) as exc:
        log.error("应用程序启动失败: %s", exc)
        return 1
    if args.autostart:
        log.info("开机自启模式")
    try:
        _wait_for_interrupt()
    finally:
        app.stop()
    return 0