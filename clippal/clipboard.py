"""Clipboard access and watching for clipboard changes."""

from __future__ import annotations

import base64
import binascii
import enum
import logging
import sys
import threading
from abc import ABC, abstractmethod
from typing import Any, Callable, Mapping, Optional, Sequence

from .errors import ClipboardError
from .events import ClipboardEvent, ClipType, EventManager

log = logging.getLogger(__name__)

FILE_URI_PREFIX = "file://"

ChangeHandler = Callable[[], None]

_IMAGE_SIGNATURES = (
    b"\x89PNG\r\n\x1a\n",
    b"\xff\xd8\xff",
    b"GIF87a",
    b"GIF89a",
    b"BM",
    b"II*\x00",
    b"MM\x00*",
)


def _is_image(data: bytes) -> bool:
    if data.startswith(b"RIFF") and data[8:12] == b"WEBP":
        return True
    return any(data.startswith(signature) for signature in _IMAGE_SIGNATURES)


class ContentFormat(enum.Enum):
    """Kinds of data the clipboard can hold."""

    TEXT = "text"
    HTML = "html"
    RTF = "rtf"
    IMAGE = "image"
    FILES = "files"


class ClipboardBackend(ABC):
    """Access to a system clipboard."""

    @abstractmethod
    def has(self, fmt: ContentFormat) -> bool:
        """Whether the clipboard holds data of this format."""

    @abstractmethod
    def get_text(self) -> str:
        """The plain text on the clipboard."""

    @abstractmethod
    def get_image_png(self) -> bytes:
        """The image on the clipboard as encoded bytes."""

    @abstractmethod
    def get_files(self) -> list[str]:
        """The file paths or URIs on the clipboard."""

    @abstractmethod
    def set_contents(self, contents: Mapping[ContentFormat, Any]) -> None:
        """Replace the clipboard content with ``contents``."""

    @abstractmethod
    def add_change_handler(self, handler: ChangeHandler) -> None:
        """Call ``handler`` whenever the clipboard content changes."""

    @abstractmethod
    def remove_change_handler(self, handler: ChangeHandler) -> None:
        """Stop calling ``handler`` on changes."""


class MemoryClipboard(ClipboardBackend):
    """A clipboard kept in process memory."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._contents: dict[ContentFormat, Any] = {}
        self._handlers: list[ChangeHandler] = []

    def _get(self, fmt: ContentFormat) -> Any:
        with self._lock:
            if fmt not in self._contents:
                raise ClipboardError(f"clipboard holds no {fmt.value} content")
            return self._contents[fmt]

    def has(self, fmt: ContentFormat) -> bool:
        with self._lock:
            return fmt in self._contents

    def get_text(self) -> str:
        return self._get(ContentFormat.TEXT)

    def get_image_png(self) -> bytes:
        return bytes(self._get(ContentFormat.IMAGE))

    def get_files(self) -> list[str]:
        return list(self._get(ContentFormat.FILES))

    def set_contents(self, contents: Mapping[ContentFormat, Any]) -> None:
        stored = {
            fmt: list(value) if fmt is ContentFormat.FILES else value
            for fmt, value in contents.items()
        }
        with self._lock:
            self._contents = stored
            handlers = list(self._handlers)
        for handler in handlers:
            try:
                handler()
            except Exception:
                log.exception("clipboard change handler failed")

    def add_change_handler(self, handler: ChangeHandler) -> None:
        with self._lock:
            self._handlers.append(handler)

    def remove_change_handler(self, handler: ChangeHandler) -> None:
        with self._lock:
            if handler in self._handlers:
                self._handlers.remove(handler)


class ClipboardMonitor:
    """Turns clipboard changes into :class:`ClipboardEvent` emissions."""

    def __init__(
        self, backend: ClipboardBackend, manager: EventManager[ClipboardEvent]
    ) -> None:
        self.backend = backend
        self.manager = manager

    def on_clipboard_change(self) -> None:
        """Emit one event for the new content: image, else files, else text."""
        backend = self.backend
        # Images here are bare bitmap data, as produced by screenshot tools.
        if backend.has(ContentFormat.IMAGE):
            try:
                png = backend.get_image_png()
            except ClipboardError as exc:
                log.debug("reading clipboard image failed: %s", exc)
            else:
                self.manager.emit(ClipboardEvent(ClipType.IMAGE, file=bytes(png)))
                return
        if backend.has(ContentFormat.FILES):
            try:
                files = backend.get_files()
            except ClipboardError as exc:
                log.debug("reading clipboard files failed: %s", exc)
            else:
                self.manager.emit(
                    ClipboardEvent(ClipType.FILE, file_path_vec=list(files))
                )
                return
        if backend.has(ContentFormat.TEXT):
            try:
                text = backend.get_text()
            except ClipboardError as exc:
                log.debug("reading clipboard text failed: %s", exc)
            else:
                self.manager.emit(ClipboardEvent(ClipType.TEXT, content=text))


class ClipboardPal:
    """Writes to the clipboard and watches it for changes."""

    def __init__(self, backend: Optional[ClipboardBackend] = None) -> None:
        self.backend = backend if backend is not None else MemoryClipboard()
        self._write_lock = threading.Lock()
        self._monitor_lock = threading.Lock()
        self._monitor: Optional[ClipboardMonitor] = None

    def _write(self, contents: Mapping[ContentFormat, Any]) -> None:
        with self._write_lock:
            self.backend.set_contents(contents)

    def write_files_uris(self, files: Sequence[str]) -> None:
        """Put files on the clipboard.

        On Linux and macOS every entry must be a ``file://`` URI; on Windows
        entries are plain absolute paths and must not carry that prefix.
        """
        files = list(files)
        platform = sys.platform
        if platform.startswith("linux") or platform == "darwin":
            for file in files:
                if not file.startswith(FILE_URI_PREFIX):
                    raise ClipboardError(
                        f"Invalid file uri: {file}. File uri should start with file://"
                    )
        elif platform == "win32":
            for file in files:
                if file.startswith(FILE_URI_PREFIX):
                    raise ClipboardError(
                        f"Invalid file uri: {file}. "
                        "File uri on Windows should not start with file://"
                    )
        self._write({ContentFormat.FILES: files})

    def write_text(self, text: str) -> None:
        self._write({ContentFormat.TEXT: text})

    def write_html(self, html: str) -> None:
        self._write({ContentFormat.HTML: html})

    def write_html_and_text(self, html: str, text: str) -> None:
        self._write({ContentFormat.TEXT: text, ContentFormat.HTML: html})

    def write_rtf(self, rtf: str) -> None:
        self._write({ContentFormat.RTF: rtf})

    def write_image_base64(self, base64_image: str) -> None:
        """Put a base64-encoded image on the clipboard."""
        try:
            data = base64.b64decode(base64_image, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ClipboardError(str(exc)) from exc
        self.write_image_binary(data)

    def write_image_binary(self, data: bytes) -> None:
        """Put encoded image bytes on the clipboard."""
        data = bytes(data)
        if not _is_image(data):
            raise ClipboardError("The image format could not be determined")
        self._write({ContentFormat.IMAGE: data})

    def start_monitor(self, manager: EventManager[ClipboardEvent]) -> None:
        """Start emitting clipboard changes to ``manager``; no-op if running."""
        with self._monitor_lock:
            if self._monitor is not None:
                return
            monitor = ClipboardMonitor(self.backend, manager)
            self.backend.add_change_handler(monitor.on_clipboard_change)
            self._monitor = monitor

    def stop_monitor(self) -> None:
        """Stop watching the clipboard."""
        with self._monitor_lock:
            monitor, self._monitor = self._monitor, None
            if monitor is not None:
                self.backend.remove_change_handler(monitor.on_clipboard_change)

    def is_monitor_running(self) -> bool:
        with self._monitor_lock:
            return self._monitor is not None