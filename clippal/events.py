"""Clipboard event types and a threaded event dispatcher."""

from __future__ import annotations

import enum
import logging
import queue
import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Generic, Optional, Sequence, TypeVar

log = logging.getLogger(__name__)

T = TypeVar("T")

_POLL_INTERVAL = 0.05


class ClipType(enum.Enum):
    """Kind of content captured from the clipboard."""

    TEXT = "Text"
    IMAGE = "Image"
    FILE = "File"
    RTF = "Rtf"
    HTML = "Html"
    UNKNOWN = "Unknown"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: str) -> "ClipType":
        """Return the type named ``value``; unknown names give ``UNKNOWN``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class ClipboardEvent:
    """A change of clipboard content."""

    clip_type: ClipType = ClipType.UNKNOWN
    # Text content, used by text events.
    content: str = ""
    # PNG bytes, used by image events.
    file: Optional[bytes] = None
    # File paths, used by file events.
    file_path_vec: Optional[list[str]] = None


class ClipboardEventListener(ABC, Generic[T]):
    """Receives events dispatched by an :class:`EventManager`."""

    @abstractmethod
    def handle_event(self, event: T) -> None:
        """Handle one event."""


class EventManager(Generic[T]):
    """Bounded event queue whose events are handed to registered listeners.

    Each event is dispatched on a worker thread, running its listeners one
    after another in registration order; different events may be handled
    concurrently.
    """

    def __init__(self, capacity: int = 100) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._queue: "queue.Queue[T]" = queue.Queue(maxsize=capacity)
        self._listeners: list[ClipboardEventListener[T]] = []
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def listeners(self) -> tuple[ClipboardEventListener[T], ...]:
        with self._lock:
            return tuple(self._listeners)

    def add_event_listener(self, listener: ClipboardEventListener[T]) -> None:
        """Register a listener; it receives every event dispatched afterwards."""
        with self._lock:
            self._listeners.append(listener)

    def emit(self, data: T) -> None:
        """Queue an event, blocking while the queue is full."""
        self._queue.put(data)

    def start_event_loop(self) -> None:
        """Start dispatching queued events on a background thread."""
        with self._lock:
            if self._thread is not None:
                raise RuntimeError("event loop already started")
            self._thread = threading.Thread(
                target=self._run, name="clip-event-loop", daemon=True
            )
            self._thread.start()

    def shutdown(self) -> None:
        """Ask the event loop to stop; events still queued are dropped."""
        self._stop.set()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Wait for the loop to finish; return whether it has finished."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout)
        return not thread.is_alive()

    def _run(self) -> None:
        executor = ThreadPoolExecutor(thread_name_prefix="clip-event")
        try:
            while not self._stop.is_set():
                try:
                    event = self._queue.get(timeout=_POLL_INTERVAL)
                except queue.Empty:
                    continue
                executor.submit(self._dispatch, self.listeners, event)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    @staticmethod
    def _dispatch(listeners: Sequence[ClipboardEventListener[T]], event: T) -> None:
        for listener in listeners:
            try:
                listener.handle_event(event)
            except Exception:
                log.exception("event listener %r failed", listener)