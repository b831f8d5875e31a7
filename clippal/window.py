"""Main window state: focus-loss counting, hide protection and placement."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

MIN_WINDOW_WIDTH = 400
RIGHT_MARGIN = 8


class WindowFocusCount:
    """Thread-safe counter of how often the main window lost focus."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._lost_count = 0

    @property
    def lost_count(self) -> int:
        with self._lock:
            return self._lost_count

    def inc(self) -> int:
        """Increment the counter and return its value before the increment."""
        with self._lock:
            previous = self._lost_count
            self._lost_count += 1
            return previous


class WindowHideFlag:
    """Whether the main window may hide itself when it loses focus."""

    def __init__(self, can_hide: bool = True) -> None:
        self._lock = threading.Lock()
        self._can_hide = can_hide

    def set_can_hide(self) -> None:
        """Allow the window to hide."""
        with self._lock:
            self._can_hide = True

    def set_no_hide(self) -> None:
        """Keep the window visible."""
        with self._lock:
            self._can_hide = False

    def is_can_hide(self) -> bool:
        """Whether the window may hide."""
        with self._lock:
            return self._can_hide


@contextmanager
def hide_guard(flag: WindowHideFlag) -> Iterator[WindowHideFlag]:
    """Keep the window from hiding until the block is left."""
    flag.set_no_hide()
    try:
        yield flag
    finally:
        flag.set_can_hide()


@dataclass(frozen=True)
class WindowGeometry:
    """Size and position of the main window in physical pixels."""

    width: int
    height: int
    x: int
    y: int


def window_geometry(screen_width: int, screen_height: int) -> WindowGeometry:
    """Place the window against the right screen edge at full height.

    The width is a sixth of the screen, at least 400 pixels, and a small gap
    is left on the right so the border does not overflow.
    """
    width = max(int(screen_width / 6), MIN_WINDOW_WIDTH)
    x = max(screen_width - width - RIGHT_MARGIN, 0)
    return WindowGeometry(width=width, height=screen_height, x=x, y=0)


def should_hide_on_blur(focus_count: WindowFocusCount, hide_flag: WindowHideFlag) -> bool:
    """Record a focus loss and decide whether the window should hide.

    The first focus loss never hides the window.
    """
    return focus_count.inc() >= 1 and hide_flag.is_can_hide()