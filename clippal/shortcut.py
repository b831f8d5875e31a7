"""Parsing of global shortcut strings such as ``"Ctrl+Shift+V"``."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class Modifiers(enum.Flag):
    """Modifier keys held with a shortcut."""

    NONE = 0
    CONTROL = enum.auto()
    SHIFT = enum.auto()
    ALT = enum.auto()
    META = enum.auto()


@dataclass(frozen=True)
class Shortcut:
    """A key code together with the modifiers that must be held."""

    modifiers: Modifiers
    code: str


DEFAULT_CODE = "KeyA"

_MODIFIERS = {
    "Ctrl": Modifiers.CONTROL,
    "Shift": Modifiers.SHIFT,
    "Alt": Modifiers.ALT,
    "Meta": Modifiers.META,
}

_NAMED_KEYS = {
    "`": "Backquote",
    "Space": "Space",
    "Enter": "Enter",
    "Tab": "Tab",
    "Escape": "Escape",
    "Backspace": "Backspace",
    "Delete": "Delete",
    "ArrowUp": "ArrowUp",
    "ArrowDown": "ArrowDown",
    "ArrowLeft": "ArrowLeft",
    "ArrowRight": "ArrowRight",
    "Home": "Home",
    "End": "End",
    "PageUp": "PageUp",
    "PageDown": "PageDown",
    "Insert": "Insert",
    **{f"F{n}": f"F{n}" for n in range(1, 13)},
}


def _single_char_code(part: str):
    if len(part) != 1 or not part.isascii():
        return None
    if part.isalpha():
        return f"Key{part.upper()}"
    if part.isdigit():
        return f"Digit{part}"
    return None


def parse_shortcut(text: str) -> Shortcut:
    """Parse a ``+``-separated shortcut; unknown parts are ignored.

    The key defaults to ``KeyA`` when no key is named.
    """
    modifiers = Modifiers.NONE
    code = DEFAULT_CODE
    for part in text.split("+"):
        if part in _MODIFIERS:
            modifiers |= _MODIFIERS[part]
        elif part in _NAMED_KEYS:
            code = _NAMED_KEYS[part]
        else:
            code = _single_char_code(part) or code
    return Shortcut(modifiers, code)


def is_valid_shortcut_format(text: str) -> bool:
    """Whether ``text`` has two or three parts, at least one a modifier."""
    parts = text.split("+")
    if not 2 <= len(parts) <= 3:
        return False
    return any(part in _MODIFIERS for part in parts)