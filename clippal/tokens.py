"""Word segmentation used by the search index."""

from __future__ import annotations

import itertools
import re
import unicodedata
from typing import Iterator

_WORD_RUN = re.compile(r"[^\W_]+")

_HAN_RANGES = (
    (0x3400, 0x4DBF),
    (0x4E00, 0x9FFF),
    (0xF900, 0xFAFF),
    (0x20000, 0x2FFFF),
)


def _is_han(ch: str) -> bool:
    cp = ord(ch)
    return any(lo <= cp <= hi for lo, hi in _HAN_RANGES)


def _split_run(run: str) -> Iterator[str]:
    for han, chars in itertools.groupby(run, key=_is_han):
        if han:
            yield from chars
        else:
            yield "".join(chars)


def tokenize(text: str) -> set[str]:
    """Return the distinct normalised words of ``text``.

    Text is NFKC-normalised and case-folded; separators and punctuation are
    dropped, and each Han ideograph counts as a word of its own.
    """
    normalized = unicodedata.normalize("NFKC", text).casefold()
    return {
        token
        for match in _WORD_RUN.finditer(normalized)
        for token in _split_run(match.group())
    }