"""Inverted index from search tokens to record ids, persisted to disk."""

from __future__ import annotations

import json
import logging
import os
import threading
from collections import Counter
from pathlib import Path
from typing import Any, Callable, Iterable, Optional, Union

from .errors import AppError, GeneralError
from .records import ClipRecord
from .tokens import tokenize

log = logging.getLogger(__name__)

INDEX_FILE_NAME = "clip_tokens.bin"
DEBOUNCE_SECONDS = 2.0


class TokenIndex:
    """Thread-safe two-way mapping between tokens and record ids."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._token_to_ids: dict[str, set[str]] = {}
        self._id_to_tokens: dict[str, set[str]] = {}
        self.version = 0

    def add_content(self, record_id: str, tokens: Iterable[str]) -> None:
        """Index ``record_id`` under ``tokens``, replacing any earlier tokens."""
        tokens = set(tokens)
        with self._lock:
            for token in self._id_to_tokens.get(record_id, ()):
                ids = self._token_to_ids.get(token)
                if ids is not None:
                    ids.discard(record_id)
            for token in tokens:
                self._token_to_ids.setdefault(token, set()).add(record_id)
            self._id_to_tokens[record_id] = tokens

    def remove_ids(self, ids: Iterable[str]) -> None:
        """Drop the given record ids from the index."""
        with self._lock:
            for record_id in ids:
                tokens = self._id_to_tokens.pop(record_id, None)
                if tokens is None:
                    continue
                for token in tokens:
                    ids_for = self._token_to_ids.get(token)
                    if ids_for is not None:
                        ids_for.discard(record_id)

    def ids_for_token(self, token: str) -> set[str]:
        with self._lock:
            return set(self._token_to_ids.get(token, ()))

    def tokens_for_id(self, record_id: str) -> set[str]:
        with self._lock:
            return set(self._id_to_tokens.get(record_id, ()))

    def ids_by_tokens(self, tokens: Iterable[str]) -> list[str]:
        """Ids matching any token, most matched tokens first, then by id."""
        counts: Counter[str] = Counter()
        with self._lock:
            for token in tokens:
                counts.update(self._token_to_ids.get(token, ()))
        ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
        return [record_id for record_id, _ in ranked]

    def to_dict(self) -> dict[str, Any]:
        """Serialisable snapshot of the index."""
        with self._lock:
            return {
                "token_to_ids": {
                    token: sorted(ids) for token, ids in self._token_to_ids.items()
                },
                "id_to_tokens": {
                    record_id: sorted(tokens)
                    for record_id, tokens in self._id_to_tokens.items()
                },
                "version": self.version,
            }

    @classmethod
    def from_dict(cls, data: Any) -> "TokenIndex":
        """Rebuild an index from :meth:`to_dict` output."""
        try:
            version = data.get("version", 0)
            id_to_tokens = data["id_to_tokens"]
            if not isinstance(version, int) or isinstance(version, bool) or version < 0:
                raise ValueError("bad version")
            if not isinstance(id_to_tokens, dict):
                raise ValueError("bad id_to_tokens")
            index = cls()
            for record_id, tokens in id_to_tokens.items():
                if not isinstance(tokens, list) or not all(
                    isinstance(token, str) for token in tokens
                ):
                    raise ValueError("bad token list")
                index.add_content(record_id, tokens)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            raise GeneralError(f"Failed to decode token index: {exc}") from exc
        index.version = version
        return index


class PersistentTokenIndex:
    """A :class:`TokenIndex` written to ``path`` shortly after each change."""

    def __init__(
        self, path: Union[str, Path], debounce: float = DEBOUNCE_SECONDS
    ) -> None:
        self.path = Path(path)
        self.debounce = debounce
        self.index = TokenIndex()
        self._state_lock = threading.Lock()
        self._persist_lock = threading.Lock()
        self._current_version = 0
        self._last_persisted_version = 0
        self._scheduled = False
        self._timer: Optional[threading.Timer] = None

    @property
    def current_version(self) -> int:
        with self._state_lock:
            return self._current_version

    @property
    def last_persisted_version(self) -> int:
        with self._state_lock:
            return self._last_persisted_version

    def load(self) -> None:
        """Merge the index stored on disk, if any, and adopt its version."""
        if not self.path.exists():
            log.debug("Token index file not found, will create on first update")
            return
        try:
            raw = self.path.read_bytes()
        except OSError as exc:
            raise GeneralError(f"Failed to read index: {exc}") from exc
        if not raw:
            log.warning("Token index file is empty")
            return
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise GeneralError(f"Failed to decode token index: {exc}") from exc
        stored = TokenIndex.from_dict(data)
        log.debug("Loaded token index version %d from disk", stored.version)
        for record_id, tokens in stored.to_dict()["id_to_tokens"].items():
            self.index.add_content(record_id, tokens)
        with self._state_lock:
            self._current_version = stored.version
            self._last_persisted_version = stored.version
        self.index.version = stored.version

    def persist(self) -> bool:
        """Write the index atomically; return False if it was outdated and skipped."""
        with self._persist_lock:
            current = self.current_version
            index_version = self.index.version
            if index_version < current:
                log.warning(
                    "Skipping persist for outdated index version: %d < %d",
                    index_version,
                    current,
                )
                return False
            payload = json.dumps(
                self.index.to_dict(), ensure_ascii=False, separators=(",", ":")
            ).encode("utf-8")
            tmp = self.path.with_suffix(".tmp")
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(tmp, "wb") as handle:
                    handle.write(payload)
                    handle.flush()
                    os.fsync(handle.fileno())
                os.replace(tmp, self.path)
            except OSError as exc:
                raise GeneralError(f"Persist failed: {exc}") from exc
            with self._state_lock:
                self._last_persisted_version = index_version
            log.debug("Persisted token index version %d", index_version)
            return True

    def _bump_version(self) -> None:
        with self._state_lock:
            self._current_version += 1
            new_version = self._current_version
        self.index.version = new_version

    def _schedule_persist(self) -> None:
        with self._state_lock:
            if self._scheduled:
                return
            self._scheduled = True
            timer = threading.Timer(self.debounce, self._run_scheduled)
            timer.daemon = True
            self._timer = timer
            timer.start()

    def _run_scheduled(self) -> None:
        with self._state_lock:
            self._scheduled = False
            self._timer = None
        try:
            self.persist()
        except AppError as exc:
            log.error("Persist failed: %s", exc)

    def add_content(self, record_id: str, content: str) -> None:
        """Tokenize ``content`` and index it under ``record_id``."""
        self.index.add_content(record_id, tokenize(content))
        self._bump_version()
        self._schedule_persist()

    def search(self, content: str) -> list[str]:
        """Ids whose tokens match those of ``content``, best matches first."""
        return self.index.ids_by_tokens(tokenize(content))

    def remove_ids(self, ids: Iterable[str]) -> None:
        """Remove record ids from the index."""
        ids = list(ids)
        if not ids:
            return
        self.index.remove_ids(ids)
        self._bump_version()
        self._schedule_persist()

    def rebuild_after_crash(
        self, fetch_all: Callable[[], Iterable[ClipRecord]]
    ) -> bool:
        """Re-index every record if changes were not persisted; return whether it did."""
        with self._state_lock:
            last_persisted = self._last_persisted_version
            current = self._current_version
        if last_persisted == current:
            log.debug("Index is up-to-date, no rebuild needed")
            return False
        log.warning(
            "Rebuilding index due to version mismatch: persisted=%d, current=%d",
            last_persisted,
            current,
        )
        for record in fetch_all():
            text = json.dumps(record.content, ensure_ascii=False)
            self.index.add_content(record.id, tokenize(text))
        self.index.version = current
        self.persist()
        return True

    def ids_for_token(self, token: str) -> set[str]:
        return self.index.ids_for_token(token)

    def tokens_for_id(self, record_id: str) -> set[str]:
        return self.index.tokens_for_id(record_id)

    def close(self) -> None:
        """Cancel any pending write and persist outstanding changes now."""
        with self._state_lock:
            timer, self._timer = self._timer, None
            self._scheduled = False
            pending = self._current_version != self._last_persisted_version
        if timer is not None:
            timer.cancel()
        if pending:
            self.persist()