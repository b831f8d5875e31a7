"""Stored clipboard records and their queries."""

from __future__ import annotations

import json
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import astuple, dataclass
from typing import Any, Iterator, Optional, Sequence

from .errors import DatabaseError

_COLUMNS = (
    "id",
    "type",
    "content",
    "md5_str",
    "created",
    "user_id",
    "os_type",
    "sort",
    "pinned_flag",
    "sync_flag",
    "sync_time",
    "device_id",
)
_SELECT = f"SELECT {', '.join(_COLUMNS)} FROM clip_record"
_INSERT = (
    f"INSERT INTO clip_record ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join('?' for _ in _COLUMNS)})"
)
_DISPLAY_ORDER = "ORDER BY pinned_flag DESC, sort DESC, created DESC"


@dataclass
class ClipRecord:
    """One saved clipboard entry."""

    id: str = ""
    type: str = ""
    # Encrypted text, image file name or ":::"-joined file paths.
    content: Any = None
    md5_str: str = ""
    created: int = 0
    user_id: int = 0
    os_type: str = ""
    sort: int = 0
    pinned_flag: int = 0
    # 0: not synced, 1: synced.
    sync_flag: Optional[int] = None
    sync_time: Optional[int] = None
    device_id: Optional[str] = None


def _content_to_db(content: Any) -> Optional[str]:
    if content is None or isinstance(content, str):
        return content
    return json.dumps(content, ensure_ascii=False, separators=(",", ":"))


def _record_from_row(row: Sequence[Any]) -> ClipRecord:
    values = dict(zip(_COLUMNS, row))
    for name in ("type", "md5_str", "os_type", "id"):
        if values[name] is None:
            values[name] = ""
    for name in ("created", "user_id", "sort", "pinned_flag"):
        if values[name] is None:
            values[name] = 0
    return ClipRecord(**values)


class ClipRecordStore:
    """Queries and updates of the ``clip_record`` table."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn
        self._lock = threading.RLock()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with self._conn:
                    yield self._conn
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc

    def _query(self, sql: str, params: Sequence[Any] = ()) -> list[ClipRecord]:
        with self._lock:
            try:
                rows = self._conn.execute(sql, tuple(params)).fetchall()
            except sqlite3.Error as exc:
                raise DatabaseError(str(exc)) from exc
        return [_record_from_row(row) for row in rows]

    def insert(self, record: ClipRecord) -> None:
        """Insert a new record."""
        values = list(astuple(record))
        values[_COLUMNS.index("content")] = _content_to_db(record.content)
        with self._transaction() as conn:
            conn.execute(_INSERT, values)

    def select_by_id(self, record_id: str) -> list[ClipRecord]:
        return self._query(f"{_SELECT} WHERE id = ?", (record_id,))

    def select_by_pinned_flag(self, pinned_flag: int) -> list[ClipRecord]:
        return self._query(f"{_SELECT} WHERE pinned_flag = ?", (pinned_flag,))

    def select_order_by(self) -> list[ClipRecord]:
        """All records, most recently sorted first."""
        return self._query(f"{_SELECT} ORDER BY sort DESC, created DESC")

    def select_where_order_by_limit(
        self, content: str, limit: int, offset: int
    ) -> list[ClipRecord]:
        """Records whose content matches the LIKE pattern ``content``."""
        return self._query(
            f"{_SELECT} WHERE content LIKE ? {_DISPLAY_ORDER} LIMIT ? OFFSET ?",
            (content, limit, offset),
        )

    def select_order_by_limit(self, limit: int, offset: int) -> list[ClipRecord]:
        """A page of records in display order; a limit of -1 means no limit."""
        return self._query(
            f"{_SELECT} {_DISPLAY_ORDER} LIMIT ? OFFSET ?", (limit, offset)
        )

    def check_by_type_and_content(
        self, content_type: str, content: str
    ) -> list[ClipRecord]:
        """At most one record with this type and content."""
        return self._query(
            f"{_SELECT} WHERE type = ? AND content = ? LIMIT 1",
            (content_type, content),
        )

    def check_by_type_and_md5(self, content_type: str, md5_str: str) -> list[ClipRecord]:
        """At most one record with this type and content digest."""
        return self._query(
            f"{_SELECT} WHERE type = ? AND md5_str = ? LIMIT 1",
            (content_type, md5_str),
        )

    def select_max_sort(self, user_id: int) -> list[ClipRecord]:
        """At most one record: the user's record with the highest sort."""
        return self._query(
            f"{_SELECT} WHERE user_id = ? ORDER BY sort DESC, created DESC LIMIT 1",
            (user_id,),
        )

    def update_content(self, record_id: str, content: str) -> None:
        with self._transaction() as conn:
            conn.execute(
                "UPDATE clip_record SET content = ? WHERE id = ?", (content, record_id)
            )

    def update_sort(self, record_id: str, sort: int) -> None:
        with self._transaction() as conn:
            conn.execute("UPDATE clip_record SET sort = ? WHERE id = ?", (sort, record_id))

    def update_pinned(self, record_id: str, pinned_flag: int) -> None:
        """Set the pinned flag; pinning a record unpins every other one."""
        with self._transaction() as conn:
            if pinned_flag == 1:
                conn.execute("UPDATE clip_record SET pinned_flag = 0 WHERE pinned_flag = 1")
            conn.execute(
                "UPDATE clip_record SET pinned_flag = ? WHERE id = ?",
                (pinned_flag, record_id),
            )

    def count(self) -> int:
        """Number of records, or 0 if the table cannot be read."""
        with self._lock:
            try:
                return self._conn.execute("SELECT COUNT(*) FROM clip_record").fetchone()[0]
            except sqlite3.Error:
                return 0

    def del_by_ids(self, ids: Sequence[str]) -> None:
        """Delete the records with the given ids."""
        ids = list(ids)
        if not ids:
            return
        placeholders = ",".join("?" for _ in ids)
        with self._transaction() as conn:
            conn.execute(f"DELETE FROM clip_record WHERE id IN ({placeholders})", ids)

    def select_by_ids(
        self, ids: Sequence[str], limit: int, offset: int
    ) -> list[ClipRecord]:
        """A page of the records with the given ids."""
        ids = list(ids)
        if not ids:
            return []
        placeholders = ",".join("?" for _ in ids)
        return self._query(
            f"{_SELECT} WHERE id IN ({placeholders}) LIMIT ? OFFSET ?",
            [*ids, limit, offset],
        )