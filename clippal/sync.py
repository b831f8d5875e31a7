"""Saving clipboard events as records."""

from __future__ import annotations

import hashlib
import logging
import time
import uuid
from pathlib import Path
from typing import Callable, Optional, Sequence, Union

from .cleanup import clean_records
from .crypto import ContentCipher
from .errors import CryptoError, DatabaseError
from .events import ClipboardEvent, ClipboardEventListener, ClipType
from .records import ClipRecord, ClipRecordStore
from .token_index import PersistentTokenIndex

log = logging.getLogger(__name__)

OS_TYPE = "win"
FILE_PATH_SEPARATOR = ":::"


def current_timestamp() -> int:
    """Milliseconds since the Unix epoch."""
    return time.time_ns() // 1_000_000


def _md5(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()


class ClipboardSyncListener(ClipboardEventListener[ClipboardEvent]):
    """Stores each clipboard event, deduplicated by content digest.

    ``max_records`` is a number or a callable returning the current limit;
    ``on_change`` is called after every event is handled.
    """

    def __init__(
        self,
        store: ClipRecordStore,
        cipher: ContentCipher,
        index: Optional[PersistentTokenIndex],
        resources_dir: Optional[Union[str, Path]],
        max_records: Union[int, Callable[[], int]],
        on_change: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.cipher = cipher
        self.index = index
        self.resources_dir = Path(resources_dir) if resources_dir is not None else None
        self.max_records = max_records
        self.on_change = on_change

    def _limit(self) -> int:
        return self.max_records() if callable(self.max_records) else self.max_records

    def handle_event(self, event: ClipboardEvent) -> None:
        next_sort = self._next_sort()
        if event.clip_type is ClipType.TEXT:
            self._handle_text(event.content, next_sort)
        elif event.clip_type is ClipType.IMAGE:
            self._handle_image(event.file, next_sort)
        elif event.clip_type is ClipType.FILE:
            self._handle_file(event.file_path_vec, next_sort)

        clean_records(self.store, self._limit(), self.index, self.resources_dir)
        if self.on_change is not None:
            self.on_change()

    def _next_sort(self) -> int:
        try:
            records = self.store.select_max_sort(0)
        except DatabaseError:
            return 0
        return records[0].sort + 1 if records else 0

    def _existing(self, clip_type: ClipType, md5_str: str) -> list[ClipRecord]:
        try:
            return self.store.check_by_type_and_md5(str(clip_type), md5_str)
        except DatabaseError:
            return []

    def _bump(self, record: ClipRecord, sort: int) -> None:
        try:
            self.store.update_sort(record.id, sort)
        except DatabaseError as exc:
            log.error("更新排序失败: %s", exc)

    def _new_record(self, clip_type: ClipType, content, md5_str: str, sort: int) -> ClipRecord:
        return ClipRecord(
            id=str(uuid.uuid4()),
            type=str(clip_type),
            content=content,
            md5_str=md5_str,
            created=current_timestamp(),
            os_type=OS_TYPE,
            sort=sort,
            pinned_flag=0,
        )

    def _handle_text(self, content: str, sort: int) -> None:
        try:
            encrypted = self.cipher.encrypt(content)
        except CryptoError as exc:
            log.error("文本内容加密失败，无法保存记录: %s", exc)
            log.error("失败的文本内容前50个字符: %r", content[:50])
            return
        # The ciphertext uses a random nonce, so duplicates are found by digest.
        md5_str = _md5(content.encode("utf-8"))
        existing = self._existing(ClipType.TEXT, md5_str)
        if existing:
            self._bump(existing[0], sort)
            return
        record = self._new_record(ClipType.TEXT, encrypted, md5_str, sort)
        try:
            self.store.insert(record)
        except DatabaseError as exc:
            log.error("插入文本记录失败: %s", exc)
            return
        if self.index is not None:
            try:
                self.index.add_content(record.id, content)
            except Exception as exc:
                log.error("分词处理失败: %s", exc)

    def _handle_image(self, data: Optional[bytes], sort: int) -> None:
        if data is None:
            return
        md5_str = _md5(data)
        existing = self._existing(ClipType.IMAGE, md5_str)
        if existing:
            self._bump(existing[0], sort)
            return
        record = self._new_record(ClipType.IMAGE, None, md5_str, sort)
        try:
            self.store.insert(record)
        except DatabaseError as exc:
            log.error("插入图片记录失败: %s", exc)
            return
        self._save_image(record.id, data)

    def _save_image(self, record_id: str, data: bytes) -> None:
        if self.resources_dir is None:
            log.error("资源路径获取失败")
            return
        filename = f"{uuid.uuid4()}.png"
        try:
            self.resources_dir.mkdir(parents=True, exist_ok=True)
            with open(self.resources_dir / filename, "wb") as handle:
                handle.write(data)
                handle.flush()
        except OSError as exc:
            log.error("创建图片文件失败: %s", exc)
            return
        try:
            self.store.update_content(record_id, filename)
        except DatabaseError as exc:
            log.error("更新图片路径失败: %s", exc)

    def _handle_file(self, paths: Optional[Sequence[str]], sort: int) -> None:
        if paths is None:
            return
        md5_str = _md5("".join(sorted(paths)).encode("utf-8"))
        existing = self._existing(ClipType.FILE, md5_str)
        if existing:
            self._bump(existing[0], sort)
            return
        record = self._new_record(
            ClipType.FILE, FILE_PATH_SEPARATOR.join(paths), md5_str, sort
        )
        try:
            self.store.insert(record)
        except DatabaseError as exc:
            log.error("insert file error: %s", exc)