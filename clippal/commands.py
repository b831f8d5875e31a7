"""Commands the user interface invokes on stored clipboard records."""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional, Union

from .content import FILE_PATH_SEPARATOR, ContentProcessor
from .crypto import ContentCipher
from .errors import ClipboardError, CryptoError, DatabaseError, GeneralError
from .events import ClipType
from .clipboard import ClipboardPal
from .records import ClipRecord, ClipRecordStore
from .settings import SettingsManager
from .token_index import PersistentTokenIndex
from .window import WindowHideFlag, hide_guard

log = logging.getLogger(__name__)

AUTO_PASTE_DELAY = 0.1
UNKNOWN_FILE_TYPE = "未知"


@dataclass
class FileInfo:
    """A file referenced by a file record."""

    path: str
    size: int
    type: str


@dataclass
class ClipRecordDTO:
    """A record as shown by the user interface."""

    id: str
    type: str
    content: str
    os_type: str
    created: int
    pinned_flag: int
    file_info: list[FileInfo] = field(default_factory=list)


def get_file_info(paths: str) -> list[FileInfo]:
    """Size and extension of each existing file among ``:::``-joined paths."""
    infos = []
    for raw in paths.split(FILE_PATH_SEPARATOR):
        path = raw.strip()
        if not path:
            continue
        candidate = Path(path)
        if not candidate.exists():
            continue
        try:
            size = os.stat(candidate).st_size
        except OSError:
            continue
        ext = candidate.suffix[1:] or UNKNOWN_FILE_TYPE
        infos.append(FileInfo(path=path, size=size, type=ext.lower()))
    return infos


class ClipCommands:
    """Queries, copies, pins, deletes and exports clipboard records.

    ``auto_paste`` is called shortly after a copy, when the settings enable
    automatic pasting, to paste into the previously focused window.
    """

    def __init__(
        self,
        store: ClipRecordStore,
        clipboard: ClipboardPal,
        cipher: ContentCipher,
        index: Optional[PersistentTokenIndex],
        resources_dir: Optional[Union[str, Path]],
        settings: Optional[SettingsManager] = None,
        hide_flag: Optional[WindowHideFlag] = None,
        auto_paste: Optional[Callable[[], None]] = None,
    ) -> None:
        self.store = store
        self.clipboard = clipboard
        self.cipher = cipher
        self.index = index
        self.resources_dir = Path(resources_dir) if resources_dir is not None else None
        self.settings = settings
        self.hide_flag = hide_flag
        self.auto_paste = auto_paste
        self.processor = ContentProcessor(cipher, self.resources_dir)

    def get_clip_records(
        self, page: int, size: int, search: Optional[str] = None
    ) -> list[ClipRecordDTO]:
        """A page of records, or of search matches when ``search`` is given."""
        offset = (page - 1) * size
        try:
            if search:
                ids = self.index.search(search) if self.index is not None else []
                records = self.store.select_by_ids(ids, size, offset)
            else:
                records = self.store.select_order_by_limit(size, offset)
        except DatabaseError as exc:
            log.error("查询粘贴记录失败: %s", exc)
            return []
        return [self._to_dto(record) for record in records]

    def _to_dto(self, record: ClipRecord) -> ClipRecordDTO:
        file_info: list[FileInfo] = []
        if record.type == str(ClipType.FILE):
            raw = record.content if isinstance(record.content, str) else ""
            file_info = get_file_info(raw)
        return ClipRecordDTO(
            id=record.id,
            type=record.type,
            content=self.processor.process_by_clip_type(record.type, record.content),
            os_type=record.os_type,
            created=record.created,
            pinned_flag=record.pinned_flag,
            file_info=file_info,
        )

    def _find(self, record_id: str) -> ClipRecord:
        try:
            records = self.store.select_by_id(record_id)
        except DatabaseError as exc:
            raise GeneralError("粘贴记录查询失败") from exc
        if not records:
            raise GeneralError("记录不存在")
        return records[0]

    def _copy_to_clipboard(self, record: ClipRecord) -> None:
        kind = ClipType.parse(record.type)
        try:
            if kind is ClipType.TEXT:
                try:
                    text = self.cipher.decrypt(
                        self.processor.process_text_content(record.content)
                    )
                except CryptoError as exc:
                    log.error("解密文本内容失败: %s", exc)
                    raise CryptoError("文本解密失败") from exc
                self.clipboard.write_text(text)
            elif kind is ClipType.IMAGE:
                self.clipboard.write_image_binary(self._read_image(record))
            elif kind is ClipType.FILE:
                self.clipboard.write_files_uris(self._existing_files(record))
        except ClipboardError as exc:
            if exc.label == ClipboardError.label and getattr(exc, "_user_facing", False):
                raise
            log.warning("写入剪贴板失败: %s", exc)

    @staticmethod
    def _fail(message: str) -> ClipboardError:
        error = ClipboardError(message)
        error._user_facing = True
        return error

    def _read_image(self, record: ClipRecord) -> bytes:
        if not isinstance(record.content, str):
            raise self._fail("图片路径无效")
        if self.resources_dir is None:
            raise self._fail("资源目录获取失败")
        path = self.resources_dir / record.content
        if not path.exists():
            raise self._fail("图片资源不存在，无法复制")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise self._fail("图片资源读取失败，无法复制") from exc

    def _existing_files(self, record: ClipRecord) -> list[str]:
        if not isinstance(record.content, str):
            raise self._fail("文件路径无效")
        restored = record.content.split(FILE_PATH_SEPARATOR)
        missing = [
            path.strip()
            for path in restored
            if path.strip() and not Path(path.strip()).exists()
        ]
        if missing:
            raise self._fail("以下文件不存在，无法复制:\n" + "\n".join(missing))
        return restored

    def _auto_paste_enabled(self) -> bool:
        return self.settings is not None and self.settings.current().auto_paste == 1

    def _run_auto_paste(self) -> None:
        try:
            self.auto_paste()
        except Exception as exc:
            log.warning("自动粘贴失败: %s", exc)

    def copy_clip_record(self, record_id: str) -> str:
        """Copy a record to the clipboard, then paste it if auto paste is on."""
        self._copy_to_clipboard(self._find(record_id))
        if self.auto_paste is not None and self._auto_paste_enabled():
            timer = threading.Timer(AUTO_PASTE_DELAY, self._run_auto_paste)
            timer.daemon = True
            timer.start()
        return ""

    def copy_clip_record_no_paste(self, record_id: str) -> str:
        """Copy a record to the clipboard without pasting it."""
        self._copy_to_clipboard(self._find(record_id))
        log.debug("仅复制到剪贴板，不触发自动粘贴")
        return ""

    def set_pinned(self, record_id: str, pinned_flag: int) -> str:
        """Pin or unpin a record; at most one record is pinned."""
        try:
            self.store.update_pinned(record_id, pinned_flag)
        except DatabaseError as exc:
            log.error("更新置顶失败: %s", exc)
        return ""

    def del_record(self, record_id: str) -> str:
        """Delete a record and drop it from the search index."""
        ids = [record_id]
        try:
            self.store.del_by_ids(ids)
        except DatabaseError as exc:
            log.error("删除记录失败: %s", exc)
            return ""
        if self.index is not None:
            self.index.remove_ids(ids)
        return ""

    def image_save_as(
        self, record_id: str, destination: Optional[Union[str, Path]]
    ) -> str:
        """Copy the saved image of an image record to ``destination``.

        A ``destination`` of None stands for a cancelled save dialog.
        """
        try:
            records = self.store.select_by_id(record_id)
        except DatabaseError as exc:
            raise GeneralError("未找到该记录") from exc
        if not records:
            raise GeneralError("未找到指定的剪贴板记录")
        record = records[0]
        if record.type != str(ClipType.IMAGE):
            raise ClipboardError("仅支持图片类型另存为")
        if not isinstance(record.content, str):
            raise ClipboardError("图片路径无效")
        if self.resources_dir is None:
            raise ClipboardError("资源目录获取失败")
        source = self.resources_dir / record.content
        if not source.exists():
            raise ClipboardError("图片资源丢失")

        guard = (
            hide_guard(self.hide_flag)
            if self.hide_flag is not None
            else contextlib.nullcontext()
        )
        with guard:
            if destination is not None:
                try:
                    shutil.copyfile(source, destination)
                except OSError as exc:
                    log.error("Copy image error: %s", exc)
        return "图片已成功保存"

    def copy_single_file(self, record_id: str, file_path: str) -> str:
        """Copy one of the files of a file record to the clipboard."""
        record = self._find(record_id)
        if record.type != str(ClipType.FILE):
            raise ClipboardError("只支持文件类型的单个文件复制")
        if not isinstance(record.content, str):
            raise ClipboardError("文件路径无效")
        if file_path not in record.content.split(FILE_PATH_SEPARATOR):
            raise ClipboardError("指定的文件路径不在此记录中")
        if not Path(file_path).exists():
            raise ClipboardError(f"文件不存在: {file_path}")
        try:
            self.clipboard.write_files_uris([file_path])
        except ClipboardError as exc:
            log.warning("写入剪贴板失败: %s", exc)
        log.debug("已复制单个文件到剪贴板")
        return ""