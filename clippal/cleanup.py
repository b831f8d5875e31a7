"""Removal of records beyond the configured maximum."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

from .errors import DatabaseError
from .events import ClipType
from .records import ClipRecordStore
from .token_index import PersistentTokenIndex

log = logging.getLogger(__name__)


def clean_records(
    store: ClipRecordStore,
    max_records: int,
    index: Optional[PersistentTokenIndex],
    resources_dir: Optional[Union[str, Path]],
) -> list[str]:
    """Delete records past the first ``max_records`` in display order.

    Deleted ids are dropped from the search index and saved images of
    deleted image records are removed. Returns the deleted ids.
    """
    if store.count() <= max_records:
        return []
    try:
        records = store.select_order_by_limit(-1, max_records)
    except DatabaseError as exc:
        log.error("查询过期数据异常:%s", exc)
        return []
    if not records:
        return []

    image_names = [
        record.content if isinstance(record.content, str) else ""
        for record in records
        if record.type == str(ClipType.IMAGE)
    ]
    ids = [record.id for record in records]

    try:
        store.del_by_ids(ids)
    except DatabaseError as exc:
        log.error("删除过期数据异常:%s", exc)
        return []

    if index is not None:
        index.remove_ids(ids)

    if image_names and resources_dir is not None:
        base = Path(resources_dir)
        for name in image_names:
            full_path = base / name
            try:
                full_path.unlink()
            except OSError as exc:
                log.error("删除图片失败:%s，%s", exc, full_path)
    return ids