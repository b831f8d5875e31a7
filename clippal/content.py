"""Turning stored record content into what the user interface shows."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Any, Optional, Union

from .crypto import ContentCipher
from .errors import CryptoError
from .events import ClipType

log = logging.getLogger(__name__)

FILE_PATH_SEPARATOR = ":::"

_MIME_TYPES = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
}
_DEFAULT_MIME = "application/octet-stream"


def _to_json(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"))


def process_raw_content(content: Any) -> str:
    """Strings pass through, objects and arrays become JSON, anything else is empty."""
    if isinstance(content, str):
        return content
    if isinstance(content, (dict, list)):
        return _to_json(content)
    return ""


def process_file_content(content: str) -> str:
    """Turn ``:::``-joined file paths into a JSON array string."""
    return _to_json(content.split(FILE_PATH_SEPARATOR))


def file_to_base64(path: Union[str, Path]) -> Optional[str]:
    """Return the file as a ``data:`` URL, or None if unreadable or without extension."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError:
        return None
    ext = path.suffix[1:].lower()
    if not ext:
        return None
    mime = _MIME_TYPES.get(ext, _DEFAULT_MIME)
    encoded = base64.b64encode(data).decode("ascii")
    return f"data:{mime};base64,{encoded}"


class ContentProcessor:
    """Decodes record content according to its clip type."""

    def __init__(
        self, cipher: ContentCipher, resources_dir: Optional[Union[str, Path]]
    ) -> None:
        self.cipher = cipher
        self.resources_dir = Path(resources_dir) if resources_dir is not None else None

    def process_text_content(self, content: Any) -> str:
        """The stored (still encrypted) text of a text record."""
        return process_raw_content(content)

    def process_image_content(self, content: str) -> Optional[str]:
        """The saved image named ``content`` as a ``data:`` URL."""
        if self.resources_dir is None:
            return None
        return file_to_base64(self.resources_dir / content)

    def process_by_clip_type(self, clip_type: Union[str, ClipType], content: Any) -> str:
        """Displayable content of a record; empty when it cannot be produced."""
        kind = ClipType.parse(str(clip_type))
        if kind is ClipType.TEXT:
            try:
                return self.cipher.decrypt(self.process_text_content(content))
            except CryptoError as exc:
                log.error("解密文本内容失败: %s", exc)
                return ""
        if kind is ClipType.IMAGE:
            if isinstance(content, str):
                return self.process_image_content(content) or ""
            return ""
        if kind is ClipType.FILE:
            if isinstance(content, str):
                return process_file_content(content)
            return ""
        return ""