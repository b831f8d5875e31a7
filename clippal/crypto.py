"""AES-256-GCM encryption of stored clipboard text and key handling."""

from __future__ import annotations

import base64
import binascii
import os
from pathlib import Path
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from .errors import ConfigError, CryptoError

KEY_SIZE = 32
NONCE_SIZE = 12

_OBFUSCATION = (
    ("u", "j"),
    ("V", "W"),
    ("P", "Q"),
    ("H", "I"),
    ("B", "C"),
    ("I", "J"),
    ("T", "U"),
    ("c", "d"),
)
_DEOBFUSCATION = (
    ("j", "u"),
    ("W", "V"),
    ("Q", "P"),
    ("I", "H"),
    ("C", "B"),
    ("J", "I"),
    ("U", "T"),
    ("d", "c"),
)


def _replace_all(text: str, pairs) -> str:
    for old, new in pairs:
        text = text.replace(old, new)
    return text


def _b64decode(text: str) -> bytes:
    return base64.b64decode(text, validate=True)


def obfuscate_key(original: str) -> str:
    """Apply the character substitution used to disguise a stored key."""
    return _replace_all(original, _OBFUSCATION)


def decode_obfuscated_key(obfuscated: str) -> str:
    """Undo the character substitution and check the result is valid base64."""
    restored = _replace_all(obfuscated, _DEOBFUSCATION)
    try:
        _b64decode(restored)
    except (binascii.Error, ValueError) as exc:
        raise ConfigError(f"Base64解码验证失败: {exc}") from exc
    return restored


def generate_key() -> str:
    """Return a new random 256-bit key, base64 encoded."""
    return base64.b64encode(os.urandom(KEY_SIZE)).decode("ascii")


def load_or_create_key(path: Union[str, Path]) -> str:
    """Read the base64 key stored at ``path``, creating it if missing."""
    path = Path(path)
    if path.exists():
        key = path.read_text(encoding="ascii").strip()
        try:
            raw = _b64decode(key)
        except (binascii.Error, ValueError) as exc:
            raise ConfigError(f"解码密钥失败: {exc}") from exc
        if len(raw) != KEY_SIZE:
            raise ConfigError("解码密钥失败: 密钥长度错误")
        return key
    key = generate_key()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(key, encoding="ascii")
    return key


class ContentCipher:
    """Encrypts text as base64(nonce || ciphertext || tag)."""

    def __init__(self, key: bytes) -> None:
        if len(key) != KEY_SIZE:
            raise CryptoError("密钥长度错误")
        self._aead = AESGCM(bytes(key))

    @classmethod
    def from_base64(cls, encoded: str) -> "ContentCipher":
        """Build a cipher from a base64-encoded 256-bit key."""
        try:
            key = _b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError(f"密钥解码失败: {exc}") from exc
        if len(key) != KEY_SIZE:
            raise CryptoError("密钥解码失败: 密钥长度错误")
        return cls(key)

    def encrypt(self, content: str) -> str:
        """Encrypt ``content`` with a fresh random nonce."""
        nonce = os.urandom(NONCE_SIZE)
        ciphertext = self._aead.encrypt(nonce, content.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, encoded: str) -> str:
        """Decrypt text produced by :meth:`encrypt`."""
        try:
            data = _b64decode(encoded)
        except (binascii.Error, ValueError) as exc:
            raise CryptoError(f"Base64解码失败: {exc}") from exc
        if len(data) < NONCE_SIZE:
            raise CryptoError("数据长度不足")
        nonce, ciphertext = data[:NONCE_SIZE], data[NONCE_SIZE:]
        try:
            plain = self._aead.decrypt(nonce, ciphertext, None)
        except InvalidTag as exc:
            raise CryptoError("解密失败: aead::Error") from exc
        try:
            return plain.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CryptoError(f"UTF-8转换失败: {exc}") from exc