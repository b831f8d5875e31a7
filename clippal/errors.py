"""Error types raised throughout the application."""

from __future__ import annotations


class AppError(Exception):
    """Base class for every application error.

    ``str()`` of an error gives its category label followed by the message,
    which is the text shown to the user.
    """

    label = ""

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        if self.label:
            return f"{self.label}: {self.message}"
        return self.message


class DatabaseError(AppError):
    """A database operation failed."""

    label = "数据库错误"


class ConfigError(AppError):
    """Configuration is missing or invalid."""

    label = "配置错误"


class WindowError(AppError):
    """A window operation failed."""

    label = "窗口操作错误"


class ClipboardError(AppError):
    """Reading from or writing to the clipboard failed."""

    label = "剪贴板操作错误"


class CryptoError(AppError):
    """Encryption or decryption failed."""

    label = "加密解密错误"


class LockError(AppError):
    """A shared lock could not be acquired."""

    label = "锁争用错误"


class GlobalShortcutError(AppError):
    """Registering a global shortcut failed."""

    label = "全局快捷键错误"


class TrayError(AppError):
    """A system tray operation failed."""

    label = "系统托盘错误"


class GeneralError(AppError):
    """Any other failure."""

    label = "通用错误"