import pytest

from clippal.errors import (
    AppError,
    ClipboardError,
    ConfigError,
    CryptoError,
    DatabaseError,
    GeneralError,
    GlobalShortcutError,
    LockError,
    TrayError,
    WindowError,
)


@pytest.mark.parametrize(
    "cls, label",
    [
        (DatabaseError, "数据库错误"),
        (ConfigError, "配置错误"),
        (WindowError, "窗口操作错误"),
        (ClipboardError, "剪贴板操作错误"),
        (CryptoError, "加密解密错误"),
        (LockError, "锁争用错误"),
        (GlobalShortcutError, "全局快捷键错误"),
        (TrayError, "系统托盘错误"),
        (GeneralError, "通用错误"),
    ],
)
def test_message_carries_category_label(cls, label):
    err = cls("detail")
    assert str(err) == f"{label}: detail"
    assert err.message == "detail"


def test_subclasses_are_caught_as_app_error():
    err = CryptoError("数据长度不足")
    assert issubclass(CryptoError, AppError)
    assert err.message == "数据长度不足"
    assert str(err) == "加密解密错误: 数据长度不足"


def test_base_error_has_no_label():
    assert str(AppError("plain")) == "plain"


def test_config_error_is_not_a_crypto_error():
    err = ConfigError("x")
    matching = [
        cls
        for cls in (AppError, ConfigError, CryptoError, GeneralError)
        if isinstance(err, cls)
    ]
    assert matching == [AppError, ConfigError]
    assert str(err) == "配置错误: x"