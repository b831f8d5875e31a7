import json
import threading

import pytest

from clippal.clipboard import ClipboardPal, ContentFormat, MemoryClipboard
from clippal.commands import ClipCommands, FileInfo, get_file_info
from clippal.crypto import ContentCipher, generate_key
from clippal.errors import ClipboardError, CryptoError, GeneralError
from clippal.records import ClipRecord, ClipRecordStore
from clippal.settings import Settings, SettingsManager
from clippal.storage import open_database
from clippal.token_index import PersistentTokenIndex
from clippal.window import WindowHideFlag

PNG = b"\x89PNG\r\n\x1a\n" + b"imagedata"


@pytest.fixture
def env(tmp_path):
    conn = open_database(tmp_path / "db.sqlite")
    store = ClipRecordStore(conn)
    backend = MemoryClipboard()
    cipher = ContentCipher.from_base64(generate_key())
    index = PersistentTokenIndex(tmp_path / "clip_tokens.bin", debounce=60)
    resources = tmp_path / "resources"
    resources.mkdir()
    settings = SettingsManager(tmp_path / "settings.json")
    settings.load()
    hide_flag = WindowHideFlag()
    called = threading.Event()
    commands = ClipCommands(
        store,
        ClipboardPal(backend),
        cipher,
        index,
        resources,
        settings,
        hide_flag,
        called.set,
    )
    yield {
        "store": store,
        "backend": backend,
        "cipher": cipher,
        "index": index,
        "resources": resources,
        "settings": settings,
        "hide_flag": hide_flag,
        "called": called,
        "commands": commands,
    }
    index.close()
    conn.close()


def add_text(env, record_id, text, sort=0):
    env["store"].insert(
        ClipRecord(
            id=record_id,
            type="Text",
            content=env["cipher"].encrypt(text),
            sort=sort,
            created=sort,
        )
    )


def test_get_clip_records_decrypts_and_orders_pinned_first(env):
    add_text(env, "a", "first", sort=1)
    add_text(env, "b", "second", sort=2)
    env["store"].update_pinned("a", 1)
    result = env["commands"].get_clip_records(1, 10)
    assert [dto.content for dto in result] == ["first", "second"]
    assert result[0].pinned_flag == 1
    assert result[1].file_info == []


def test_get_clip_records_pages(env):
    add_text(env, "a", "first", sort=1)
    add_text(env, "b", "second", sort=2)
    page_two = env["commands"].get_clip_records(2, 1)
    assert [dto.id for dto in page_two] == ["a"]


def test_get_clip_records_search_uses_index(env):
    add_text(env, "a", "hello world", sort=1)
    add_text(env, "b", "other words", sort=2)
    env["index"].add_content("a", "hello world")
    env["index"].add_content("b", "other words")
    result = env["commands"].get_clip_records(1, 10, "hello")
    assert [dto.id for dto in result] == ["a"]
    assert env["commands"].get_clip_records(1, 10, "absent") == []


def test_get_clip_records_file_record(env, tmp_path):
    present = tmp_path / "a.TXT"
    present.write_bytes(b"abc")
    missing = tmp_path / "gone.txt"
    content = f"{present}:::{missing}"
    env["store"].insert(ClipRecord(id="f", type="File", content=content))
    (dto,) = env["commands"].get_clip_records(1, 10)
    assert json.loads(dto.content) == [str(present), str(missing)]
    assert dto.file_info == [FileInfo(path=str(present), size=3, type="txt")]


def test_get_file_info_skips_blank_and_missing(tmp_path):
    plain = tmp_path / "README"
    plain.write_bytes(b"12345")
    infos = get_file_info(f" :::{tmp_path / 'nope.bin'}:::{plain}")
    assert infos == [FileInfo(path=str(plain), size=5, type="未知")]


def test_copy_text_record_writes_plain_text(env):
    add_text(env, "a", "clipboard text")
    assert env["commands"].copy_clip_record_no_paste("a") == ""
    assert env["backend"].get_text() == "clipboard text"


def test_copy_image_record(env):
    (env["resources"] / "img.png").write_bytes(PNG)
    env["store"].insert(ClipRecord(id="i", type="Image", content="img.png"))
    env["commands"].copy_clip_record_no_paste("i")
    assert env["backend"].get_image_png() == PNG


def test_copy_missing_image_raises(env):
    env["store"].insert(ClipRecord(id="i", type="Image", content="lost.png"))
    with pytest.raises(ClipboardError) as info:
        env["commands"].copy_clip_record_no_paste("i")
    assert info.value.message == "图片资源不存在，无法复制"
    assert not env["backend"].has(ContentFormat.IMAGE)


def test_copy_missing_files_lists_them(env, tmp_path):
    missing = str(tmp_path / "missing.txt")
    env["store"].insert(ClipRecord(id="f", type="File", content=missing))
    with pytest.raises(ClipboardError) as info:
        env["commands"].copy_clip_record("f")
    assert missing in info.value.message


def test_copy_unknown_record_raises(env):
    with pytest.raises(GeneralError):
        env["commands"].copy_clip_record("nope")


def test_copy_corrupt_text_raises(env):
    env["store"].insert(ClipRecord(id="x", type="Text", content="not-cipher"))
    with pytest.raises(CryptoError) as info:
        env["commands"].copy_clip_record("x")
    assert info.value.message == "文本解密失败"


def test_copy_triggers_auto_paste_when_enabled(env):
    add_text(env, "a", "paste me")
    env["commands"].copy_clip_record("a")
    assert env["called"].wait(2)
    assert env["backend"].get_text() == "paste me"


def test_copy_no_paste_does_not_paste(env):
    add_text(env, "a", "paste me")
    env["commands"].copy_clip_record_no_paste("a")
    assert not env["called"].wait(0.4)


def test_auto_paste_disabled_by_settings(env):
    env["settings"].save(Settings(auto_paste=0))
    add_text(env, "a", "text")
    env["commands"].copy_clip_record("a")
    assert not env["called"].wait(0.4)


def test_auto_paste_failure_is_swallowed(env):
    attempted = threading.Event()

    def failing():
        attempted.set()
        raise RuntimeError("no window")

    env["commands"].auto_paste = failing
    add_text(env, "a", "text")
    assert env["commands"].copy_clip_record("a") == ""
    assert attempted.wait(2)


def test_set_pinned_keeps_single_pin(env):
    add_text(env, "a", "one")
    add_text(env, "b", "two")
    env["commands"].set_pinned("a", 1)
    env["commands"].set_pinned("b", 1)
    assert env["store"].select_by_id("a")[0].pinned_flag == 0
    assert env["store"].select_by_id("b")[0].pinned_flag == 1


def test_del_record_removes_from_store_and_index(env):
    add_text(env, "a", "hello")
    env["index"].add_content("a", "hello")
    env["commands"].del_record("a")
    assert env["store"].select_by_id("a") == []
    assert env["index"].tokens_for_id("a") == set()


def test_image_save_as_copies_file(env, tmp_path):
    (env["resources"] / "img.png").write_bytes(PNG)
    env["store"].insert(ClipRecord(id="i", type="Image", content="img.png"))
    target = tmp_path / "out.png"
    assert env["commands"].image_save_as("i", target) == "图片已成功保存"
    assert target.read_bytes() == PNG
    assert env["hide_flag"].is_can_hide() is True


def test_image_save_as_rejects_other_types(env, tmp_path):
    add_text(env, "a", "text")
    with pytest.raises(ClipboardError) as info:
        env["commands"].image_save_as("a", tmp_path / "out.png")
    assert info.value.message == "仅支持图片类型另存为"


def test_image_save_as_missing_resource(env, tmp_path):
    env["store"].insert(ClipRecord(id="i", type="Image", content="lost.png"))
    with pytest.raises(ClipboardError) as info:
        env["commands"].image_save_as("i", tmp_path / "out.png")
    assert info.value.message == "图片资源丢失"
    with pytest.raises(GeneralError):
        env["commands"].image_save_as("nope", tmp_path / "out.png")


def test_copy_single_file_errors(env, tmp_path):
    present = tmp_path / "a.txt"
    present.write_text("x")
    missing = str(tmp_path / "b.txt")
    env["store"].insert(
        ClipRecord(id="f", type="File", content=f"{present}:::{missing}")
    )
    add_text(env, "t", "text")
    commands = env["commands"]
    with pytest.raises(ClipboardError) as not_listed:
        commands.copy_single_file("f", str(tmp_path / "other.txt"))
    assert not_listed.value.message == "指定的文件路径不在此记录中"
    with pytest.raises(ClipboardError) as gone:
        commands.copy_single_file("f", missing)
    assert gone.value.message == f"文件不存在: {missing}"
    with pytest.raises(ClipboardError) as wrong_type:
        commands.copy_single_file("t", str(present))
    assert wrong_type.value.message == "只支持文件类型的单个文件复制"
    assert commands.copy_single_file("f", str(present)) == ""