import hashlib
import time

import pytest

from clippal.crypto import ContentCipher, generate_key
from clippal.events import ClipboardEvent, ClipType
from clippal.records import ClipRecordStore
from clippal.storage import open_database
from clippal.sync import ClipboardSyncListener, current_timestamp
from clippal.token_index import PersistentTokenIndex

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x01" * 8


@pytest.fixture
def store(tmp_path):
    conn = open_database(tmp_path / "clip_record.db")
    yield ClipRecordStore(conn)
    conn.close()


@pytest.fixture
def index(tmp_path):
    idx = PersistentTokenIndex(tmp_path / "clip_tokens.bin", debounce=60)
    yield idx
    idx.close()


@pytest.fixture
def cipher():
    return ContentCipher.from_base64(generate_key())


@pytest.fixture
def changes():
    return []


@pytest.fixture
def listener(store, cipher, index, tmp_path, changes):
    return ClipboardSyncListener(
        store, cipher, index, tmp_path / "resources", 200, lambda: changes.append(1)
    )


def test_current_timestamp_is_milliseconds():
    before = int(time.time() * 1000)
    stamp = current_timestamp()
    after = int(time.time() * 1000)
    assert before - 1 <= stamp <= after + 1


def test_text_event_stores_encrypted_record(listener, store, cipher, changes):
    listener.handle_event(ClipboardEvent(ClipType.TEXT, content="hello world"))
    records = store.select_order_by()
    assert len(records) == 1
    record = records[0]
    assert record.type == "Text"
    assert record.os_type == "win"
    assert record.sort == 0
    assert record.content != "hello world"
    assert cipher.decrypt(record.content) == "hello world"
    assert record.md5_str == hashlib.md5(b"hello world").hexdigest()
    assert changes == [1]


def test_text_event_is_indexed(listener, store, index):
    listener.handle_event(ClipboardEvent(ClipType.TEXT, content="hello world"))
    record_id = store.select_order_by()[0].id
    assert index.search("hello") == [record_id]


def test_duplicate_text_updates_sort(listener, store):
    listener.handle_event(ClipboardEvent(ClipType.TEXT, content="same"))
    listener.handle_event(ClipboardEvent(ClipType.TEXT, content="other"))
    listener.handle_event(ClipboardEvent(ClipType.TEXT, content="same"))
    records = store.select_order_by()
    assert len(records) == 2
    assert records[0].md5_str == hashlib.md5(b"same").hexdigest()
    assert records[0].sort > records[1].sort


def test_image_event_saves_file(listener, store, tmp_path):
    listener.handle_event(ClipboardEvent(ClipType.IMAGE, file=PNG_BYTES))
    listener.handle_event(ClipboardEvent(ClipType.IMAGE, file=PNG_BYTES))
    records = store.select_order_by()
    assert len(records) == 1
    assert records[0].content.endswith(".png")
    assert (tmp_path / "resources" / records[0].content).read_bytes() == PNG_BYTES
    assert records[0].md5_str == hashlib.md5(PNG_BYTES).hexdigest()


def test_file_event_dedupes_by_sorted_paths(listener, store):
    listener.handle_event(ClipboardEvent(ClipType.FILE, file_path_vec=["/b", "/a"]))
    listener.handle_event(ClipboardEvent(ClipType.FILE, file_path_vec=["/a", "/b"]))
    records = store.select_order_by()
    assert len(records) == 1
    assert records[0].content == "/b:::/a"
    assert records[0].md5_str == hashlib.md5(b"/a/b").hexdigest()


def test_unknown_event_stores_nothing(listener, store, changes):
    listener.handle_event(ClipboardEvent(ClipType.HTML, content="<p>x</p>"))
    assert store.count() == 0
    assert changes == [1]


def test_old_records_are_cleaned(store, cipher, index, tmp_path):
    listener = ClipboardSyncListener(store, cipher, index, tmp_path, lambda: 2)
    for text in ("first", "second", "third"):
        listener.handle_event(ClipboardEvent(ClipType.TEXT, content=text))
    records = store.select_order_by()
    assert store.count() == 2
    assert {cipher.decrypt(r.content) for r in records} == {"second", "third"}
    assert index.search("first") == []