import pytest

from clippal.cleanup import clean_records
from clippal.records import ClipRecord, ClipRecordStore
from clippal.storage import open_database
from clippal.token_index import PersistentTokenIndex


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


def add(store, record_id, sort, kind="Text", content="x", pinned=0):
    store.insert(
        ClipRecord(id=record_id, type=kind, content=content, sort=sort, pinned_flag=pinned)
    )


def test_below_limit_deletes_nothing(store, index, tmp_path):
    for n in range(3):
        add(store, f"r{n}", n)
    assert clean_records(store, 3, index, tmp_path) == []
    assert store.count() == 3


def test_deletes_lowest_sorted(store, index, tmp_path):
    for n in range(5):
        add(store, f"r{n}", n)
    deleted = clean_records(store, 3, index, tmp_path)
    assert sorted(deleted) == ["r0", "r1"]
    assert store.count() == 3
    assert store.select_by_id("r0") == []


def test_pinned_record_is_kept(store, index, tmp_path):
    add(store, "pinned", 0, pinned=1)
    for n in range(1, 4):
        add(store, f"r{n}", n)
    deleted = clean_records(store, 2, index, tmp_path)
    assert "pinned" not in deleted
    assert len(store.select_by_id("pinned")) == 1


def test_removes_images_and_index_entries(store, index, tmp_path):
    resources = tmp_path / "resources"
    resources.mkdir()
    (resources / "old.png").write_bytes(b"img")
    add(store, "img", 0, kind="Image", content="old.png")
    index.add_content("img", "alpha")
    for n in range(1, 3):
        add(store, f"r{n}", n)
    deleted = clean_records(store, 2, index, resources)
    assert deleted == ["img"]
    assert not (resources / "old.png").exists()
    assert index.search("alpha") == []


def test_missing_image_file_still_deletes_record(store, index, tmp_path):
    add(store, "img", 0, kind="Image", content="gone.png")
    add(store, "r1", 1)
    deleted = clean_records(store, 1, index, tmp_path)
    assert deleted == ["img"]
    assert store.count() == 1