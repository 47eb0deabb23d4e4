import json
from pathlib import Path

from cache import DocumentMappingStore, LineMapping, MappingIndex, SummaryStore, ensure_gitignore


def test_round_trip_and_fingerprint_mismatch(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/src/lib.py", "fp1", "Library helpers.")

    assert store.get("/proj/src/lib.py", "fp1") == "Library helpers."
    assert store.get("/proj/src/lib.py", "fp2") is None
    assert store.get("/proj/src/other.py", "fp1") is None


def test_invalidate_removes_entry(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/a.txt", "fp1", "A file.")

    store.invalidate("/proj/a.txt")
    store.invalidate("/proj/a.txt")

    assert store.get("/proj/a.txt", "fp1") is None


def test_entries_persist_across_instances(tmp_path: Path):
    SummaryStore(tmp_path / "cache").put("/proj/a.txt", "fp1", "A file.", is_directory=False)

    reopened = SummaryStore(tmp_path / "cache")
    entry = reopened.get_entry("/proj/a.txt")

    assert entry is not None
    assert entry.fingerprint == "fp1"
    assert entry.summary == "A file."
    assert entry.is_directory is False
    assert entry.timestamp > 0


def test_put_leaves_no_tmp_files(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/a.txt", "fp1", "A file.")

    assert [p.suffix for p in store.entries_dir.iterdir()] == [".json"]


def test_corrupt_entry_is_a_miss_and_does_not_block_others(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/a.txt", "fp1", "A file.")
    store.put("/proj/b.txt", "fp2", "B file.")
    store.entry_path("/proj/a.txt").write_text('{"path": "/proj/a.txt",')

    assert store.get("/proj/a.txt", "fp1") is None
    assert store.get("/proj/b.txt", "fp2") == "B file."
    assert [e.path for e in store.entries()] == ["/proj/b.txt"]


def test_entry_missing_fields_is_a_miss(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/a.txt", "fp1", "A file.")
    path = store.entry_path("/proj/a.txt")
    raw = json.loads(path.read_text())
    del raw["summary"]
    path.write_text(json.dumps(raw))

    assert store.get("/proj/a.txt", "fp1") is None


def test_cleanup_older_than_removes_only_old_entries(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    store.put("/proj/old.txt", "fp1", "Old.")
    store.put("/proj/new.txt", "fp2", "New.")
    path = store.entry_path("/proj/old.txt")
    raw = json.loads(path.read_text())
    raw["timestamp"] = raw["timestamp"] - 10 * 24 * 3600
    path.write_text(json.dumps(raw))

    removed = store.cleanup_older_than(24 * 3600)

    assert removed == 1
    assert store.get("/proj/old.txt", "fp1") is None
    assert store.get("/proj/new.txt", "fp2") == "New."


def test_stats_counts_entries_and_bytes(tmp_path: Path):
    store = SummaryStore(tmp_path / "cache")
    assert store.stats().entry_count == 0
    assert store.stats().total_bytes == 0

    store.put("/proj/a.txt", "fp1", "A file.")
    store.put("/proj", "fp2", "Project.", is_directory=True)

    stats = store.stats()
    assert stats.entry_count == 2
    assert stats.total_bytes > 0


def test_clear_keeps_mapping_index(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    store = SummaryStore(cache_dir)
    mappings = DocumentMappingStore(cache_dir)
    store.put("/proj/a.txt", "fp1", "A file.")
    mappings.save(MappingIndex("docfp", [LineMapping(3, "See a.txt", ["/proj/a.txt"])]))

    store.clear()

    assert store.stats().entry_count == 0
    assert store.get("/proj/a.txt", "fp1") is None
    assert mappings.load().document_fingerprint == "docfp"


def test_clear_removes_empty_cache_dir(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    store = SummaryStore(cache_dir)
    store.put("/proj/a.txt", "fp1", "A file.")

    store.clear()

    assert not cache_dir.exists()


def test_mapping_clear_keeps_entries(tmp_path: Path):
    cache_dir = tmp_path / "cache"
    store = SummaryStore(cache_dir)
    mappings = DocumentMappingStore(cache_dir)
    store.put("/proj/a.txt", "fp1", "A file.")
    mappings.save(MappingIndex("docfp", []))

    mappings.clear()

    assert mappings.load() == MappingIndex()
    assert store.get("/proj/a.txt", "fp1") == "A file."


def test_mapping_round_trip_and_corrupt_index(tmp_path: Path):
    mappings = DocumentMappingStore(tmp_path / "cache")
    index = MappingIndex(
        document_fingerprint="docfp",
        mappings=[LineMapping(2, "The cache module", ["/proj/cache.py"], last_validated="m1")],
    )
    mappings.save(index)
    assert mappings.load() == index

    mappings.path.write_text("not json")
    assert mappings.load() == MappingIndex()


def test_ensure_gitignore_appends_once(tmp_path: Path):
    (tmp_path / ".gitignore").write_text("*.pyc")
    cache_dir = tmp_path / ".doctree_cache"

    assert ensure_gitignore(tmp_path, cache_dir) is True
    assert ensure_gitignore(tmp_path, cache_dir) is False
    assert (tmp_path / ".gitignore").read_text() == "*.pyc\n.doctree_cache/\n"


def test_ensure_gitignore_ignores_external_cache(tmp_path: Path):
    project = tmp_path / "proj"
    project.mkdir()

    assert ensure_gitignore(project, tmp_path / "elsewhere") is False
    assert not (project / ".gitignore").exists()
