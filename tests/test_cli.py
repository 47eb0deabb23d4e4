import asyncio
import json
from pathlib import Path

import doctree
from agents import CostTracker
from cache import DocumentMappingStore, SummaryStore


class _FakeSummarizer:
    instances: list["_FakeSummarizer"] = []

    def __init__(self, **kwargs):
        self.tracker = CostTracker()
        self.leaf_calls = 0
        self.line_calls = 0
        _FakeSummarizer.instances.append(self)

    async def summarize_leaf(self, relative_path, content):
        self.leaf_calls += 1
        return f"Handles {relative_path}."

    async def summarize_directory(self, name, child_summaries):
        return f"The {name} directory."

    async def propose_line_correction(self, prompt):
        self.line_calls += 1
        return "NO_CHANGE"

    async def create_document(self, project_summary, project_name):
        return f"# {project_name}\n\n{project_summary}"

    async def merge_document(self, existing, project_summary):
        return existing + "\n" + project_summary


def _project(tmp_path: Path) -> Path:
    root = tmp_path / "proj"
    (root / "src").mkdir(parents=True)
    (root / "src" / "engine.py").write_text("def run():\n    return 1\n")
    (root / "README.md").write_text("# proj\n\nThe engine.py module runs things.\n")
    return root


def _main(*argv: str) -> int:
    return asyncio.run(doctree.main(list(argv)))


def test_run_summarizes_and_validates(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setattr(doctree, "Summarizer", _FakeSummarizer)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    root = _project(tmp_path)
    report = tmp_path / "report.json"

    assert _main("run", str(root), "--json-output", str(report)) == 0

    out = capsys.readouterr().out
    assert "README.md is up-to-date" in out
    data = json.loads(report.read_text())
    assert data["root_summary"] == "The proj directory."
    assert data["stats"]["generated"] == 5
    assert data["corrections"] == []
    assert ".doctree_cache/" in (root / ".gitignore").read_text()
    assert _FakeSummarizer.instances[-1].line_calls == 1

    assert _main("run", str(root)) == 0
    assert _FakeSummarizer.instances[-1].leaf_calls == 0
    assert _FakeSummarizer.instances[-1].line_calls == 0


def test_run_dry_run_prints_tree_without_validating(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.setattr(doctree, "Summarizer", _FakeSummarizer)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    root = _project(tmp_path)

    assert _main("run", str(root), "--dry-run") == 0

    out = capsys.readouterr().out
    assert "src/engine.py" in out
    assert "The proj directory." in out
    assert _FakeSummarizer.instances[-1].line_calls == 0


def test_run_write_creates_missing_document(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(doctree, "Summarizer", _FakeSummarizer)
    monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
    root = _project(tmp_path)
    (root / "README.md").unlink()

    assert _main("run", str(root), "--write") == 0
    assert (root / "README.md").read_text() == "# proj\n\nThe proj directory.\n"


def test_run_without_api_key_fails(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    root = _project(tmp_path)

    assert _main("run", str(root)) == 1
    assert "ANTHROPIC_API_KEY" in capsys.readouterr().err


def test_init_clean_and_info(tmp_path: Path, monkeypatch, capsys):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    root = _project(tmp_path)
    cache_dir = root / ".doctree_cache"

    assert _main("init", str(root)) == 0
    assert cache_dir.is_dir()

    SummaryStore(cache_dir).put(root / "src" / "engine.py", "fp", "Runs things.")
    mappings = DocumentMappingStore(cache_dir)
    mappings.save(mappings.load())

    assert _main("info", str(root)) == 0
    assert "Entries: 1" in capsys.readouterr().out

    assert _main("clean", str(root), "--mappings") == 0
    assert not mappings.path.exists()
    assert SummaryStore(cache_dir).stats().entry_count == 1

    assert _main("clean", str(root)) == 0
    assert SummaryStore(cache_dir).stats().entry_count == 0


def test_missing_path_reports_error(tmp_path: Path, capsys):
    assert _main("info", str(tmp_path / "missing")) == 1
    assert "Error:" in capsys.readouterr().err
