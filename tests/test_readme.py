import asyncio
from pathlib import Path
import typing

import pytest

from agents import DocumentService, Summarizer
from errors import DocumentError
from readme import DocumentWriter, document_info, read_document, write_document
from retry import RetryPolicy


class _DocService:
    def __init__(self):
        self.created: list[tuple[str, str]] = []
        self.merged: list[tuple[str, str]] = []

    async def create_document(self, project_summary: str, project_name: str) -> str:
        self.created.append((project_summary, project_name))
        return f"# {project_name}\n\n{project_summary}"

    async def merge_document(self, existing: str, project_summary: str) -> str:
        self.merged.append((existing, project_summary))
        return existing.rstrip() + "\n\n" + project_summary


def test_read_missing_document_raises(tmp_path: Path):
    with pytest.raises(DocumentError):
        read_document(tmp_path / "README.md")


def test_write_document_is_atomic_and_newline_terminated(tmp_path: Path):
    path = write_document(tmp_path / "README.md", "# Title")

    assert path.read_text() == "# Title\n"
    assert not (tmp_path / "README.md.tmp").exists()


def test_document_info_lists_headings(tmp_path: Path):
    path = tmp_path / "README.md"
    path.write_text("# Title\n\nIntro.\n\n## Usage\nRun it.\n")

    info = document_info(path)

    assert info.exists
    assert info.line_count == 6
    assert info.headings == ["Title", "Usage"]
    assert "Lines: 6" in info.describe()
    assert "not found" in document_info(tmp_path / "MISSING.md").describe()


def test_writer_creates_missing_document(tmp_path: Path):
    project = tmp_path / "proj"
    project.mkdir()
    service = _DocService()

    asyncio.run(DocumentWriter(service, retry=RetryPolicy.none()).apply(project / "README.md", "A tool."))

    assert service.created == [("A tool.", "proj")]
    assert (project / "README.md").read_text() == "# proj\n\nA tool.\n"


def test_writer_merges_existing_document(tmp_path: Path):
    path = tmp_path / "README.md"
    path.write_text("# Old\n")
    service = _DocService()

    asyncio.run(DocumentWriter(service, retry=RetryPolicy.none()).apply(path, "New summary."))

    assert service.merged == [("# Old\n", "New summary.")]
    assert path.read_text() == "# Old\n\nNew summary.\n"


def test_writer_service_is_typed_as_document_service():
    hints = typing.get_type_hints(DocumentWriter.__init__)

    assert hints["service"] is DocumentService
    assert callable(getattr(Summarizer, "create_document"))
    assert callable(getattr(Summarizer, "merge_document"))
