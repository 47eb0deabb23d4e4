"""
readme.py — Reading, writing and describing the maintained document.
"""

from __future__ import annotations
from dataclasses import dataclass, field
import os
from pathlib import Path
from typing import Optional

from agents import DocumentService
from errors import DocumentError
from retry import RetryPolicy, call_with_retry


def read_document(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentError(f"Failed to read {path}: {e}") from e


def write_document(path: Path, text: str) -> Path:
    tmp = path.with_name(path.name + ".tmp")
    try:
        tmp.write_text(text if text.endswith("\n") else text + "\n", encoding="utf-8")
        os.replace(tmp, path)
    except OSError as e:
        raise DocumentError(f"Failed to write {path}: {e}") from e
    return path


@dataclass
class DocumentInfo:
    path: Path
    exists: bool
    line_count: int = 0
    byte_count: int = 0
    headings: list[str] = field(default_factory=list)

    def describe(self) -> str:
        if not self.exists:
            return f"  {self.path.name}: not found"
        lines = [
            f"  Path: {self.path}",
            f"  Lines: {self.line_count}",
            f"  Size: {self.byte_count} bytes",
        ]
        if self.headings:
            lines.append("  Sections:")
            lines.extend(f"    - {h}" for h in self.headings[:20])
        return "\n".join(lines)


def document_info(path: Path) -> DocumentInfo:
    if not path.exists():
        return DocumentInfo(path=path, exists=False)
    text = read_document(path)
    headings = [
        line.strip().lstrip("#").strip()
        for line in text.splitlines()
        if line.startswith("#")
    ]
    return DocumentInfo(
        path=path,
        exists=True,
        line_count=len(text.splitlines()),
        byte_count=len(text.encode("utf-8")),
        headings=headings,
    )


class DocumentWriter:
    """Creates the document from the project summary, or merges it into an existing one."""

    def __init__(self, service: DocumentService, *, retry: Optional[RetryPolicy] = None, verbose: bool = False):
        self.service = service
        self.retry = retry or RetryPolicy()
        self.verbose = verbose

    async def apply(self, path: Path, project_summary: str, project_name: Optional[str] = None) -> Path:
        if path.exists():
            if self.verbose:
                print(f"  Merging project summary into {path.name}", flush=True)
            existing = read_document(path)
            text = await call_with_retry(
                self.retry, self.service.merge_document, existing, project_summary,
                label=f"merge {path.name}",
            )
        else:
            if self.verbose:
                print(f"  Creating {path.name}", flush=True)
            name = project_name or path.resolve().parent.name or "Project"
            text = await call_with_retry(
                self.retry, self.service.create_document, project_summary, name,
                label=f"create {path.name}",
            )
        return write_document(path, text)
