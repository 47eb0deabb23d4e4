"""
scanner.py — Builds the ordered source tree the summarizer walks.

Children are sorted directories-first, then by path. That order feeds
directly into directory fingerprints, so it must be deterministic.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from errors import StructuralError


DEFAULT_CACHE_DIRNAME = ".doctree_cache"

_DEFAULT_EXCLUDE_DIRS: frozenset[str] = frozenset({
    ".git", ".hg", ".svn", "node_modules", "__pycache__",
    ".venv", "venv", "env", "dist", "build", "target", "out",
    ".next", ".nuxt", ".mypy_cache", ".pytest_cache", ".tox",
    ".coverage", "coverage", ".cargo",
})

_ALLOWED_HIDDEN = frozenset({".gitignore"})


@dataclass
class FileNode:
    path: Path
    is_directory: bool
    children: list["FileNode"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.path.name

    def relative_to(self, base: Path) -> Path:
        try:
            return self.path.relative_to(base)
        except ValueError as e:
            raise StructuralError(f"{self.path} is not inside {base}") from e


def _sort_key(node: FileNode) -> tuple[int, str]:
    return (0 if node.is_directory else 1, node.path.as_posix())


def _skip(entry: Path, excludes: frozenset[str]) -> bool:
    name = entry.name
    if name in excludes:
        return True
    if name.startswith(".") and name not in _ALLOWED_HIDDEN:
        return True
    return entry.is_symlink()


def _build(directory: Path, excludes: frozenset[str]) -> FileNode:
    node = FileNode(path=directory, is_directory=True)
    try:
        entries = list(directory.iterdir())
    except OSError:
        return node

    for entry in entries:
        if _skip(entry, excludes):
            continue
        if entry.is_dir():
            node.children.append(_build(entry, excludes))
        elif entry.is_file():
            node.children.append(FileNode(path=entry, is_directory=False))

    node.children.sort(key=_sort_key)
    return node


def scan_tree(
    root: Path,
    extra_excludes: Optional[set[str]] = None,
    cache_dir_name: str = DEFAULT_CACHE_DIRNAME,
) -> FileNode:
    root = root.resolve()
    if not root.exists():
        raise ValueError(f"Path does not exist: {root}")
    if not root.is_dir():
        raise ValueError(f"Not a directory: {root}")
    excludes = _DEFAULT_EXCLUDE_DIRS | {cache_dir_name} | frozenset(extra_excludes or ())
    return _build(root, excludes)


def iter_nodes(node: FileNode) -> Iterator[FileNode]:
    yield node
    for child in node.children:
        yield from iter_nodes(child)


def count_nodes(node: FileNode) -> int:
    return sum(1 for _ in iter_nodes(node))
