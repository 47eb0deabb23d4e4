"""
orchestrator.py — Bottom-up (post-order) summarization of a source tree.

Execution order, per directory:
  1. Walk every child (siblings run concurrently, bounded by a semaphore)
  2. Barrier: wait until each child has a summary, a fallback, or nothing
  3. Fingerprint the directory from its children's fingerprints
  4. Serve from cache (unless a child was regenerated this run), or ask the
     service to compose the child summaries; on failure fall back to the
     concatenated child summaries, which are never cached

A changed file therefore invalidates exactly its chain of ancestors; every
unrelated subtree keeps its cache hits.
"""

from __future__ import annotations
import asyncio
from dataclasses import dataclass, field
from pathlib import Path
import sys
from typing import Iterator, Optional

from agents import GenerationService
from cache import SummaryStore
from errors import CacheError, ServiceError, StructuralError, SummarizationError
from hasher import hash_children, hash_file
from retry import RetryPolicy, call_with_retry
from scanner import FileNode, scan_tree


CACHED = "cached"
GENERATED = "generated"
FALLBACK = "fallback"
FAILED = "failed"


# ---------------------------------------------------------------------------
# Result dataclasses
# ---------------------------------------------------------------------------

@dataclass
class NodeResult:
    path: Path
    is_directory: bool
    fingerprint: Optional[str] = None
    summary: Optional[str] = None
    source: Optional[str] = None
    children: list["NodeResult"] = field(default_factory=list)

    def walk(self) -> Iterator["NodeResult"]:
        for child in self.children:
            yield from child.walk()
        yield self


@dataclass
class ProjectSummary:
    root: NodeResult
    stats: dict

    @property
    def root_summary(self) -> str:
        return self.root.summary or ""

    @property
    def results(self) -> dict[str, NodeResult]:
        return {r.path.as_posix(): r for r in self.root.walk()}

    def summaries(self) -> dict[str, str]:
        return {path: r.summary for path, r in self.results.items() if r.summary is not None}


def format_child_summary(result: NodeResult) -> str:
    if result.is_directory:
        return f"**{result.path.name}/** (directory): {result.summary}"
    return f"**{result.path.name}**: {result.summary}"


def fallback_summary(formatted_children: list[str]) -> str:
    return "Contains: " + ", ".join(formatted_children)


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class TreeSummarizer:
    def __init__(
        self,
        *,
        service: GenerationService,
        store: SummaryStore,
        retry: Optional[RetryPolicy] = None,
        force: bool = False,
        max_concurrent: int = 8,
        verbose: bool = False,
    ):
        self.service = service
        self.store = store
        self.retry = retry or RetryPolicy()
        self.force = force
        self.max_concurrent = max(1, max_concurrent)
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    @staticmethod
    def _warn(msg: str):
        print(msg, file=sys.stderr, flush=True)

    # -----------------------------------------------------------------------
    # Leaves
    # -----------------------------------------------------------------------

    async def _summarize_leaf(self, node: FileNode, base: Path, gate: asyncio.Semaphore) -> NodeResult:
        result = NodeResult(path=node.path, is_directory=False)
        try:
            rel = node.relative_to(base).as_posix()
        except StructuralError as e:
            self._warn(f"  [leaf] skipping {node.path}: {e}")
            return result

        try:
            fingerprint = hash_file(node.path)
        except OSError as e:
            self._warn(f"  [leaf] cannot hash {rel}: {e}; skipping")
            return result
        result.fingerprint = fingerprint

        if not self.force:
            cached = self.store.get(node.path, fingerprint)
            if cached is not None:
                result.summary = cached
                result.source = CACHED
                return result

        try:
            content = node.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            self._warn(f"  [leaf] unreadable {rel}: {e}; skipping")
            return result
        if not content.strip():
            self._log(f"  [leaf] empty {rel}; skipping")
            return result

        async with gate:
            try:
                summary = await call_with_retry(
                    self.retry,
                    self.service.summarize_leaf,
                    rel,
                    content,
                    label=f"leaf {rel}",
                    log=self._warn,
                )
            except ServiceError as e:
                self._warn(f"  [leaf] failed to summarize {rel}: {e}")
                result.source = FAILED
                return result

        self._store(node.path, fingerprint, summary, is_directory=False)
        self._log(f"  Generated summary for {rel}")
        result.summary = summary
        result.source = GENERATED
        return result

    # -----------------------------------------------------------------------
    # Directories
    # -----------------------------------------------------------------------

    async def _summarize_directory(self, node: FileNode, base: Path, gate: asyncio.Semaphore) -> NodeResult:
        children = list(await asyncio.gather(*(self._walk(c, base, gate) for c in node.children)))
        result = NodeResult(path=node.path, is_directory=True, children=children)

        formatted = [format_child_summary(c) for c in children if c.summary is not None]
        if not formatted:
            self._log(f"  [directory] nothing summarizable in {node.path}")
            return result

        fingerprint = hash_children(c.fingerprint for c in children if c.fingerprint is not None)
        result.fingerprint = fingerprint

        # A child regenerated this run carries new summary text even when its
        # fingerprint is unchanged (e.g. its entry was invalidated).
        fresh_children = any(c.source == GENERATED for c in children)
        if not self.force and not fresh_children:
            cached = self.store.get(node.path, fingerprint)
            if cached is not None:
                result.summary = cached
                result.source = CACHED
                return result

        name = node.name if node.path != base else (base.name or "project root")
        async with gate:
            try:
                summary = await call_with_retry(
                    self.retry,
                    self.service.summarize_directory,
                    name,
                    formatted,
                    label=f"directory {name}",
                    log=self._warn,
                )
            except ServiceError as e:
                self._warn(f"  [directory] failed to summarize {name}: {e}; using child summaries")
                result.summary = fallback_summary(formatted)
                result.source = FALLBACK
                return result

        self._store(node.path, fingerprint, summary, is_directory=True)
        self._log(f"  Generated directory summary for {name}")
        result.summary = summary
        result.source = GENERATED
        return result

    async def _walk(self, node: FileNode, base: Path, gate: asyncio.Semaphore) -> NodeResult:
        if node.is_directory:
            return await self._summarize_directory(node, base, gate)
        return await self._summarize_leaf(node, base, gate)

    def _store(self, path: Path, fingerprint: str, summary: str, *, is_directory: bool):
        try:
            self.store.put(path, fingerprint, summary, is_directory=is_directory)
        except CacheError as e:
            self._warn(f"  [cache] {e}; summary kept for this run only")

    # -----------------------------------------------------------------------
    # Main entry point
    # -----------------------------------------------------------------------

    async def run(self, root: Path | FileNode, *, extra_excludes: Optional[set[str]] = None) -> ProjectSummary:
        if isinstance(root, FileNode):
            tree = root
        else:
            tree = scan_tree(root, extra_excludes, cache_dir_name=self.store.cache_dir.name)
        self._log(f"\n[Summarize] Walking {tree.path} (bottom-up)...")

        self.store.ensure_initialized()
        gate = asyncio.Semaphore(self.max_concurrent)
        root_result = await self._walk(tree, tree.path, gate)

        if root_result.summary is None:
            raise SummarizationError(f"Failed to generate a root-level summary for {tree.path}")

        stats = self._stats(root_result)
        self._log(
            f"  Done: {stats['generated']} generated, {stats['cache_hits']} cached, "
            f"{stats['fallbacks']} fallbacks, {stats['failed']} failed"
        )
        return ProjectSummary(root=root_result, stats=stats)

    def _stats(self, root_result: NodeResult) -> dict:
        counts = {CACHED: 0, GENERATED: 0, FALLBACK: 0, FAILED: 0, None: 0}
        files = directories = 0
        for r in root_result.walk():
            counts[r.source] += 1
            if r.is_directory:
                directories += 1
            else:
                files += 1
        cache = self.store.stats()
        return {
            "files": files,
            "directories": directories,
            "generated": counts[GENERATED],
            "cache_hits": counts[CACHED],
            "fallbacks": counts[FALLBACK],
            "failed": counts[FAILED],
            "skipped": counts[None],
            "cache_entries": cache.entry_count,
            "cache_bytes": cache.total_bytes,
        }

    def cleanup_cache(self, max_age_seconds: float) -> int:
        return self.store.cleanup_older_than(max_age_seconds)


def render_tree(result: NodeResult, base: Path, indent: int = 0, preview: int = 100) -> str:
    """Indented outline of the walk with a one-line preview per summary."""
    pad = "  " * indent
    try:
        rel = result.path.relative_to(base).as_posix()
    except ValueError:
        rel = result.path.as_posix()
    label = base.name if rel == "." else rel
    lines = [f"{pad}{label}/" if result.is_directory else f"{pad}{label}"]
    if result.summary:
        text = " ".join(result.summary.split())
        if len(text) > preview:
            text = text[:preview - 3] + "..."
        lines.append(f"{pad}   -> {text}")
    for child in result.children:
        lines.append(render_tree(child, base, indent + 1, preview))
    return "\n".join(lines)
