"""
validator.py — Detects lines of a maintained document that no longer match the code.

Each content-bearing line is mapped to the cached nodes it talks about. A
line is re-examined only when one of those nodes' fingerprints moved since
the line was last checked; everything else costs no service call. Any edit
to the document itself shifts line numbers, so all mappings are rebuilt.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
import string
import sys
from typing import Optional

from agents import GenerationService
from cache import CacheEntry, DocumentMappingStore, LineMapping, MappingIndex, SummaryStore
from errors import CacheError, ServiceError
from hasher import hash_children, hash_content
from prompts import NO_CHANGE, line_correction_prompt
from readme import read_document
from retry import RetryPolicy, call_with_retry


_SIGNAL_TOKENS = (
    "module", "function", "class", "component", "file", "directory",
    "API", "endpoint", "service", "manager", "handler", "validator",
    "scanner", "client", "cache", "config", "error", "test", "util", "lib",
    "src/", ".rs", ".py", ".js", ".ts", ".go", ".java", ".cpp", ".c", ".h",
)

_NON_CONTENT_PREFIXES = ("#", "```", "---", "***", "___")


@dataclass
class RelevancePolicy:
    min_stem_length: int = 3
    keyword_min_length: int = 5
    keyword_pool: int = 5
    keyword_matches: int = 2
    signal_tokens: tuple[str, ...] = field(default=_SIGNAL_TOKENS)


@dataclass
class Correction:
    line_number: int
    current_text: str
    suggested_text: str
    reason: str
    affected_keys: list[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Mapping heuristics
# ---------------------------------------------------------------------------

def is_content_line(line: str, policy: Optional[RelevancePolicy] = None) -> bool:
    policy = policy or RelevancePolicy()
    trimmed = line.strip()
    if not trimmed or trimmed.startswith(_NON_CONTENT_PREFIXES):
        return False
    return any(token in trimmed for token in policy.signal_tokens)


def summary_keywords(summary: str, policy: Optional[RelevancePolicy] = None) -> list[str]:
    """The longest distinctive words of a summary, longest first."""
    policy = policy or RelevancePolicy()
    words: list[str] = []
    for raw in summary.split():
        word = raw.strip(string.punctuation).lower()
        if len(word) > policy.keyword_min_length and word not in words:
            words.append(word)
    # sorted() is stable, so equal-length words keep their order of appearance
    return sorted(words, key=len, reverse=True)[:policy.keyword_pool]


def _relative(entry: CacheEntry, project_root: Path) -> Path:
    path = Path(entry.path)
    try:
        return path.relative_to(project_root)
    except ValueError:
        return path


def is_relevant(line: str, entry: CacheEntry, project_root: Path, policy: Optional[RelevancePolicy] = None) -> bool:
    policy = policy or RelevancePolicy()
    line_lower = line.lower()
    rel = _relative(entry, project_root)

    path_str = rel.as_posix().lower()
    if path_str not in ("", ".") and path_str in line_lower:
        return True
    name = rel.name.lower()
    if name and name in line_lower:
        return True
    stem = rel.stem.lower()
    if len(stem) > policy.min_stem_length and stem in line_lower:
        return True

    keywords = summary_keywords(entry.summary, policy)
    matches = sum(1 for k in keywords if k in line_lower)
    return matches >= policy.keyword_matches


def build_mappings(
    text: str,
    entries: list[CacheEntry],
    project_root: Path,
    policy: Optional[RelevancePolicy] = None,
) -> list[LineMapping]:
    policy = policy or RelevancePolicy()
    mappings: list[LineMapping] = []
    for number, line in enumerate(text.splitlines(), start=1):
        if not is_content_line(line, policy):
            continue
        keys = [e.path for e in entries if is_relevant(line, e, project_root, policy)]
        if keys:
            mappings.append(LineMapping(line_number=number, line_text=line, cache_keys=keys))
    return mappings


# ---------------------------------------------------------------------------
# Mapper
# ---------------------------------------------------------------------------

class DocumentStalenessMapper:
    def __init__(
        self,
        *,
        service: GenerationService,
        store: SummaryStore,
        mappings: DocumentMappingStore,
        retry: Optional[RetryPolicy] = None,
        policy: Optional[RelevancePolicy] = None,
        verbose: bool = False,
    ):
        self.service = service
        self.store = store
        self.mappings = mappings
        self.retry = retry or RetryPolicy()
        self.policy = policy or RelevancePolicy()
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    @staticmethod
    def _warn(msg: str):
        print(msg, file=sys.stderr, flush=True)

    def _current_marker(self, mapping: LineMapping) -> Optional[str]:
        """Combined fingerprint of the mapping's keys, or None if any key is gone."""
        fingerprints: list[str] = []
        for key in mapping.cache_keys:
            entry = self.store.get_entry(key)
            if entry is None:
                return None
            fingerprints.append(entry.fingerprint)
        return hash_children(fingerprints)

    def load_index(self, text: str, project_root: Path) -> MappingIndex:
        fingerprint = hash_content(text)
        index = self.mappings.load()
        if index.document_fingerprint == fingerprint:
            return index

        self._log("  Document changed, rebuilding line mappings")
        index = MappingIndex(
            document_fingerprint=fingerprint,
            mappings=build_mappings(text, self.store.entries(), project_root, self.policy),
        )
        self._save(index)
        self._log(f"  Mapped {len(index.mappings)} lines")
        return index

    def _save(self, index: MappingIndex):
        try:
            self.mappings.save(index)
        except CacheError as e:
            self._warn(f"  [mapping] {e}; line mappings kept for this run only")

    async def _examine(
        self,
        mapping: LineMapping,
        *,
        document_name: str,
        project_summary: str,
    ) -> tuple[Optional[Correction], bool]:
        """Returns (correction, answered); answered means the service gave a verdict."""
        summaries: list[str] = []
        for key in mapping.cache_keys:
            entry = self.store.get_entry(key)
            if entry is not None:
                summaries.append(f"{Path(entry.path).name}: {entry.summary}")
        if not summaries:
            return None, False

        prompt = line_correction_prompt(
            document_name=document_name,
            line_number=mapping.line_number,
            line_text=mapping.line_text,
            code_summaries=summaries,
            project_summary=project_summary,
        )
        try:
            response = await call_with_retry(
                self.retry,
                self.service.propose_line_correction,
                prompt,
                label=f"line {mapping.line_number}",
                log=self._warn,
            )
        except ServiceError as e:
            self._warn(f"  [line {mapping.line_number}] no verdict: {e}")
            return None, False

        if response == NO_CHANGE or response == mapping.line_text.strip():
            return None, True
        return Correction(
            line_number=mapping.line_number,
            current_text=mapping.line_text,
            suggested_text=response,
            reason="Content outdated based on current code",
            affected_keys=list(mapping.cache_keys),
        ), True

    async def validate(self, document_path: Path, project_root: Path, project_summary: str) -> list[Correction]:
        project_root = project_root.resolve()
        if not document_path.exists():
            project_name = project_root.name or "Project"
            return [Correction(
                line_number=0,
                current_text="",
                suggested_text=f"# {project_name}\n\n{project_summary}",
                reason=f"{document_name(document_path)} does not exist",
            )]

        text = read_document(document_path)
        index = self.load_index(text, project_root)

        corrections: list[Correction] = []
        examined = 0
        dirty = False
        for mapping in index.mappings:
            marker = self._current_marker(mapping)
            if marker is not None and marker == mapping.last_validated:
                continue
            examined += 1
            correction, answered = await self._examine(
                mapping,
                document_name=document_name(document_path),
                project_summary=project_summary,
            )
            if correction is not None:
                corrections.append(correction)
            if answered and marker is not None:
                mapping.last_validated = marker
                dirty = True

        if dirty:
            self._save(index)
        self._log(
            f"  Checked {examined}/{len(index.mappings)} mapped lines, "
            f"{len(corrections)} corrections"
        )
        return corrections


def document_name(path: Path) -> str:
    return path.name or "document"


def format_corrections(corrections: list[Correction], name: str = "README.md") -> str:
    if not corrections:
        return f"✅ {name} is up-to-date with the current codebase"

    rule = "━" * 70
    lines = [f"📋 {name} Validation Results", rule]
    for c in corrections:
        lines.append("")
        lines.append(f"⚠️  Line {c.line_number}: {c.reason}")
        lines.append(f"   Current: \"{c.current_text}\"")
        lines.append(f"   Suggested: \"{c.suggested_text}\"")
        if c.affected_keys:
            lines.append("   Affected files:")
            lines.extend(f"     - {key}" for key in c.affected_keys)
    lines += ["", rule, f"💡 {len(corrections)} lines need updating"]
    return "\n".join(lines)
