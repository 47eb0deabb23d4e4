"""
cache.py — Content-addressed summary store, one durable record per node.

An entry is only served when its stored fingerprint equals the node's
current fingerprint, so re-runs only re-summarize nodes whose content (or
whose descendants' content) actually changed. The document line mapping
index lives next to the entries but is persisted and cleared separately.
"""

from __future__ import annotations
from dataclasses import asdict, dataclass, field
import hashlib
import json
import os
from pathlib import Path
import sys
import time
from typing import Optional

from errors import CacheError


CACHE_VERSION = "1"
ENTRIES_DIRNAME = "entries"
MAPPING_FILENAME = "document_mapping.json"


def _node_key(identity: str | Path) -> str:
    return Path(identity).as_posix()


def _atomic_write(path: Path, payload: str) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    with open(tmp, "w", encoding="utf-8") as f:
        f.write(payload)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp, path)


def _warn(msg: str) -> None:
    print(msg, file=sys.stderr, flush=True)


# ---------------------------------------------------------------------------
# Per-node entries
# ---------------------------------------------------------------------------

@dataclass
class CacheEntry:
    path: str
    fingerprint: str
    summary: str
    timestamp: float
    is_directory: bool = False


@dataclass
class CacheStats:
    entry_count: int
    total_bytes: int


class SummaryStore:
    def __init__(self, cache_dir: Path, *, verbose: bool = False):
        self.cache_dir = cache_dir
        self.entries_dir = cache_dir / ENTRIES_DIRNAME
        self.verbose = verbose

    def _log(self, msg: str):
        if self.verbose:
            print(msg, flush=True)

    def ensure_initialized(self, project_root: Optional[Path] = None) -> None:
        try:
            self.entries_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Failed to create cache directory {self.cache_dir}: {e}") from e
        if project_root is not None:
            ensure_gitignore(project_root, self.cache_dir)

    def entry_path(self, identity: str | Path) -> Path:
        digest = hashlib.sha256(_node_key(identity).encode("utf-8")).hexdigest()[:32]
        return self.entries_dir / f"{digest}.json"

    def _read(self, path: Path) -> Optional[CacheEntry]:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            _warn(f"  [cache] unreadable entry {path.name}: {e}; treating as miss")
            return None

        try:
            if raw.get("version") != CACHE_VERSION:
                return None
            return CacheEntry(
                path=str(raw["path"]),
                fingerprint=str(raw["fingerprint"]),
                summary=str(raw["summary"]),
                timestamp=float(raw["timestamp"]),
                is_directory=bool(raw.get("is_directory", False)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            _warn(f"  [cache] malformed entry {path.name}: {e}; treating as miss")
            return None

    def get_entry(self, identity: str | Path) -> Optional[CacheEntry]:
        entry = self._read(self.entry_path(identity))
        if entry is None or entry.path != _node_key(identity):
            return None
        return entry

    def get(self, identity: str | Path, fingerprint: str) -> Optional[str]:
        entry = self.get_entry(identity)
        if entry is None:
            self._log(f"  [cache] miss (not found): {identity}")
            return None
        if entry.fingerprint != fingerprint:
            self._log(f"  [cache] miss (fingerprint changed): {identity}")
            return None
        self._log(f"  [cache] hit: {identity}")
        return entry.summary

    def put(
        self,
        identity: str | Path,
        fingerprint: str,
        summary: str,
        *,
        is_directory: bool = False,
    ) -> None:
        self.entries_dir.mkdir(parents=True, exist_ok=True)
        record = asdict(CacheEntry(
            path=_node_key(identity),
            fingerprint=fingerprint,
            summary=summary,
            timestamp=time.time(),
            is_directory=is_directory,
        ))
        record["version"] = CACHE_VERSION
        try:
            _atomic_write(self.entry_path(identity), json.dumps(record, indent=2))
        except OSError as e:
            raise CacheError(f"Failed to write cache entry for {identity}: {e}") from e

    def invalidate(self, identity: str | Path) -> None:
        try:
            self.entry_path(identity).unlink()
            self._log(f"  [cache] invalidated: {identity}")
        except FileNotFoundError:
            pass

    def _entry_files(self) -> list[Path]:
        if not self.entries_dir.is_dir():
            return []
        return sorted(self.entries_dir.glob("*.json"))

    def entries(self) -> list[CacheEntry]:
        found = [e for e in (self._read(p) for p in self._entry_files()) if e is not None]
        return sorted(found, key=lambda e: e.path)

    def clear(self) -> None:
        try:
            if self.entries_dir.is_dir():
                for p in self.entries_dir.iterdir():
                    p.unlink()
                self.entries_dir.rmdir()
            if self.cache_dir.exists() and not any(self.cache_dir.iterdir()):
                self.cache_dir.rmdir()
        except OSError as e:
            raise CacheError(f"Failed to remove cache directory {self.cache_dir}: {e}") from e
        self._log(f"  [cache] cleared {self.cache_dir}")

    def cleanup_older_than(self, max_age_seconds: float) -> int:
        cutoff = time.time() - max_age_seconds
        removed = 0
        for p in self._entry_files():
            entry = self._read(p)
            if entry is not None and entry.timestamp < cutoff:
                p.unlink(missing_ok=True)
                removed += 1
        if removed:
            self._log(f"  [cache] removed {removed} entries older than {max_age_seconds:.0f}s")
        return removed

    def stats(self) -> CacheStats:
        files = self._entry_files()
        total = 0
        for p in files:
            try:
                total += p.stat().st_size
            except OSError:
                pass
        return CacheStats(entry_count=len(files), total_bytes=total)


def ensure_gitignore(project_root: Path, cache_dir: Path) -> bool:
    """Add the cache directory to the project's .gitignore. Returns True if written."""
    try:
        rel = cache_dir.resolve().relative_to(project_root.resolve())
    except ValueError:
        return False
    entry = f"{rel.as_posix()}/"
    gitignore = project_root / ".gitignore"
    existing = gitignore.read_text(encoding="utf-8") if gitignore.exists() else ""
    if entry in existing.splitlines() or rel.as_posix() in existing.splitlines():
        return False
    if existing and not existing.endswith("\n"):
        existing += "\n"
    gitignore.write_text(existing + entry + "\n", encoding="utf-8")
    return True


# ---------------------------------------------------------------------------
# Document line mappings
# ---------------------------------------------------------------------------

@dataclass
class LineMapping:
    line_number: int
    line_text: str
    cache_keys: list[str]
    last_validated: Optional[str] = None


@dataclass
class MappingIndex:
    document_fingerprint: Optional[str] = None
    mappings: list[LineMapping] = field(default_factory=list)


class DocumentMappingStore:
    def __init__(self, cache_dir: Path):
        self.cache_dir = cache_dir
        self.path = cache_dir / MAPPING_FILENAME

    def load(self) -> MappingIndex:
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return MappingIndex()
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            _warn(f"  [mapping] unreadable index {self.path}: {e}; rebuilding")
            return MappingIndex()

        try:
            return MappingIndex(
                document_fingerprint=raw.get("document_fingerprint"),
                mappings=[
                    LineMapping(
                        line_number=int(m["line_number"]),
                        line_text=str(m["line_text"]),
                        cache_keys=[str(k) for k in m["cache_keys"]],
                        last_validated=m.get("last_validated"),
                    )
                    for m in raw.get("mappings", [])
                ],
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            _warn(f"  [mapping] malformed index {self.path}: {e}; rebuilding")
            return MappingIndex()

    def save(self, index: MappingIndex) -> Path:
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        try:
            _atomic_write(self.path, json.dumps(asdict(index), indent=2))
        except OSError as e:
            raise CacheError(f"Failed to write mapping index {self.path}: {e}") from e
        return self.path

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
