"""File discovery and reading for indexing.

``list_files`` walks a repository with directory pruning and returns
root-relative POSIX paths whose suffix is in the allowlist and which no
ignore pattern excludes. ``read_file`` returns UTF-8 text with size and
mtime. Unreadable directories and files are logged and skipped.
"""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass
from pathlib import Path

import structlog

from codeweave.index._internal.ignore import IgnoreChecker

log = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FileContent:
    """Decoded file text plus the stat fields indexing needs."""

    path: str
    content: str
    size: int
    mtime_ms: int

    @property
    def content_hash(self) -> str:
        return content_hash(self.content)


def content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8", errors="surrogatepass")).hexdigest()


def _suffix(filename: str) -> str:
    dot = filename.rfind(".")
    return filename[dot:].lower() if dot > 0 else ""


def list_files(
    root: Path,
    extensions: list[str] | set[str] | frozenset[str],
    ignore_patterns: list[str] | None = None,
    *,
    checker: IgnoreChecker | None = None,
) -> list[str]:
    """Walk ``root`` and return sorted root-relative POSIX paths to index."""
    allow = {e.lower() for e in extensions}
    checker = checker or IgnoreChecker(root, extra_patterns=ignore_patterns)
    results: list[str] = []

    def _on_error(err: OSError) -> None:
        log.warning("discovery.unreadable_dir", path=err.filename, error=str(err))

    for dirpath, dirnames, filenames in os.walk(root, onerror=_on_error):
        dirnames[:] = sorted(d for d in dirnames if not checker.should_prune_dir(d))
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        for filename in filenames:
            if _suffix(filename) not in allow:
                continue
            rel_path = filename if rel_dir == "." else f"{rel_dir}/{filename}"
            if checker.is_excluded_rel(rel_path):
                continue
            results.append(rel_path)

    results.sort()
    log.debug("discovery.listed", root=str(root), count=len(results))
    return results


def file_size(path: Path) -> int | None:
    """Size in bytes, or None if the file cannot be stat'ed."""
    try:
        return path.stat().st_size
    except OSError:
        log.warning("discovery.stat_failed", path=str(path), exc_info=True)
        return None


def read_file(path: Path, rel_path: str | None = None) -> FileContent | None:
    """Read one file as UTF-8. Returns None (logged) when unreadable or not text."""
    try:
        stat = path.stat()
        raw = path.read_bytes()
    except OSError:
        log.warning("discovery.read_failed", path=str(path), exc_info=True)
        return None
    try:
        content = raw.decode("utf-8")
    except UnicodeDecodeError:
        log.info("discovery.not_utf8", path=str(path))
        return None
    return FileContent(
        path=rel_path or path.as_posix(),
        content=content,
        size=stat.st_size,
        mtime_ms=int(stat.st_mtime * 1000),
    )
