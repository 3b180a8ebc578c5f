"""Ignore/exclude pattern matching with tiered architecture.

Tiered Architecture:
- HARDCODED_DIRS: Always excluded, cannot be overridden (VCS, .codeweave)
- DEFAULT_PRUNABLE_DIRS: Excluded by default, user can opt-in via !pattern
- Configured + .cwvignore patterns: gitignore-style globs with negation
"""

from __future__ import annotations

import fnmatch
from pathlib import Path, PurePosixPath

import structlog

from codeweave.core.excludes import (
    DEFAULT_PRUNABLE_DIRS,
    HARDCODED_DIRS,
    PRUNABLE_DIRS,
    is_hardcoded_dir,
)

log = structlog.get_logger(__name__)

__all__ = [
    "PRUNABLE_DIRS",
    "HARDCODED_DIRS",
    "DEFAULT_PRUNABLE_DIRS",
    "IgnoreChecker",
]


class IgnoreChecker:
    """Checks if paths should be ignored based on tiered patterns.

    Pattern syntax:
    - Standard glob patterns (fnmatch, ``*`` also crosses ``/``)
    - Patterns without ``/`` also match the basename at any depth
    - Directory patterns ending in / match contents
    - Negation with ! prefix (e.g., !vendor/ to opt-in vendor directory)
    """

    IGNORE_FILE_NAME = ".cwvignore"

    def __init__(self, root: Path, extra_patterns: list[str] | None = None) -> None:
        self._root = root
        self._patterns: list[str] = []
        self._negated_dirs: set[str] = set()
        if extra_patterns:
            for pattern in extra_patterns:
                self._add_pattern(pattern)
        self._load_ignore_files(root)

    @property
    def patterns(self) -> list[str]:
        return list(self._patterns)

    @property
    def negated_dirs(self) -> frozenset[str]:
        """Directory names opted back in with ``!name`` at the root."""
        return frozenset(self._negated_dirs)

    def should_prune_dir(self, dirname: str) -> bool:
        """Check if a directory should be pruned during traversal.

        Example:
            # User adds "!vendor/" to .cwvignore
            checker.should_prune_dir("vendor")  # Returns False (opted-in)
            checker.should_prune_dir(".git")    # Returns True (hardcoded)
            checker.should_prune_dir("node_modules")  # Returns True (default)
        """
        if is_hardcoded_dir(dirname):
            return True
        if dirname in DEFAULT_PRUNABLE_DIRS:
            return dirname not in self._negated_dirs
        return False

    def _load_ignore_files(self, root: Path) -> None:
        for dirpath, dirnames, filenames in root.walk():
            dirnames[:] = [d for d in dirnames if not self.should_prune_dir(d)]
            if self.IGNORE_FILE_NAME not in filenames:
                continue
            prefix = "" if dirpath == root else dirpath.relative_to(root).as_posix()
            self._load_ignore_file(dirpath / self.IGNORE_FILE_NAME, prefix=prefix)

    def _load_ignore_file(self, path: Path, prefix: str = "") -> None:
        try:
            content = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            log.warning("ignore_file.unreadable", path=str(path), exc_info=True)
            return
        for line in content.splitlines():
            self._add_pattern(line, prefix=prefix)

    def _add_pattern(self, raw: str, prefix: str = "") -> None:
        line = raw.strip()
        if not line or line.startswith("#"):
            return

        is_negation = line.startswith("!")
        if is_negation:
            line = line[1:]

        # Track negated directory names for pruning override
        if is_negation and not prefix:
            dir_name = line.rstrip("/")
            if dir_name and "/" not in dir_name and "*" not in dir_name:
                self._negated_dirs.add(dir_name)

        line = line.lstrip("/")
        pattern = f"{line}**" if line.endswith("/") else line
        if prefix:
            pattern = f"{prefix}/{pattern}"
        self._patterns.append(f"!{pattern}" if is_negation else pattern)

    @staticmethod
    def _matches(rel: PurePosixPath, pattern: str) -> bool:
        rel_str = rel.as_posix()
        if fnmatch.fnmatch(rel_str, pattern):
            return True
        if "/" not in pattern.rstrip("*") and fnmatch.fnmatch(rel.name, pattern):
            return True
        return any(fnmatch.fnmatch(parent.as_posix(), pattern) for parent in rel.parents if str(parent) != ".")

    def is_excluded_rel(self, rel_path: str) -> bool:
        """True if a root-relative path is ignored. Later patterns win."""
        rel = PurePosixPath(rel_path.replace("\\", "/"))
        if any(self.should_prune_dir(part) for part in rel.parts[:-1]):
            return True

        excluded = False
        for pattern in self._patterns:
            if pattern.startswith("!"):
                if excluded and self._matches(rel, pattern[1:]):
                    excluded = False
            elif not excluded and self._matches(rel, pattern):
                excluded = True
        return excluded

    def should_ignore(self, path: Path) -> bool:
        try:
            rel_path = path.relative_to(self._root)
        except ValueError:
            return True
        return self.is_excluded_rel(rel_path.as_posix())
