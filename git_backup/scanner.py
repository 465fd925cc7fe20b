"""File scanning and .gitignore generation for git-backup."""

from __future__ import annotations

import logging
import os
import stat
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

# 100 MiB
MAX_FILE_SIZE = 100 * 1024 * 1024

GITIGNORE_HEADER = (
    "# git-backup generated .gitignore\n"
    "# Files and directories automatically excluded by git-backup\n"
)

DEFAULT_EXCLUDE_PATTERNS: Tuple[str, ...] = (
    # OS junk
    ".DS_Store",
    "Thumbs.db",
    # Logs, temp, backup and swap files
    "*.log",
    "*.tmp",
    "*.bak",
    "*.swp",
    "*.swo",
    # Compiled binaries and archives
    "*.exe",
    "*.dll",
    "*.so",
    "*.dylib",
    "*.o",
    "*.obj",
    "*.pyc",
    "*.class",
    "*.jar",
    "*.war",
    "*.ear",
    "*.zip",
    "*.tar",
    "*.gz",
    "*.rar",
    "*.7z",
    "*.iso",
    "*.dmg",
    "*.bin",
    "*.dat",
    "*.db",
    "*.sqlite",
    "*.sql",
    # Design and office documents
    "*.psd",
    "*.ai",
    "*.eps",
    "*.pdf",
    "*.doc",
    "*.docx",
    "*.xls",
    "*.xlsx",
    "*.ppt",
    "*.pptx",
    "*.odt",
    "*.ods",
    "*.odp",
    # Media
    "*.mp3",
    "*.wav",
    "*.flac",
    "*.aac",
    "*.ogg",
    "*.wma",
    "*.mp4",
    "*.mkv",
    "*.avi",
    "*.mov",
    "*.wmv",
    "*.flv",
    "*.webm",
    "*.jpg",
    "*.jpeg",
    "*.png",
    "*.gif",
    "*.bmp",
    "*.tiff",
    "*.webp",
    "*.ico",
    "*.svg",
    # Build, dependency and tool directories
    "node_modules/",
    ".git/",
    ".vscode/",
    ".idea/",
    "__pycache__/",
    "build/",
    "dist/",
    "bin/",
    "obj/",
    "pkg/",
    "vendor/",
    "tmp/",
    "temp/",
    "cache/",
    "logs/",
    "output/",
    "report/",
    "target/",
    # Runtime and IDE project files
    "*.pid",
    "*.lock",
    "*.iml",
    "*.ipr",
    "*.iws",
)

PathLike = Union[str, "os.PathLike[str]"]


class WalkDecision(Enum):
    """Traversal control for a single walked entry."""

    DESCEND = "descend"
    SKIP_ENTRY = "skip_entry"
    SKIP_SUBTREE = "skip_subtree"


class EntryOutcome(Enum):
    """How a visited filesystem entry was classified."""

    INCLUDED = "included"
    EXCLUDED_BY_SIZE = "excluded_by_size"
    EXCLUDED_BY_PATTERN = "excluded_by_pattern"
    EXCLUDED_BY_DIRECTORY_RULE = "excluded_by_directory_rule"
    SKIPPED_ON_ERROR = "skipped_on_error"


@dataclass
class ScanResult:
    """Files to back up and the patterns that go into .gitignore."""

    files_to_include: List[str] = field(default_factory=list)
    patterns_to_exclude: List[str] = field(default_factory=list)
    outcome_counts: Dict[EntryOutcome, int] = field(
        default_factory=lambda: {outcome: 0 for outcome in EntryOutcome}
    )

    def record(self, outcome: EntryOutcome) -> None:
        self.outcome_counts[outcome] += 1

    @property
    def total_entries(self) -> int:
        """Number of classified entries."""
        return sum(self.outcome_counts.values())


class PatternMatcher:
    """Matches base names against a fixed list of exclude patterns."""

    def __init__(self, patterns: Iterable[str] = DEFAULT_EXCLUDE_PATTERNS):
        self.patterns: Tuple[str, ...] = tuple(patterns)
        self._directory_names = tuple(
            p[:-1] for p in self.patterns if p.endswith("/")
        )
        self._file_patterns = tuple(p for p in self.patterns if not p.endswith("/"))

    def matches_directory(self, name: str) -> bool:
        """Check a directory base name against the ``name/`` patterns."""
        return name in self._directory_names

    def matches_file(self, name: str) -> bool:
        """
        Check a file base name against the non-directory patterns.

        A pattern matches when the name starts with the pattern minus one
        trailing ``*`` or ends with the pattern minus one leading ``*``.
        Plain names therefore also match as prefixes and suffixes
        (``.DS_Store`` matches ``.DS_Store.old``).

        Args:
            name: Base name of the file

        Returns:
            True if any file pattern matches
        """
        for pattern in self._file_patterns:
            prefix = pattern[:-1] if pattern.endswith("*") else pattern
            suffix = pattern[1:] if pattern.startswith("*") else pattern
            if name.startswith(prefix) or name.endswith(suffix):
                return True
        return False


class TreeScanner:
    """Walks include paths and partitions entries into includes and excludes."""

    def __init__(
        self,
        matcher: Optional[PatternMatcher] = None,
        max_file_size: int = MAX_FILE_SIZE,
        logger: Optional[logging.Logger] = None,
        skip_paths: Iterable[PathLike] = (),
    ):
        self.matcher = matcher or PatternMatcher()
        self.max_file_size = max_file_size
        self.logger = logger or logging.getLogger(__name__)
        # Absolute paths never scanned, e.g. the backup's own clone
        self.skip_paths = frozenset(os.path.realpath(p) for p in skip_paths)

    def _is_skipped(self, path: str) -> bool:
        if self.skip_paths and os.path.realpath(path) in self.skip_paths:
            self.logger.info(f"Skipping {path}: owned by git-backup")
            return True
        return False

    def scan(self, include_paths: Sequence[PathLike]) -> ScanResult:
        """
        Scan include paths in order.

        Args:
            include_paths: Files or directories to back up

        Returns:
            ScanResult with included file paths and exclude patterns,
            both in traversal order
        """
        result = ScanResult()

        for include_path in include_paths:
            path = os.fspath(include_path)
            if self._is_skipped(path):
                continue
            try:
                stat_result = os.stat(path)
            except OSError as e:
                self.logger.warning(f"Path {path} not found, skipping: {e}")
                result.record(EntryOutcome.SKIPPED_ON_ERROR)
                continue

            if stat.S_ISDIR(stat_result.st_mode):
                self._walk(path, result)
            else:
                self._classify_file(path, stat_result.st_size, result)

        return result

    def _walk(self, directory: str, result: ScanResult) -> None:
        """Depth-first walk, entries in name order, pruning excluded dirs."""
        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            self.logger.error(f"Error walking path {directory}: {e}")
            result.record(EntryOutcome.SKIPPED_ON_ERROR)
            return

        for entry in entries:
            decision = self._visit(entry, result)
            if decision is WalkDecision.DESCEND:
                self._walk(entry.path, result)

    def _visit(self, entry: os.DirEntry, result: ScanResult) -> WalkDecision:
        """Classify one walked entry and decide how traversal continues."""
        if self._is_skipped(entry.path):
            return WalkDecision.SKIP_SUBTREE

        try:
            is_dir = entry.is_dir(follow_symlinks=False)
            size = 0 if is_dir else entry.stat(follow_symlinks=False).st_size
        except OSError as e:
            self.logger.error(f"Error walking path {entry.path}: {e}")
            result.record(EntryOutcome.SKIPPED_ON_ERROR)
            return WalkDecision.SKIP_ENTRY

        if is_dir:
            if self.matcher.matches_directory(entry.name):
                self.logger.debug(f"Pruning excluded directory {entry.path}")
                result.patterns_to_exclude.append(entry.name + "/")
                result.record(EntryOutcome.EXCLUDED_BY_DIRECTORY_RULE)
                return WalkDecision.SKIP_SUBTREE
            return WalkDecision.DESCEND

        self._classify_file(entry.path, size, result)
        return WalkDecision.SKIP_ENTRY

    def _classify_file(self, path: str, size: int, result: ScanResult) -> EntryOutcome:
        name = os.path.basename(path)

        if size > self.max_file_size:
            self.logger.warning(
                f"Skipping large file {path} ({size / 1024 / 1024:.2f} MB)"
            )
            result.patterns_to_exclude.append(name)
            outcome = EntryOutcome.EXCLUDED_BY_SIZE
        elif self.matcher.matches_file(name):
            self.logger.info(f"Skipping excluded file {path}")
            result.patterns_to_exclude.append(name)
            outcome = EntryOutcome.EXCLUDED_BY_PATTERN
        else:
            result.files_to_include.append(path)
            outcome = EntryOutcome.INCLUDED

        result.record(outcome)
        return outcome


def scan_files(
    include_paths: Sequence[PathLike], logger: Optional[logging.Logger] = None
) -> ScanResult:
    """Scan include paths with the default pattern catalog."""
    return TreeScanner(logger=logger).scan(include_paths)


def generate_gitignore_content(excluded_patterns: Iterable[str]) -> str:
    """Render exclude patterns as .gitignore text, one pattern per line."""
    lines = [GITIGNORE_HEADER, "\n"]
    lines.extend(f"{pattern}\n" for pattern in excluded_patterns)
    return "".join(lines)


def write_gitignore_file(repo_path: PathLike, content: str) -> Path:
    """Write .gitignore content to the root of the repository."""
    gitignore_path = Path(repo_path) / ".gitignore"
    gitignore_path.write_text(content, encoding="utf-8")
    return gitignore_path
