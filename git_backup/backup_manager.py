"""Core backup pipeline: scan, write .gitignore, mirror, commit and push."""

import logging
import os
import shutil
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import AppConfig, get_config_path
from .git_manager import GitError, GitManager
from .scanner import (
    ScanResult,
    TreeScanner,
    generate_gitignore_content,
    write_gitignore_file,
)


class BackupResult:
    """Result of a backup run."""

    def __init__(
        self,
        success: bool,
        files_included: int = 0,
        patterns_excluded: int = 0,
        bytes_copied: int = 0,
        committed: bool = False,
        commit_message: str = "",
        error_message: str = "",
        execution_time: float = 0.0,
        dry_run: bool = False,
    ):
        self.success = success
        self.files_included = files_included
        self.patterns_excluded = patterns_excluded
        self.bytes_copied = bytes_copied
        self.committed = committed
        self.commit_message = commit_message
        self.error_message = error_message
        self.execution_time = execution_time
        self.dry_run = dry_run


def render_commit_message(template: str, timestamp: datetime) -> str:
    """Format the commit message template with the run timestamp."""
    try:
        return template.format(timestamp=timestamp)
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Failed to render commit message template: {e}")


def format_size(size_bytes: int) -> str:
    """Format byte size in human-readable format."""
    if size_bytes == 0:
        return "0 B"

    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size_bytes < 1024.0:
            if unit == 'B':
                return f"{size_bytes} {unit}"
            else:
                return f"{size_bytes:.1f} {unit}"
        size_bytes /= 1024.0

    return f"{size_bytes:.1f} PB"


def repo_relative_path(file_path: str, include_paths: Sequence[str]) -> Path:
    """
    Compute where a scanned file lives inside the backup repository.

    The path is kept relative to the parent of the include path it was
    found under, so ``~/.config/nvim/init.lua`` scanned from
    ``~/.config/nvim`` lands at ``nvim/init.lua``.

    Args:
        file_path: Path reported by the scanner
        include_paths: Configured include paths

    Returns:
        Relative destination path inside the repository
    """
    abs_file = os.path.abspath(file_path)
    best_root = None
    for include_path in include_paths:
        root = os.path.abspath(include_path)
        if abs_file == root or abs_file.startswith(root.rstrip(os.sep) + os.sep):
            if best_root is None or len(root) > len(best_root):
                best_root = root

    base = os.path.dirname(best_root) if best_root else os.path.dirname(abs_file)
    return Path(os.path.relpath(abs_file, base))


class BackupManager:
    """Main backup management class."""

    def __init__(
        self,
        config: AppConfig,
        dry_run: bool = False,
        scanner: Optional[TreeScanner] = None,
        git: Optional[GitManager] = None,
        logger: Optional[logging.Logger] = None,
        config_path: Optional[str] = None,
    ):
        self.config = config
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger(__name__)
        self.repo_path = Path(config.repo_path)
        self.config_path = Path(config_path).expanduser() if config_path else get_config_path()
        self.scanner = scanner or TreeScanner(
            logger=self.logger, skip_paths=self.own_paths()
        )
        self.git = git or GitManager(config, logger=self.logger)

    def own_paths(self) -> List[Path]:
        """Files git-backup writes itself, kept out of every scan."""
        return [self.repo_path, self.config_path, Path(self.config.log_file)]

    def copy_to_repo(self, files: List[str]) -> Tuple[int, int]:
        """
        Mirror scanned files into the repository, preserving structure.

        Returns:
            Tuple of (files_copied, bytes_copied)
        """
        files_copied = 0
        bytes_copied = 0

        for file_path in files:
            rel_path = repo_relative_path(file_path, self.config.include_paths)
            dest_file = self.repo_path / rel_path

            try:
                dest_file.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(file_path, dest_file)
            except (OSError, shutil.Error) as e:
                self.logger.error(f"Failed to copy file {file_path}: {e}")
                continue

            files_copied += 1
            bytes_copied += dest_file.stat().st_size

        self.logger.info(f"Copied {files_copied} files ({format_size(bytes_copied)})")
        return files_copied, bytes_copied

    def _log_scan_summary(self, scan: ScanResult) -> None:
        counts = ", ".join(
            f"{outcome.value}={count}"
            for outcome, count in scan.outcome_counts.items()
            if count
        )
        self.logger.info(f"Found {len(scan.files_to_include)} files to include.")
        self.logger.debug(f"Scan outcomes: {counts or 'nothing visited'}")

    def run_backup(self, now: Optional[datetime] = None) -> BackupResult:
        """Run one backup: scan, .gitignore, mirror, commit and push."""
        start_time = datetime.now()
        now = now or start_time
        mode = "Dry run" if self.dry_run else "Backup"
        self.logger.info(f"Performing backup of {len(self.config.include_paths)} include paths")

        try:
            commit_message = render_commit_message(
                self.config.commit_message_template, now
            )

            if not self.dry_run:
                self.git.ensure_repo()
                if self.git.is_dirty():
                    self.logger.warning(
                        "Git repository is dirty. Uncommitted changes will be "
                        "included in this backup commit."
                    )

            scan = self.scanner.scan(self.config.include_paths)
            self._log_scan_summary(scan)

            if scan.patterns_to_exclude:
                self.logger.info(
                    f"Found {len(scan.patterns_to_exclude)} patterns to exclude. "
                    "Generating .gitignore..."
                )
                gitignore_content = generate_gitignore_content(scan.patterns_to_exclude)
                if self.dry_run:
                    self.logger.info("Dry run: Skipping .gitignore generation.")
                    self.logger.debug(f"Generated .gitignore:\n{gitignore_content}")
                else:
                    self.repo_path.mkdir(parents=True, exist_ok=True)
                    path = write_gitignore_file(self.repo_path, gitignore_content)
                    self.logger.info(f".gitignore written to {path}")

            bytes_copied = 0
            committed = False
            if self.dry_run:
                self.logger.info("Dry run: Skipping copying and adding files to git.")
                self.logger.info(
                    f"Dry run: Skipping commit. Commit message would be: {commit_message}"
                )
                self.logger.info("Dry run: Skipping push to remote.")
            else:
                _, bytes_copied = self.copy_to_repo(scan.files_to_include)
                self.git.add_all()

                if self.git.is_dirty():
                    self.git.commit(commit_message)
                    committed = True
                    self.git.push()
                else:
                    self.logger.info("No changes to commit, skipping commit and push.")

            execution_time = (datetime.now() - start_time).total_seconds()
            self.logger.info(f"{mode} completed in {execution_time:.2f}s")

            return BackupResult(
                success=True,
                files_included=len(scan.files_to_include),
                patterns_excluded=len(scan.patterns_to_exclude),
                bytes_copied=bytes_copied,
                committed=committed,
                commit_message=commit_message,
                execution_time=execution_time,
                dry_run=self.dry_run,
            )

        except (GitError, OSError, ValueError) as e:
            execution_time = (datetime.now() - start_time).total_seconds()
            error_message = f"{mode} failed: {e}"
            self.logger.error(error_message)

            return BackupResult(
                success=False,
                error_message=error_message,
                execution_time=execution_time,
                dry_run=self.dry_run,
            )
