"""Git operations for git-backup, run through the git executable."""

import logging
import re
import subprocess
from pathlib import Path
from typing import List, Optional

from .config import AppConfig

_CREDENTIALS_RE = re.compile(r"(https?://)[^/@\s]+@")


class GitError(Exception):
    """A git command failed."""


def mask_credentials(text: str) -> str:
    """Hide user:token parts of URLs before they reach the logs."""
    return _CREDENTIALS_RE.sub(r"\1***@", text)


class GitManager:
    """Handles git operations inside the local backup clone."""

    def __init__(
        self,
        config: AppConfig,
        repo_path: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.repo_path = Path(repo_path or config.repo_path)
        self.logger = logger or logging.getLogger(__name__)

    def _run(
        self, args: List[str], cwd: Optional[Path] = None, timeout: int = 300
    ) -> subprocess.CompletedProcess:
        cmd = ["git", *args]
        self.logger.debug(f"Running git command: {mask_credentials(' '.join(cmd))}")
        return subprocess.run(
            cmd,
            cwd=str(cwd or self.repo_path),
            capture_output=True,
            text=True,
            timeout=timeout,
        )

    def _check(
        self, args: List[str], action: str, cwd: Optional[Path] = None, timeout: int = 300
    ) -> str:
        """Run a git command and raise GitError unless it succeeds."""
        try:
            result = self._run(args, cwd=cwd, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise GitError(f"Error {action}: git {args[0]} timed out")
        except (FileNotFoundError, subprocess.SubprocessError) as e:
            raise GitError(f"Error {action}: {e}")

        if result.returncode != 0:
            output = mask_credentials((result.stderr or result.stdout).strip())
            raise GitError(f"Error {action}: {output}")
        return result.stdout

    def is_git_repo(self) -> bool:
        """Check if the repo path is inside a git work tree."""
        if not self.repo_path.is_dir():
            return False
        try:
            result = self._run(["rev-parse", "--is-inside-work-tree"], timeout=30)
            return result.returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError):
            return False

    def is_dirty(self) -> bool:
        """Check for uncommitted changes."""
        output = self._check(["status", "--porcelain"], "checking git status")
        return bool(output.strip())

    def init_repo(self) -> None:
        """Initialize a new repository at the repo path."""
        if self.is_git_repo():
            self.logger.info("Git repository already initialized.")
            return

        self.logger.info(f"Initializing Git repository in {self.repo_path}")
        self.repo_path.mkdir(parents=True, exist_ok=True)
        self._check(["init"], "initializing repo")

    def clone_repo(self) -> None:
        """Clone the configured remote into the repo path."""
        self.logger.info(f"Cloning repository: {self.config.remote_url}")
        self.repo_path.parent.mkdir(parents=True, exist_ok=True)
        self._check(
            ["clone", self.config.authenticated_remote_url, str(self.repo_path)],
            "cloning repo",
            cwd=self.repo_path.parent,
            timeout=3600,
        )

    def has_remote_origin(self) -> bool:
        try:
            return self._run(["remote", "get-url", "origin"], timeout=30).returncode == 0
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError):
            return False

    def get_remote_origin_url(self) -> str:
        return self._check(["remote", "get-url", "origin"], "getting remote origin URL").strip()

    def set_remote_origin(self) -> None:
        """Point 'origin' at the configured remote, adding or updating it."""
        url = self.config.authenticated_remote_url
        self.logger.info(f"Setting remote origin to: {self.config.remote_url}")

        try:
            self._check(["remote", "add", "origin", url], "adding remote origin")
        except GitError as e:
            if "already exists" not in str(e).lower():
                raise
            self.logger.info("Remote 'origin' already exists, updating its URL.")
            self._check(["remote", "set-url", "origin", url], "setting remote origin URL")

    def ensure_repo(self) -> None:
        """
        Make sure the repo path holds a clone of the configured remote.

        Clones when the path is not a repository yet, falling back to
        init + origin when the clone fails (e.g. an empty remote).
        """
        if self.is_git_repo():
            self.logger.info(f"Using existing Git repository at {self.repo_path}")
            if not self.has_remote_origin():
                self.set_remote_origin()
            return

        try:
            self.clone_repo()
        except GitError as e:
            self.logger.warning(f"Failed to clone repo, initializing new one: {e}")
            self.init_repo()
            self.set_remote_origin()

    def add_all(self) -> None:
        """Stage every change in the work tree."""
        self.logger.info("Adding files to Git...")
        self._check(["add", "--all"], "adding files")

    def commit(self, message: str) -> str:
        self.logger.info("Committing changes...")
        output = self._check(["commit", "-m", message], "committing")
        self.logger.debug(f"Changes committed: {output.strip()}")
        return output

    def push(self) -> None:
        """Push HEAD to origin, refreshing the token URL for pat auth."""
        self.logger.info("Pushing to remote...")

        if self.config.auth_method == "pat" and self.config.remote_url.startswith("https://"):
            try:
                current_url = self.get_remote_origin_url()
            except GitError:
                current_url = ""
            if current_url != self.config.authenticated_remote_url:
                self.set_remote_origin()

        self._check(
            ["push", "--set-upstream", "origin", "HEAD"], "pushing", timeout=3600
        )
        self.logger.info("Pushed to remote.")
