"""Configuration management for git-backup."""

from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import List, Optional

import yaml
from croniter import croniter
from pydantic import BaseModel, Field, field_validator, model_validator

CONFIG_DIR = Path("~/.config/git-backup")
CONFIG_FILE = "config.yaml"

NAMED_FREQUENCIES = {
    "hourly": "0 * * * *",
    "daily": "0 0 * * *",
    # Sunday at midnight
    "weekly": "0 0 * * 0",
    # First day of the month at midnight
    "monthly": "0 0 1 * *",
    "every 5 minutes": "*/5 * * * *",
    "every 15 minutes": "*/15 * * * *",
    "every 30 minutes": "*/30 * * * *",
}

DEFAULT_COMMIT_MESSAGE_TEMPLATE = "Automated backup on {timestamp:%Y-%m-%d %H:%M:%S}"


def is_valid_cron_spec(spec: str) -> bool:
    """Check that a string is a valid 5-field cron expression."""
    if len(spec.split()) != 5:
        return False
    try:
        croniter(spec.strip())
        return True
    except Exception:
        return False


def check_commit_message_template(template: str) -> None:
    """Raise ValueError unless the template renders with a timestamp."""
    try:
        template.format(timestamp=datetime.now())
    except (KeyError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid commit message template: {e}")


class AppConfig(BaseModel):
    """Main application configuration."""

    github_repo: str = Field(
        description="GitHub repository as 'user/repo' or a full remote URL"
    )
    auth_method: str = Field(
        default="ssh", description="Git authentication method: 'ssh' or 'pat'"
    )
    pat: Optional[str] = Field(
        default=None, description="GitHub Personal Access Token (pat auth only)"
    )
    include_paths: List[str] = Field(
        description="Files and directories to back up"
    )
    commit_message_template: str = Field(
        default=DEFAULT_COMMIT_MESSAGE_TEMPLATE,
        description="Commit message, formatted with a 'timestamp' datetime",
    )
    backup_frequency: str = Field(
        default="daily",
        description="Named frequency (hourly, daily, ...) or a cron expression",
    )
    repo_path: str = Field(
        default=str(CONFIG_DIR / "repo"),
        validate_default=True,
        description="Local clone the backup is committed from",
    )
    log_level: str = Field(
        default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )
    log_file: str = Field(
        default=str(CONFIG_DIR / "logs" / "git-backup.log"),
        validate_default=True,
        description="Path to the log file",
    )

    @field_validator("github_repo")
    @classmethod
    def validate_github_repo(cls, v: str) -> str:
        """Validate the repository is not empty."""
        v = v.strip()
        if not v:
            raise ValueError("github_repo cannot be empty")
        return v

    @field_validator("auth_method")
    @classmethod
    def validate_auth_method(cls, v: str) -> str:
        """Validate the authentication method."""
        v_lower = v.strip().lower()
        if v_lower not in {"ssh", "pat"}:
            raise ValueError("auth_method must be 'ssh' or 'pat'")
        return v_lower

    @field_validator("include_paths")
    @classmethod
    def validate_include_paths(cls, v: List[str]) -> List[str]:
        """Expand '~' and drop blank entries."""
        paths = [os.path.expanduser(p.strip()) for p in v if p.strip()]
        if not paths:
            raise ValueError("At least one include path is required")
        return paths

    @field_validator("commit_message_template")
    @classmethod
    def validate_commit_message_template(cls, v: str) -> str:
        """Validate the template renders with a timestamp."""
        check_commit_message_template(v)
        return v

    @field_validator("backup_frequency")
    @classmethod
    def validate_backup_frequency(cls, v: str) -> str:
        """Validate the frequency is a known name or a cron expression."""
        v = v.strip()
        if v.lower() in NAMED_FREQUENCIES:
            return v.lower()
        if not is_valid_cron_spec(v):
            raise ValueError(
                f"Unsupported backup frequency '{v}': use one of "
                f"{', '.join(NAMED_FREQUENCIES)} or a 5-field cron expression"
            )
        return v

    @field_validator("repo_path", "log_file")
    @classmethod
    def expand_user_path(cls, v: str) -> str:
        return os.path.expanduser(v)

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(valid_levels))}")
        return v_upper

    @model_validator(mode="after")
    def validate_pat_present(self) -> AppConfig:
        """Ensure a token is configured for pat authentication."""
        if self.auth_method == "pat" and not self.pat:
            raise ValueError("pat is required when auth_method is 'pat'")
        return self

    @property
    def remote_url(self) -> str:
        """Expand 'user/repo' shorthand into a GitHub remote URL."""
        repo = self.github_repo
        if "://" in repo or repo.startswith("git@"):
            return repo
        repo = repo.removesuffix(".git")
        if self.auth_method == "ssh":
            return f"git@github.com:{repo}.git"
        return f"https://github.com/{repo}.git"

    @property
    def authenticated_remote_url(self) -> str:
        """Remote URL with the token injected for pat auth over https."""
        url = self.remote_url
        if self.auth_method == "pat" and url.startswith("https://"):
            return f"https://oauth2:{self.pat}@{url[len('https://'):]}"
        return url


def get_config_path() -> Path:
    """Default location of the configuration file."""
    return CONFIG_DIR.expanduser() / CONFIG_FILE


def load_config(config_path: Optional[str] = None) -> AppConfig:
    """Load and validate configuration from YAML file."""
    config_file = Path(config_path) if config_path else get_config_path()

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)

        if config_data is None:
            raise ValueError("Configuration file is empty")

        return AppConfig(**config_data)

    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML format in config file: {e}")
    except Exception as e:
        raise ValueError(f"Configuration validation error: {e}")


def save_config(config: AppConfig, config_path: Optional[str] = None) -> Path:
    """Write configuration to YAML, readable by the owner only."""
    config_file = Path(config_path) if config_path else get_config_path()
    config_file.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

    data = config.model_dump(exclude_none=True)
    with open(config_file, "w", encoding="utf-8") as f:
        yaml.safe_dump(data, f, default_flow_style=False, sort_keys=False)
    os.chmod(config_file, 0o600)

    return config_file
