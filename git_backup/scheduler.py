"""Cron scheduling for recurring git-backup runs."""

import logging
import subprocess
from datetime import datetime
from typing import Optional

from croniter import croniter

from .config import NAMED_FREQUENCIES, is_valid_cron_spec

CRON_JOB_MARKER = "# git-backup job"


class SchedulerError(Exception):
    """Reading or writing the crontab failed."""


def frequency_to_cron_spec(frequency: str) -> str:
    """
    Convert a backup frequency into a cron expression.

    Args:
        frequency: Named frequency (hourly, daily, ...) or a cron expression

    Returns:
        5-field cron expression
    """
    named = NAMED_FREQUENCIES.get(frequency.strip().lower())
    if named:
        return named

    # Assume it's a custom cron spec if not recognized
    if is_valid_cron_spec(frequency):
        return frequency.strip()

    raise ValueError(f"Unsupported frequency format: {frequency}")


def next_run_time(frequency: str, current_time: Optional[datetime] = None) -> datetime:
    """
    Get the next time the backup is scheduled to run.

    Args:
        frequency: Backup frequency from the configuration
        current_time: Current time (defaults to now)

    Returns:
        Next scheduled run time
    """
    if current_time is None:
        current_time = datetime.now()

    cron = croniter(frequency_to_cron_spec(frequency), current_time)
    return cron.get_next(datetime)


def remove_existing_job(crontab_content: str) -> str:
    """Drop previously installed git-backup lines from crontab text."""
    lines = [
        line for line in crontab_content.splitlines() if CRON_JOB_MARKER not in line
    ]
    return "\n".join(lines)


class CronScheduler:
    """Installs the git-backup job in the user's crontab."""

    def __init__(self, logger: Optional[logging.Logger] = None):
        self.logger = logger or logging.getLogger(__name__)

    def get_crontab(self) -> str:
        """Read the current user's crontab, empty if none exists."""
        try:
            result = subprocess.run(
                ["crontab", "-l"], capture_output=True, text=True, timeout=30
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError) as e:
            raise SchedulerError(f"Error reading crontab: {e}")

        if result.returncode != 0:
            output = (result.stderr or result.stdout or "").lower()
            if "no crontab for" in output:
                return ""
            raise SchedulerError(f"Error reading crontab: {result.stderr.strip()}")
        return result.stdout

    def write_crontab(self, content: str) -> None:
        try:
            result = subprocess.run(
                ["crontab", "-"],
                input=content,
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (subprocess.TimeoutExpired, FileNotFoundError, subprocess.SubprocessError) as e:
            raise SchedulerError(f"Error writing crontab: {e}")

        if result.returncode != 0:
            raise SchedulerError(f"Error writing crontab: {result.stderr.strip()}")

    def install_job(self, frequency: str, command: str) -> str:
        """
        Install or replace the git-backup cron job.

        Args:
            frequency: Backup frequency from the configuration
            command: Command cron should execute (without flags)

        Returns:
            The crontab line that was installed
        """
        self.logger.info(
            f"Installing cron job for frequency: {frequency}, command: {command}"
        )
        try:
            cron_spec = frequency_to_cron_spec(frequency)
        except ValueError as e:
            raise SchedulerError(f"Invalid backup frequency: {e}")

        job_entry = f"{cron_spec} {command} --run-now {CRON_JOB_MARKER}"

        new_crontab = remove_existing_job(self.get_crontab()).rstrip("\n")
        if new_crontab:
            new_crontab += "\n"
        new_crontab += job_entry + "\n"

        self.logger.info(f"Writing new crontab entry: {job_entry}")
        self.write_crontab(new_crontab)
        return job_entry
