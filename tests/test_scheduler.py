"""
Tests for cron spec mapping and crontab installation.
"""

import subprocess
from datetime import datetime
from unittest.mock import patch

import pytest

from git_backup.scheduler import (
    CRON_JOB_MARKER,
    CronScheduler,
    SchedulerError,
    frequency_to_cron_spec,
    next_run_time,
    remove_existing_job,
)


def completed(returncode=0, stdout="", stderr=""):
    return subprocess.CompletedProcess(
        args=[], returncode=returncode, stdout=stdout, stderr=stderr
    )


class TestFrequencyToCronSpec:
    @pytest.mark.parametrize(
        "frequency,expected",
        [
            ("hourly", "0 * * * *"),
            ("daily", "0 0 * * *"),
            ("weekly", "0 0 * * 0"),
            ("monthly", "0 0 1 * *"),
            ("every 5 minutes", "*/5 * * * *"),
            ("Every 30 Minutes", "*/30 * * * *"),
        ],
    )
    def test_named_frequencies(self, frequency, expected):
        assert frequency_to_cron_spec(frequency) == expected

    def test_custom_cron_passes_through(self):
        assert frequency_to_cron_spec("15 3 * * 1") == "15 3 * * 1"

    def test_unknown_frequency_raises(self):
        with pytest.raises(ValueError, match="Unsupported frequency"):
            frequency_to_cron_spec("twice a day")


class TestNextRunTime:
    def test_daily(self):
        now = datetime(2024, 5, 10, 14, 30)
        assert next_run_time("daily", now) == datetime(2024, 5, 11, 0, 0)

    def test_every_15_minutes(self):
        now = datetime(2024, 5, 10, 14, 31)
        assert next_run_time("every 15 minutes", now) == datetime(2024, 5, 10, 14, 45)

    def test_defaults_to_now(self):
        before = datetime.now()
        assert next_run_time("hourly") > before


class TestRemoveExistingJob:
    def test_keeps_unrelated_lines(self):
        crontab = (
            "MAILTO=me@example.com\n"
            f"0 0 * * * /usr/bin/git-backup --run-now {CRON_JOB_MARKER}\n"
            "5 4 * * * /usr/local/bin/other\n"
        )
        assert remove_existing_job(crontab) == (
            "MAILTO=me@example.com\n5 4 * * * /usr/local/bin/other"
        )


class TestCronScheduler:
    """Test crontab reading and writing via subprocess."""

    def test_install_into_empty_crontab(self):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            if cmd == ["crontab", "-l"]:
                return completed(1, stderr="no crontab for alice")
            return completed(0)

        with patch("git_backup.scheduler.subprocess.run", side_effect=fake_run):
            entry = CronScheduler().install_job("hourly", "/usr/bin/git-backup")

        assert entry == f"0 * * * * /usr/bin/git-backup --run-now {CRON_JOB_MARKER}"
        written = calls[1][1]["input"]
        assert written == entry + "\n"

    def test_install_replaces_previous_job(self):
        existing = (
            "5 4 * * * /usr/local/bin/other\n"
            f"0 0 * * * /old/git-backup --run-now {CRON_JOB_MARKER}\n"
        )
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append((cmd, kwargs))
            if cmd == ["crontab", "-l"]:
                return completed(0, stdout=existing)
            return completed(0)

        with patch("git_backup.scheduler.subprocess.run", side_effect=fake_run):
            CronScheduler().install_job("*/15 * * * *", "/new/git-backup")

        written = calls[1][1]["input"]
        assert written == (
            "5 4 * * * /usr/local/bin/other\n"
            f"*/15 * * * * /new/git-backup --run-now {CRON_JOB_MARKER}\n"
        )
        assert "/old/git-backup" not in written

    def test_read_failure_raises(self):
        with patch(
            "git_backup.scheduler.subprocess.run",
            return_value=completed(1, stderr="permission denied"),
        ):
            with pytest.raises(SchedulerError, match="reading crontab"):
                CronScheduler().get_crontab()

    def test_write_failure_raises(self):
        with patch(
            "git_backup.scheduler.subprocess.run",
            return_value=completed(1, stderr="bad minute"),
        ):
            with pytest.raises(SchedulerError, match="writing crontab"):
                CronScheduler().write_crontab("garbage\n")

    def test_missing_crontab_binary_raises(self):
        with patch(
            "git_backup.scheduler.subprocess.run", side_effect=FileNotFoundError("crontab")
        ):
            with pytest.raises(SchedulerError):
                CronScheduler().get_crontab()

    def test_invalid_frequency_raises(self):
        with pytest.raises(SchedulerError, match="Invalid backup frequency"):
            CronScheduler().install_job("sometimes", "/usr/bin/git-backup")
