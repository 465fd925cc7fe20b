"""
Tests for the interactive setup wizard, driven by scripted answers.
"""

from pathlib import Path

import pytest

from git_backup.config import DEFAULT_COMMIT_MESSAGE_TEMPLATE, load_config
from git_backup.wizard import FREQUENCY_CHOICES, SetupWizard


def scripted(answers):
    """Return an input function that replays answers in order."""
    remaining = list(answers)

    def fake_input(prompt: str) -> str:
        if not remaining:
            raise AssertionError(f"Unexpected prompt: {prompt}")
        return remaining.pop(0)

    return fake_input


@pytest.fixture
def source(tmp_path: Path) -> Path:
    source = tmp_path / "notes"
    source.mkdir()
    (source / "todo.md").write_text("- backups")
    (source / "scratch.tmp").write_text("x")
    return source


def test_ssh_setup_with_custom_cron(tmp_path: Path, source: Path):
    output = []
    config_path = tmp_path / "config.yaml"
    wizard = SetupWizard(
        input_func=scripted(
            [
                "",  # empty repo is rejected
                "alice/notes",
                "1",  # SSH
                str(source),
                "",
                "y",
                str(FREQUENCY_CHOICES.index("custom cron") + 1),
                "not a cron",
                "0 3 * * *",
                "",  # accept default template
            ]
        ),
        secret_func=scripted([]),
        output_func=output.append,
        has_ssh_key=True,
    )

    config = wizard.run(str(config_path))

    assert config.github_repo == "alice/notes"
    assert config.auth_method == "ssh"
    assert config.include_paths == [str(source)]
    assert config.backup_frequency == "0 3 * * *"
    assert config.commit_message_template == DEFAULT_COMMIT_MESSAGE_TEMPLATE
    assert load_config(str(config_path)) == config

    preview = "\n".join(output)
    assert "scratch.tmp" in preview
    assert "Invalid cron string" in preview


def test_pat_setup_without_ssh_key(tmp_path: Path, source: Path):
    output = []
    config_path = tmp_path / "config.yaml"
    wizard = SetupWizard(
        input_func=scripted(
            [
                "https://github.com/alice/notes.git",
                "",  # no paths yet is rejected
                str(source),
                "",
                "n",
                str(FREQUENCY_CHOICES.index("hourly") + 1),
                "Snapshot {time}",
                "Snapshot {timestamp:%Y-%m-%d}",
            ]
        ),
        secret_func=scripted(["", "tok-abc"]),
        output_func=output.append,
        has_ssh_key=False,
    )

    config = wizard.run(str(config_path))

    assert config.auth_method == "pat"
    assert config.pat == "tok-abc"
    assert config.backup_frequency == "hourly"
    assert config.commit_message_template == "Snapshot {timestamp:%Y-%m-%d}"
    assert config_path.exists()
    assert any(line.startswith("Invalid commit message template") for line in output)


def test_invalid_menu_choice_is_reprompted(tmp_path: Path, source: Path):
    output = []
    wizard = SetupWizard(
        input_func=scripted(
            [
                "alice/notes",
                "9",
                "2",  # PAT
                str(source),
                "",
                "y",
                "0",
                "2",  # daily
                "",
            ]
        ),
        secret_func=scripted(["tok"]),
        output_func=output.append,
        has_ssh_key=True,
    )

    config = wizard.run(str(tmp_path / "config.yaml"))

    assert config.auth_method == "pat"
    assert config.backup_frequency == "daily"
    assert output.count("Invalid choice") == 2
