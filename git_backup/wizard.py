"""Interactive setup wizard that writes the git-backup configuration."""

import getpass
from pathlib import Path
from typing import Callable, List, Optional

from .config import (
    DEFAULT_COMMIT_MESSAGE_TEMPLATE,
    NAMED_FREQUENCIES,
    AppConfig,
    check_commit_message_template,
    is_valid_cron_spec,
    save_config,
)
from .scanner import generate_gitignore_content, scan_files

InputFunc = Callable[[str], str]

CUSTOM_CRON = "custom cron"
FREQUENCY_CHOICES = [*NAMED_FREQUENCIES, CUSTOM_CRON]


def ssh_key_exists() -> bool:
    return (Path.home() / ".ssh" / "id_rsa").exists()


class SetupWizard:
    """Prompts for the configuration on the terminal."""

    def __init__(
        self,
        input_func: InputFunc = input,
        secret_func: InputFunc = getpass.getpass,
        output_func: Callable[[str], None] = print,
        has_ssh_key: Optional[bool] = None,
    ):
        self.input = input_func
        self.secret = secret_func
        self.output = output_func
        self.has_ssh_key = ssh_key_exists() if has_ssh_key is None else has_ssh_key

    def _ask(self, label: str, default: str = "", required: bool = False) -> str:
        suffix = f" [{default}]" if default else ""
        while True:
            answer = self.input(f"{label}{suffix}: ").strip()
            if not answer and default:
                return default
            if answer or not required:
                return answer
            self.output(f"{label} cannot be empty")

    def _choose(self, label: str, choices: List[str]) -> str:
        self.output(label)
        for index, choice in enumerate(choices, start=1):
            self.output(f"  {index}) {choice}")
        while True:
            answer = self.input(f"Choice [1-{len(choices)}]: ").strip()
            if answer.isdigit() and 1 <= int(answer) <= len(choices):
                return choices[int(answer) - 1]
            self.output("Invalid choice")

    def _ask_pat(self) -> str:
        while True:
            pat = self.secret("Enter GitHub Personal Access Token (PAT): ").strip()
            if pat:
                return pat
            self.output("PAT cannot be empty")

    def _ask_auth(self) -> tuple:
        if self.has_ssh_key:
            choice = self._choose(
                "Choose Git authentication method",
                ["SSH (recommended)", "Personal Access Token (PAT)"],
            )
            if choice.startswith("SSH"):
                return "ssh", None
        else:
            self.output(
                "SSH key (~/.ssh/id_rsa) not found. "
                "Using Personal Access Token (PAT) for authentication."
            )
        return "pat", self._ask_pat()

    def _ask_include_paths(self) -> List[str]:
        self.output(
            "\nEnter paths to include (one per line, press Enter on empty line to finish):"
        )
        paths = []
        while True:
            path = self._ask(f"Path {len(paths) + 1}")
            if not path:
                if paths:
                    return paths
                self.output("At least one path must be included")
                continue
            paths.append(path)

    def _preview_gitignore(self, include_paths: List[str]) -> bool:
        scan = scan_files(include_paths)
        self.output("\n--- Generated .gitignore Content Preview ---")
        self.output(generate_gitignore_content(scan.patterns_to_exclude))
        self.output("--------------------------------------------")

        answer = self.input("Do you want to use this .gitignore content? (y/N): ")
        if answer.strip().lower() in {"y", "yes"}:
            return True

        self.output("The .gitignore will be regenerated from the scan on each backup.")
        return False

    def _ask_frequency(self) -> str:
        choice = self._choose("Select backup frequency", FREQUENCY_CHOICES)
        if choice != CUSTOM_CRON:
            return choice
        while True:
            spec = self._ask("Enter custom cron string (e.g., '0 0 * * *')", required=True)
            if is_valid_cron_spec(spec):
                return spec
            self.output("Invalid cron string")

    def _ask_commit_template(self) -> str:
        while True:
            template = self._ask(
                "Commit Message Template", default=DEFAULT_COMMIT_MESSAGE_TEMPLATE
            )
            try:
                check_commit_message_template(template)
                return template
            except ValueError as e:
                self.output(f"{e}. Use {{timestamp}} or {{timestamp:%Y-%m-%d}}")

    def run(self, config_path: Optional[str] = None) -> AppConfig:
        """
        Walk through every setting, save the config and return it.

        Raises:
            ValueError: If the collected settings fail validation
        """
        self.output("\n--- git-backup Setup Wizard ---")

        github_repo = self._ask(
            "GitHub Repository (e.g., user/repo or https://github.com/user/repo.git)",
            required=True,
        )
        auth_method, pat = self._ask_auth()
        include_paths = self._ask_include_paths()
        self._preview_gitignore(include_paths)
        backup_frequency = self._ask_frequency()
        commit_template = self._ask_commit_template()

        config = AppConfig(
            github_repo=github_repo,
            auth_method=auth_method,
            pat=pat,
            include_paths=include_paths,
            backup_frequency=backup_frequency,
            commit_message_template=commit_template,
        )
        saved_path = save_config(config, config_path)
        self.output(f"Configuration saved to {saved_path}")
        return config


def run_setup_wizard(config_path: Optional[str] = None) -> AppConfig:
    """Run the wizard against the real terminal."""
    return SetupWizard().run(config_path)
