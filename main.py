#!/usr/bin/env python3
"""
git-backup: Scheduled backup of local files to a remote Git repository.

Main entry point for the backup application.
"""

import argparse
import logging
import shlex
import shutil
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from git_backup.backup_manager import BackupManager, BackupResult, format_size
from git_backup.config import AppConfig, get_config_path, load_config
from git_backup.scheduler import CronScheduler, SchedulerError, next_run_time
from git_backup.wizard import run_setup_wizard

LOG_FORMAT = "%(asctime)s %(levelname)-8s %(message)s"


def setup_logging(config: AppConfig, cli_mode: bool = False) -> logging.Logger:
    """Set up logging configuration."""
    log_file_path = Path(config.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger("git_backup")
    logger.setLevel(config.log_level)

    formatter = logging.Formatter(LOG_FORMAT)

    file_handler = logging.FileHandler(log_file_path, encoding="utf-8")
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if cli_mode:
        # In CLI mode, log to both console and file
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


def close_logging(logger: logging.Logger) -> None:
    """Flush and detach every handler set up by setup_logging."""
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)


def format_backup_summary(result: BackupResult) -> str:
    """Format a backup result into a readable summary."""
    summary = ["=== Git Backup Summary ==="]
    status = "SUCCESS" if result.success else "FAILED"
    if result.dry_run:
        status += " (dry run)"
    summary.append(f"Status: {status}")
    summary.append(f"Execution time: {result.execution_time:.2f} seconds")

    if result.success:
        summary.append(f"Files included: {result.files_included}")
        summary.append(f"Patterns excluded: {result.patterns_excluded}")
        if not result.dry_run:
            summary.append(f"Bytes copied: {format_size(result.bytes_copied)}")
            summary.append(f"Committed: {'yes' if result.committed else 'no changes'}")
        summary.append(f"Commit message: {result.commit_message}")
    else:
        summary.append(f"Error: {result.error_message}")

    return "\n".join(summary)


def format_status(config: AppConfig) -> str:
    """Describe the current configuration with the token masked."""
    lines = [
        "--- Current Configuration ---",
        f"GitHub Repo: {config.github_repo}",
        f"Auth Method: {config.auth_method}",
    ]
    if config.pat:
        lines.append("PAT: ********")
    lines.extend(
        [
            f"Include Paths: {', '.join(config.include_paths)}",
            f"Commit Message Template: {config.commit_message_template}",
            f"Backup Frequency: {config.backup_frequency}",
            f"Next Scheduled Run: {next_run_time(config.backup_frequency):%Y-%m-%d %H:%M}",
            f"Repository Path: {config.repo_path}",
            f"Log File: {config.log_file}",
            "-----------------------------",
        ]
    )
    return "\n".join(lines)


def get_cron_command(config_path: Optional[str] = None) -> str:
    """Command cron should run, preferring the installed console script."""
    installed = shutil.which("git-backup")
    if installed:
        command = installed
    else:
        command = f"{sys.executable} {Path(__file__).resolve()}"
    if config_path:
        absolute = Path(config_path).expanduser().resolve()
        command += f" --config {shlex.quote(str(absolute))}"
    return command


def parse_arguments(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Back up local files to a GitHub repository on a cron schedule",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  git-backup                 # Run the setup wizard if needed, then back up
  git-backup --init          # Re-run the setup wizard
  git-backup --dry-run -v    # Show what would be backed up
  git-backup --status        # Print the current configuration
        """,
    )

    parser.add_argument(
        "--init", "-i", action="store_true", help="Force reinitialization of the configuration"
    )
    parser.add_argument(
        "--run-now", "-r", action="store_true", help="Perform an immediate backup"
    )
    parser.add_argument(
        "--dry-run", "-d", action="store_true", help="Simulate backup without writing or pushing"
    )
    parser.add_argument(
        "--status", "-s", action="store_true", help="Print current configuration status"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Echo log output to the console"
    )
    parser.add_argument(
        "--config",
        "-c",
        default=None,
        help=f"Path to the configuration file (default: {get_config_path()})",
    )

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Main application entry point."""
    start_time = datetime.now()
    logger = None

    try:
        args = parse_arguments(argv)

        # Load configuration, falling back to the wizard
        config = None
        if not args.init:
            try:
                config = load_config(args.config)
            except FileNotFoundError:
                config = None
        if config is None:
            print("Config file not found or --init flag used. Starting setup wizard...")
            config = run_setup_wizard(args.config)
            print("Setup complete.")

        if args.status:
            print(format_status(config))
            return 0

        # Setup logging
        logger = setup_logging(config, cli_mode=args.verbose or args.dry_run)

        # --init alone only reinstalls the cron job
        if args.run_now or not args.init:
            if args.dry_run:
                logger.info("Starting git-backup in DRY RUN mode")
            else:
                logger.info("Starting git-backup process")

            backup_manager = BackupManager(
                config, dry_run=args.dry_run, logger=logger, config_path=args.config
            )
            result = backup_manager.run_backup()
            logger.info("\n" + format_backup_summary(result))

            if not result.success:
                logger.warning("Backup failed - check logs for details")
                return 2

        if args.dry_run:
            logger.info("Dry run: Skipping cron job installation.")
        else:
            scheduler = CronScheduler(logger=logger)
            scheduler.install_job(
                config.backup_frequency, get_cron_command(args.config)
            )
            logger.info(
                f"Next backup scheduled for {next_run_time(config.backup_frequency):%Y-%m-%d %H:%M}"
            )

        return 0

    except (FileNotFoundError, ValueError, EOFError) as e:
        error_msg = f"Configuration error: {e}"
        print(f"ERROR: {error_msg}", file=sys.stderr)
        if logger:
            logger.critical(error_msg)
        return 1

    except SchedulerError as e:
        error_msg = f"Failed to install cron job: {e}"
        print(f"ERROR: {error_msg}", file=sys.stderr)
        if logger:
            logger.critical(error_msg)
        return 2

    except KeyboardInterrupt:
        error_msg = "Backup process interrupted by user"
        print(f"\nINTERRUPTED: {error_msg}", file=sys.stderr)
        if logger:
            logger.warning(error_msg)
        return 130

    except Exception as e:
        error_msg = f"Unexpected error: {e}"
        print(f"ERROR: {error_msg}", file=sys.stderr)
        if logger:
            logger.critical(error_msg, exc_info=True)
        return 1

    finally:
        if logger:
            total_time = (datetime.now() - start_time).total_seconds()
            logger.info(f"git-backup completed in {total_time:.2f} seconds")
            close_logging(logger)


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
