"""
git-backup: Scheduled backup of local files to a remote Git repository.

This package scans configured include paths, generates a .gitignore for
junk and oversized files, commits the rest to a local clone and pushes it,
with a cron job keeping the backup recurring.
"""

__version__ = "0.1.0"
