"""Timestamped file copy of the database taken before it is modified."""

import shutil
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from .errors import BackupFailed


def backup_path_for(db_path: Union[str, Path], now: Optional[datetime] = None) -> Path:
    """Sibling path <db_path>.backup_YYYYMMDD_HHMMSS (local time)"""
    if now is None:
        now = datetime.now()
    db_path = Path(db_path)
    return db_path.with_name(f"{db_path.name}.backup_{now.strftime('%Y%m%d_%H%M%S')}")


def create_backup(db_path: Union[str, Path], now: Optional[datetime] = None) -> Path:
    """
    Copy the database file next to itself.

    Args:
        db_path: Database file to back up
        now: Timestamp for the backup name (defaults to the current local time)

    Returns:
        Path of the backup copy

    Raises:
        BackupFailed: if the copy cannot be made or the target already exists
    """
    backup_path = backup_path_for(db_path, now)

    if backup_path.exists():
        raise BackupFailed(f"Backup already exists: {backup_path}")

    try:
        shutil.copy2(db_path, backup_path)
    except OSError as e:
        raise BackupFailed(f"Failed to create backup {backup_path}: {e}") from e

    return backup_path
