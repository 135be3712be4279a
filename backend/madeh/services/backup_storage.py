"""
Local backup storage.

Saved backups live under BACKUP_STORAGE_PATH, one directory per admin:

    <base>/admin-<id>/madeh-hardware-backup-<timestamp>.json
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from ..validation import NotFoundError, ValidationError
from madeh.time_utils import utcnow, to_utc_z

logger = logging.getLogger(__name__)

BACKUP_PREFIX = "madeh-hardware-backup-"
_SAFE_NAME = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*\.json$")


class LocalBackupStorage:
    """Filesystem store for backup documents, namespaced per admin."""

    def __init__(self, base_path: str):
        self.base_path = Path(base_path)

    def _admin_dir(self, admin_id: int) -> Path:
        return self.base_path / f"admin-{int(admin_id)}"

    def _get_full_path(self, admin_id: int, name: str) -> Path:
        if not name or not _SAFE_NAME.match(name):
            raise ValidationError("Invalid backup name")
        return self._admin_dir(admin_id) / name

    def save(self, admin_id: int, document: dict, name: Optional[str] = None) -> dict:
        """Write a backup document; returns its listing entry."""
        if name is None:
            name = f"{BACKUP_PREFIX}{utcnow().strftime('%Y-%m-%dT%H%M%S%f')}.json"
        destination = self._get_full_path(admin_id, name)
        destination.parent.mkdir(parents=True, exist_ok=True)

        destination.write_text(json.dumps(document, indent=2), encoding="utf-8")
        logger.info("Saved backup %s for admin %s", name, admin_id)
        return self._describe(destination)

    def list(self, admin_id: int) -> list[dict]:
        """
        Saved backups for an admin, newest first.

        Storage problems are logged and reported as an empty list.
        """
        directory = self._admin_dir(admin_id)
        try:
            if not directory.exists():
                return []
            entries = [self._describe(p) for p in directory.iterdir() if p.is_file() and p.suffix == ".json"]
        except OSError as e:
            logger.error("Failed to list backups for admin %s: %s", admin_id, e)
            return []
        return sorted(entries, key=lambda e: (e["created_at"], e["name"]), reverse=True)

    def load(self, admin_id: int, name: str) -> dict:
        source = self._get_full_path(admin_id, name)
        if not source.is_file():
            raise NotFoundError("Backup not found")
        try:
            return json.loads(source.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            raise ValidationError("Invalid backup file format.")

    @staticmethod
    def _describe(path: Path) -> dict:
        stat = path.stat()
        modified = datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc)
        return {
            "name": path.name,
            "size": stat.st_size,
            "created_at": to_utc_z(modified),
        }
