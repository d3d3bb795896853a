"""Local persistence for uploaded binaries and CRM fallback backups.

Layout:
    <uploads_dir>/<quote_id>/<ms>_<part index>_<sanitized name>
    <backups_dir>/<quote_id>.json
"""

from __future__ import annotations

import json
import logging
import re
import time
from collections.abc import Sequence
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from src.config import StorageSettings, settings
from src.crm.mapping import FileManifestEntry

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_RE = re.compile(r"[^a-zA-Z0-9.-]")


@dataclass(frozen=True)
class IncomingUpload:
    """A binary file part received with a multipart submission."""

    name: str
    content: bytes
    content_type: str = "application/octet-stream"

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass(frozen=True)
class SavedFile:
    name: str
    path: str
    size: int

    def manifest_entry(self) -> FileManifestEntry:
        return FileManifestEntry(name=self.name, size=self.size)


def sanitize_filename(name: str) -> str:
    """Replace anything outside ``[a-zA-Z0-9.-]`` with an underscore."""
    return _UNSAFE_FILENAME_RE.sub("_", name)


class UploadStorage:
    """Writes quote uploads and backup records under the configured directories."""

    def __init__(self, storage_settings: StorageSettings | None = None) -> None:
        self._settings = storage_settings or settings.storage

    def quote_dir(self, quote_id: str) -> Path:
        return Path(self._settings.uploads_dir) / quote_id

    def save(self, quote_id: str, uploads: Sequence[IncomingUpload]) -> tuple[list[SavedFile], list[str]]:
        """Persist each upload; returns (saved, names that failed).

        A failure on one file is logged and skipped.
        """
        saved: list[SavedFile] = []
        failed: list[str] = []
        if not uploads:
            return saved, failed

        directory = self.quote_dir(quote_id)
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Could not create upload directory %s", directory)
            return saved, [upload.name for upload in uploads]

        for index, upload in enumerate(uploads):
            target = directory / f"{int(time.time() * 1000)}_{index}_{sanitize_filename(upload.name)}"
            try:
                target.write_bytes(upload.content)
            except OSError:
                logger.exception("Failed to save file %s", upload.name)
                failed.append(upload.name)
                continue
            saved.append(SavedFile(name=upload.name, path=str(target), size=upload.size))
            logger.info("File saved: %s", target)
        return saved, failed

    def write_backup(
        self,
        quote_id: str,
        form_data: dict[str, Any],
        saved_files: Sequence[SavedFile],
        crm_error: str | None = None,
    ) -> Path:
        """Write the JSON trace of a submission that did not reach the CRM."""
        backups_dir = Path(self._settings.backups_dir)
        backups_dir.mkdir(parents=True, exist_ok=True)
        record = {
            "quoteId": quote_id,
            "formData": form_data,
            "savedFiles": [asdict(saved) for saved in saved_files],
            "submittedAt": datetime.now(timezone.utc).isoformat(),
            "crmError": crm_error,
        }
        path = backups_dir / f"{quote_id}.json"
        path.write_text(json.dumps(record, indent=2), encoding="utf-8")
        logger.info("Backup saved to: %s", path)
        return path
