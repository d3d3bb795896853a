"""Durable storage port for wizard progress.

The store talks to a key/value port shaped like browser localStorage, so it
runs the same against memory (tests), a JSON file directory (CLI/kiosk use)
or anything else implementing the three methods.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from src.wizard.state import WizardSnapshot

logger = logging.getLogger(__name__)

_UNSAFE_KEY_RE = re.compile(r"[^A-Za-z0-9._-]")


@runtime_checkable
class StoragePort(Protocol):
    """String key/value storage."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class InMemoryStorage:
    """Dict-backed storage; survives store re-creation within one process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items


class JsonFileStorage:
    """One ``<key>.json`` file per key under a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{_UNSAFE_KEY_RE.sub('_', key)}.json"

    def get_item(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def set_item(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        tmp.replace(path)

    def remove_item(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


# ── Snapshot codec ───────────────────────────────────────────────────


def dump_snapshot(snapshot: WizardSnapshot, version: int) -> str:
    """Serialize the durable subset of a snapshot into a versioned blob."""
    return json.dumps({"version": version, "state": snapshot.to_persisted()})


def _migrate(blob: Any, version: int) -> dict[str, Any] | None:
    """Bring an older blob up to ``version``; None when it cannot be used."""
    if not isinstance(blob, dict):
        return None

    # Unversioned blobs are the bare state object.
    if "version" not in blob:
        blob = {"version": 0, "state": blob}

    stored_version = blob.get("version")
    state = blob.get("state")
    if not isinstance(stored_version, int) or not isinstance(state, dict):
        return None
    if stored_version > version:
        return None
    if stored_version == 0 and "currentStep" not in state and "formData" not in state:
        return None
    return state


def load_snapshot(raw: str | None, version: int) -> WizardSnapshot | None:
    """Decode a stored blob. Unreadable or unknown versions yield None."""
    if not raw:
        return None
    try:
        blob = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Discarding unreadable wizard snapshot")
        return None

    state = _migrate(blob, version)
    if state is None:
        logger.warning("Discarding wizard snapshot in an unsupported format")
        return None

    try:
        return WizardSnapshot.from_persisted(state)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed wizard snapshot", exc_info=True)
        return None
