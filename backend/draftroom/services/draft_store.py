"""Versioned draft persistence.

A draft is stored as one JSON snapshot per league. Writes go through
``compare_and_swap`` so a commit only lands if the version observed when the
pick was validated is still the stored version.
"""

from __future__ import annotations

import json
import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from ..errors import ConflictError
from ..models.draft import Draft

logger = logging.getLogger(__name__)


class DraftStore(ABC):
    """Narrow store interface: one versioned record per league."""

    def __init__(self) -> None:
        self._lock = threading.Lock()

    @abstractmethod
    def _read(self, league_id: str) -> Optional[dict]:
        ...

    @abstractmethod
    def _write(self, league_id: str, snapshot: dict) -> None:
        ...

    @abstractmethod
    def _remove(self, league_id: str) -> bool:
        ...

    @abstractmethod
    def league_ids(self) -> list[str]:
        ...

    def load(self, league_id: str) -> Optional[Draft]:
        """Return a fresh copy of the stored draft, or None."""
        with self._lock:
            snapshot = self._read(league_id)
        if snapshot is None:
            return None
        return Draft.model_validate(snapshot)

    def compare_and_swap(self, draft: Draft, expected_version: Optional[int]) -> Draft:
        """Commit *draft* if the stored version still equals *expected_version*.

        ``expected_version=None`` creates the record and fails if one exists.
        The committed draft is returned with its new version.
        """
        with self._lock:
            current = self._read(draft.league_id)
            current_version = None if current is None else current.get("version", 0)
            if current_version != expected_version:
                raise ConflictError(
                    f"Draft for league '{draft.league_id}' changed "
                    f"(expected version {expected_version}, found {current_version})"
                )
            committed = draft.model_copy(
                update={"version": 1 if expected_version is None else expected_version + 1},
                deep=True,
            )
            self._write(draft.league_id, committed.model_dump(mode="json"))
        return committed

    def delete(self, league_id: str) -> bool:
        with self._lock:
            return self._remove(league_id)


class InMemoryDraftStore(DraftStore):
    def __init__(self) -> None:
        super().__init__()
        self._snapshots: dict[str, str] = {}

    def _read(self, league_id: str) -> Optional[dict]:
        raw = self._snapshots.get(league_id)
        return None if raw is None else json.loads(raw)

    def _write(self, league_id: str, snapshot: dict) -> None:
        self._snapshots[league_id] = json.dumps(snapshot, default=str)

    def _remove(self, league_id: str) -> bool:
        return self._snapshots.pop(league_id, None) is not None

    def league_ids(self) -> list[str]:
        return sorted(self._snapshots)


class FileDraftStore(DraftStore):
    """One ``<league_id>.json`` file per draft."""

    def __init__(self, directory: Path) -> None:
        super().__init__()
        self.directory = Path(directory)

    def _path(self, league_id: str) -> Path:
        return self.directory / f"{league_id}.json"

    def _read(self, league_id: str) -> Optional[dict]:
        filepath = self._path(league_id)
        if not filepath.exists():
            return None
        with open(filepath, "r") as f:
            return json.load(f)

    def _write(self, league_id: str, snapshot: dict) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        filepath = self._path(league_id)
        tmp = filepath.with_suffix(".json.tmp")
        with open(tmp, "w") as f:
            json.dump(snapshot, f, indent=2, default=str)
        tmp.replace(filepath)
        logger.debug(f"Saved draft snapshot to {filepath}")

    def _remove(self, league_id: str) -> bool:
        filepath = self._path(league_id)
        if not filepath.exists():
            return False
        filepath.unlink()
        return True

    def league_ids(self) -> list[str]:
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))
