"""Artifact store — the saved-apps list, persisted as a JSON file.

The in-memory list is updated before the file is written, so a failed write
still leaves the current run consistent; the caller gets a PersistenceError
and decides how to surface it.
"""

import json
import sys
import threading
from pathlib import Path
from typing import Optional

from vibe.errors import PersistenceError
from vibe.state import Artifact


class JsonArtifactStore:
    """Ordered list of saved artifacts. `path=None` keeps it in memory only."""

    def __init__(self, path: Optional[str | Path] = None):
        self.path = Path(path) if path is not None else None
        self._lock = threading.Lock()
        self._items: list[Artifact] = self._load()

    def _load(self) -> list[Artifact]:
        if self.path is None or not self.path.exists():
            return []
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
            return [Artifact.from_dict(entry) for entry in raw]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as exc:
            print(f"[Vibe] Could not read saved apps from {self.path}: {exc!r}", file=sys.stderr)
            return []

    def _persist(self) -> None:
        if self.path is None:
            return
        payload = json.dumps([a.to_dict() for a in self._items], indent=2)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(payload, encoding="utf-8")
            tmp_path.replace(self.path)
        except OSError as exc:
            raise PersistenceError(f"Could not save apps to {self.path}: {exc}") from exc

    def list(self) -> list[Artifact]:
        with self._lock:
            return list(self._items)

    def append(self, artifact: Artifact) -> None:
        with self._lock:
            self._items.append(artifact)
            self._persist()

    def remove(self, artifact_id: str) -> bool:
        """Remove the artifact with `artifact_id`. Returns False if it was not stored."""
        with self._lock:
            remaining = [a for a in self._items if a.id != artifact_id]
            if len(remaining) == len(self._items):
                return False
            self._items = remaining
            self._persist()
            return True
