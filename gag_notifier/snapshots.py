"""Last-notified payload per category, persisted across restarts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from gag_notifier.errors import PersistenceError
from gag_notifier.storage import load_json, save_json

LOGGER = logging.getLogger(__name__)


def canonical(payload: Any) -> str:
    """Serialize ``payload`` for equality checks.

    Object keys are sorted so upstream field order does not matter; list
    order is kept, so a reordered item list still counts as a change.
    """

    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class SnapshotStore:
    """Maps category key to the canonical payload last acted upon."""

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path
        self._state: Dict[str, str] = {}
        self._dirty = False

    @property
    def dirty(self) -> bool:
        return self._dirty

    def load(self) -> None:
        if self._path is None:
            return
        data = load_json(self._path, {})
        if not isinstance(data, dict):
            LOGGER.warning("[store] %s is not an object, starting empty", self._path)
            data = {}
        self._state = {str(k): v for k, v in data.items() if isinstance(v, str)}
        self._dirty = False
        LOGGER.info("[store] loaded %d snapshot(s)", len(self._state))

    def save(self) -> bool:
        """Persist when dirty. Failures are logged and the state stays dirty."""

        if not self._dirty:
            return False
        if self._path is None:
            self._dirty = False
            return True
        try:
            save_json(self._path, self._state)
        except PersistenceError as e:
            LOGGER.error("[store] snapshot save failed, keeping in-memory state: %s", e)
            return False
        self._dirty = False
        return True

    def get(self, category: str) -> Optional[str]:
        return self._state.get(category)

    def get_payload(self, category: str) -> Any:
        raw = self._state.get(category)
        return None if raw is None else json.loads(raw)

    def matches(self, category: str, serialized: str) -> bool:
        return self._state.get(category) == serialized

    def put(self, category: str, serialized: str) -> None:
        if self._state.get(category) == serialized:
            return
        self._state[category] = serialized
        self._dirty = True

    def keys(self):
        return list(self._state)
