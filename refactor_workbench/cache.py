"""Persisted workspace/session selection."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Default cache location
DEFAULT_CACHE_DIR = Path(os.environ.get("WORKBENCH_CACHE_DIR", Path.home() / ".cache" / "refactor-workbench"))
SELECTION_CACHE_PATH = DEFAULT_CACHE_DIR / "selection.json"


class SelectionCache:
    """Remembers the active workspace and the chosen session per workspace.

    Stored as ``{"workspace_id": ..., "sessions": {workspace_id: session_id}}``.
    The session id is only a preference: the resolver falls back to the
    workspace's first session when it no longer exists.
    """

    _instance = None
    _lock = threading.Lock()

    def __new__(cls, cache_path: Optional[Path] = None):
        if cls._instance is None or (cache_path is not None and cache_path != cls._instance._cache_path):
            instance = super().__new__(cls)
            instance._cache_path = cache_path or SELECTION_CACHE_PATH
            instance._data = {}
            instance._dirty = False
            instance._load()
            cls._instance = instance
        return cls._instance

    @classmethod
    def reset_instance(cls):
        with cls._lock:
            cls._instance = None

    def _load(self):
        """Load cache from disk."""
        if self._cache_path.exists():
            try:
                with open(self._cache_path) as f:
                    data = json.load(f)
                self._data = data if isinstance(data, dict) else {}
            except (json.JSONDecodeError, IOError) as e:
                logger.debug(f"Ignoring unreadable selection cache {self._cache_path}: {e}")
                self._data = {}

    def save(self):
        """Save cache to disk if dirty."""
        with self._lock:
            if not self._dirty:
                return
            try:
                self._cache_path.parent.mkdir(parents=True, exist_ok=True)
                with open(self._cache_path, "w") as f:
                    json.dump(self._data, f, indent=2)
                self._dirty = False
            except IOError as e:
                logger.warning(f"Could not write selection cache {self._cache_path}: {e}")

    @property
    def workspace_id(self) -> Optional[str]:
        with self._lock:
            return self._data.get("workspace_id")

    def session_id(self, workspace_id: str) -> Optional[str]:
        with self._lock:
            return (self._data.get("sessions") or {}).get(workspace_id)

    def select(self, workspace_id: str, session_id: Optional[str] = None):
        """Make ``workspace_id`` active; remember or forget its session."""
        with self._lock:
            self._data["workspace_id"] = workspace_id
            sessions = self._data.setdefault("sessions", {})
            if session_id:
                sessions[workspace_id] = session_id
            else:
                sessions.pop(workspace_id, None)
            self._dirty = True

    def clear(self):
        with self._lock:
            self._data = {}
            self._dirty = True
