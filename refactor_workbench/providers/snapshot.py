"""Offline provider backed by a JSON snapshot of a workbench server.

Snapshot layout::

    {
      "workspaces": [{"id": "glazed", "name": "glazed", ...}],
      "sessions": {"glazed": [{"id": "main-head20", "runs": {...}, ...}]},
      "files": {"glazed": ["pkg/handlers/command.go", {"path": "README.md", "ext": ".md"}]},
      "search": {"glazed": [{"type": "symbol", "primary": "Client", ...}]}
    }
"""

import json
import logging
import os
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..models import DirectoryEntry, Workspace
from ..search import RUN_ID_KEYS, SEARCH_TYPES
from ..sessions import Session
from . import register_provider
from .base import ProviderError, WorkbenchProvider, sort_entries

if TYPE_CHECKING:
    from ..tree import GenerationToken

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_PATH = os.environ.get("WORKBENCH_SNAPSHOT")


class SnapshotError(ProviderError):
    """The snapshot file is missing or malformed."""


def list_children(files: list, prefix: str) -> list[DirectoryEntry]:
    """Immediate children of ``prefix`` in a flat list of file paths."""
    prefix = prefix.strip("/")
    match_prefix = f"{prefix}/" if prefix else ""

    dirs: dict[str, set[str]] = {}
    entries: list[DirectoryEntry] = []
    for item in files:
        record = item if isinstance(item, dict) else {"path": item}
        path = str(record.get("path", "")).strip("/")
        if not path.startswith(match_prefix):
            continue
        parts = path[len(match_prefix):].split("/", 2)
        segment = parts[0]
        if not segment:
            continue
        if len(parts) == 1:
            entries.append(DirectoryEntry(
                path=path,
                is_directory=False,
                ext=record.get("ext") or (Path(segment).suffix or None),
                exists=record.get("exists"),
                is_binary=record.get("is_binary"),
            ))
            continue
        # Track the distinct children of each subdirectory for child_count
        dirs.setdefault(match_prefix + segment, set()).add(parts[1])

    for dir_path, children in dirs.items():
        entries.append(DirectoryEntry(path=dir_path, is_directory=True, child_count=len(children)))
    return sort_entries(entries)


def _matches(item: dict, query: str) -> bool:
    haystack = " ".join(
        str(item.get(key) or "") for key in ("primary", "secondary", "path", "snippet")
    ).lower()
    return query.lower() in haystack


@register_provider
class SnapshotProvider(WorkbenchProvider):
    """Serves workspaces, sessions, files and canned search results from JSON."""

    name = "snapshot"
    display_name = "Snapshot file"

    def __init__(self, path: Optional[str] = None):
        path = path or DEFAULT_SNAPSHOT_PATH
        self.path = Path(path).expanduser() if path else None
        self._data: Optional[dict] = None

    def is_available(self) -> bool:
        return self.path is not None and self.path.exists()

    def describe(self) -> str:
        return str(self.path) if self.path else "(no snapshot configured)"

    def _load(self) -> dict:
        if self._data is not None:
            return self._data
        if self.path is None:
            raise SnapshotError("No snapshot file configured (set WORKBENCH_SNAPSHOT or pass --snapshot)")
        try:
            with open(self.path) as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise SnapshotError(f"Cannot read snapshot {self.path}: {e}") from e
        if not isinstance(data, dict):
            raise SnapshotError(f"Snapshot {self.path} must contain a JSON object")
        logger.debug(f"Loaded snapshot {self.path}")
        self._data = data
        return data

    def _for_workspace(self, section: str, workspace_id: str) -> list:
        value = (self._load().get(section) or {}).get(workspace_id)
        return value if isinstance(value, list) else []

    async def list_workspaces(self) -> list[Workspace]:
        return [Workspace.from_json(item) for item in self._load().get("workspaces") or []]

    async def list_sessions(self, workspace_id: str) -> list[Session]:
        return [Session.from_json(item) for item in self._for_workspace("sessions", workspace_id)]

    async def list_directory(
        self, workspace_id: str, prefix: str, token: Optional["GenerationToken"] = None
    ) -> list[DirectoryEntry]:
        return list_children(self._for_workspace("files", workspace_id), prefix)

    async def search(self, workspace_id: str, request: dict) -> list[dict]:
        query = (request.get("query") or "").strip()
        if not query:
            return []
        kinds = {SEARCH_TYPES[t].value for t in request.get("types") or SEARCH_TYPES if t in SEARCH_TYPES}
        run_ids = request.get("run_ids") or {}
        limit = request.get("limit") or 50
        offset = request.get("offset") or 0

        # limit/offset apply per type, like the API
        per_kind: dict[str, list[dict]] = {}
        for item in self._for_workspace("search", workspace_id):
            kind = item.get("type")
            if kind not in kinds or not _matches(item, query):
                continue
            run_key = next((key for k, key in RUN_ID_KEYS.items() if k.value == kind), None)
            if run_key in run_ids and item.get("run_id") not in (None, run_ids[run_key]):
                continue
            per_kind.setdefault(kind, []).append(item)

        results = []
        for items in per_kind.values():
            results.extend(items[offset:offset + limit])
        return results
