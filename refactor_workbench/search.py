"""Unified search across the indexed domains of a session."""

import logging
import re
from typing import TYPE_CHECKING, Optional

from .address import build_address
from .models import (
    CodeUnitPayload,
    CommitPayload,
    DiffPayload,
    DocPayload,
    FilePayload,
    ResultKind,
    ResultVariant,
    SearchHit,
    SymbolPayload,
)

if TYPE_CHECKING:
    from .providers.base import WorkbenchProvider
    from .sessions import SessionContext

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 50

# Request type name -> result kind
SEARCH_TYPES = {
    "symbols": ResultKind.SYMBOL,
    "code_units": ResultKind.CODE_UNIT,
    "diffs": ResultKind.DIFF,
    "commits": ResultKind.COMMIT,
    "docs": ResultKind.DOC,
    "files": ResultKind.FILE,
}

# Result kind -> key in the request's run_ids map (files are not run-scoped)
RUN_ID_KEYS = {
    ResultKind.SYMBOL: "symbols",
    ResultKind.CODE_UNIT: "code_units",
    ResultKind.DIFF: "diffs",
    ResultKind.COMMIT: "commits",
    ResultKind.DOC: "docs",
}

# Reduced session map key -> run_ids key the search endpoint reads
WIRE_RUN_ID_KEYS = {"doc_hits": "docs"}

_TYPE_ALIASES = {
    "symbol": "symbols",
    "code_unit": "code_units",
    "code-unit": "code_units",
    "code-units": "code_units",
    "unit": "code_units",
    "units": "code_units",
    "diff": "diffs",
    "commit": "commits",
    "doc": "docs",
    "file": "files",
}

_FILTER_KEYS = {"path": "path", "pkg": "pkg", "kind": "symbol_kind", "term": "term"}

_MODIFIER_PATTERN = re.compile(r"(\w+):(\S+)")


def normalize_type(name: str) -> Optional[str]:
    """Map a user-facing type name to a request type, or None if unknown."""
    name = name.strip().lower()
    name = _TYPE_ALIASES.get(name, name)
    return name if name in SEARCH_TYPES else None


def parse_search_query(query: str) -> tuple[str, dict]:
    """Parse search query with modifiers.

    Syntax:
        type:symbols            - Restrict result types (comma separated)
        path:pkg/handlers       - Filter by path prefix
        pkg:github.com/x/y      - Filter by Go package
        kind:func               - Filter by symbol kind
        term:TODO               - Filter doc hits by term

    Returns:
        (clean_query, filters_dict); types end up under ``filters["types"]``.
    """
    filters: dict = {}
    types: list[str] = []

    def take(match: re.Match) -> str:
        key, value = match.group(1).lower(), match.group(2)
        if key in ("type", "types"):
            for name in value.split(","):
                normalized = normalize_type(name)
                if normalized and normalized not in types:
                    types.append(normalized)
            return ""
        if key in _FILTER_KEYS:
            filters[_FILTER_KEYS[key]] = value
            return ""
        return match.group(0)

    clean_query = _MODIFIER_PATTERN.sub(take, query)
    clean_query = re.sub(r"\s+", " ", clean_query).strip()
    if types:
        filters["types"] = types
    return clean_query, filters


def build_search_request(
    query: str,
    session_id: Optional[str] = None,
    run_ids: Optional[dict[str, int]] = None,
    types: Optional[list[str]] = None,
    filters: Optional[dict] = None,
    limit: int = DEFAULT_LIMIT,
    offset: int = 0,
) -> dict:
    """Build the JSON body of a unified search request."""
    request: dict = {"query": query.strip(), "limit": limit, "offset": offset}
    if session_id:
        request["session_id"] = session_id
    if types:
        request["types"] = list(types)
    if filters:
        request["filters"] = {k: v for k, v in filters.items() if v}
    if run_ids:
        request["run_ids"] = {WIRE_RUN_ID_KEYS.get(key, key): value for key, value in run_ids.items()}
    return request


def _payload_from_json(kind: ResultKind, data: dict):
    if kind is ResultKind.SYMBOL:
        return SymbolPayload(
            symbol_hash=data.get("symbol_hash"),
            run_id=data.get("run_id"),
            file_path=data.get("file"),
            line=data.get("line"),
        )
    if kind is ResultKind.CODE_UNIT:
        return CodeUnitPayload(
            unit_hash=data.get("unit_hash"),
            run_id=data.get("run_id"),
            file_path=data.get("file"),
            start_line=data.get("start_line"),
        )
    if kind is ResultKind.COMMIT:
        return CommitPayload(hash=data.get("hash"), run_id=data.get("run_id"))
    if kind is ResultKind.DIFF:
        return DiffPayload(
            run_id=data.get("run_id"),
            path=data.get("path"),
            line_old=data.get("line_no_old"),
            line_new=data.get("line_no_new"),
            hunk_id=data.get("hunk_id"),
        )
    if kind is ResultKind.DOC:
        return DocPayload(
            term=data.get("term"),
            run_id=data.get("run_id"),
            path=data.get("path"),
            line=data.get("line"),
            col=data.get("col"),
        )
    return FilePayload(path=data.get("path"), line=data.get("line"))


def result_from_json(item: dict) -> Optional[ResultVariant]:
    """Decode one wire search result; None for an unknown type."""
    try:
        kind = ResultKind(item.get("type"))
    except ValueError:
        logger.debug(f"Skipping search result of unknown type {item.get('type')!r}")
        return None

    payload = item.get("payload")
    return ResultVariant(
        kind=kind,
        primary_label=item.get("primary") or "",
        secondary_label=item.get("secondary") or "",
        path=item.get("path"),
        line=item.get("line"),
        col=item.get("col"),
        run_id=item.get("run_id"),
        commit_hash=item.get("commit_hash"),
        snippet=item.get("snippet") or "",
        payload=_payload_from_json(kind, payload if isinstance(payload, dict) else {}),
    )


def group_hits(hits: list[SearchHit]) -> dict[ResultKind, list[SearchHit]]:
    """Group hits by kind, keeping the kinds in request order."""
    grouped: dict[ResultKind, list[SearchHit]] = {}
    for hit in hits:
        grouped.setdefault(hit.result.kind, []).append(hit)
    order = list(SEARCH_TYPES.values())
    return dict(sorted(grouped.items(), key=lambda item: order.index(item[0])))


class UnifiedSearch:
    """Searches one workspace/session and links every hit."""

    def __init__(self, provider: "WorkbenchProvider", context: "SessionContext"):
        self.provider = provider
        self.context = context

    async def search(
        self,
        query: str,
        types: Optional[list[str]] = None,
        limit: int = DEFAULT_LIMIT,
        offset: int = 0,
    ) -> list[SearchHit]:
        """Search with optional type restriction.

        Args:
            query: Search text, may contain modifiers like type: and path:
            types: Request types to include; inline type: modifiers win.
            limit: Maximum results per type.
            offset: Results to skip per type.
        """
        if not self.context.workspace_id:
            return []

        clean_query, filters = parse_search_query(query)
        types = filters.pop("types", None) or types
        if not clean_query:
            return []

        session_id = self.context.active_session.id if self.context.active_session else None
        request = build_search_request(
            clean_query,
            session_id=session_id,
            run_ids=self.context.search_run_ids,
            types=types,
            filters=filters,
            limit=limit,
            offset=offset,
        )
        items = await self.provider.search(self.context.workspace_id, request)

        hits = []
        for item in items:
            result = result_from_json(item)
            if result is None:
                continue
            address = build_address(result, query=clean_query, session_id=session_id)
            hits.append(SearchHit(result=result, address=address))
        logger.info(f"Search {clean_query!r} returned {len(hits)} results")
        return hits
