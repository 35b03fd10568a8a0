"""Session model and run-id resolution.

A session is a git revision range inside a workspace together with the
indexing run that produced each data domain. Everything here is synchronous
and side-effect free except :func:`load_session_context`, which asks a
provider for the workspace's sessions.
"""

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from .providers.base import WorkbenchProvider

logger = logging.getLogger(__name__)

# Data domains, in the order the API reports them
COMMITS = "commits"
DIFF = "diff"
SYMBOLS = "symbols"
CODE_UNITS = "code_units"
DOC_HITS = "doc_hits"
GOPLS_REFS = "gopls_refs"
TREE_SITTER = "tree_sitter"

DOMAINS = (COMMITS, DIFF, SYMBOLS, CODE_UNITS, DOC_HITS, GOPLS_REFS, TREE_SITTER)

# Older availability maps predate tree-sitter ingestion
LEGACY_AVAILABILITY_DOMAINS = DOMAINS[:-1]

DOMAIN_LABELS = {
    COMMITS: "Commits",
    DIFF: "Diffs",
    SYMBOLS: "Symbols",
    CODE_UNITS: "Code Units",
    DOC_HITS: "Doc Hits",
    GOPLS_REFS: "Gopls Refs",
    TREE_SITTER: "Tree-sitter",
}

# Domain -> key in the reduced run-id map sent with unified search
SEARCH_RUN_ID_KEYS = {
    SYMBOLS: "symbols",
    CODE_UNITS: "code_units",
    DIFF: "diffs",
    COMMITS: "commits",
    DOC_HITS: "doc_hits",
}


def _run_id(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def normalize_availability(raw: Optional[dict], runs: dict[str, int]) -> dict[str, bool]:
    """Expand an availability map to all seven domains.

    Explicit flags win. Domains the map does not mention are derived from
    ``runs``. The 6-domain shape (no ``tree_sitter`` key) is the legacy
    layout and is migrated rather than trusted for the missing domain.
    """
    raw = raw or {}
    if raw and TREE_SITTER not in raw and set(raw) <= set(LEGACY_AVAILABILITY_DOMAINS):
        logger.debug("Migrating legacy 6-domain availability map")

    availability = {}
    for domain in DOMAINS:
        if domain in raw:
            availability[domain] = bool(raw[domain])
        else:
            availability[domain] = domain in runs
    return availability


@dataclass
class Session:
    """A git revision range within a workspace and its per-domain runs."""

    id: str
    root_path: str = ""
    workspace_id: Optional[str] = None
    git_from: Optional[str] = None
    git_to: Optional[str] = None
    runs: dict[str, int] = field(default_factory=dict)
    availability: dict[str, bool] = field(default_factory=dict)
    last_updated: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "Session":
        runs = {}
        for domain, value in (data.get("runs") or {}).items():
            run_id = _run_id(value)
            if domain in DOMAINS and run_id is not None:
                runs[domain] = run_id
        return cls(
            id=str(data.get("id", "")),
            root_path=data.get("root_path") or "",
            workspace_id=data.get("workspace_id") or None,
            git_from=data.get("git_from") or None,
            git_to=data.get("git_to") or None,
            runs=runs,
            availability=normalize_availability(data.get("availability"), runs),
            last_updated=data.get("last_updated") or None,
        )

    @property
    def label(self) -> str:
        if self.git_from or self.git_to:
            return f"{self.git_from or '?'}..{self.git_to or '?'}"
        return self.id

    @property
    def available_count(self) -> int:
        return sum(1 for domain in DOMAINS if self.availability.get(domain))

    def is_available(self, domain: str) -> bool:
        return bool(self.availability.get(domain))

    def inconsistent_domains(self) -> list[str]:
        """Domains that have a run id but are not flagged available."""
        return [d for d in DOMAINS if d in self.runs and not self.availability.get(d)]


@dataclass
class SessionRunIds:
    """Run id per data domain for the active session; None when absent."""

    symbols: Optional[int] = None
    code_units: Optional[int] = None
    commits: Optional[int] = None
    diff: Optional[int] = None
    doc_hits: Optional[int] = None
    gopls_refs: Optional[int] = None
    tree_sitter: Optional[int] = None

    def get(self, domain: str) -> Optional[int]:
        return getattr(self, domain) if domain in DOMAINS else None


def resolve_active_session(
    sessions: list[Session], explicit_session_id: Optional[str] = None
) -> Optional[Session]:
    """Pick the session to scope queries to.

    The explicitly requested session if it exists, otherwise the first one.
    None only when there are no sessions at all.
    """
    if not sessions:
        return None
    if explicit_session_id:
        for session in sessions:
            if session.id == explicit_session_id:
                return session
        logger.debug(f"Session {explicit_session_id!r} not found, using {sessions[0].id!r}")
    return sessions[0]


def resolve_run_ids(session: Optional[Session]) -> SessionRunIds:
    """Project a session's runs onto the seven domains."""
    if session is None:
        return SessionRunIds()
    runs = session.runs
    return SessionRunIds(**{domain: runs.get(domain) for domain in DOMAINS})


def reduce_for_unified_search(run_ids: SessionRunIds) -> dict[str, int]:
    """Run ids to send with a unified search request.

    Only the searchable domains are copied, and only when set to a truthy
    number. ``gopls_refs`` and ``tree_sitter`` are never included.
    """
    reduced = {}
    for domain, key in SEARCH_RUN_ID_KEYS.items():
        value = run_ids.get(domain)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and value:
            reduced[key] = value
    return reduced


@dataclass
class SessionContext:
    """Everything a domain-scoped view needs to know about the session."""

    workspace_id: Optional[str]
    session_id: Optional[str] = None
    sessions: list[Session] = field(default_factory=list)
    active_session: Optional[Session] = None
    run_ids: SessionRunIds = field(default_factory=SessionRunIds)
    search_run_ids: dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_sessions(
        cls, workspace_id: Optional[str], sessions: list[Session], session_id: Optional[str] = None
    ) -> "SessionContext":
        active = resolve_active_session(sessions, session_id)
        run_ids = resolve_run_ids(active)
        if active is not None:
            conflicts = active.inconsistent_domains()
            if conflicts:
                logger.warning(f"Session {active.id} has runs for unavailable domains: {', '.join(conflicts)}")
        return cls(
            workspace_id=workspace_id,
            session_id=session_id,
            sessions=sessions,
            active_session=active,
            run_ids=run_ids,
            search_run_ids=reduce_for_unified_search(run_ids),
        )

    @property
    def has_session(self) -> bool:
        return self.active_session is not None

    def is_available(self, domain: str) -> bool:
        """Whether views for ``domain`` can be shown in this context."""
        return self.active_session is not None and self.active_session.is_available(domain)


async def load_session_context(
    provider: "WorkbenchProvider", workspace_id: Optional[str], session_id: Optional[str] = None
) -> SessionContext:
    """Fetch a workspace's sessions and resolve the active one."""
    if not workspace_id:
        return SessionContext(workspace_id=None, session_id=session_id)
    sessions = await provider.list_sessions(workspace_id)
    logger.info(f"Loaded {len(sessions)} sessions for workspace {workspace_id}")
    return SessionContext.from_sessions(workspace_id, sessions, session_id)
