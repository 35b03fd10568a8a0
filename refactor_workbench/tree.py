"""Lazily loaded directory tree and deep-link hydration.

A deep link to ``pkg/handlers/command.go`` can only be shown once ``pkg`` and
``pkg/handlers`` have been listed and expanded. :class:`TreeHydrator` loads
those ancestors one at a time, root to leaf, reusing anything already cached.

Hydration progress is an immutable :class:`HydrationState` moved along by the
pure transition functions below. Cancellation uses the tree's generation
counter: :meth:`DirectoryTree.reset` bumps it, and a hydration whose token is
no longer current drops whatever it receives instead of writing it.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Optional

from .models import DirectoryEntry

if TYPE_CHECKING:
    from .providers.base import WorkbenchProvider

logger = logging.getLogger(__name__)

ROOT_PREFIX = ""


def normalize_path(path: Optional[str]) -> str:
    """Collapse empty segments and surrounding slashes."""
    if not path:
        return ""
    return "/".join(segment for segment in path.strip().split("/") if segment)


def parent_prefixes(path: Optional[str]) -> list[str]:
    """Ancestor directories of ``path``, root excluded, root to leaf.

    >>> parent_prefixes("a/b/c.go")
    ['a', 'a/b']
    """
    segments = normalize_path(path).split("/")
    dirs = segments[:-1]
    return ["/".join(dirs[: index + 1]) for index in range(len(dirs))]


class HydrationStatus(str, Enum):
    IDLE = "idle"
    HYDRATING = "hydrating"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({HydrationStatus.SUCCESS, HydrationStatus.FAILED, HydrationStatus.CANCELLED})


class HydrationError(Exception):
    """A directory listing failed while revealing a path."""

    def __init__(self, prefix: str, cause: Optional[BaseException] = None):
        self.prefix = prefix
        self.cause = cause
        super().__init__(f"Unable to load directory prefix: {prefix}")


@dataclass(frozen=True)
class HydrationState:
    """Progress of one hydration request."""

    target: str = ""
    prefixes: tuple[str, ...] = ()
    index: int = 0
    status: HydrationStatus = HydrationStatus.IDLE
    error: Optional[HydrationError] = None

    @property
    def current_prefix(self) -> Optional[str]:
        if self.status is HydrationStatus.HYDRATING and self.index < len(self.prefixes):
            return self.prefixes[self.index]
        return None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def failed_prefix(self) -> Optional[str]:
        return self.error.prefix if self.error else None


def start_hydration(target: str) -> HydrationState:
    return HydrationState(
        target=normalize_path(target),
        prefixes=tuple(parent_prefixes(target)),
        status=HydrationStatus.HYDRATING,
    )


def _require_hydrating(state: HydrationState, transition: str):
    if state.status is not HydrationStatus.HYDRATING:
        raise ValueError(f"Cannot {transition} a hydration in state {state.status.value}")


def advance(state: HydrationState) -> HydrationState:
    _require_hydrating(state, "advance")
    return replace(state, index=state.index + 1)


def succeed(state: HydrationState) -> HydrationState:
    _require_hydrating(state, "complete")
    if state.index < len(state.prefixes):
        raise ValueError(f"Cannot complete hydration with {len(state.prefixes) - state.index} prefixes left")
    return replace(state, status=HydrationStatus.SUCCESS)


def fail(state: HydrationState, error: HydrationError) -> HydrationState:
    _require_hydrating(state, "fail")
    return replace(state, status=HydrationStatus.FAILED, error=error)


def cancel(state: HydrationState) -> HydrationState:
    if state.is_terminal:
        return state
    return replace(state, status=HydrationStatus.CANCELLED)


class GenerationToken:
    """Tells a suspended operation whether its tree was reset meanwhile."""

    def __init__(self, tree: "DirectoryTree", generation: int):
        self._tree = tree
        self.generation = generation

    def is_current(self) -> bool:
        return self._tree.generation == self.generation

    def __repr__(self):
        return f"GenerationToken(generation={self.generation}, current={self.is_current()})"


class DirectoryTree:
    """Directory cache, expanded set and selection for one browsing view."""

    def __init__(self):
        self.children: dict[str, list[DirectoryEntry]] = {}
        self.expanded: set[str] = set()
        self.selected_path: Optional[str] = None
        self.error: Optional[str] = None
        self.generation = 0

    def token(self) -> GenerationToken:
        return GenerationToken(self, self.generation)

    def reset(self):
        """Forget everything; in-flight work holding an older token is void."""
        self.generation += 1
        self.children.clear()
        self.expanded.clear()
        self.selected_path = None
        self.error = None

    @property
    def root_loaded(self) -> bool:
        return ROOT_PREFIX in self.children

    def is_loaded(self, prefix: str) -> bool:
        return prefix in self.children

    def store(self, prefix: str, entries: list[DirectoryEntry]):
        self.children[prefix] = list(entries)

    def is_expanded(self, prefix: str) -> bool:
        return prefix in self.expanded

    def expand(self, prefix: str):
        self.expanded.add(prefix)

    def collapse(self, prefix: str):
        self.expanded.discard(prefix)

    def select(self, path: Optional[str]):
        self.selected_path = normalize_path(path) or None

    def find(self, path: str) -> Optional[DirectoryEntry]:
        """Look up a loaded entry by its full path."""
        path = normalize_path(path)
        for entries in self.children.values():
            for entry in entries:
                if entry.path == path:
                    return entry
        return None


class TreeHydrator:
    """Loads directories of one workspace into a :class:`DirectoryTree`."""

    def __init__(self, provider: "WorkbenchProvider", workspace_id: str, tree: Optional[DirectoryTree] = None):
        self.provider = provider
        self.workspace_id = workspace_id
        self.tree = tree if tree is not None else DirectoryTree()

    def reset(self, workspace_id: Optional[str] = None):
        """Switch workspace or session; cancels in-flight hydration."""
        if workspace_id is not None:
            self.workspace_id = workspace_id
        self.tree.reset()

    async def load_root(self) -> bool:
        """Fetch the top-level listing once."""
        if self.tree.root_loaded:
            return True
        token = self.tree.token()
        try:
            entries = await self.provider.list_directory(self.workspace_id, ROOT_PREFIX, token=token)
        except Exception as e:
            if token.is_current():
                self.tree.error = str(HydrationError(ROOT_PREFIX, e))
                logger.warning(f"Root listing failed for workspace {self.workspace_id}: {e}")
            return False
        if not token.is_current():
            return False
        self.tree.store(ROOT_PREFIX, entries)
        return True

    async def hydrate(self, path: Optional[str]) -> HydrationState:
        """Load and expand every ancestor of ``path``, then select it.

        Returns the terminal state. A failed listing stops the walk: earlier
        prefixes stay loaded and expanded, nothing deeper is requested, and
        calling again resumes at the first prefix not yet cached.
        """
        target = normalize_path(path)
        if not target:
            return HydrationState()

        token = self.tree.token()
        state = start_hydration(target)
        logger.debug(f"Hydrating {target} through {list(state.prefixes)}")

        while state.current_prefix is not None:
            prefix = state.current_prefix
            if not self.tree.is_loaded(prefix):
                try:
                    entries = await self.provider.list_directory(self.workspace_id, prefix, token=token)
                except Exception as e:
                    if not token.is_current():
                        return cancel(state)
                    error = HydrationError(prefix, e)
                    self.tree.error = str(error)
                    logger.warning(f"{error} ({e})")
                    return fail(state, error)
                if not token.is_current():
                    logger.debug(f"Discarding stale listing for {prefix}")
                    return cancel(state)
                self.tree.store(prefix, entries)
            self.tree.expand(prefix)
            state = advance(state)

        self.tree.select(target)
        self.tree.error = None
        return succeed(state)

    async def toggle(self, prefix: str) -> bool:
        """User expand/collapse of a directory. Returns the new expanded flag."""
        prefix = normalize_path(prefix)
        if self.tree.is_expanded(prefix):
            self.tree.collapse(prefix)
            return False

        self.tree.expand(prefix)
        if self.tree.is_loaded(prefix):
            return True

        token = self.tree.token()
        try:
            entries = await self.provider.list_directory(self.workspace_id, prefix, token=token)
        except Exception as e:
            if token.is_current():
                self.tree.collapse(prefix)
                self.tree.error = str(HydrationError(prefix, e))
                logger.warning(f"Listing {prefix} failed: {e}")
            return self.tree.is_expanded(prefix)
        if token.is_current():
            self.tree.store(prefix, entries)
        return self.tree.is_expanded(prefix)
