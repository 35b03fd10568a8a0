"""Base class for workbench data providers."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Optional

from ..models import DirectoryEntry, Workspace
from ..sessions import Session

if TYPE_CHECKING:
    from ..tree import GenerationToken


class ProviderError(Exception):
    """A provider could not answer a request."""


class DirectoryListingError(ProviderError):
    """Listing the children of a directory prefix failed."""

    def __init__(self, prefix: str, message: str):
        self.prefix = prefix
        super().__init__(message)


def sort_entries(entries: list[DirectoryEntry]) -> list[DirectoryEntry]:
    """Directories first, then files, each alphabetically."""
    return sorted(entries, key=lambda e: (not e.is_directory, e.path))


class WorkbenchProvider(ABC):
    """Abstract source of workspaces, sessions, directory listings and search.

    Implementations wrap one backend (the workbench HTTP API, an offline
    snapshot, ...). All data methods are coroutines so the tree hydrator and
    the CLI can drive them from one event loop.
    """

    # Provider identity
    name: str = ""  # unique identifier: "http", "snapshot"
    display_name: str = ""

    def is_available(self) -> bool:
        """Whether this provider has what it needs to answer requests."""
        return True

    def describe(self) -> str:
        """Where this provider reads from, for status output."""
        return ""

    @abstractmethod
    async def list_workspaces(self) -> list[Workspace]:
        """List configured workspaces."""
        ...

    @abstractmethod
    async def list_sessions(self, workspace_id: str) -> list[Session]:
        """List the sessions of a workspace, default session first."""
        ...

    @abstractmethod
    async def list_directory(
        self, workspace_id: str, prefix: str, token: Optional["GenerationToken"] = None
    ) -> list[DirectoryEntry]:
        """List the immediate children of ``prefix`` ("" for the root).

        ``token`` identifies the tree generation the caller is working for;
        a provider may skip work once it is stale.
        """
        ...

    @abstractmethod
    async def search(self, workspace_id: str, request: dict) -> list[dict]:
        """Run a unified search and return raw result items."""
        ...

    async def close(self):
        """Release any held resources."""

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
