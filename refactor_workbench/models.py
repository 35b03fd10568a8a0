"""Result, workspace and directory models shared by the workbench client."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

# Wire data is loosely typed: numbers may arrive as strings.
NumberLike = Union[int, float, str, None]


class ResultKind(str, Enum):
    """Kinds of entity a unified search can return."""

    SYMBOL = "symbol"
    CODE_UNIT = "code_unit"
    COMMIT = "commit"
    DIFF = "diff"
    DOC = "doc"
    FILE = "file"


@dataclass
class SymbolPayload:
    symbol_hash: Optional[str] = None
    run_id: NumberLike = None
    file_path: Optional[str] = None
    line: NumberLike = None


@dataclass
class CodeUnitPayload:
    unit_hash: Optional[str] = None
    run_id: NumberLike = None
    file_path: Optional[str] = None
    start_line: NumberLike = None


@dataclass
class CommitPayload:
    hash: Optional[str] = None
    run_id: NumberLike = None


@dataclass
class DiffPayload:
    run_id: NumberLike = None
    path: Optional[str] = None
    line_old: NumberLike = None
    line_new: NumberLike = None
    hunk_id: NumberLike = None


@dataclass
class DocPayload:
    term: Optional[str] = None
    run_id: NumberLike = None
    path: Optional[str] = None
    line: NumberLike = None
    col: NumberLike = None


@dataclass
class FilePayload:
    path: Optional[str] = None
    line: NumberLike = None


Payload = Union[SymbolPayload, CodeUnitPayload, CommitPayload, DiffPayload, DocPayload, FilePayload]

PAYLOAD_TYPES: dict[ResultKind, type] = {
    ResultKind.SYMBOL: SymbolPayload,
    ResultKind.CODE_UNIT: CodeUnitPayload,
    ResultKind.COMMIT: CommitPayload,
    ResultKind.DIFF: DiffPayload,
    ResultKind.DOC: DocPayload,
    ResultKind.FILE: FilePayload,
}


@dataclass
class ResultVariant:
    """A single unified search hit.

    The envelope fields are common to every kind; ``payload`` holds the
    kind-specific record and must be the payload class registered for
    ``kind``. A variant built without a payload behaves as if it carried an
    empty payload of its kind.
    """

    kind: ResultKind
    primary_label: str = ""

    # Envelope
    secondary_label: str = ""
    path: Optional[str] = None
    line: NumberLike = None
    col: NumberLike = None
    run_id: NumberLike = None
    commit_hash: Optional[str] = None
    snippet: str = ""

    payload: Optional[Payload] = None

    def __post_init__(self):
        self.kind = ResultKind(self.kind)
        if self.payload is None:
            self.payload = PAYLOAD_TYPES[self.kind]()
        elif not isinstance(self.payload, PAYLOAD_TYPES[self.kind]):
            raise ValueError(
                f"{type(self.payload).__name__} is not a valid payload for {self.kind.value} results"
            )


@dataclass
class Workspace:
    """A configured, indexed repository."""

    id: str
    name: str = ""
    db_path: str = ""
    repo_root: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @classmethod
    def from_json(cls, data: dict) -> "Workspace":
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name") or "",
            db_path=data.get("db_path") or "",
            repo_root=data.get("repo_root"),
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )


@dataclass
class DirectoryEntry:
    """One immediate child returned by a directory listing."""

    path: str
    is_directory: bool = False
    child_count: Optional[int] = None

    # File metadata (files only)
    ext: Optional[str] = None
    exists: Optional[bool] = None
    is_binary: Optional[bool] = None

    @property
    def name(self) -> str:
        return self.path.rstrip("/").rsplit("/", 1)[-1]

    @classmethod
    def from_json(cls, data: dict) -> "DirectoryEntry":
        """Decode a listing item (``kind: dir|file`` or ``is_dir``)."""
        if "kind" in data:
            is_directory = data.get("kind") == "dir"
        else:
            is_directory = bool(data.get("is_dir") or data.get("is_directory"))
        child_count = data.get("children_count", data.get("child_count"))
        return cls(
            path=str(data.get("path", "")).strip("/"),
            is_directory=is_directory,
            child_count=child_count if isinstance(child_count, int) else None,
            ext=data.get("ext") or None,
            exists=data.get("exists"),
            is_binary=data.get("is_binary"),
        )


@dataclass
class SearchHit:
    """A search result paired with its deep link (``None`` when unaddressable)."""

    result: ResultVariant
    address: Optional[str] = None

    @property
    def addressable(self) -> bool:
        return self.address is not None
