"""Deep links for search results.

``build_address`` turns a :class:`ResultVariant` into a query-string link such
as ``/symbols?from=search&q=Client&symbol_hash=a7b3c9f2``; the
``parse_*_address`` functions read such a link back. Neither side raises on
bad input: an unaddressable result gives ``None`` and malformed parameters
give ``None`` fields.
"""

import logging
import math
import re
from dataclasses import asdict, dataclass
from typing import Callable, ClassVar, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qs, urlencode, urlsplit

from .models import (
    CodeUnitPayload,
    CommitPayload,
    DiffPayload,
    DocPayload,
    FilePayload,
    ResultKind,
    ResultVariant,
    SymbolPayload,
)

logger = logging.getLogger(__name__)

Number = Union[int, float]
QueryParams = Union[str, Mapping[str, Union[str, Sequence[str]]]]

SYMBOLS_PATH = "/symbols"
CODE_UNITS_PATH = "/code-units"
COMMITS_PATH = "/commits"
DIFFS_PATH = "/diffs"
DOCS_PATH = "/docs"
FILES_PATH = "/files"

# ASCII only; str.isdigit and int() also take other scripts' digits
_DECIMAL_PATTERN = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$", re.ASCII)
_PREFIXED_INT_PATTERN = re.compile(r"^0([xX][0-9a-fA-F]+|[oO][0-7]+|[bB][01]+)$", re.ASCII)


# Value coercion


def as_string(value) -> Optional[str]:
    """Return ``value`` trimmed if it is a non-blank string, else None."""
    if isinstance(value, str):
        trimmed = value.strip()
        if trimmed:
            return trimmed
    return None


def as_number(value) -> Optional[Number]:
    """Coerce ``value`` to a finite number, or None.

    Accepts ints, floats and ASCII numeric strings: decimal, exponent, and
    ``0x``/``0o``/``0b`` integers. Booleans, NaN, infinities, digit
    separators, non-ASCII digits and anything unparseable give None.
    Integral values come back as ``int``.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        return int(value) if value.is_integer() else value
    text = as_string(value)
    if text is None:
        return None
    if _PREFIXED_INT_PATTERN.match(text):
        return int(text, 0)
    if not _DECIMAL_PATTERN.match(text):
        return None
    if text.lstrip("+-").isdigit():
        return int(text)
    parsed = float(text)
    if not math.isfinite(parsed):
        return None
    return int(parsed) if parsed.is_integer() else parsed


def _first_string(*values) -> Optional[str]:
    for value in values:
        text = as_string(value)
        if text is not None:
            return text
    return None


def _first_number(*values) -> Optional[Number]:
    for value in values:
        number = as_number(value)
        if number is not None:
            return number
    return None


# Building


class _Params:
    """Ordered query parameters that only accept usable values."""

    def __init__(self):
        self._pairs: list[tuple[str, str]] = []

    def set_string(self, key: str, value):
        text = as_string(value)
        if text is not None:
            self._pairs.append((key, text))

    def set_number(self, key: str, value):
        number = as_number(value)
        if number is not None:
            self._pairs.append((key, str(number)))

    def href(self, path: str) -> str:
        if not self._pairs:
            return path
        return f"{path}?{urlencode(self._pairs)}"


def _common_params(query: Optional[str], session_id: Optional[str], source: Optional[str]) -> _Params:
    params = _Params()
    params.set_string("from", source)
    params.set_string("q", query)
    params.set_string("session_id", session_id)
    return params


def _build_symbol_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: SymbolPayload = result.payload
    symbol_hash = as_string(payload.symbol_hash)
    if symbol_hash is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_string("symbol_hash", symbol_hash)
    params.set_number("run_id", _first_number(payload.run_id, result.run_id))
    params.set_string("path", _first_string(payload.file_path, result.path))
    params.set_number("line", _first_number(payload.line, result.line))
    return params.href(SYMBOLS_PATH)


def _build_code_unit_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: CodeUnitPayload = result.payload
    unit_hash = as_string(payload.unit_hash)
    if unit_hash is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_string("unit_hash", unit_hash)
    params.set_number("run_id", _first_number(payload.run_id, result.run_id))
    params.set_string("path", _first_string(payload.file_path, result.path))
    params.set_number("line", _first_number(payload.start_line, result.line))
    return params.href(CODE_UNITS_PATH)


def _build_commit_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: CommitPayload = result.payload
    commit_hash = _first_string(payload.hash, result.commit_hash)
    if commit_hash is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_string("commit_hash", commit_hash)
    params.set_number("run_id", _first_number(payload.run_id, result.run_id))
    return params.href(COMMITS_PATH)


def _build_diff_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: DiffPayload = result.payload
    run_id = _first_number(payload.run_id, result.run_id)
    path = _first_string(payload.path, result.path)
    if run_id is None or path is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_number("run_id", run_id)
    params.set_string("path", path)
    params.set_number("line_new", _first_number(payload.line_new, result.line))
    params.set_number("line_old", payload.line_old)
    params.set_number("hunk_id", payload.hunk_id)
    return params.href(DIFFS_PATH)


def _build_doc_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: DocPayload = result.payload
    term = _first_string(payload.term, result.primary_label)
    if term is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_string("term", term)
    params.set_number("run_id", _first_number(payload.run_id, result.run_id))
    params.set_string("path", _first_string(payload.path, result.path))
    params.set_number("line", _first_number(payload.line, result.line))
    params.set_number("col", _first_number(payload.col, result.col))
    return params.href(DOCS_PATH)


def _build_file_address(result: ResultVariant, query, session_id, source) -> Optional[str]:
    payload: FilePayload = result.payload
    path = _first_string(payload.path, result.path, result.primary_label)
    if path is None:
        return None

    params = _common_params(query, session_id, source)
    params.set_string("path", path)
    params.set_number("line", _first_number(payload.line, result.line))
    return params.href(FILES_PATH)


_BUILDERS: dict[ResultKind, Callable[..., Optional[str]]] = {
    ResultKind.SYMBOL: _build_symbol_address,
    ResultKind.CODE_UNIT: _build_code_unit_address,
    ResultKind.COMMIT: _build_commit_address,
    ResultKind.DIFF: _build_diff_address,
    ResultKind.DOC: _build_doc_address,
    ResultKind.FILE: _build_file_address,
}

_missing = set(ResultKind) - set(_BUILDERS)
if _missing:
    raise RuntimeError(f"No address builder for result kinds: {sorted(k.value for k in _missing)}")


def build_address(
    result: ResultVariant,
    query: Optional[str] = None,
    session_id: Optional[str] = None,
    source: str = "search",
) -> Optional[str]:
    """Build the deep link for a search result.

    Args:
        result: The search hit to address.
        query: Search text the hit came from, kept as ``q``.
        session_id: Active session, kept as ``session_id``.
        source: Value for the ``from`` parameter.

    Returns:
        ``<base path>?<query string>``, or None when the result lacks the
        field(s) that identify it.
    """
    address = _BUILDERS[result.kind](result, query, session_id, source)
    if address is None:
        logger.debug(f"Unaddressable {result.kind.value} result: {result.primary_label!r}")
    return address


# Parsing


@dataclass
class DrillInAddress:
    """Fields shared by every parsed deep link."""

    from_: Optional[str] = None
    q: Optional[str] = None
    session_id: Optional[str] = None
    run_id: Optional[Number] = None

    base_path: ClassVar[str] = ""

    def defined(self) -> dict:
        """Return only the fields that carry a value."""
        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class SymbolAddress(DrillInAddress):
    symbol_hash: Optional[str] = None
    path: Optional[str] = None
    line: Optional[Number] = None

    base_path: ClassVar[str] = SYMBOLS_PATH


@dataclass
class CodeUnitAddress(DrillInAddress):
    unit_hash: Optional[str] = None
    path: Optional[str] = None
    line: Optional[Number] = None

    base_path: ClassVar[str] = CODE_UNITS_PATH


@dataclass
class CommitAddress(DrillInAddress):
    commit_hash: Optional[str] = None

    base_path: ClassVar[str] = COMMITS_PATH


@dataclass
class DiffAddress(DrillInAddress):
    path: Optional[str] = None
    line_new: Optional[Number] = None
    line_old: Optional[Number] = None
    hunk_id: Optional[Number] = None

    base_path: ClassVar[str] = DIFFS_PATH


@dataclass
class DocAddress(DrillInAddress):
    term: Optional[str] = None
    path: Optional[str] = None
    line: Optional[Number] = None
    col: Optional[Number] = None

    base_path: ClassVar[str] = DOCS_PATH


@dataclass
class FileAddress(DrillInAddress):
    path: Optional[str] = None
    line: Optional[Number] = None

    base_path: ClassVar[str] = FILES_PATH


_HREF_PATTERN = re.compile(r"^(/|[a-z][a-z0-9+.-]*://)", re.IGNORECASE)


def _query_params(params: QueryParams) -> Mapping:
    """Accept a mapping, a query string, or a full href."""
    if isinstance(params, Mapping):
        return params
    if not isinstance(params, str):
        return {}
    params = params.strip()
    if _HREF_PATTERN.match(params):
        query = urlsplit(params).query
    else:
        query = params[1:] if params.startswith("?") else params
    return parse_qs(query, keep_blank_values=True)


def _read_value(params: Mapping, key: str):
    value = params.get(key)
    if isinstance(value, (list, tuple)):
        return value[0] if value else None
    return value


def _read_string(params: Mapping, key: str) -> Optional[str]:
    return as_string(_read_value(params, key))


def _read_number(params: Mapping, key: str) -> Optional[Number]:
    return as_number(_read_value(params, key))


def _common_fields(params: Mapping) -> dict:
    return {
        "from_": _read_string(params, "from"),
        "q": _read_string(params, "q"),
        "session_id": _read_string(params, "session_id"),
        "run_id": _read_number(params, "run_id"),
    }


def parse_symbol_address(params: QueryParams) -> SymbolAddress:
    params = _query_params(params)
    return SymbolAddress(
        **_common_fields(params),
        symbol_hash=_read_string(params, "symbol_hash"),
        path=_read_string(params, "path"),
        line=_read_number(params, "line"),
    )


def parse_code_unit_address(params: QueryParams) -> CodeUnitAddress:
    params = _query_params(params)
    return CodeUnitAddress(
        **_common_fields(params),
        unit_hash=_read_string(params, "unit_hash"),
        path=_read_string(params, "path"),
        line=_read_number(params, "line"),
    )


def parse_commit_address(params: QueryParams) -> CommitAddress:
    params = _query_params(params)
    return CommitAddress(
        **_common_fields(params),
        commit_hash=_read_string(params, "commit_hash"),
    )


def parse_diff_address(params: QueryParams) -> DiffAddress:
    params = _query_params(params)
    return DiffAddress(
        **_common_fields(params),
        path=_read_string(params, "path"),
        line_new=_read_number(params, "line_new"),
        line_old=_read_number(params, "line_old"),
        hunk_id=_read_number(params, "hunk_id"),
    )


def parse_doc_address(params: QueryParams) -> DocAddress:
    params = _query_params(params)
    return DocAddress(
        **_common_fields(params),
        term=_read_string(params, "term"),
        path=_read_string(params, "path"),
        line=_read_number(params, "line"),
        col=_read_number(params, "col"),
    )


def parse_file_address(params: QueryParams) -> FileAddress:
    params = _query_params(params)
    return FileAddress(
        **_common_fields(params),
        path=_read_string(params, "path"),
        line=_read_number(params, "line"),
    )


_PARSERS: dict[str, Callable[[QueryParams], DrillInAddress]] = {
    SYMBOLS_PATH: parse_symbol_address,
    CODE_UNITS_PATH: parse_code_unit_address,
    COMMITS_PATH: parse_commit_address,
    DIFFS_PATH: parse_diff_address,
    DOCS_PATH: parse_doc_address,
    FILES_PATH: parse_file_address,
}


def parse_address(href: str) -> Optional[DrillInAddress]:
    """Parse a full deep link, choosing the parser from its base path.

    Returns None when the path is not one of the six entity views.
    """
    if not isinstance(href, str):
        return None
    path = urlsplit(href.strip()).path.rstrip("/")
    parser = _PARSERS.get(path)
    if parser is None:
        return None
    return parser(href)
