"""Tests for unified search."""

import asyncio

import pytest

from refactor_workbench.models import ResultKind, SearchHit, ResultVariant
from refactor_workbench.search import (
    UnifiedSearch,
    build_search_request,
    group_hits,
    normalize_type,
    parse_search_query,
    result_from_json,
)
from refactor_workbench.sessions import Session, SessionContext


class CapturingProvider:
    """Returns canned items and keeps the last search request."""

    def __init__(self, items=None):
        self.items = items or []
        self.requests = []

    async def search(self, workspace_id, request):
        self.requests.append((workspace_id, request))
        return self.items


@pytest.fixture
def context():
    session = Session.from_json({
        "id": "s1",
        "runs": {"symbols": 44, "code_units": 44, "diff": 43, "commits": 42, "doc_hits": 45, "gopls_refs": 46},
    })
    return SessionContext.from_sessions("glazed", [session])


class TestParseSearchQuery:
    """Tests for search query parsing."""

    def test_simple_query(self):
        """Test simple text query."""
        query, filters = parse_search_query("CommandProcessor")
        assert query == "CommandProcessor"
        assert filters == {}

    def test_type_modifier(self):
        """Test type: modifier with aliases and duplicates."""
        query, filters = parse_search_query("type:symbol,commits,symbols Client")
        assert query == "Client"
        assert filters["types"] == ["symbols", "commits"]

    def test_unknown_type_dropped(self):
        query, filters = parse_search_query("types:bogus Client")
        assert query == "Client"
        assert "types" not in filters

    def test_unknown_types_mixed_with_known(self):
        _, filters = parse_search_query("type:bogus Client type:commit")
        assert filters["types"] == ["commits"]

    def test_filter_modifiers(self):
        """Test path:, pkg:, kind: and term: modifiers."""
        query, filters = parse_search_query("path:pkg/handlers kind:func Process pkg:github.com/x/y term:TODO")
        assert query == "Process"
        assert filters == {
            "path": "pkg/handlers",
            "symbol_kind": "func",
            "pkg": "github.com/x/y",
            "term": "TODO",
        }

    def test_unknown_modifier_kept(self):
        query, filters = parse_search_query("http://example.com foo:bar baz")
        assert query == "http://example.com foo:bar baz"
        assert filters == {}

    def test_whitespace_collapsed(self):
        query, _ = parse_search_query("  a   type:docs   b  ")
        assert query == "a b"

    def test_normalize_type(self):
        assert normalize_type("Code-Unit") == "code_units"
        assert normalize_type(" diff ") == "diffs"
        assert normalize_type("runs") is None


class TestBuildSearchRequest:
    """Tests for request bodies."""

    def test_minimal(self):
        assert build_search_request(" x ") == {"query": "x", "limit": 50, "offset": 0}

    def test_full(self):
        request = build_search_request(
            "x",
            session_id="s1",
            run_ids={"symbols": 44},
            types=["symbols"],
            filters={"path": "pkg", "pkg": ""},
            limit=10,
            offset=20,
        )
        assert request == {
            "query": "x",
            "limit": 10,
            "offset": 20,
            "session_id": "s1",
            "types": ["symbols"],
            "filters": {"path": "pkg"},
            "run_ids": {"symbols": 44},
        }

    def test_doc_hits_run_id_sent_as_docs(self):
        """Test the reduced map's doc_hits key goes out as docs."""
        request = build_search_request("todo", run_ids={"symbols": 44, "doc_hits": 45}, types=["docs"])
        assert request["run_ids"] == {"symbols": 44, "docs": 45}


class TestResultFromJson:
    """Tests for decoding wire results."""

    def test_symbol(self):
        result = result_from_json({
            "type": "symbol",
            "primary": "Client",
            "secondary": "pkg",
            "path": "pkg/x.go",
            "line": 45,
            "run_id": 44,
            "payload": {"symbol_hash": "h", "run_id": 44, "file": "pkg/x.go", "line": 45},
        })
        assert result.kind is ResultKind.SYMBOL
        assert result.primary_label == "Client"
        assert result.payload.symbol_hash == "h"
        assert result.payload.file_path == "pkg/x.go"

    def test_diff_line_numbers(self):
        result = result_from_json({
            "type": "diff",
            "payload": {"run_id": 43, "path": "a.go", "line_no_old": 3, "line_no_new": 4, "hunk_id": 7},
        })
        assert (result.payload.line_old, result.payload.line_new, result.payload.hunk_id) == (3, 4, 7)

    def test_code_unit_start_line(self):
        result = result_from_json({"type": "code_unit", "payload": {"unit_hash": "u", "start_line": 9}})
        assert result.payload.start_line == 9

    def test_missing_payload(self):
        result = result_from_json({"type": "commit", "primary": "Fix", "commit_hash": "abc", "payload": None})
        assert result.payload.hash is None
        assert result.commit_hash == "abc"

    def test_unknown_type(self):
        assert result_from_json({"type": "run"}) is None
        assert result_from_json({}) is None


class TestGroupHits:
    """Tests for grouping hits by kind."""

    def test_groups_in_request_order(self):
        hits = [
            SearchHit(ResultVariant(kind=ResultKind.FILE, primary_label="a")),
            SearchHit(ResultVariant(kind=ResultKind.SYMBOL, primary_label="b")),
            SearchHit(ResultVariant(kind=ResultKind.FILE, primary_label="c")),
        ]
        grouped = group_hits(hits)
        assert list(grouped) == [ResultKind.SYMBOL, ResultKind.FILE]
        assert [h.result.primary_label for h in grouped[ResultKind.FILE]] == ["a", "c"]


class TestUnifiedSearch:
    """Tests for the search workflow."""

    def test_request_is_session_scoped(self, context):
        """Test run ids are reduced and refs are left out."""
        provider = CapturingProvider()
        asyncio.run(UnifiedSearch(provider, context).search("Client"))
        workspace_id, request = provider.requests[0]
        assert workspace_id == "glazed"
        assert request["session_id"] == "s1"
        assert request["run_ids"] == {
            "symbols": 44,
            "code_units": 44,
            "diffs": 43,
            "commits": 42,
            "docs": 45,
        }
        assert context.search_run_ids["doc_hits"] == 45

    def test_hits_carry_addresses(self, context):
        provider = CapturingProvider([
            {"type": "symbol", "primary": "Client", "payload": {"symbol_hash": "a7b3c9f2", "run_id": 44}},
            {"type": "code_unit", "primary": "Client", "payload": {"run_id": 44}},
            {"type": "mystery", "primary": "?"},
        ])
        hits = asyncio.run(UnifiedSearch(provider, context).search("type:symbols Client"))
        assert len(hits) == 2
        assert hits[0].address == "/symbols?from=search&q=Client&session_id=s1&symbol_hash=a7b3c9f2&run_id=44"
        assert not hits[1].addressable

    def test_inline_types_win(self, context):
        provider = CapturingProvider()
        asyncio.run(UnifiedSearch(provider, context).search("type:commits Fix", types=["symbols"]))
        assert provider.requests[0][1]["types"] == ["commits"]

    def test_types_argument(self, context):
        provider = CapturingProvider()
        asyncio.run(UnifiedSearch(provider, context).search("Fix", types=["docs"], limit=5, offset=10))
        request = provider.requests[0][1]
        assert request["types"] == ["docs"]
        assert request["limit"] == 5
        assert request["offset"] == 10

    def test_blank_query_skips_provider(self, context):
        provider = CapturingProvider()
        assert asyncio.run(UnifiedSearch(provider, context).search("type:symbols   ")) == []
        assert provider.requests == []

    def test_no_workspace(self):
        provider = CapturingProvider()
        context = SessionContext(workspace_id=None)
        assert asyncio.run(UnifiedSearch(provider, context).search("Client")) == []
        assert provider.requests == []

    def test_no_session(self):
        provider = CapturingProvider()
        context = SessionContext.from_sessions("glazed", [])
        asyncio.run(UnifiedSearch(provider, context).search("Client"))
        request = provider.requests[0][1]
        assert "session_id" not in request
        assert "run_ids" not in request
