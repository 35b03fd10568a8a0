"""Tests for session resolution and run-id scoping."""

import asyncio
import logging

import pytest

from refactor_workbench.sessions import (
    DOMAINS,
    Session,
    SessionContext,
    SessionRunIds,
    load_session_context,
    normalize_availability,
    reduce_for_unified_search,
    resolve_active_session,
    resolve_run_ids,
)


@pytest.fixture
def session_a():
    return Session(id="A", runs={"symbols": 44, "commits": 42, "gopls_refs": 46})


@pytest.fixture
def session_b():
    return Session(id="B", runs={"symbols": 50, "tree_sitter": 51})


class FakeSessionProvider:
    """Minimal provider stand-in that only lists sessions."""

    def __init__(self, sessions):
        self.sessions = sessions
        self.calls = []

    async def list_sessions(self, workspace_id):
        self.calls.append(workspace_id)
        return self.sessions


class TestResolveActiveSession:
    """Tests for picking the active session."""

    def test_defaults_to_first(self, session_a, session_b):
        assert resolve_active_session([session_a, session_b]) is session_a

    def test_explicit_session(self, session_a, session_b):
        assert resolve_active_session([session_a, session_b], "B") is session_b

    def test_unknown_explicit_falls_back_to_first(self, session_a, session_b):
        assert resolve_active_session([session_a, session_b], "Z") is session_a

    def test_blank_explicit_falls_back_to_first(self, session_a, session_b):
        assert resolve_active_session([session_a, session_b], "") is session_a

    def test_no_sessions(self):
        assert resolve_active_session([], "A") is None


class TestRunIds:
    """Tests for run-id projection and search reduction."""

    def test_resolve_run_ids(self, session_a):
        run_ids = resolve_run_ids(session_a)
        assert run_ids == SessionRunIds(symbols=44, commits=42, gopls_refs=46)

    def test_resolve_run_ids_without_session(self):
        run_ids = resolve_run_ids(None)
        assert all(run_ids.get(domain) is None for domain in DOMAINS)

    def test_reduce_maps_domain_keys(self):
        run_ids = SessionRunIds(symbols=1, code_units=2, commits=3, diff=4, doc_hits=5)
        assert reduce_for_unified_search(run_ids) == {
            "symbols": 1,
            "code_units": 2,
            "diffs": 4,
            "commits": 3,
            "doc_hits": 5,
        }

    def test_reduce_excludes_refs_and_tree_sitter(self):
        """Test gopls_refs and tree_sitter never reach search."""
        run_ids = SessionRunIds(symbols=7, gopls_refs=8, tree_sitter=9)
        assert reduce_for_unified_search(run_ids) == {"symbols": 7}

    def test_reduce_drops_zero_and_missing(self):
        run_ids = SessionRunIds(symbols=0, commits=None, diff=12)
        assert reduce_for_unified_search(run_ids) == {"diffs": 12}

    def test_get_unknown_domain(self):
        assert SessionRunIds(symbols=1).get("bogus") is None


class TestAvailability:
    """Tests for availability normalization."""

    def test_legacy_map_is_migrated(self):
        """Test a 6-domain map gains tree_sitter from the runs."""
        raw = {domain: True for domain in DOMAINS[:-1]}
        availability = normalize_availability(raw, {"tree_sitter": 3})
        assert set(availability) == set(DOMAINS)
        assert availability["tree_sitter"] is True

    def test_missing_domains_derive_from_runs(self):
        availability = normalize_availability({}, {"symbols": 1})
        assert availability["symbols"] is True
        assert availability["commits"] is False

    def test_explicit_flags_win(self):
        availability = normalize_availability({"symbols": False}, {"symbols": 1})
        assert availability["symbols"] is False


class TestSessionFromJson:
    """Tests for decoding sessions."""

    def test_from_json(self):
        session = Session.from_json({
            "id": "main",
            "root_path": "/repo",
            "git_from": "HEAD~20",
            "git_to": "HEAD",
            "runs": {"symbols": 44, "commits": "42", "bogus": 1, "diff": "x", "doc_hits": True},
            "availability": {"symbols": True},
        })
        assert session.runs == {"symbols": 44, "commits": 42}
        assert session.label == "HEAD~20..HEAD"
        assert session.is_available("symbols")
        assert session.is_available("commits")
        assert not session.is_available("diff")
        assert session.available_count == 2

    def test_label_defaults_to_id(self):
        assert Session.from_json({"id": "s1"}).label == "s1"

    def test_inconsistent_domains(self):
        session = Session(id="s", runs={"symbols": 1}, availability={"symbols": False})
        assert session.inconsistent_domains() == ["symbols"]


class TestSessionContext:
    """Tests for the resolved session context."""

    def test_from_sessions(self, session_a, session_b):
        context = SessionContext.from_sessions("ws", [session_a, session_b], "B")
        assert context.active_session is session_b
        assert context.session_id == "B"
        assert context.run_ids.symbols == 50
        assert context.search_run_ids == {"symbols": 50}

    def test_without_sessions(self):
        context = SessionContext.from_sessions("ws", [])
        assert not context.has_session
        assert context.search_run_ids == {}
        assert not context.is_available("symbols")

    def test_warns_on_inconsistent_session(self, caplog):
        session = Session(id="s", runs={"symbols": 1}, availability={"symbols": False})
        with caplog.at_level(logging.WARNING, logger="refactor_workbench.sessions"):
            SessionContext.from_sessions("ws", [session])
        assert "unavailable domains: symbols" in caplog.text

    def test_is_available(self):
        session = Session.from_json({"id": "s", "runs": {"commits": 1}})
        context = SessionContext.from_sessions("ws", [session])
        assert context.is_available("commits")
        assert not context.is_available("symbols")


class TestLoadSessionContext:
    """Tests for loading the context through a provider."""

    def test_loads_sessions(self, session_a, session_b):
        provider = FakeSessionProvider([session_a, session_b])
        context = asyncio.run(load_session_context(provider, "ws"))
        assert provider.calls == ["ws"]
        assert context.active_session is session_a
        assert context.search_run_ids == {"symbols": 44, "commits": 42}

    def test_no_workspace_skips_provider(self):
        provider = FakeSessionProvider([])
        context = asyncio.run(load_session_context(provider, None, "A"))
        assert provider.calls == []
        assert context.workspace_id is None
        assert not context.has_session
