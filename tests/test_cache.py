"""Tests for the selection cache."""

import json

import pytest

from refactor_workbench.cache import SelectionCache


@pytest.fixture
def cache_path(tmp_path):
    SelectionCache.reset_instance()
    yield tmp_path / "cache" / "selection.json"
    SelectionCache.reset_instance()


class TestSelectionCache:
    """Tests for SelectionCache."""

    def test_empty(self, cache_path):
        cache = SelectionCache(cache_path)
        assert cache.workspace_id is None
        assert cache.session_id("glazed") is None

    def test_select_and_save(self, cache_path):
        cache = SelectionCache(cache_path)
        cache.select("glazed", "s1")
        cache.save()
        assert json.loads(cache_path.read_text()) == {"workspace_id": "glazed", "sessions": {"glazed": "s1"}}

    def test_reload_from_disk(self, cache_path):
        cache = SelectionCache(cache_path)
        cache.select("glazed", "s1")
        cache.save()
        SelectionCache.reset_instance()
        reloaded = SelectionCache(cache_path)
        assert reloaded is not cache
        assert reloaded.workspace_id == "glazed"
        assert reloaded.session_id("glazed") == "s1"

    def test_singleton(self, cache_path):
        assert SelectionCache(cache_path) is SelectionCache()

    def test_select_without_session_forgets_it(self, cache_path):
        cache = SelectionCache(cache_path)
        cache.select("glazed", "s1")
        cache.select("glazed")
        assert cache.session_id("glazed") is None
        assert cache.workspace_id == "glazed"

    def test_sessions_are_per_workspace(self, cache_path):
        cache = SelectionCache(cache_path)
        cache.select("glazed", "s1")
        cache.select("other", "s2")
        assert cache.workspace_id == "other"
        assert cache.session_id("glazed") == "s1"

    def test_save_only_when_dirty(self, cache_path):
        SelectionCache(cache_path).save()
        assert not cache_path.exists()

    def test_corrupt_file_is_ignored(self, cache_path):
        cache_path.parent.mkdir(parents=True)
        cache_path.write_text("{not json")
        assert SelectionCache(cache_path).workspace_id is None

    def test_clear(self, cache_path):
        cache = SelectionCache(cache_path)
        cache.select("glazed", "s1")
        cache.clear()
        assert cache.workspace_id is None
