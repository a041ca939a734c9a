"""Unit tests for the LocalCache module.

Tests in-memory and file-backed storage, key layout, clearing by page and
section, and the staleness comparison.
"""

import json
import tempfile
from pathlib import Path

import pytest

from sitecms.cache import LocalCache, storage_key


@pytest.fixture
def temp_cache_dir():
    """Create a temporary cache directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def file_cache(temp_cache_dir):
    return LocalCache(cache_dir=temp_cache_dir)


class TestStorageKey:
    """Tests for the cache key layout."""

    def test_key_pattern(self):
        assert storage_key('technology', 'hero') == 'cms_technology_hero'

    def test_key_with_dashes(self):
        key = storage_key('investor-relations', 'annual-return_fy-2024-25')
        assert key == 'cms_investor-relations_annual-return_fy-2024-25'


class TestMemoryCache:
    """Tests for the in-memory cache."""

    def test_get_missing_returns_none(self, cache):
        assert cache.get('technology', 'hero') is None

    def test_set_then_get(self, cache):
        cache.set('technology', 'hero', {'title': 'Hero'}, '2024-01-01T00:00:00Z')

        entry = cache.get('technology', 'hero')
        assert entry.data == {'title': 'Hero'}
        assert entry.updated_at == '2024-01-01T00:00:00Z'

    def test_set_overwrites(self, cache):
        cache.set('technology', 'hero', {'title': 'Old'}, '2024-01-01T00:00:00Z')
        cache.set('technology', 'hero', {'title': 'New'}, '2024-02-01T00:00:00Z')

        assert cache.get('technology', 'hero').data == {'title': 'New'}

    def test_cached_data_does_not_alias_caller(self, cache):
        data = {'items': [{'title': 'A'}]}
        cache.set('technology', 'innovation', data, None)
        data['items'].append({'title': 'B'})

        assert cache.get('technology', 'innovation').data == {'items': [{'title': 'A'}]}

    def test_not_persistent(self, cache):
        assert cache.is_persistent is False

    def test_remove(self, cache):
        cache.set('technology', 'hero', {'title': 'Hero'}, None)
        assert cache.remove('technology', 'hero') is True
        assert cache.remove('technology', 'hero') is False
        assert cache.get('technology', 'hero') is None

    def test_entries_for_page(self, cache):
        cache.set('technology', 'hero', {'title': 'Hero'}, None)
        cache.set('technology', 'intro', {'label': 'Overview'}, None)
        cache.set('contact', 'email-config', {'receiverEmail': 'a@b.c'}, None)

        entries = cache.entries_for_page('technology')
        assert entries == {'hero': {'title': 'Hero'}, 'intro': {'label': 'Overview'}}


class TestFileCache:
    """Tests for the file-backed cache."""

    def test_creates_directory(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            cache_dir = Path(tmpdir) / 'nested' / 'cache'
            LocalCache(cache_dir=str(cache_dir))
            assert cache_dir.exists()

    def test_persists_across_instances(self, temp_cache_dir):
        LocalCache(temp_cache_dir).set('technology', 'hero', {'title': 'Hero'}, '2024-01-01T00:00:00Z')

        entry = LocalCache(temp_cache_dir).get('technology', 'hero')
        assert entry.data == {'title': 'Hero'}
        assert entry.updated_at == '2024-01-01T00:00:00Z'

    def test_file_contents(self, file_cache, temp_cache_dir):
        file_cache.set('technology', 'hero', {'title': 'Hero'}, '2024-01-01T00:00:00Z')

        with open(Path(temp_cache_dir) / 'cms_technology_hero.json') as f:
            stored = json.load(f)
        assert stored == {'data': {'title': 'Hero'}, 'updatedAt': '2024-01-01T00:00:00Z'}

    def test_corrupt_entry_treated_as_missing(self, file_cache, temp_cache_dir):
        (Path(temp_cache_dir) / 'cms_technology_hero.json').write_text('{not json')
        assert file_cache.get('technology', 'hero') is None

    def test_keys(self, file_cache):
        file_cache.set('technology', 'hero', {'a': 1}, None)
        file_cache.set('technology', 'intro', {'a': 1}, None)

        assert file_cache.keys() == ['cms_technology_hero', 'cms_technology_intro']

    def test_section_with_slash_is_stored_safely(self, file_cache):
        file_cache.set('technology', 'a/b', {'a': 1}, None)
        assert file_cache.get('technology', 'a/b').data == {'a': 1}
        assert file_cache.keys() == ['cms_technology_a/b']


class TestClear:
    """Tests for clearing cached content."""

    @pytest.fixture
    def filled_cache(self, cache):
        cache.set('technology', 'hero', {'a': 1}, None)
        cache.set('technology', 'intro', {'a': 1}, None)
        cache.set('contact', 'email-config', {'a': 1}, None)
        return cache

    def test_clear_section(self, filled_cache):
        assert filled_cache.clear('technology', 'hero') == 1
        assert filled_cache.get('technology', 'hero') is None
        assert filled_cache.get('technology', 'intro') is not None

    def test_clear_page(self, filled_cache):
        assert filled_cache.clear('technology') == 2
        assert filled_cache.keys() == ['cms_contact_email-config']

    def test_clear_all(self, filled_cache):
        assert filled_cache.clear() == 3
        assert filled_cache.keys() == []

    def test_clear_missing_section(self, filled_cache):
        assert filled_cache.clear('technology', 'missing') == 0


class TestIsStale:
    """Tests for the staleness comparison."""

    def test_stale_without_entry(self, cache):
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00Z') is True

    def test_stale_without_updated_at(self, cache):
        cache.set('technology', 'hero', {'a': 1}, None)
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00Z') is True

    def test_stale_when_remote_newer(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-01T00:00:00Z')
        assert cache.is_stale('technology', 'hero', '2024-01-02T00:00:00Z') is True

    def test_fresh_when_remote_older(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-02T00:00:00Z')
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00Z') is False

    def test_fresh_when_equal(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-01T00:00:00.000Z')
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00Z') is False

    def test_compares_across_offsets(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-01T12:00:00+02:00')
        # 10:30 UTC is later than 12:00+02:00 (10:00 UTC)
        assert cache.is_stale('technology', 'hero', '2024-01-01T10:30:00Z') is True

    def test_short_fraction_compared(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-01T00:00:00.5Z')
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00.25Z') is False
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00.75Z') is True

    def test_stale_when_unparseable(self, cache):
        cache.set('technology', 'hero', {'a': 1}, 'yesterday')
        assert cache.is_stale('technology', 'hero', '2024-01-01T00:00:00Z') is True

    def test_does_not_mutate(self, cache):
        cache.set('technology', 'hero', {'a': 1}, '2024-01-01T00:00:00Z')
        cache.is_stale('technology', 'hero', '2025-01-01T00:00:00Z')
        assert cache.get('technology', 'hero').updated_at == '2024-01-01T00:00:00Z'
