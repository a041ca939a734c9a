"""
Local cache store for CMS content.

Entries are {data, updatedAt} pairs keyed by cms_{page}_{section}. The cache
is an accelerator and fallback only; the CMS holds the durable copy, so any
entry may be cleared without data loss.
"""

import json
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote, unquote

from sitecms.logger import setup_logger
from sitecms.models import KEY_PREFIX, CacheEntry, parse_timestamp, storage_key

logger = setup_logger(__name__)


class LocalCache:
    """
    Key-value store for cached CMS content.

    With a cache_dir each entry is persisted as one JSON file; without one
    entries live in memory for the lifetime of the instance.
    """

    def __init__(self, cache_dir: Optional[str] = None):
        """
        Initialize the cache.

        Args:
            cache_dir: Directory for entry files, or None for in-memory storage
        """
        self.cache_dir = Path(cache_dir) if cache_dir else None
        self._memory: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

        if self.cache_dir is not None:
            self.cache_dir.mkdir(parents=True, exist_ok=True)

    @property
    def is_persistent(self) -> bool:
        return self.cache_dir is not None

    def _path_for(self, key: str) -> Path:
        return self.cache_dir / f"{quote(key, safe='')}.json"

    def _read(self, key: str) -> Optional[Dict[str, Any]]:
        if self.cache_dir is None:
            return self._memory.get(key)

        path = self._path_for(key)
        if not path.exists():
            return None
        with open(path, 'r') as f:
            return json.load(f)

    def _write(self, key: str, value: Dict[str, Any]) -> None:
        if self.cache_dir is None:
            # Round-trip through JSON so cached values never alias caller objects
            self._memory[key] = json.loads(json.dumps(value))
            return

        path = self._path_for(key)
        tmp_path = path.with_suffix('.tmp')
        with open(tmp_path, 'w') as f:
            json.dump(value, f, indent=2)
        tmp_path.replace(path)

    def _delete(self, key: str) -> bool:
        if self.cache_dir is None:
            return self._memory.pop(key, None) is not None

        path = self._path_for(key)
        if path.exists():
            path.unlink()
            return True
        return False

    def get(self, page: str, section: str) -> Optional[CacheEntry]:
        """
        Read the cached entry for a page section.

        Args:
            page: Page identifier
            section: Section identifier

        Returns:
            CacheEntry, or None if missing or unreadable
        """
        key = storage_key(page, section)
        try:
            with self._lock:
                raw = self._read(key)
        except (OSError, ValueError) as e:
            logger.error("Error reading cache entry %s: %s", key, e)
            return None

        if not isinstance(raw, dict):
            return None
        return CacheEntry.from_dict(raw)

    def set(self, page: str, section: str, data: Any, updated_at: Optional[str]) -> None:
        """Store (overwrite) the entry for a page section."""
        key = storage_key(page, section)
        with self._lock:
            self._write(key, CacheEntry(data=data, updated_at=updated_at).to_dict())
        logger.debug("Cached %s (updatedAt=%s)", key, updated_at)

    def remove(self, page: str, section: str) -> bool:
        """Remove the entry for a page section. Returns True if one existed."""
        with self._lock:
            return self._delete(storage_key(page, section))

    def keys(self, prefix: str = KEY_PREFIX) -> List[str]:
        """List cache keys starting with prefix."""
        with self._lock:
            if self.cache_dir is None:
                names = list(self._memory.keys())
            else:
                names = [unquote(p.stem) for p in self.cache_dir.glob('*.json')]
        return sorted(k for k in names if k.startswith(prefix))

    def entries_for_page(self, page: str) -> Dict[str, Any]:
        """
        Collect cached data for every section of a page.

        Returns:
            Mapping of section identifier to cached data
        """
        prefix = f"{KEY_PREFIX}{page}_"
        sections: Dict[str, Any] = {}

        for key in self.keys(prefix):
            section = key[len(prefix):]
            entry = self.get(page, section)
            if entry is not None and entry.data is not None:
                sections[section] = entry.data

        return sections

    def clear(self, page: Optional[str] = None, section: Optional[str] = None) -> int:
        """
        Clear cached content.

        Args:
            page: Only clear this page (all pages if None)
            section: Only clear this section of page (requires page)

        Returns:
            Number of entries removed
        """
        if page and section:
            return 1 if self.remove(page, section) else 0

        prefix = f"{KEY_PREFIX}{page}_" if page else KEY_PREFIX
        removed = 0
        for key in self.keys(prefix):
            with self._lock:
                if self._delete(key):
                    removed += 1

        logger.info("Cleared %d cache entries (prefix=%s)", removed, prefix)
        return removed

    def is_stale(self, page: str, section: str, remote_updated_at: str) -> bool:
        """
        Decide whether the cached entry is older than the remote copy.

        Args:
            page: Page identifier
            section: Section identifier
            remote_updated_at: updatedAt reported by the CMS

        Returns:
            True if there is no entry, it has no updatedAt, a timestamp cannot
            be parsed, or the remote timestamp is strictly later
        """
        entry = self.get(page, section)
        if entry is None or not entry.updated_at:
            return True

        cached_time = parse_timestamp(entry.updated_at)
        remote_time = parse_timestamp(remote_updated_at)
        if cached_time is None or remote_time is None:
            return True

        return remote_time > cached_time

    def __repr__(self) -> str:
        return f"LocalCache(cache_dir={self.cache_dir})"
