"""
Content records and timestamp helpers.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

KEY_PREFIX = "cms_"

_FRACTION_RE = re.compile(r"\.(\d+)(?=[+-]\d\d:\d\d$|$)")


def storage_key(page: str, section: str) -> str:
    """Build the cache key for a page section."""
    return f"{KEY_PREFIX}{page}_{section}"


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and a Z suffix."""
    now = datetime.now(timezone.utc)
    return now.strftime('%Y-%m-%dT%H:%M:%S.') + f"{now.microsecond // 1000:03d}Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into an aware datetime.

    Args:
        value: Timestamp string ('Z' suffix, explicit offset or naive)

    Returns:
        Aware datetime (naive values are taken as UTC), or None if unparseable
    """
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    if text.endswith('Z') or text.endswith('z'):
        text = text[:-1] + '+00:00'

    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION_RE.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def has_content(data: Any) -> bool:
    """True if data is a non-empty mapping or list."""
    return isinstance(data, (dict, list)) and len(data) > 0


@dataclass
class CMSContent:
    """Content returned by fetch and save: the section data and when it was written."""

    data: Any
    updated_at: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize using the wire/cache field names."""
        return {'data': self.data, 'updatedAt': self.updated_at}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "CMSContent":
        """Build from a {data, updatedAt} mapping; missing updatedAt becomes now."""
        return cls(data=obj.get('data'), updated_at=obj.get('updatedAt') or utc_now_iso())


@dataclass
class CacheEntry:
    """A locally cached {data, updatedAt} pair for one page/section."""

    data: Any
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {'data': self.data, 'updatedAt': self.updated_at}

    @classmethod
    def from_dict(cls, obj: Dict[str, Any]) -> "CacheEntry":
        return cls(data=obj.get('data'), updated_at=obj.get('updatedAt'))

    def to_content(self) -> CMSContent:
        """Convert to CMSContent, stamping now when updatedAt is missing."""
        return CMSContent(data=self.data, updated_at=self.updated_at or utc_now_iso())


@dataclass
class ContentRecord:
    """Content of one page section as held by the CMS."""

    page: str
    section: str
    data: Dict[str, Any] = field(default_factory=dict)
    updated_at: Optional[str] = None

    @property
    def key(self) -> str:
        return storage_key(self.page, self.section)
