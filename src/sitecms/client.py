"""
CMS Client - content fetch and save with local cache fallback.

The CMS is the source of truth. Every successful read refreshes the local
cache; when the CMS is unreachable or has no data, reads fall back to the
cache and then to a caller-supplied default. Saves always land in the local
cache and are always broadcast, even when the CMS rejects them or cannot be
reached; in that case SaveError is raised afterwards so the caller can
report it.

Example:
    from sitecms.client import CMSClient

    client = CMSClient("https://cms.example.com")
    content = client.fetch("technology", "hero", default_value={"title": "Technology"})
    client.save("technology", "hero", {"title": "New title"})
"""

import copy
import json
from typing import Any, Dict, Optional
from urllib.parse import quote

import requests
from requests.exceptions import RequestException

from sitecms.cache import LocalCache
from sitecms.config import get_config
from sitecms.events import ChangeBroadcaster, ChangeEvent, get_broadcaster
from sitecms.exceptions import CMSError, SaveError, TransportError, ValidationError
from sitecms.logger import setup_logger
from sitecms.models import CMSContent, has_content, utc_now_iso

logger = setup_logger(__name__)

DEFAULT_TIMEOUT = 10  # seconds

NETWORK_ERROR_MESSAGE = (
    "Cannot connect to server. Please ensure the CMS backend is running and "
    "accessible. Your changes have been saved to local storage."
)
SAVE_FAILED_MESSAGE = "Failed to save CMS data. Saved to local storage as backup."


class CMSClient:
    """
    Client for reading and writing page section content.

    Attributes:
        base_url: CMS base address (no trailing slash)
        cache: Local cache used as fallback and accelerator
        broadcaster: Channel that receives a ChangeEvent after every save
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[LocalCache] = None,
        broadcaster: Optional[ChangeBroadcaster] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize the CMS client.

        Args:
            base_url: CMS base address (uses config cms.api_url if None)
            cache: LocalCache instance (built from config cache.dir if None)
            broadcaster: Change channel (uses the global broadcaster if None)
            timeout: Request timeout in seconds (uses config cms.timeout if None)
            session: Optional requests session to reuse
        """
        config = get_config()
        if base_url is None:
            base_url = config.api_url
        self.base_url = (base_url or '').rstrip('/')
        self.cache = cache if cache is not None else LocalCache(config.cache_dir)
        self.broadcaster = broadcaster if broadcaster is not None else get_broadcaster()
        self.timeout = timeout if timeout is not None else config.timeout

        self.session = session or requests.Session()
        # Content-Type comes from json= per request; the session may be shared with UploadClient
        self.session.headers.update({'Accept': 'application/json'})

        logger.info("CMS client initialized with base URL: %s", self.base_url or '(relative)')

    def _section_url(self, page: str, section: str) -> str:
        return (
            f"{self.base_url}/api/admin/cms/page/{quote(page, safe='')}"
            f"/section/{quote(section, safe='')}"
        )

    def _page_url(self, page: str) -> str:
        return f"{self.base_url}/api/admin/cms/page/{quote(page, safe='')}"

    def fetch(
        self,
        page: str,
        section: str,
        skip_cache: bool = False,
        default_value: Any = None,
    ) -> CMSContent:
        """
        Get content for a page section.

        Tries the CMS first, then the local cache, then default_value. Never
        raises: every failure degrades to the next source.

        Args:
            page: Page identifier (e.g. 'technology')
            section: Section identifier (e.g. 'hero')
            skip_cache: Skip the CMS request and read the local cache directly
            default_value: Returned as data when nothing else has content

        Returns:
            CMSContent with data and updatedAt
        """
        if not skip_cache:
            remote = self._fetch_remote(page, section)
            if remote is not None:
                self.cache.set(page, section, remote.data, remote.updated_at)
                return remote

        entry = self.cache.get(page, section)
        if entry is not None and has_content(entry.data):
            logger.debug("Serving %s/%s from local cache", page, section)
            return entry.to_content()

        data = copy.deepcopy(default_value) if default_value is not None else {}
        return CMSContent(data=data, updated_at=utc_now_iso())

    def _fetch_remote(self, page: str, section: str) -> Optional[CMSContent]:
        """Read a section from the CMS; None when it has no usable data or fails."""
        url = self._section_url(page, section)

        try:
            response = self.session.get(url, timeout=self.timeout)

            if response.status_code == 404:
                logger.info("No CMS data in database for %s/%s", page, section)
                return None

            if not response.ok:
                logger.warning("CMS read for %s/%s failed: %s", page, section, response.status_code)
                return None

            result = response.json()

        except RequestException as e:
            logger.error("Error fetching CMS data for %s/%s: %s", page, section, e)
            return None
        except ValueError as e:
            logger.error("Malformed CMS response for %s/%s: %s", page, section, e)
            return None

        if not isinstance(result, dict) or not result.get('success'):
            return None

        data = result.get('data')
        if not has_content(data):
            return None

        return CMSContent(data=data, updated_at=result.get('updatedAt') or utc_now_iso())

    def fetch_page(self, page: str) -> Dict[str, Any]:
        """
        Get content for every section of a page.

        Falls back to the cached sections of the page when the CMS cannot be
        reached.

        Args:
            page: Page identifier

        Returns:
            Mapping of section identifier to section data
        """
        try:
            response = self.session.get(self._page_url(page), timeout=self.timeout)
            if response.ok:
                result = response.json()
                if isinstance(result, dict) and result.get('success') and isinstance(result.get('data'), dict):
                    return result['data']
            elif response.status_code != 404:
                logger.warning("CMS page read for %s failed: %s", page, response.status_code)
            return {}

        except (RequestException, ValueError) as e:
            logger.error("Error loading CMS page %s from API: %s", page, e)
            return self.cache.entries_for_page(page)

    def save(self, page: str, section: str, data: Any) -> CMSContent:
        """
        Save content for a page section.

        On success the CMS result is cached and broadcast. On any failure the
        submitted data is cached with the current time, broadcast, and a
        SaveError is raised.

        Args:
            page: Page identifier
            section: Section identifier
            data: Section content

        Returns:
            Saved CMSContent as reported by the CMS

        Raises:
            SaveError: If the CMS did not accept the save (network_error=True
                when it could not be reached)
            ValidationError: If the CMS rejected the payload
        """
        try:
            saved = self._save_remote(page, section, data)
        except CMSError as e:
            logger.error("Error saving CMS data for %s/%s: %s", page, section, e)
            fallback = CMSContent(data=data, updated_at=utc_now_iso())
            self._store_and_broadcast(page, section, fallback)
            raise self._as_save_error(e) from e

        self._store_and_broadcast(page, section, saved)
        logger.info("Saved CMS data for %s/%s (updatedAt=%s)", page, section, saved.updated_at)
        return saved

    def _save_remote(self, page: str, section: str, data: Any) -> CMSContent:
        url = self._section_url(page, section)
        logger.debug("Saving CMS data to %s", url)

        try:
            response = self.session.post(url, json=data, timeout=self.timeout)
        except RequestException as e:
            raise TransportError(f"Network error: {e}", details={'url': url})

        if not response.ok:
            message = self._error_message(response)
            error_class = ValidationError if 400 <= response.status_code < 500 else SaveError
            raise error_class(message, status_code=response.status_code)

        try:
            result = response.json()
        except ValueError:
            raise TransportError("Malformed response from CMS", details={'url': url})

        if not isinstance(result, dict):
            raise TransportError("Malformed response from CMS", details={'url': url})

        if not result.get('success'):
            raise ValidationError(result.get('message') or 'Failed to save CMS data')

        return CMSContent(
            data=result['data'] if result.get('data') is not None else data,
            updated_at=result.get('updatedAt') or utc_now_iso(),
        )

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """Build an error message from a failed response body."""
        message = f"Failed to save CMS data: {response.status_code} {response.reason}"
        text = response.text or ''

        try:
            body = json.loads(text)
        except ValueError:
            if text:
                message += f" - {text}"
            return message

        if isinstance(body, dict):
            return body.get('message') or body.get('error') or message
        return message

    @staticmethod
    def _as_save_error(error: CMSError) -> SaveError:
        if isinstance(error, SaveError):
            return error
        if isinstance(error, TransportError) and error.message.startswith('Network error'):
            return SaveError(NETWORK_ERROR_MESSAGE, network_error=True, details=error.details)
        return SaveError(error.message or SAVE_FAILED_MESSAGE, details=error.details)

    def _store_and_broadcast(self, page: str, section: str, content: CMSContent) -> None:
        self.cache.set(page, section, content.data, content.updated_at)
        self.broadcaster.publish(ChangeEvent(
            page=page,
            section=section,
            data=content.data,
            updated_at=content.updated_at,
        ))

    def is_stale(self, page: str, section: str, remote_updated_at: str) -> bool:
        """Check whether the cached copy is older than remote_updated_at."""
        return self.cache.is_stale(page, section, remote_updated_at)

    def clear_cache(self, page: Optional[str] = None, section: Optional[str] = None) -> int:
        """Clear cached content for a section, a page, or everything."""
        return self.cache.clear(page, section)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def __repr__(self) -> str:
        return f"CMSClient(base_url={self.base_url}, cache={self.cache!r})"
