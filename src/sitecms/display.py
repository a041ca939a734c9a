"""
Display surface for one public page section.

A SectionView fetches its section when activated, subscribes to change
events for exactly that page/section, re-fetches when one arrives, and
unsubscribes when deactivated.
"""

import dataclasses
import threading
from typing import Any, Callable, Dict, List, Optional

from sitecms.client import CMSClient
from sitecms.events import ChangeBroadcaster, ChangeEvent, Subscription
from sitecms.logger import setup_logger
from sitecms.sections import SectionRegistry, SectionSchema, merge_defaults, visible_items
from sitecms.urls import normalize_url

logger = setup_logger(__name__)


class SectionView:
    """
    Live view of a page section's content.

    Usage:
        with SectionView('technology', 'innovation', client) as view:
            render(view.content)
    """

    def __init__(
        self,
        page: str,
        section: str,
        client: CMSClient,
        broadcaster: Optional[ChangeBroadcaster] = None,
        registry: Optional[SectionRegistry] = None,
        defaults: Optional[Dict[str, Any]] = None,
        on_change: Optional[Callable[["SectionView"], None]] = None,
    ):
        """
        Initialize the view.

        Args:
            page: Page identifier
            section: Section identifier
            client: CMS client used for fetching
            broadcaster: Change channel (uses the client's if None)
            registry: Section shapes (bundled sections.yaml if None)
            defaults: Display defaults overriding those of the section shape
            on_change: Callback after content was (re)loaded
        """
        self.page = page
        self.section = section
        self.client = client
        self.broadcaster = broadcaster or client.broadcaster
        registry = registry or SectionRegistry.load()
        self.schema: SectionSchema = registry.get(page, section)
        if defaults is not None:
            self.schema = dataclasses.replace(self.schema, defaults=dict(defaults))

        self._on_change = on_change
        self._subscription: Optional[Subscription] = None
        self._lock = threading.Lock()

        self.content: Dict[str, Any] = merge_defaults(self.schema, None)
        self.updated_at: Optional[str] = None
        self.loading = True
        self.fetch_count = 0

    @property
    def active(self) -> bool:
        return self._subscription is not None

    def activate(self) -> None:
        """Load content and start listening for changes to this section."""
        if self._subscription is not None:
            return

        self._subscription = self.broadcaster.subscribe(
            self._handle_change,
            page=self.page,
            section=self.section,
        )
        self.refresh()
        logger.debug("Activated view %s/%s", self.page, self.section)

    def deactivate(self) -> None:
        """Stop listening for changes. Safe to call more than once."""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
            logger.debug("Deactivated view %s/%s", self.page, self.section)

    def refresh(self) -> Dict[str, Any]:
        """Fetch the section and merge it with display defaults."""
        result = self.client.fetch(self.page, self.section, default_value=self.schema.defaults)

        with self._lock:
            self.content = merge_defaults(self.schema, result.data)
            self.updated_at = result.updated_at
            self.loading = False
            self.fetch_count += 1

        if self._on_change:
            try:
                self._on_change(self)
            except Exception as e:
                logger.error("Error in change callback for %s/%s: %s", self.page, self.section, e)

        return self.content

    def _handle_change(self, event: ChangeEvent) -> None:
        # The broadcaster filters by page/section; re-check in case of a shared handler
        if event.page != self.page or event.section != self.section:
            return
        if self._subscription is None:
            return
        logger.info("Content changed for %s/%s, reloading", self.page, self.section)
        self.refresh()

    def field(self, name: str, default: Any = '') -> Any:
        value = self.content.get(name)
        return default if value is None else value

    def image_url(self, name: str = 'imageUrl') -> str:
        """Normalized URL of an image field, '' when unset."""
        value = self.content.get(name)
        if not isinstance(value, str) or not value.strip():
            return ''
        return normalize_url(value.strip(), self.client.base_url)

    @property
    def items(self) -> List[Dict[str, Any]]:
        """Items that have something to show."""
        return visible_items(self.content.get('items'))

    def __enter__(self) -> "SectionView":
        self.activate()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.deactivate()

    def __repr__(self) -> str:
        return f"SectionView(page={self.page}, section={self.section}, active={self.active})"
