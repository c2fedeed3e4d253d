"""
LinkManager module for pk-shorts.

Responsibilities:
    - Normalize and validate destination URLs
    - Turn loose request fields (secure flag, custom id) into a
      RequestedIdentifier for LinkStore
    - Expose the operations the HTTP layer calls:
        create_link, resolve_link, record_click, list_links, remove_link

Design notes:
    - The LinkStore is an injected dependency; the manager holds no state.
    - record_click is fire-and-forget. Click accounting must never fail a
      redirect, so storage failures are logged and dropped here.
"""

import logging
from typing import List, Optional
from urllib.parse import urlparse

from ..errors import InvalidDestinationError, StorageError
from ..models import Link
from ..storage.link_store import LinkStore
from .identifiers import requested_identifier

log = logging.getLogger(__name__)


class LinkManager:
    """Coordinates creation and lookup rules for short links."""

    def __init__(self, store: LinkStore):
        self.store = store

    # ---------------------------------------------------------------------
    # Validation Helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def normalize_destination(url: str) -> str:
        """
        Trim the URL, default the scheme to https, and check it parses.

        Raises:
            InvalidDestinationError: If the URL is empty or has no host.
        """
        url = (url or "").strip()
        if not url:
            raise InvalidDestinationError("URL is required")
        if not url.startswith(("http://", "https://")):
            url = "https://" + url
        parsed = urlparse(url)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise InvalidDestinationError("Invalid URL format")
        return url

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    def create_link(self, destination: str, secure: bool = False, custom_id: Optional[str] = None) -> str:
        """
        Create a short link and return its identifier.

        Args:
            destination (str): Target URL; "https://" is prepended when no scheme is given.
            secure (bool): Use the 16-character generator. Ignored with a custom id.
            custom_id (Optional[str]): Caller-chosen identifier; blank means generate.

        Raises:
            InvalidDestinationError, InvalidCustomIdError, AlreadyExistsError, StorageError
        """
        url = self.normalize_destination(destination)
        return self.store.create(url, requested_identifier(custom_id, secure=secure))

    def resolve_link(self, identifier: str) -> str:
        """Return the destination. Raises LinkNotFoundError."""
        return self.store.get(identifier)

    def record_click(self, identifier: str) -> None:
        """Count one click; never raises."""
        try:
            self.store.increment_clicks(identifier)
        except StorageError:
            log.warning("Failed to record click for %r", identifier, exc_info=True)

    def list_links(self) -> List[Link]:
        return self.store.list_all()

    def remove_link(self, identifier: str) -> None:
        """Delete a link. Raises LinkNotFoundError if it does not exist."""
        self.store.delete(identifier)
