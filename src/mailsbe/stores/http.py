"""Shared plumbing for stores that talk to a hosted backend over HTTPS."""

import logging
from typing import Any, Dict, Optional

import requests

from ..changes import ChangeFeed
from ..config import ServiceCredential
from ..exceptions import BackendUnavailableError, StoreError
from .base import TrackingStore

logger = logging.getLogger(__name__)


class HTTPTrackingStore(TrackingStore):
    """Base class for hosted backends reached with ``requests``.

    Every call carries an explicit timeout; timeouts and connection failures
    surface as BackendUnavailableError, HTTP error statuses as StoreError.
    """

    # Other processes (the hosted dashboard, other endpoint instances) write
    # to the same table.
    pushes_changes = False

    def __init__(
        self,
        base_url: str,
        credential: ServiceCredential,
        table: str = "emails",
        timeout: float = 3.0,
        session: Optional[requests.Session] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        """Initialize the store.

        Args:
            base_url: Backend endpoint
            credential: Service credential authorising reads and writes
            table: Table holding the tracked emails
            timeout: Seconds allowed for each request
            session: Optional preconfigured requests session
            feed: Change feed to publish writes to
        """
        super().__init__(feed)
        self.base_url = base_url.rstrip("/")
        self.table = table
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(self._auth_headers(credential))

    def _auth_headers(self, credential: ServiceCredential) -> Dict[str, str]:
        raise NotImplementedError

    def _request(self, method: str, url: str, **kwargs) -> Any:
        """Send a request and return the decoded JSON body (None when empty)."""
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.exceptions.Timeout as e:
            raise BackendUnavailableError(
                f"{method} {url} timed out after {self.timeout}s", cause=e
            ) from e
        except requests.exceptions.RequestException as e:
            raise BackendUnavailableError(f"{method} {url} failed: {e}", cause=e) from e

        if response.status_code >= 400:
            self._raise_for_status(response)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise StoreError(
                f"Backend returned malformed JSON (status {response.status_code})",
                cause=e,
                context={"url": url},
            ) from e

    def _raise_for_status(self, response: requests.Response) -> None:
        logger.debug("Backend error body: %s", response.text[:500])
        raise StoreError(
            f"Backend returned status {response.status_code}",
            context={"status": response.status_code, "url": response.url},
        )

    def close(self) -> None:
        self.session.close()
