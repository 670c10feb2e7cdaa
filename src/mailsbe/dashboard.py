"""Owner-scoped operations behind the dashboard."""

import logging
from typing import Callable, List, Optional

from .changes import PollingWatcher, Subscription
from .exceptions import DuplicateTokenError, OwnerRequiredError, RecordNotFoundError, StoreError
from .models import ChangeEvent, CreatedEmail, EmailId, TrackedEmail
from .stores.base import TrackingStore
from .tokens import build_pixel_url, build_snippet, generate_token
from .validators import clean_description, clean_recipient_address

TOKEN_ATTEMPTS = 3


def _require_owner(owner: Optional[str]) -> str:
    owner = (owner or "").strip()
    if not owner:
        raise OwnerRequiredError("An authenticated user is required")
    return owner


class Dashboard:
    """High-level dashboard service that coordinates a store and the change feed."""

    def __init__(
        self,
        store: TrackingStore,
        endpoint_base_url: str,
        poll_interval: float = 5.0,
        token_factory: Callable[[], str] = generate_token,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the dashboard.

        Args:
            store: Data store holding the tracked emails
            endpoint_base_url: Public URL of the pixel endpoint
            poll_interval: Seconds between polls when the store cannot push changes
            token_factory: Produces fresh tracking tokens
            logger: Logger for operator visibility
        """
        self.store = store
        self.endpoint_base_url = endpoint_base_url
        self.poll_interval = poll_interval
        self.token_factory = token_factory
        self.logger = logger or logging.getLogger(__name__)

    def pixel_url(self, token: str) -> str:
        return build_pixel_url(self.endpoint_base_url, token)

    def snippet(self, token: str) -> str:
        return build_snippet(self.pixel_url(token))

    def list_emails(self, owner: str) -> List[TrackedEmail]:
        """Return the owner's tracked emails, newest first."""
        return self.store.list_for_owner(_require_owner(owner))

    def get_email(self, owner: str, email_id: EmailId) -> TrackedEmail:
        record = self.store.get(email_id, _require_owner(owner))
        if record is None:
            raise RecordNotFoundError(f"Email {email_id} not found", context={"email_id": email_id})
        return record

    def create_email(self, owner: str, recipient_address: str, description: str = "") -> CreatedEmail:
        """Register an outgoing email and return what to embed in it.

        Args:
            owner: Authenticated user id
            recipient_address: Destination address (format checked only)
            description: Free-form label

        Returns:
            The new record with its pixel URL and HTML snippet

        Raises:
            ValidationError: If the address or description is rejected
            StoreError: If the backend fails
        """
        owner = _require_owner(owner)
        address = clean_recipient_address(recipient_address)
        description = clean_description(description)

        for attempt in range(1, TOKEN_ATTEMPTS + 1):
            token = self.token_factory()
            try:
                record = self.store.create(owner, address, description, token)
                break
            except DuplicateTokenError:
                self.logger.warning(
                    "Tracking token collision (attempt %s/%s), generating a new one",
                    attempt, TOKEN_ATTEMPTS,
                )
        else:
            raise StoreError(f"Could not allocate a unique tracking token after {TOKEN_ATTEMPTS} attempts")

        self.logger.info("Created tracked email %s for owner %s", record.id, owner)
        return CreatedEmail(
            record=record,
            pixel_url=self.pixel_url(record.tracking_token),
            snippet=self.snippet(record.tracking_token),
        )

    def delete_email(self, owner: str, email_id: EmailId) -> None:
        """Delete one of the owner's emails.

        Raises:
            RecordNotFoundError: If no such email belongs to the owner
        """
        owner = _require_owner(owner)
        if not self.store.delete(email_id, owner):
            raise RecordNotFoundError(f"Email {email_id} not found", context={"email_id": email_id})
        self.logger.info("Deleted tracked email %s for owner %s", email_id, owner)

    def subscribe(
        self,
        owner: str,
        listener: Callable[[ChangeEvent], None],
        poll: Optional[bool] = None,
    ) -> Subscription:
        """Deliver the owner's record changes to ``listener`` until closed.

        Args:
            owner: Authenticated user id
            listener: Called with each ChangeEvent
            poll: Watch the store by polling; defaults to True for stores
                that other processes write to

        Returns:
            Subscription; close it when the view goes away
        """
        owner = _require_owner(owner)
        if poll is None:
            poll = not self.store.pushes_changes

        if not poll:
            return self.store.feed.subscribe(owner, listener)

        watcher = PollingWatcher(self.store, owner, listener, interval=self.poll_interval).start()
        return Subscription(watcher.stop)
