"""Base tracking store interface."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import List, Optional

from ..changes import ChangeFeed
from ..models import ChangeEvent, ChangeKind, EmailId, TrackedEmail


class TrackingStore(ABC):
    """Abstract base class for tracked email storage backends."""

    #: True when every write to the backend goes through this object, so the
    #: feed sees all changes. Remote backends shared with other processes set
    #: this to False and are watched by polling instead.
    pushes_changes = True

    def __init__(self, feed: Optional[ChangeFeed] = None):
        """Initialize the store.

        Args:
            feed: Change feed to publish writes to (a private one by default)
        """
        self.feed = feed or ChangeFeed()

    @abstractmethod
    def find_by_token(self, token: str) -> Optional[TrackedEmail]:
        """Look up the email carrying a tracking token.

        Args:
            token: Tracking token

        Returns:
            The email, or None when no record carries the token
        """
        pass

    @abstractmethod
    def mark_seen(self, token: str, seen_at: datetime) -> Optional[TrackedEmail]:
        """Flip an unseen email to seen in one conditional write.

        The write only matches a record that is still unseen, so of several
        concurrent calls for the same token exactly one succeeds.

        Args:
            token: Tracking token
            seen_at: Time of the open

        Returns:
            The updated email if this call flipped it, otherwise None
        """
        pass

    @abstractmethod
    def create(
        self,
        owner: str,
        recipient_address: str,
        description: str,
        tracking_token: str,
    ) -> TrackedEmail:
        """Persist a new unseen email.

        Raises:
            DuplicateTokenError: If the token is already taken
        """
        pass

    @abstractmethod
    def list_for_owner(self, owner: str) -> List[TrackedEmail]:
        """Return the owner's emails, newest first."""
        pass

    @abstractmethod
    def get(self, email_id: EmailId, owner: str) -> Optional[TrackedEmail]:
        """Return one of the owner's emails by id."""
        pass

    @abstractmethod
    def delete(self, email_id: EmailId, owner: str) -> bool:
        """Delete one of the owner's emails.

        Returns:
            True if a record was deleted
        """
        pass

    def close(self) -> None:
        """Release backend resources."""
        pass

    def _publish(self, kind: ChangeKind, record: TrackedEmail) -> None:
        self.feed.publish(ChangeEvent(kind, record))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
