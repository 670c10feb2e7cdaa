"""In-memory tracking store for tests, previews and local demos."""

import itertools
import threading
from datetime import datetime
from typing import Dict, List, Optional

from ..changes import ChangeFeed
from ..exceptions import DuplicateTokenError
from ..models import ChangeKind, EmailId, TrackedEmail, utcnow
from .base import TrackingStore


class MemoryTrackingStore(TrackingStore):
    """Keeps tracked emails in a dict guarded by a lock."""

    def __init__(self, feed: Optional[ChangeFeed] = None):
        super().__init__(feed)
        self._lock = threading.Lock()
        self._records: Dict[int, TrackedEmail] = {}
        self._ids = itertools.count(1)

    def find_by_token(self, token: str) -> Optional[TrackedEmail]:
        with self._lock:
            for record in self._records.values():
                if record.tracking_token == token:
                    return record
        return None

    def mark_seen(self, token: str, seen_at: datetime) -> Optional[TrackedEmail]:
        with self._lock:
            match = next(
                (r for r in self._records.values() if r.tracking_token == token and not r.seen),
                None,
            )
            if match is None:
                return None
            updated = match.mark_seen(seen_at)
            self._records[updated.id] = updated
        self._publish(ChangeKind.UPDATE, updated)
        return updated

    def create(
        self,
        owner: str,
        recipient_address: str,
        description: str,
        tracking_token: str,
    ) -> TrackedEmail:
        with self._lock:
            if any(r.tracking_token == tracking_token for r in self._records.values()):
                raise DuplicateTokenError(
                    "Tracking token already exists", context={"tracking_token": tracking_token}
                )
            record = TrackedEmail(
                id=next(self._ids),
                owner=owner,
                recipient_address=recipient_address,
                description=description,
                tracking_token=tracking_token,
                created_at=utcnow(),
            )
            self._records[record.id] = record
        self._publish(ChangeKind.INSERT, record)
        return record

    def list_for_owner(self, owner: str) -> List[TrackedEmail]:
        with self._lock:
            records = [r for r in self._records.values() if r.owner == owner]
        # id breaks ties between records created within the same clock tick
        return sorted(records, key=lambda r: (r.created_at, r.id), reverse=True)

    def get(self, email_id: EmailId, owner: str) -> Optional[TrackedEmail]:
        with self._lock:
            record = self._records.get(email_id)
        if record is None or record.owner != owner:
            return None
        return record

    def delete(self, email_id: EmailId, owner: str) -> bool:
        with self._lock:
            record = self._records.get(email_id)
            if record is None or record.owner != owner:
                return False
            del self._records[email_id]
        self._publish(ChangeKind.DELETE, record)
        return True
