"""Live change delivery for dashboard views."""

import itertools
import logging
import threading
from typing import Callable, Dict, List, Optional, Tuple, TYPE_CHECKING

from .models import ChangeEvent, ChangeKind, TrackedEmail

if TYPE_CHECKING:  # pragma: no cover
    from .stores.base import TrackingStore

logger = logging.getLogger(__name__)

Listener = Callable[[ChangeEvent], None]


class Subscription:
    """Handle returned by subscribe(); close it when the view goes away."""

    def __init__(self, on_close: Callable[[], None]):
        self._on_close = on_close
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Stop deliveries; closing twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
        self._on_close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class ChangeFeed:
    """Thread-safe publish/subscribe of record changes, filtered by owner."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[int, Tuple[str, Listener]] = {}
        self._ids = itertools.count(1)

    def subscribe(self, owner: str, listener: Listener) -> Subscription:
        with self._lock:
            listener_id = next(self._ids)
            self._listeners[listener_id] = (owner, listener)
        logger.debug("Subscribed listener %s for owner %s", listener_id, owner)
        return Subscription(lambda: self._unsubscribe(listener_id))

    def _unsubscribe(self, listener_id: int) -> None:
        with self._lock:
            self._listeners.pop(listener_id, None)
        logger.debug("Unsubscribed listener %s", listener_id)

    def listener_count(self, owner: Optional[str] = None) -> int:
        with self._lock:
            if owner is None:
                return len(self._listeners)
            return sum(1 for o, _ in self._listeners.values() if o == owner)

    def publish(self, event: ChangeEvent) -> None:
        with self._lock:
            targets = [l for o, l in self._listeners.values() if o == event.owner]
        for listener in targets:
            try:
                listener(event)
            except Exception:
                logger.exception("Change listener failed for %s event on email %s",
                                 event.kind.value, event.record.id)


def diff_snapshots(
    before: Dict[int, TrackedEmail], after: Dict[int, TrackedEmail]
) -> List[ChangeEvent]:
    """Change events that turn ``before`` into ``after``."""
    events = []
    for email_id, record in after.items():
        previous = before.get(email_id)
        if previous is None:
            events.append(ChangeEvent(ChangeKind.INSERT, record))
        elif previous != record:
            events.append(ChangeEvent(ChangeKind.UPDATE, record))
    for email_id, record in before.items():
        if email_id not in after:
            events.append(ChangeEvent(ChangeKind.DELETE, record))
    return events


class PollingWatcher:
    """Polls a store for one owner's records and reports differences.

    Used for backends that other processes write to, where the in-process
    feed never hears about the change.
    """

    def __init__(
        self,
        store: "TrackingStore",
        owner: str,
        listener: Listener,
        interval: float = 5.0,
    ):
        self.store = store
        self.owner = owner
        self.listener = listener
        self.interval = interval
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._snapshot: Dict[int, TrackedEmail] = {}

    def start(self) -> "PollingWatcher":
        self._snapshot = self._load()
        self._thread = threading.Thread(
            target=self._run, name=f"mailsbe-watch-{self.owner}", daemon=True
        )
        self._thread.start()
        return self

    def _load(self) -> Dict[int, TrackedEmail]:
        return {r.id: r for r in self.store.list_for_owner(self.owner)}

    def poll(self) -> List[ChangeEvent]:
        """Fetch once, deliver and return the events since the last poll."""
        current = self._load()
        events = diff_snapshots(self._snapshot, current)
        self._snapshot = current
        for event in events:
            try:
                self.listener(event)
            except Exception:
                logger.exception("Change listener failed for email %s", event.record.id)
        return events

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self.poll()
            except Exception as e:
                # Keep polling; the next round may reach the backend again
                logger.warning("Polling %s for owner %s failed: %s",
                               type(self.store).__name__, self.owner, e)

    def stop(self) -> None:
        self._stop.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=self.interval + 1)
