"""Open recording behind the tracking pixel.

The pixel endpoint answers every request with the same transparent GIF.
Recording the open is best effort: a missing token, an unknown token, an
already seen email and any backend failure all end in the same image, so a
tracking problem never shows up as a broken image in the recipient's mail
client.
"""

import base64
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

from .models import utcnow
from .stores.base import TrackingStore

# 1x1 transparent GIF89a, 43 bytes
PIXEL_GIF = base64.b64decode("R0lGODlhAQABAIAAAAAAAP///yH5BAEAAAAALAAAAAABAAEAAAICRAEAOw==")

NO_CACHE = "no-store, no-cache, must-revalidate, proxy-revalidate, max-age=0"
CORS_METHODS = "GET, POST, OPTIONS"
CORS_HEADERS = "Content-Type"


class OpenOutcome(str, Enum):
    """What happened to the record when its pixel was fetched."""

    NO_TOKEN = "no_token"
    NOT_FOUND = "not_found"
    ALREADY_SEEN = "already_seen"
    MARKED = "marked"
    FAILED = "failed"


def cors_headers(cors_origin: str = "*") -> Dict[str, str]:
    return {
        "Access-Control-Allow-Origin": cors_origin,
        "Access-Control-Allow-Methods": CORS_METHODS,
        "Access-Control-Allow-Headers": CORS_HEADERS,
    }


def pixel_headers(cors_origin: str = "*") -> Dict[str, str]:
    """Headers for the pixel response; caching is disabled so every open re-fetches."""
    return {
        "Content-Type": "image/gif",
        "Content-Length": str(len(PIXEL_GIF)),
        "Cache-Control": NO_CACHE,
        "Pragma": "no-cache",
        "Expires": "0",
        "Surrogate-Control": "no-store",
        **cors_headers(cors_origin),
    }


class PixelTracker:
    """Records the first open of a tracked email."""

    def __init__(
        self,
        store: TrackingStore,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize the tracker.

        Args:
            store: Data store holding the tracked emails
            logger: Logger for operator visibility (module logger by default)
            clock: Returns the current UTC time; replaceable in tests
        """
        self.store = store
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock

    def record_open(self, token: Optional[str]) -> OpenOutcome:
        """Mark the email behind ``token`` as seen if this is its first open.

        Never raises: every failure is logged and reported as FAILED.

        Args:
            token: Tracking token taken from the pixel URL

        Returns:
            The outcome of the attempt
        """
        token = (token or "").strip()
        if not token:
            self.logger.debug("Pixel requested without a tracking token")
            return OpenOutcome.NO_TOKEN

        log = logging.LoggerAdapter(self.logger, {"tracking_token": token})
        try:
            record = self.store.find_by_token(token)
            if record is None:
                log.info("No tracked email for token %s", token)
                return OpenOutcome.NOT_FOUND

            if record.seen:
                log.debug("Email %s already seen at %s", record.id, record.seen_at)
                return OpenOutcome.ALREADY_SEEN

            updated = self.store.mark_seen(token, self.clock())
            if updated is None:
                # Another request flipped it between our read and our write
                log.debug("Email %s was marked seen concurrently", record.id)
                return OpenOutcome.ALREADY_SEEN

            log.info("Email %s marked as seen at %s", updated.id, updated.seen_at.isoformat())
            return OpenOutcome.MARKED
        except Exception as e:
            log.error("Failed to record open for token %s: %s", token, e, exc_info=True)
            return OpenOutcome.FAILED
