"""Tracking store implementations."""

from typing import Optional

from ..changes import ChangeFeed
from ..config import Settings
from ..exceptions import ConfigurationError
from .base import TrackingStore
from .memory import MemoryTrackingStore
from .sql import SQLTrackingStore
from .rest import RESTTrackingStore
from .graphql import GraphQLTrackingStore


def create_store(settings: Settings, feed: Optional[ChangeFeed] = None) -> TrackingStore:
    """Build the store selected by ``settings.backend``.

    The remote backends receive the service credential explicitly; a
    missing credential is a configuration error, never a silent default.
    """
    if settings.backend == "sql":
        return SQLTrackingStore(settings.backend_url, timeout=settings.request_timeout, feed=feed)
    if settings.backend == "memory":
        return MemoryTrackingStore(feed=feed)
    if settings.backend == "rest":
        return RESTTrackingStore(
            settings.backend_url,
            settings.credential(),
            table=settings.table,
            timeout=settings.request_timeout,
            feed=feed,
        )
    if settings.backend == "graphql":
        return GraphQLTrackingStore(
            settings.backend_url,
            settings.credential(),
            table=settings.table,
            id_type=settings.graphql_id_type,
            timeout=settings.request_timeout,
            feed=feed,
        )
    raise ConfigurationError(f"Unknown backend: {settings.backend}")


__all__ = [
    "TrackingStore",
    "MemoryTrackingStore",
    "SQLTrackingStore",
    "RESTTrackingStore",
    "GraphQLTrackingStore",
    "create_store",
]
