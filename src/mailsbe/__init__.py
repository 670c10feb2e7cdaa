"""Mailsbe: email open tracking with a pixel endpoint and an owner-scoped dashboard."""

__version__ = "0.1.0"

from .config import Settings, ServiceCredential, load_settings
from .logging import setup_logging, get_logger
from .exceptions import (
    MailsbeError,
    ConfigurationError,
    ValidationError,
    OwnerRequiredError,
    RecordNotFoundError,
    StoreError,
    BackendUnavailableError,
    DuplicateTokenError,
)
from .models import TrackedEmail, ChangeEvent, ChangeKind, CreatedEmail
from .pixel import PIXEL_GIF, PixelTracker, OpenOutcome
from .dashboard import Dashboard
from .stores import (
    TrackingStore,
    MemoryTrackingStore,
    SQLTrackingStore,
    RESTTrackingStore,
    GraphQLTrackingStore,
    create_store,
)
from .app import create_app

__all__ = [
    "Settings",
    "ServiceCredential",
    "load_settings",
    "setup_logging",
    "get_logger",
    "MailsbeError",
    "ConfigurationError",
    "ValidationError",
    "OwnerRequiredError",
    "RecordNotFoundError",
    "StoreError",
    "BackendUnavailableError",
    "DuplicateTokenError",
    "TrackedEmail",
    "ChangeEvent",
    "ChangeKind",
    "CreatedEmail",
    "PIXEL_GIF",
    "PixelTracker",
    "OpenOutcome",
    "Dashboard",
    "TrackingStore",
    "MemoryTrackingStore",
    "SQLTrackingStore",
    "RESTTrackingStore",
    "GraphQLTrackingStore",
    "create_store",
    "create_app",
]
