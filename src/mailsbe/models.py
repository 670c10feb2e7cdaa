"""Data models for tracked emails."""

from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Any, Union
from datetime import datetime, timezone
from enum import Enum

from .exceptions import ValidationError

#: Integer for the SQL and memory stores, UUID text for some hosted tables
EmailId = Union[int, str]

# Python field name -> column name in the hosted backends
HOSTED_COLUMNS = {
    "id": "id",
    "owner": "user_id",
    "recipient_address": "email",
    "description": "description",
    "tracking_token": "img_text",
    "seen": "seen",
    "seen_at": "seen_at",
    "created_at": "created_at",
}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Coerce a backend timestamp (ISO string or datetime) to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_email_id(value: Any) -> EmailId:
    """Digit strings become integers; anything else (a UUID) is kept as text."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    text = str(value if value is not None else "").strip()
    if not text:
        raise ValidationError("email id is required")
    return int(text) if text.isdigit() else text


def hosted_row(**fields: Any) -> Dict[str, Any]:
    """Rename field names to hosted column names; datetimes become ISO strings."""
    return {
        HOSTED_COLUMNS[name]: value.isoformat() if isinstance(value, datetime) else value
        for name, value in fields.items()
    }


@dataclass
class TrackedEmail:
    """An outgoing email registered for open tracking."""

    id: EmailId
    owner: str
    recipient_address: str
    tracking_token: str
    description: str = ""
    seen: bool = False
    seen_at: Optional[datetime] = None
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.seen and self.seen_at is None:
            raise ValueError("A seen email must carry seen_at")
        if not self.seen and self.seen_at is not None:
            raise ValueError("An unseen email cannot carry seen_at")

    def mark_seen(self, seen_at: datetime) -> "TrackedEmail":
        """Return a seen copy; an already seen email is returned unchanged."""
        if self.seen:
            return self
        return replace(self, seen=True, seen_at=seen_at)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "owner": self.owner,
            "recipient_address": self.recipient_address,
            "description": self.description,
            "tracking_token": self.tracking_token,
            "seen": self.seen,
            "seen_at": self.seen_at.isoformat() if self.seen_at else None,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "TrackedEmail":
        """Build from a hosted-backend row (``email``, ``img_text``, ``user_id`` ...)."""
        col = HOSTED_COLUMNS
        seen = bool(row.get(col["seen"]))
        seen_at = parse_timestamp(row.get(col["seen_at"]))
        return cls(
            id=parse_email_id(row[col["id"]]),
            owner=str(row.get(col["owner"]) or ""),
            recipient_address=row.get(col["recipient_address"]) or "",
            description=row.get(col["description"]) or "",
            tracking_token=row.get(col["tracking_token"]) or "",
            seen=seen and seen_at is not None,
            seen_at=seen_at if seen else None,
            created_at=parse_timestamp(row.get(col["created_at"])) or utcnow(),
        )


class ChangeKind(str, Enum):
    """Kind of change delivered to dashboard subscribers."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class ChangeEvent:
    """A change to one tracked email."""

    kind: ChangeKind
    record: TrackedEmail

    @property
    def owner(self) -> str:
        return self.record.owner

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": self.kind.value, "record": self.record.to_dict()}


@dataclass
class CreatedEmail:
    """Result of registering a new email: the record plus what to embed."""

    record: TrackedEmail
    pixel_url: str
    snippet: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            **self.record.to_dict(),
            "pixel_url": self.pixel_url,
            "snippet": self.snippet,
        }
