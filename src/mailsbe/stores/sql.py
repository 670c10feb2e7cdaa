"""SQLAlchemy-backed tracking store (SQLite by default, any SQLAlchemy URL works)."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

from sqlalchemy import Boolean, DateTime, Integer, String, Text, create_engine, delete, select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from ..changes import ChangeFeed
from ..exceptions import BackendUnavailableError, DuplicateTokenError, StoreError
from ..models import ChangeKind, EmailId, TrackedEmail, parse_timestamp, utcnow
from .base import TrackingStore

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class EmailRow(Base):
    __tablename__ = "tracked_emails"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    recipient_address: Mapped[str] = mapped_column(String(320), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    tracking_token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True, index=True)
    seen: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    seen_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)

    def to_domain(self) -> TrackedEmail:
        # SQLite hands back naive datetimes; everything stored is UTC
        return TrackedEmail(
            id=self.id,
            owner=self.owner,
            recipient_address=self.recipient_address,
            description=self.description or "",
            tracking_token=self.tracking_token,
            seen=self.seen,
            seen_at=parse_timestamp(self.seen_at),
            created_at=parse_timestamp(self.created_at),
        )


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in url


class SQLTrackingStore(TrackingStore):
    """Stores tracked emails in a relational database."""

    def __init__(
        self,
        database_url: str = "sqlite:///mailsbe.db",
        timeout: float = 3.0,
        echo: bool = False,
        feed: Optional[ChangeFeed] = None,
    ) -> None:
        super().__init__(feed)
        engine_kwargs = {"echo": echo, "future": True}
        if database_url.startswith("sqlite"):
            # sqlite3's timeout is how long a writer waits on a locked database
            engine_kwargs["connect_args"] = {"check_same_thread": False, "timeout": timeout}
            if _is_memory_sqlite(database_url):
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs["pool_timeout"] = timeout
            engine_kwargs["pool_pre_ping"] = True

        self.engine = create_engine(database_url, **engine_kwargs)
        self._sessions = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False, future=True)
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope, translating driver errors to store errors."""
        session: Session = self._sessions()
        try:
            yield session
            session.commit()
        except IntegrityError as e:
            session.rollback()
            if "tracking_token" in str(e.orig):
                raise DuplicateTokenError("Tracking token already exists", cause=e) from e
            raise StoreError(f"Database constraint violated: {e.orig}", cause=e) from e
        except OperationalError as e:
            session.rollback()
            raise BackendUnavailableError(f"Database unavailable: {e.orig}", cause=e) from e
        except SQLAlchemyError as e:
            session.rollback()
            raise StoreError(f"Database error: {e}", cause=e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def find_by_token(self, token: str) -> Optional[TrackedEmail]:
        with self.session_scope() as session:
            row = session.scalars(select(EmailRow).where(EmailRow.tracking_token == token).limit(1)).first()
            return row.to_domain() if row else None

    def mark_seen(self, token: str, seen_at: datetime) -> Optional[TrackedEmail]:
        stmt = (
            update(EmailRow)
            .where(EmailRow.tracking_token == token, EmailRow.seen.is_(False))
            .values(seen=True, seen_at=parse_timestamp(seen_at))
            .execution_options(synchronize_session=False)
        )
        with self.session_scope() as session:
            result = session.execute(stmt)
            if result.rowcount != 1:
                return None
            row = session.scalars(select(EmailRow).where(EmailRow.tracking_token == token)).one()
            record = row.to_domain()
        self._publish(ChangeKind.UPDATE, record)
        return record

    def create(
        self,
        owner: str,
        recipient_address: str,
        description: str,
        tracking_token: str,
    ) -> TrackedEmail:
        with self.session_scope() as session:
            row = EmailRow(
                owner=owner,
                recipient_address=recipient_address,
                description=description,
                tracking_token=tracking_token,
                seen=False,
                created_at=utcnow(),
            )
            session.add(row)
            session.flush()
            record = row.to_domain()
        logger.debug("Created tracked email %s for owner %s", record.id, owner)
        self._publish(ChangeKind.INSERT, record)
        return record

    def list_for_owner(self, owner: str) -> List[TrackedEmail]:
        with self.session_scope() as session:
            rows = session.scalars(
                select(EmailRow)
                .where(EmailRow.owner == owner)
                .order_by(EmailRow.created_at.desc(), EmailRow.id.desc())
            ).all()
            return [row.to_domain() for row in rows]

    def get(self, email_id: EmailId, owner: str) -> Optional[TrackedEmail]:
        if not isinstance(email_id, int):
            # Ids here are integers; a UUID cannot match
            return None
        with self.session_scope() as session:
            row = session.scalars(
                select(EmailRow).where(EmailRow.id == email_id, EmailRow.owner == owner)
            ).first()
            return row.to_domain() if row else None

    def delete(self, email_id: EmailId, owner: str) -> bool:
        if not isinstance(email_id, int):
            return False
        with self.session_scope() as session:
            row = session.scalars(
                select(EmailRow).where(EmailRow.id == email_id, EmailRow.owner == owner)
            ).first()
            if row is None:
                return False
            record = row.to_domain()
            session.execute(
                delete(EmailRow)
                .where(EmailRow.id == email_id, EmailRow.owner == owner)
                .execution_options(synchronize_session=False)
            )
        logger.debug("Deleted tracked email %s for owner %s", email_id, owner)
        self._publish(ChangeKind.DELETE, record)
        return True

    def close(self) -> None:
        self.engine.dispose()


__all__ = ["Base", "EmailRow", "SQLTrackingStore"]
