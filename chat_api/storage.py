"""
Persistence gateway for the chat API.

Wraps the SQL database and exposes typed access to the ``users`` and
``chats`` tables. The database is the source of truth for message history;
the chat directory only mirrors it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from .database import Base, make_engine, make_session_factory
from .models import User, Chat

logger = logging.getLogger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    # SQLite hands back naive datetimes; everything is stored as UTC
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


@dataclass(frozen=True)
class UserRecord:
    user_id: str
    name: str
    email: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: User) -> "UserRecord":
        return cls(user_id=row.user_id, name=row.name, email=row.email, created_at=row.created_at)


@dataclass(frozen=True)
class ChatRecord:
    id: int
    user_id: str
    message: str
    reply: str
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Chat) -> "ChatRecord":
        return cls(
            id=row.id,
            user_id=row.user_id,
            message=row.message,
            reply=row.reply,
            created_at=row.created_at,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "message": self.message,
            "reply": self.reply,
            "createdAt": _iso(self.created_at),
        }


class ChatStore:
    """Typed row access for users and their chat messages."""

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        self.engine = engine if engine is not None else make_engine(database_url)
        self._session_factory = make_session_factory(self.engine)
        logger.info(f"Initialized chat store on {self.engine.url.get_backend_name()}")

    def _session(self):
        return self._session_factory()

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    def is_healthy(self) -> bool:
        """Check if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            return False

    # --- USERS ---
    def get_user(self, user_id: str) -> Optional[UserRecord]:
        with self._session() as db:
            row = db.scalars(select(User).where(User.user_id == user_id)).first()
            return UserRecord.from_row(row) if row else None

    def create_user(self, user_id: str, name: str, email: str) -> UserRecord:
        """Insert a user; a concurrent insert of the same id returns the existing row."""
        with self._session() as db:
            row = User(user_id=user_id, name=name, email=email)
            db.add(row)
            try:
                db.commit()
                return UserRecord.from_row(row)
            except IntegrityError:
                db.rollback()
                logger.info(f"User {user_id} was inserted concurrently, keeping existing row")
        existing = self.get_user(user_id)
        if existing is None:
            raise RuntimeError(f"Insert of user {user_id} violated a constraint")
        return existing

    # --- CHATS ---
    def add_chat(self, user_id: str, message: str, reply: str) -> ChatRecord:
        with self._session() as db:
            row = Chat(user_id=user_id, message=message, reply=reply)
            db.add(row)
            db.commit()
            return ChatRecord.from_row(row)

    def get_chats(self, user_id: str) -> List[ChatRecord]:
        """All chats of a user, oldest first."""
        with self._session() as db:
            stmt = (
                select(Chat)
                .where(Chat.user_id == user_id)
                .order_by(Chat.created_at.asc(), Chat.id.asc())
            )
            return [ChatRecord.from_row(c) for c in db.scalars(stmt).all()]
