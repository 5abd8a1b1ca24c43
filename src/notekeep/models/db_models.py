"""SQLAlchemy database models for the notekeep client."""
import datetime
from typing import Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from notekeep.config import config
from notekeep.models.schema import Priority

# Create base class for SQLAlchemy models
Base = declarative_base()


def _casefold(value: Optional[str]) -> Optional[str]:
    """SQL function backing case-insensitive search (SQLite's lower() is ASCII-only)."""
    if value is None:
        return None
    return value.casefold()


class DBNote(Base):
    """Database model for a note."""

    __tablename__ = "notes"
    id = Column(String(64), primary_key=True, index=True)
    title = Column(Text, nullable=False, default="")
    content = Column(Text, nullable=False, default="")
    priority = Column(
        String(16), default=Priority.LOW.value, nullable=False, index=True
    )
    # Denormalised rank so priority sorts stay in SQL
    priority_rank = Column(Integer, default=Priority.LOW.rank, nullable=False)
    created_at = Column(DateTime, default=datetime.datetime.now, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.datetime.now, nullable=False, index=True
    )

    def __repr__(self) -> str:
        """Return string representation of note."""
        return f"<Note(id='{self.id}', title='{self.title}', priority='{self.priority}')>"


def init_db(in_memory: Optional[bool] = None, db_url: Optional[str] = None) -> Engine:
    """Create the engine and schema.

    File databases get WAL journaling so a crash mid-write never leaves a
    half-written note behind. In-memory databases use a StaticPool so every
    session shares the one connection that holds the data.

    Args:
        in_memory: Override config.in_memory_db.
        db_url: Explicit database URL; takes precedence over both.

    Returns:
        The initialised SQLAlchemy engine.
    """
    use_memory = config.in_memory_db if in_memory is None else in_memory
    if db_url is None:
        db_url = "sqlite://" if use_memory else config.get_db_url()

    is_memory = db_url in ("sqlite://", "sqlite:///:memory:")
    if is_memory:
        engine = create_engine(
            db_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_engine(
            db_url,
            pool_pre_ping=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        dbapi_connection.create_function("casefold", 1, _casefold, deterministic=True)
        cursor = dbapi_connection.cursor()
        if not is_memory:
            # WAL mode: writes go to a separate journal, so a crash never corrupts
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Optional[Engine] = None):
    """Get a session factory for the database."""
    if engine is None:
        engine = init_db()
    return sessionmaker(bind=engine, expire_on_commit=False)
