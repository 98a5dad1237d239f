from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from medstock.core.config import get_settings

settings = get_settings()

_connect_args = (
    {"check_same_thread": False}
    if settings.database_url.startswith("sqlite")
    else {}
)

# Main SQLAlchemy engine
engine = create_engine(
    str(settings.database_url),
    future=True,
    pool_pre_ping=True,
    connect_args=_connect_args,
)

# Session factory
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.

    Services decide their own transaction boundaries (commit / rollback);
    this only guarantees the session is closed at the end of the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
