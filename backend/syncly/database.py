"""Database client and session dependency.

WHAT:
    `Database` owns one SQLAlchemy engine plus its session factory. The
    application builds exactly one instance in `create_app()` and keeps it on
    `app.state.db`; request handlers receive sessions through `get_db`.

WHY:
    - No module-level engine: tests and scripts construct their own client
      (in-memory SQLite, a migration URL, ...) without import-time side effects.
    - Disposal is tied to application shutdown.

USAGE:
    db = Database(settings.DATABASE_URL)
    app = create_app(database=db)

    @router.get("/items")
    def get_items(db: Session = Depends(get_db)):
        return db.query(Item).all()

REFERENCES:
    - https://docs.sqlalchemy.org/en/20/orm/session_basics.html
    - syncly/main.py (construction and shutdown)
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from .models import Base

logger = logging.getLogger(__name__)


class Database:
    """Explicit database client: engine + session factory."""

    def __init__(self, url: str, **engine_kwargs: Any):
        if not url:
            raise RuntimeError(
                "DATABASE_URL is not set. "
                "Ensure backend/.env is loaded or env var is exported."
            )
        self.url = url

        # NOTE: SQLite engines (tests/dev) do not support pool_size/max_overflow.
        if url.startswith("sqlite"):
            connect_args = engine_kwargs.pop("connect_args", {})
            connect_args.setdefault("check_same_thread", False)
            self.engine = create_engine(url, connect_args=connect_args, **engine_kwargs)
        else:
            engine_kwargs.setdefault("pool_size", 10)
            engine_kwargs.setdefault("max_overflow", 20)
            engine_kwargs.setdefault("pool_recycle", 3600)  # Recycle connections every hour
            engine_kwargs.setdefault("pool_pre_ping", True)
            self.engine = create_engine(url, **engine_kwargs)

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, autocommit=False)

    def create_all(self) -> None:
        """Create every table (tests and local SQLite only; production uses alembic)."""
        Base.metadata.create_all(bind=self.engine)

    def drop_all(self) -> None:
        Base.metadata.drop_all(bind=self.engine)

    @contextmanager
    def session(self) -> Generator[Session, None, None]:
        """Context manager for sessions outside FastAPI (scripts, tests)."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.close()

    def dispose(self) -> None:
        logger.info("[DATABASE] Disposing engine")
        self.engine.dispose()


def get_database(request: Request) -> Database:
    database: Optional[Database] = getattr(request.app.state, "db", None)
    if database is None:
        raise RuntimeError("Database client is not configured on app.state")
    return database


def get_db(request: Request) -> Generator[Session, None, None]:
    """Yield a session from the application's database client.

    Yields:
        SQLAlchemy Session instance, closed when the request finishes.
    """
    db = get_database(request).SessionLocal()
    try:
        yield db
    finally:
        db.close()
