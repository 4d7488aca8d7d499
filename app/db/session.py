"""
Ledger store: SQLAlchemy engine, session factory and the write lock.

One LedgerStore is constructed at service start and injected into every
registry component. Mutations go through ``transaction()``, which holds an
exclusive lock for the whole unit of work and commits or rolls back as one.
Queries go through ``snapshot()`` and only ever see committed state.
"""
import threading
from contextlib import contextmanager
from typing import Callable, Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

Base = declarative_base()

_AFTER_COMMIT = "after_commit"


def _engine_for(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # In-memory databases live on a single connection
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        pool_timeout=30,
        pool_recycle=1800,
    )


class LedgerStore:
    """The single owned store behind the registry."""

    def __init__(self, database_url: Optional[str] = None):
        self.database_url = database_url or settings.DATABASE_URL
        self.engine = _engine_for(self.database_url)
        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, expire_on_commit=False, bind=self.engine
        )
        self._write_lock = threading.RLock()

    def init_db(self, preflight: bool = True):
        """
        Verify connectivity and create the ledger tables if missing.

        Existing tables and rows are left untouched; the ledger is never reset.
        """
        if preflight:
            from app.db.preflight import run_db_preflight
            run_db_preflight(
                self.engine,
                retries=settings.DB_PREFLIGHT_RETRIES,
                delay=settings.DB_PREFLIGHT_DELAY,
            )

        # Import models to register them
        from app.db import models  # noqa
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Ledger schema ready: {len(Base.metadata.tables)} tables")

    @contextmanager
    def transaction(self) -> Generator[Session, None, None]:
        """Exclusive unit of work: all sub-writes commit together or not at all."""
        with self._write_lock:
            db = self.SessionLocal()
            try:
                yield db
                db.commit()
            except Exception:
                db.rollback()
                raise
            else:
                for callback in db.info.pop(_AFTER_COMMIT, []):
                    callback()
            finally:
                db.close()

    @contextmanager
    def snapshot(self) -> Generator[Session, None, None]:
        """Read-only session over the last committed state."""
        db = self.SessionLocal()
        try:
            yield db
        finally:
            db.rollback()
            db.close()

    @staticmethod
    def after_commit(db: Session, callback: Callable[[], None]):
        """Run callback once the transaction owning ``db`` has committed."""
        db.info.setdefault(_AFTER_COMMIT, []).append(callback)

    def dispose(self):
        self.engine.dispose()
