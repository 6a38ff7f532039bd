import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from hotel_inventory.core.config import settings
from hotel_inventory.models.tenant import Base


logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    # In-memory SQLite must share one connection across the threadpool
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}, "poolclass": StaticPool}
    return {"pool_pre_ping": True}


engine = create_engine(settings.database_url, **_engine_options(settings.database_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    Transaction scope for a stock mutation and its ledger entries.

    Commits only when the block finishes normally; any other exit, including
    cancellation (BaseException), rolls everything back.
    """
    try:
        yield db
        db.commit()
    except BaseException:
        db.rollback()
        raise


def init_db() -> None:
    # Create tables in dev/test without running Alembic
    if settings.env in {"dev", "test"}:
        import hotel_inventory.models  # noqa: F401  registers every table on Base

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured for env=%s", settings.env)
