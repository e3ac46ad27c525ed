import logging
import time
from typing import Callable, Generator, TypeVar

from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

is_sqlite = settings.DATABASE_URL.startswith("sqlite")

if is_sqlite:
    engine = create_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        connect_args={"check_same_thread": False},
    )
else:
    engine = create_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=1800,
        pool_timeout=10,
        max_overflow=10,
    )

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency to get database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_in_transaction(
    db: Session,
    work: Callable[[Session], T],
    retries: int = 0,
    backoff_seconds: float = 0.0,
) -> T:
    """
    Run ``work`` inside a single transaction on ``db`` and commit it.

    Any exception rolls the whole transaction back. OperationalError is
    treated as transient and the unit of work is replayed from scratch up
    to ``retries`` more times, sleeping ``backoff_seconds * attempt``
    between attempts.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = work(db)
            db.commit()
            return result
        except OperationalError:
            db.rollback()
            if attempt > retries:
                raise
            logger.warning(
                "Transient database error, retrying transaction (attempt %s of %s)",
                attempt + 1,
                retries + 1,
            )
            time.sleep(backoff_seconds * attempt)
        except Exception:
            db.rollback()
            raise
