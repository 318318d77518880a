from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.orm import Session, sessionmaker

from .logging import get_logger

logger = get_logger(__name__)


class UnitOfWork:
    """Short-lived sessions around single key/value operations."""

    def __init__(self, SessionLocal: sessionmaker):
        self.SessionLocal = SessionLocal

    @contextmanager
    def begin(self) -> Iterator[Session]:
        """Commit when the block succeeds; roll back and re-raise otherwise."""
        s = self.SessionLocal()
        try:
            yield s
            s.commit()
        except Exception:
            logger.debug("Rolling back storage transaction")
            s.rollback()
            raise
        finally:
            s.close()

    @contextmanager
    def read(self) -> Iterator[Session]:
        """A session for lookups only; nothing is committed."""
        s = self.SessionLocal()
        try:
            yield s
        finally:
            s.close()
