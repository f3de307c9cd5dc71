"""Helpers for the legacy database connection."""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .models import Base

logger = logging.getLogger(__name__)


def _is_memory_db(uri: str) -> bool:
    return uri in ('sqlite://', 'sqlite:///:memory:')


class LegacyDatabase(object):
    """
    Connection to the legacy relational database.

    The engine and its pool are shared by every thread; each call to
    :meth:`transaction` gets its own session.
    """

    def __init__(self, uri: str, engine: Optional[Engine] = None) -> None:
        if engine is None:
            if _is_memory_db(uri):
                # One connection, shared, so every session sees the same data.
                engine = create_engine(
                    uri, poolclass=StaticPool,
                    connect_args={'check_same_thread': False}
                )
            else:
                engine = create_engine(uri, pool_pre_ping=True)
        self.engine = engine
        self._sessionmaker = sessionmaker(bind=engine)

    @contextmanager
    def transaction(self) -> Generator:
        """Context manager for database transaction."""
        session = self._sessionmaker()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.error('Commit failed, rolling back: %s', str(e))
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create all tables in the database."""
        Base.metadata.create_all(self.engine)

    def drop_all(self) -> None:
        """Drop all tables in the database."""
        Base.metadata.drop_all(self.engine)

    def is_available(self) -> bool:
        """Check our connection to the database."""
        try:
            with self.engine.connect() as connection:
                connection.execute(text('SELECT 1'))
        except Exception as e:
            logger.error('Encountered an error talking to database: %s', e)
            return False
        return True
