"""Testing helpers."""

from contextlib import contextmanager

from ..util import LegacyDatabase


@contextmanager
def temporary_db(database_url: str = 'sqlite:///:memory:',
                 create: bool = True, drop: bool = True):
    """Provide an in-memory sqlite database for testing purposes."""
    db = LegacyDatabase(database_url)
    if create:
        db.create_all()
    try:
        yield db
    finally:
        if drop:
            db.drop_all()
