"""
Unit of Work boundary for Loopcast. All transactional changes to the config
store go through this.
"""

from __future__ import annotations

import contextlib
from collections.abc import Generator

from sqlalchemy.orm import Session, sessionmaker


@contextlib.contextmanager
def session(factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Database session context manager.

    Provides Unit of Work semantics:
    - Opens a DB session
    - Yields it for use
    - On success: commits the transaction
    - On exception: rolls back and re-raises the exception
    - Always closes the session

    Usage:
        with session(factory) as db:
            db.add(some_object)
    """
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
