# ledger/deps.py
# Role: Shared FastAPI dependencies.
#       Provides the SQLAlchemy session, the repository built on it,
#       and the configured attachment storage backend.

"""
Shared dependencies for the commission ledger routes.
"""

from functools import lru_cache
from typing import Generator

from fastapi import Depends
from sqlalchemy.orm import Session

from db import SessionLocal
from ledger.config import FILES_URL_PREFIX, STORAGE_BACKEND, STORAGE_ROOT
from ledger.services.file_storage import FileStorage, build_storage
from ledger.services.repository import LedgerRepository

# -------------------------------------------------------------------
# Database dependency
# -------------------------------------------------------------------

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a database session and ensures it is closed.

    Typical usage in routes:
        db: Session = Depends(get_db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> LedgerRepository:
    return LedgerRepository(db)


# -------------------------------------------------------------------
# Attachment storage
# -------------------------------------------------------------------

@lru_cache(maxsize=1)
def default_storage() -> FileStorage:
    # One backend instance per process, built from LEDGER_STORAGE_* settings
    return build_storage(STORAGE_BACKEND, STORAGE_ROOT, FILES_URL_PREFIX)


def get_storage() -> FileStorage:
    return default_storage()
