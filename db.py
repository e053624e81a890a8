# db.py
# Role: Database bootstrap for the commission ledger.
#       Defines the SQLAlchemy engine, session factory, and declarative Base.
#       Also ensures the on-disk database directory exists for the default SQLite file.

"""
Database setup for the commission ledger.

- Uses LEDGER_DATABASE_URL when set (see ledger/config.py)
- Otherwise uses a SQLite database at: <project_root>/database/ledger.db
"""

import os

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool

from ledger.config import DATABASE_URL, DEFAULT_DB_DIR


def build_engine(url: str) -> Engine:
    """
    Create an engine for the given SQLAlchemy URL.

    SQLite needs check_same_thread=False because FastAPI serves sync routes
    from a thread pool. In-memory SQLite also needs a single shared connection,
    otherwise every new connection sees an empty database.
    """
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    if url in ("sqlite://", "sqlite:///:memory:"):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    return create_engine(url, connect_args={"check_same_thread": False})


def build_session_factory(bind: Engine) -> sessionmaker:
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=bind,
    )


# Folder for the default SQLite DB (created on startup if missing)
if DATABASE_URL.startswith(f"sqlite:///{DEFAULT_DB_DIR}"):
    os.makedirs(DEFAULT_DB_DIR, exist_ok=True)

engine = build_engine(DATABASE_URL)

# Standard session factory used via dependency injection (see ledger/deps.py:get_db)
SessionLocal = build_session_factory(engine)

# Declarative base class for ORM models
Base = declarative_base()
