from __future__ import annotations

import os
import tempfile

# Keep imports of main/db from touching the project folder
os.environ.setdefault("LEDGER_DATABASE_URL", "sqlite://")
os.environ.setdefault("LEDGER_STORAGE_ROOT", tempfile.mkdtemp(prefix="ledger-storage-"))

from pathlib import Path  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

import models  # noqa: E402,F401
from db import Base, build_engine, build_session_factory  # noqa: E402
from ledger.deps import get_db  # noqa: E402
from ledger.services.file_storage import LocalFileStorage  # noqa: E402
from ledger.services.repository import LedgerRepository  # noqa: E402
from main import create_app  # noqa: E402

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\ntrailer\n<<>>\n%%EOF\n"


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng = build_engine("sqlite://")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def db_session(engine: Engine) -> Generator[Session, None, None]:
    session = build_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def repo(db_session: Session) -> LedgerRepository:
    return LedgerRepository(db_session)


@pytest.fixture()
def storage(tmp_path: Path) -> LocalFileStorage:
    return LocalFileStorage(str(tmp_path / "storage"))


@pytest.fixture()
def commission(repo: LedgerRepository) -> models.Commission:
    return repo.create_commission("Lavori ponte", "PROT-2024-001")


@pytest.fixture()
def client(engine: Engine, storage: LocalFileStorage) -> TestClient:
    app = create_app(storage=storage)
    factory = build_session_factory(engine)

    def override_get_db():
        db = factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)
