import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

from allerguard import main
from allerguard.services.llm import ingredient_analyzer, quick_check
from allerguard.storage import db as db_module


@pytest.fixture(name="engine")
def engine_fixture(monkeypatch):
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    monkeypatch.setattr(db_module, "engine", engine)
    return engine


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(monkeypatch, engine):
    monkeypatch.setattr(main, "configure_dspy", lambda: None)
    # No LM in tests unless a test patches one in.
    monkeypatch.setattr(ingredient_analyzer, "is_configured", lambda: False)
    monkeypatch.setattr(quick_check, "is_configured", lambda: False)

    client = TestClient(main.app)
    return client


@pytest.fixture(name="auth_headers")
def auth_headers_fixture():
    return {"X-User-Id": "user-1"}
