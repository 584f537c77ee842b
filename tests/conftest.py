from __future__ import annotations

from threading import Lock

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import brand_site_finder.models  # noqa: F401
from brand_site_finder.db import Base
import brand_site_finder.db as db_module
import brand_site_finder.api as api_module


class _ControllerStub:
    def __init__(self):
        self._run_lock = Lock()
        self.started_with = None
        self.stopped = False

    def start(self, updates=None):
        self.started_with = updates
        return self.status()

    def stop(self):
        self.stopped = True
        return self.status()

    def update_settings(self, updates):
        return None

    def status(self):
        return {
            "running": False,
            "busy": False,
            "stop_requested": False,
            "settings": {},
            "last_run_started_at": None,
            "last_run_finished_at": None,
            "last_error": None,
            "last_result": None,
            "run_count": 0,
            "progress": None,
        }


@pytest.fixture
def test_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.db'}",
        connect_args={"check_same_thread": False},
    )
    yield engine
    engine.dispose()


@pytest.fixture(autouse=True)
def _bind_test_db(monkeypatch, test_engine):
    TestSessionLocal = sessionmaker(bind=test_engine, expire_on_commit=False)
    monkeypatch.setattr(db_module, "_engine", test_engine, raising=False)
    monkeypatch.setattr(db_module, "SessionLocal", TestSessionLocal, raising=False)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def db_session() -> Session:
    session = db_module.SessionLocal()
    try:
        yield session
        session.commit()
    finally:
        session.close()


@pytest.fixture
def export_dir(tmp_path, monkeypatch):
    path = tmp_path / "exports"
    monkeypatch.setenv("EXPORT_DIR", str(path))
    return path


@pytest.fixture
def controller():
    return _ControllerStub()


@pytest.fixture
def client(monkeypatch, controller, export_dir):
    monkeypatch.setattr(api_module, "discovery_controller", controller, raising=True)
    app = api_module.create_app()
    with TestClient(app) as test_client:
        yield test_client
