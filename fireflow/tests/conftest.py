"""
Shared pytest fixtures for the FireFlow test suite.

Every test gets its own temporary SQLite database, so tests never touch the
production database or each other. The API tests use FastAPI's TestClient
with get_db overridden; the submission tests drive the orchestrator directly
through a RecordingBackend (the real SqlBackend plus a call log and failure
injection).
"""

from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from fireflow.database import create_tables, get_db
from fireflow.exceptions import CallFailure
from fireflow.main import app
from fireflow.models import Asset
from fireflow.services.cache import CacheSignals
from fireflow.services.submission.gateway import SqlBackend
from fireflow.services.submission.orchestrator import SubmissionOrchestrator


class RecordingBackend(SqlBackend):
    """
    SqlBackend that logs every operation name it is asked to run and can be
    told to reject chosen operations, as a remote service would.
    """

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.calls = []
        self.failures = {}

    def fail(self, operation: str, detail: str = "injected failure", after: int = 0, times: int = None):
        """
        Reject 'operation' once it has succeeded 'after' times. With 'times',
        only that many rejections happen; later calls succeed again.
        """
        self.failures[operation] = [detail, after, times]

    async def _call(self, operation: str, fn):
        self.calls.append(operation)
        if operation in self.failures:
            detail, remaining, times = self.failures[operation]
            if remaining <= 0:
                if times is not None:
                    if times <= 1:
                        del self.failures[operation]
                    else:
                        self.failures[operation][2] = times - 1
                raise CallFailure(operation, detail, 500)
            self.failures[operation][1] = remaining - 1
        return await super()._call(operation, fn)


@pytest.fixture
def test_engine(tmp_path):
    """A temporary SQLite database with all tables and the tax settings row."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'fireflow_test.db'}",
        connect_args={"check_same_thread": False},
    )
    create_tables(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def test_db(session_factory):
    """Direct SQLAlchemy session for tests that need DB access."""
    db = session_factory()
    yield db
    db.close()


@pytest.fixture
def backend(session_factory):
    return RecordingBackend(session_factory)


@pytest.fixture
def signals():
    return CacheSignals()


@pytest.fixture
def orchestrator(backend, signals):
    return SubmissionOrchestrator(backend, caches=signals)


@pytest.fixture
def make_asset(test_db):
    """Insert an asset directly and return it."""
    def _make(name, type="cash", balance=0, currency="USD", **fields):
        asset = Asset(
            name=name,
            type=type,
            balance=Decimal(str(balance)),
            currency=currency,
            **fields,
        )
        test_db.add(asset)
        test_db.commit()
        test_db.refresh(asset)
        return asset
    return _make


@pytest.fixture
def client(session_factory):
    """TestClient using the isolated test database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
