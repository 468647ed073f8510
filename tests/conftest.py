"""
Shared fixtures

Every test gets its own SQLite file under tmp_path, with the 30 units
provisioned. The period oracle is replaced by a fake with a settable period.
"""
import os

# must be set before database.py builds the default engine
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("PERIOD_API_ENABLED", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from database import Base, get_db
from main import app
from core.unit_store import UnitStore
from services.period_service import get_period_oracle


class FakePeriodOracle:
    """Returns whatever period the test sets"""

    def __init__(self, period: str = "Rajab"):
        self.period = period
        self.calls = 0

    def current_period_name(self, today=None) -> str:
        self.calls += 1
        return self.period


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'khatam_test.db'}",
        connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = factory()
    UnitStore.ensure_units(session)
    session.close()
    return factory


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def other_db(session_factory):
    """A second, independent participant"""
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def oracle():
    return FakePeriodOracle("Rajab")


@pytest.fixture
def client(session_factory, oracle):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_period_oracle] = lambda: oracle
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def write_statements(engine):
    """Collects every INSERT/UPDATE/DELETE sent to the database"""
    statements = []

    def record(conn, cursor, statement, parameters, context, executemany):
        if statement.lstrip().upper().startswith(("INSERT", "UPDATE", "DELETE")):
            statements.append(statement)

    event.listen(engine, "before_cursor_execute", record)
    yield statements
    event.remove(engine, "before_cursor_execute", record)


def claim_directly(session, indices, name):
    """Claim units without going through reconciliation (test setup)"""
    UnitStore.claim_units(session, indices, name)
    session.commit()
