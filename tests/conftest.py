"""Pytest fixtures for testing"""

import pytest
from decimal import Decimal
from typing import Callable, Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from savemate_engine.api.main import create_app
from savemate_engine.infrastructure.database.models import Base, User
from savemate_engine.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


# pysqlite defers BEGIN on its own, which breaks SAVEPOINT; let SQLAlchemy emit it
@event.listens_for(engine, "connect")
def _disable_pysqlite_transaction_handling(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    """
    Factory for users with savings settings.

    Defaults: ROUNDING to 1000, no safety floor, NO_SAVING policy, nothing saved.
    """

    def _make_user(user_id: int = 1, **overrides) -> User:
        fields = {
            "bank_name": "Bancolombia",
            "saving_type": "ROUNDING",
            "rounding_multiple": 1000,
            "saving_percentage": Decimal("10"),
            "min_safe_balance_cents": None,
            "insufficient_balance_option": "NO_SAVING",
            "total_saved_cents": 0,
        }
        fields.update(overrides)
        user = User(id=user_id, **fields)
        db.add(user)
        db.commit()
        return user

    return _make_user


@pytest.fixture
def saved_cents(db: Session) -> Callable[[int], int]:
    """Read a user's saved total straight from the database"""

    def _saved_cents(user_id: int = 1) -> int:
        db.expire_all()
        return db.get(User, user_id).total_saved_cents

    return _saved_cents
