"""Pytest configuration and fixtures."""

from pathlib import Path
from typing import Generator

import pytest
from alembic.config import Config
from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
# Import all models to ensure they're registered with Base.metadata
from app.models import User
from app.services.user_service import UserService

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"

BACKEND_DIR = Path(__file__).resolve().parents[1]


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_service(db_session: Session) -> UserService:
    return UserService(db_session)


@pytest.fixture
def user_data() -> dict:
    """Attributes of the user most tests write."""
    return {
        "name": "Test User",
        "email": "test@example.com",
        "role": "admin",
        "status": "inactive",
        "hobbies": ["reading", "travel"],
    }


@pytest.fixture
def stored(db_session: Session):
    """Read the raw persisted value of a users column, bypassing the column type."""
    def _stored(email: str, column: str):
        return db_session.execute(
            text(f"SELECT {column} FROM users WHERE email = :email"),
            {"email": email},
        ).scalar_one()
    return _stored


@pytest.fixture
def alembic_config(tmp_path):
    """Alembic config bound to a throwaway SQLite file."""
    url = f"sqlite:///{tmp_path / 'migrations.db'}"
    config = Config(str(BACKEND_DIR / "alembic.ini"))
    config.set_main_option("sqlalchemy.url", url)
    config.attributes["configure_logger"] = False
    return config
