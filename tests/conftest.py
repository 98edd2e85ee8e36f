"""Test configuration and fixtures for prunetree."""

import logging
import os

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from tests.models import Base

# Try to load environment variables from .env file
load_dotenv()


@pytest.fixture(scope="function")
def engine():
    """Create a test database engine for each test function."""
    test_db_url = os.getenv('PRUNETREE_TEST_DATABASE_URL')
    if test_db_url:
        engine = create_engine(test_db_url, future=True, pool_pre_ping=True)
        Base.metadata.drop_all(engine)
        Base.metadata.create_all(engine)
        is_external_db = True
    else:
        # In-memory SQLite shared across connections of this engine
        engine = create_engine(
            "sqlite://",
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(engine)
        is_external_db = False

    yield engine

    if is_external_db:
        try:
            Base.metadata.drop_all(engine)
        except Exception as e:
            logging.getLogger(__name__).warning(f"Failed to clean up external database: {e}")
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    """Create a new database session for each test function."""
    factory = sessionmaker(bind=engine, expire_on_commit=False)
    with factory() as session:
        yield session


# Import fixtures from fixtures module
from tests.fixtures import (  # noqa: E402,F401
    sample_users,
    populated_db,
)
