from __future__ import annotations

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime

import pytest
from sqlalchemy.orm import sessionmaker

from taskflow.infra import models  # noqa: F401
from taskflow.infra.db import Base, create_db_engine
from taskflow.services.clock import FixedClock


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 9, 0))


@pytest.fixture()
def session_factory():
    """Isolated in-memory SQLite database per test."""
    engine = create_db_engine("sqlite://")
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()
