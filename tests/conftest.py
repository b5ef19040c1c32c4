"""
Shared pytest fixtures.

Runs the API against an in-memory SQLite database with a fresh
PlanningStore per test.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base
from main import app, get_db
from store import PlanningStore
from schemas import Position2D, Story


@pytest.fixture
def test_engine():
    """
    SQLite in-memory engine. StaticPool keeps a single connection so
    every session sees the same database.
    """
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(test_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(test_engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.store = PlanningStore()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_story():
    def _make(story_id, x=0, y=0, is_anchor=False, title=None):
        return Story(
            id=story_id,
            title=title or story_id,
            description="",
            position=Position2D(x=x, y=y),
            is_anchor=is_anchor,
        )
    return _make
