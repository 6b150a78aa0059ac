from __future__ import annotations

from typing import Generator

import pytest
from flask import Flask
from flask.testing import FlaskClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from burnbin import create_app
from burnbin.db import Base
from burnbin.domain import models as _models  # noqa: F401
from burnbin.repositories.paste_repository import PasteRepository
from burnbin.services.paste_service import PasteService


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def engine() -> Generator:
    """
    Create a fresh in-memory SQLite engine for each test function.

    This keeps tests focused on domain behavior while using a real database
    session for repository/service operations.
    """

    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def session_factory(engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


@pytest.fixture(scope="function")
def session(session_factory) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session
        session.rollback()


@pytest.fixture
def paste_repo(session: Session) -> PasteRepository:
    return PasteRepository(session=session)


@pytest.fixture
def paste_service(session_factory) -> PasteService:
    """Service with its own session factory; each call gets a new session from the test engine."""
    return PasteService(session_factory=session_factory)


@pytest.fixture
def strict_paste_service(session_factory) -> PasteService:
    return PasteService(session_factory=session_factory, strict_view_limit=True)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app() -> Flask:
    return create_app("testing")


@pytest.fixture
def client(app: Flask) -> FlaskClient:
    return app.test_client()
