# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Generator, Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

from hearth.api.v1.endpoints.messages import get_message_graph
from hearth.db.session import Base
from hearth.db.session import get_db as app_get_session
from hearth.main import app as fastapi_app
from hearth.services.dag import MessageGraph
from hearth.services.engine import CommunityEngine

from factories import FakeTransport

TEST_DB_URL = "sqlite://"


@pytest.fixture(scope="session")
def engine() -> Generator[Engine, None, None]:
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> Iterator[sessionmaker[Session]]:
    factory = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    try:
        yield factory
    finally:
        # Ensure each test sees a clean database even if commits occurred.
        with engine.begin() as cleanup_conn:
            for table in reversed(Base.metadata.sorted_tables):
                cleanup_conn.execute(table.delete())


@pytest.fixture()
def graph(session_factory: sessionmaker[Session]) -> MessageGraph:
    return MessageGraph(session_factory)


@pytest.fixture()
def community_engine(session_factory: sessionmaker[Session]) -> CommunityEngine:
    return CommunityEngine(session_factory)


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(
    app: FastAPI,
    session_factory: sessionmaker[Session],
    graph: MessageGraph,
) -> Iterator[TestClient]:
    def _get_session_override() -> Generator[Session, None, None]:
        with session_factory() as session:
            yield session

    app.dependency_overrides[app_get_session] = _get_session_override
    app.dependency_overrides[get_message_graph] = lambda: graph
    try:
        with TestClient(app, base_url="http://test") as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(app_get_session, None)
        app.dependency_overrides.pop(get_message_graph, None)
