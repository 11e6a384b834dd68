from __future__ import annotations

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from backend.pm_api.database import Base, ProjectSession
from backend.pm_api.schemas import ClientCreate, ProjectCreate, StateCreate
from backend.pm_api.services.clients import create_client
from backend.pm_api.services.members import get_live_project
from backend.pm_api.services.projects import create_project
from backend.pm_api.services.states import create_state
from backend.pm_api.soft_delete import setup_soft_delete_events

OWNER = "owner@example.com"


def _make_session_factory(url: str = "sqlite:///:memory:", **engine_kwargs):
    engine = create_engine(url, future=True, **engine_kwargs)
    TestingSession = type("TestingSession", (ProjectSession,), {})
    setup_soft_delete_events(TestingSession)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        future=True,
        class_=TestingSession,
    )


@pytest.fixture()
def session_factory():
    """Builder for tests that need their own engine or several sessions."""
    return _make_session_factory


@pytest.fixture()
def session():
    factory = _make_session_factory()
    with factory() as session:
        yield session


@pytest.fixture()
def client_record(session):
    return create_client(session, ClientCreate(name="Acme", country="NL"), actor=OWNER)


@pytest.fixture()
def project(session, client_record):
    created = create_project(
        session,
        ProjectCreate(name="Website", slug="web", clientId=client_record.id),
        actor=OWNER,
    )
    return get_live_project(session, created.id)


@pytest.fixture()
def todo_state(session, project):
    return create_state(session, project.id, StateCreate(name="Todo"), actor=OWNER)
