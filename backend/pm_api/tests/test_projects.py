from __future__ import annotations

from datetime import date

import pytest
from pydantic import ValidationError
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from backend.pm_api.database import Base
from backend.pm_api.schemas import ClientCreate, ClientUpdate, ProjectCreate, ProjectUpdate
from backend.pm_api.services.clients import create_client, delete_client, list_clients, update_client
from backend.pm_api.services.errors import ConflictError, NotFoundError
from backend.pm_api.services.members import get_live_project
from backend.pm_api.services.projects import (
    check_slug,
    create_project,
    delete_project,
    get_project_by_slug,
    list_projects,
    update_project,
)

OWNER = "owner@example.com"


def test_project_slug_must_be_unique(session, project, client_record):
    with pytest.raises(ConflictError):
        create_project(
            session,
            ProjectCreate(name="Copy", slug="WEB", clientId=client_record.id),
            actor=OWNER,
        )


def test_slug_is_released_after_delete(session, project, client_record):
    assert check_slug(session, "web").exists is True

    delete_project(session, project, actor=OWNER)

    assert check_slug(session, "web").exists is False
    recreated = create_project(
        session,
        ProjectCreate(name="Website v2", slug="web", clientId=client_record.id),
        actor=OWNER,
    )
    assert recreated.slug == "web"


def test_project_requires_existing_client(session):
    with pytest.raises(NotFoundError):
        create_project(session, ProjectCreate(name="Orphan", slug="orphan", clientId="client-missing"), actor=OWNER)


def test_project_schema_rejects_bad_input():
    with pytest.raises(ValidationError):
        ProjectCreate(name="Bad", slug="not a slug", clientId="client-1")
    with pytest.raises(ValidationError):
        ProjectCreate(
            name="Bad",
            slug="bad",
            clientId="client-1",
            startDate=date(2024, 5, 1),
            endDate=date(2024, 4, 1),
        )


def test_projects_are_listed_for_members_only(session, project, client_record):
    create_project(
        session,
        ProjectCreate(name="Internal", slug="internal", clientId=client_record.id, tags=["ops", "ops"]),
        actor="other@example.com",
    )

    mine = list_projects(session, OWNER)
    theirs = list_projects(session, "other@example.com", tag="ops")

    assert [item.slug for item in mine] == ["web"]
    assert [(item.slug, item.tags) for item in theirs] == [("internal", ["ops"])]
    with pytest.raises(NotFoundError):
        get_project_by_slug(session, "internal", OWNER)


def test_update_project(session, project, client_record):
    updated = update_project(
        session,
        project,
        ProjectUpdate(name="Website 2", status="paused", endDate=date(2030, 1, 1)),
        actor=OWNER,
    )

    assert updated.name == "Website 2"
    assert updated.status == "paused"
    assert updated.client.id == client_record.id
    assert [item.name for item in list_projects(session, OWNER, status="paused")] == ["Website 2"]


def test_deleted_project_is_gone(session, project):
    delete_project(session, project, actor=OWNER)

    with pytest.raises(NotFoundError):
        get_live_project(session, project.id)
    assert list_projects(session, OWNER) == []


def test_clients_are_editable_by_creator_only(session, client_record):
    with pytest.raises(NotFoundError):
        update_client(session, client_record.id, ClientUpdate(name="Hijack"), actor="other@example.com")

    updated = update_client(
        session,
        client_record.id,
        ClientUpdate(managerEmails=["PM@example.com", "pm@example.com"]),
        actor=OWNER,
    )
    assert updated.managerEmails == ["pm@example.com"]
    assert [item.id for item in list_clients(session, manager_email="pm@example.com")] == [client_record.id]


def test_client_with_projects_cannot_be_deleted(session, project, client_record):
    with pytest.raises(ConflictError):
        delete_client(session, client_record.id, actor=OWNER)

    spare = create_client(session, ClientCreate(name="Spare"), actor=OWNER)
    delete_client(session, spare.id, actor=OWNER)
    assert [item.name for item in list_clients(session)] == ["Acme"]


def test_removed_project_is_hidden_without_session_events():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(bind=engine)

    with Session(engine) as plain:
        client = create_client(plain, ClientCreate(name="Acme"), actor=OWNER)
        created = create_project(plain, ProjectCreate(name="Website", slug="web", clientId=client.id), actor=OWNER)
        delete_project(plain, get_live_project(plain, created.id), actor=OWNER)

        with pytest.raises(NotFoundError):
            get_live_project(plain, created.id)
