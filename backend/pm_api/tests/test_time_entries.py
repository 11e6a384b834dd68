from __future__ import annotations

from datetime import date, time

import pytest
from pydantic import ValidationError

from backend.pm_api.orm_models import ProjectRole
from backend.pm_api.schemas import IssueCreate, TimeEntryCreate, TimeEntryUpdate
from backend.pm_api.services.errors import InvalidInputError, NotFoundError
from backend.pm_api.services.issues import create_issue
from backend.pm_api.services.members import add_member
from backend.pm_api.services.projects import get_project_stats
from backend.pm_api.services.time_entries import (
    create_entry,
    delete_entry,
    get_entry,
    list_entries,
    update_entry,
)

OWNER = "owner@example.com"
DEV = "dev@example.com"


@pytest.fixture()
def issue(session, project, todo_state):
    add_member(session, project, email=DEV, role=ProjectRole.CONTRIBUTOR, actor=OWNER)
    return create_issue(
        session,
        project,
        IssueCreate(
            title="Build API",
            stateId=todo_state.id,
            startDate=date(2024, 5, 1),
            endDate=date(2024, 5, 31),
        ),
        actor=OWNER,
    )


def _log(session, project, issue, actor, *, day=date(2024, 5, 2), start=time(9, 0), end=time(10, 30)):
    return create_entry(
        session,
        project.id,
        issue.id,
        TimeEntryCreate(date=day, startTime=start, endTime=end, notes="work"),
        actor=actor,
    )


def test_hours_are_derived_from_times(session, project, issue):
    entry = _log(session, project, issue, DEV)

    assert entry.hours == 1.5
    assert entry.startTime.date() == date(2024, 5, 2)
    assert get_project_stats(session, project).loggedHours == 1.5


def test_end_must_follow_start():
    with pytest.raises(ValidationError):
        TimeEntryCreate(date=date(2024, 5, 2), startTime=time(10, 0), endTime=time(9, 0))


def test_date_must_fall_inside_issue_range(session, project, issue):
    with pytest.raises(InvalidInputError):
        _log(session, project, issue, DEV, day=date(2024, 6, 1))
    with pytest.raises(InvalidInputError):
        _log(session, project, issue, DEV, day=date(2024, 4, 30))


def test_contributors_only_see_their_own_entries(session, project, issue):
    mine = _log(session, project, issue, DEV)
    owners = _log(session, project, issue, OWNER, day=date(2024, 5, 3))

    visible = list_entries(session, project.id, issue.id, email=DEV, role=ProjectRole.CONTRIBUTOR)
    everything = list_entries(session, project.id, issue.id, email=OWNER, role=ProjectRole.OWNER)
    on_day = list_entries(
        session, project.id, issue.id, email=OWNER, role=ProjectRole.OWNER, on_date=date(2024, 5, 3)
    )

    assert [entry.id for entry in visible] == [mine.id]
    assert [entry.id for entry in everything] == [mine.id, owners.id]
    assert [entry.id for entry in on_day] == [owners.id]
    with pytest.raises(NotFoundError):
        get_entry(session, project.id, issue.id, owners.id, email=DEV, role=ProjectRole.CONTRIBUTOR)


def test_update_recomputes_hours(session, project, issue):
    entry = _log(session, project, issue, DEV)

    updated = update_entry(
        session,
        project.id,
        issue.id,
        entry.id,
        TimeEntryUpdate(endTime=time(12, 0)),
        actor=DEV,
        role=ProjectRole.CONTRIBUTOR,
    )

    assert updated.hours == 3.0
    with pytest.raises(InvalidInputError):
        update_entry(
            session,
            project.id,
            issue.id,
            entry.id,
            TimeEntryUpdate(startTime=time(13, 0)),
            actor=OWNER,
            role=ProjectRole.OWNER,
        )


def test_delete_entry(session, project, issue):
    entry = _log(session, project, issue, DEV)

    delete_entry(session, project.id, issue.id, entry.id, actor=DEV, role=ProjectRole.CONTRIBUTOR)

    assert list_entries(session, project.id, issue.id, email=DEV, role=ProjectRole.CONTRIBUTOR) == []
    assert get_project_stats(session, project).loggedHours == 0
