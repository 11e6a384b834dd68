from __future__ import annotations

import logging
from datetime import date, datetime, time
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..orm_models import ProjectRole
from ..schemas import TimeEntry, TimeEntryCreate, TimeEntryUpdate
from .activities import record_activity
from .errors import InvalidInputError, NotFoundError
from .issues import get_issue_orm
from .members import MANAGE_ROLES

logger = logging.getLogger(__name__)


def _map_entry(entry: orm_models.TimeEntryORM) -> TimeEntry:
    return TimeEntry(
        id=entry.id,
        projectId=entry.project_id,
        issueId=entry.issue_id,
        createdBy=entry.created_by,
        date=entry.date,
        startTime=entry.start_time,
        endTime=entry.end_time,
        hours=entry.hours,
        notes=entry.notes or "",
        createdAt=entry.created_at,
        updatedAt=entry.updated_at,
    )


def _compute_span(
    issue: orm_models.IssueORM,
    day: date,
    start: time,
    end: time,
) -> tuple[datetime, datetime, float]:
    if end <= start:
        raise InvalidInputError(
            "endTime must be after startTime",
            {"startTime": start.isoformat(), "endTime": end.isoformat()},
        )
    if issue.start_date and day < issue.start_date:
        raise InvalidInputError("Date is before the issue start date", {"date": day.isoformat()})
    if issue.end_date and day > issue.end_date:
        raise InvalidInputError("Date is after the issue end date", {"date": day.isoformat()})
    started = datetime.combine(day, start)
    ended = datetime.combine(day, end)
    hours = round((ended - started).total_seconds() / 3600, 2)
    return started, ended, hours


def _visible_entry(
    session: Session,
    project_id: str,
    issue_id: str,
    entry_id: str,
    *,
    email: str,
    role: ProjectRole,
) -> orm_models.TimeEntryORM:
    get_issue_orm(session, project_id, issue_id)
    entry = session.execute(
        select(orm_models.TimeEntryORM)
        .where(orm_models.TimeEntryORM.issue_id == issue_id)
        .where(orm_models.TimeEntryORM.id == entry_id)
    ).scalar_one_or_none()
    if entry is None or (role not in MANAGE_ROLES and entry.created_by != email):
        raise NotFoundError("Time entry not found", {"timeEntryId": entry_id})
    return entry


def create_entry(
    session: Session,
    project_id: str,
    issue_id: str,
    payload: TimeEntryCreate,
    *,
    actor: str,
) -> TimeEntry:
    issue = get_issue_orm(session, project_id, issue_id)
    started, ended, hours = _compute_span(issue, payload.date, payload.startTime, payload.endTime)
    entry = orm_models.TimeEntryORM(
        project_id=project_id,
        issue_id=issue_id,
        created_by=actor,
        date=payload.date,
        start_time=started,
        end_time=ended,
        hours=hours,
        notes=payload.notes,
    )
    session.add(entry)
    session.flush()
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="time_entry.created",
        details={"timeEntryId": entry.id, "date": payload.date.isoformat(), "hours": hours},
    )
    session.flush()
    logger.info("Logged %.2fh on issue %s for %s", hours, issue_id, actor)
    return _map_entry(entry)


def list_entries(
    session: Session,
    project_id: str,
    issue_id: str,
    *,
    email: str,
    role: ProjectRole,
    on_date: Optional[date] = None,
) -> List[TimeEntry]:
    get_issue_orm(session, project_id, issue_id)
    statement = (
        select(orm_models.TimeEntryORM)
        .where(orm_models.TimeEntryORM.issue_id == issue_id)
        .order_by(orm_models.TimeEntryORM.start_time, orm_models.TimeEntryORM.id)
    )
    if role not in MANAGE_ROLES:
        statement = statement.where(orm_models.TimeEntryORM.created_by == email)
    if on_date is not None:
        statement = statement.where(orm_models.TimeEntryORM.date == on_date)
    return [_map_entry(entry) for entry in session.execute(statement).scalars().all()]


def get_entry(
    session: Session,
    project_id: str,
    issue_id: str,
    entry_id: str,
    *,
    email: str,
    role: ProjectRole,
) -> TimeEntry:
    return _map_entry(_visible_entry(session, project_id, issue_id, entry_id, email=email, role=role))


def update_entry(
    session: Session,
    project_id: str,
    issue_id: str,
    entry_id: str,
    payload: TimeEntryUpdate,
    *,
    actor: str,
    role: ProjectRole,
) -> TimeEntry:
    entry = _visible_entry(session, project_id, issue_id, entry_id, email=actor, role=role)
    issue = get_issue_orm(session, project_id, issue_id)
    day = payload.date or entry.date
    start = payload.startTime or entry.start_time.time()
    end = payload.endTime or entry.end_time.time()
    entry.start_time, entry.end_time, entry.hours = _compute_span(issue, day, start, end)
    entry.date = day
    if payload.notes is not None:
        entry.notes = payload.notes
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="time_entry.updated",
        details={"timeEntryId": entry.id, "date": day.isoformat(), "hours": entry.hours},
    )
    session.flush()
    logger.info("Time entry %s updated by %s", entry.id, actor)
    return _map_entry(entry)


def delete_entry(
    session: Session,
    project_id: str,
    issue_id: str,
    entry_id: str,
    *,
    actor: str,
    role: ProjectRole,
) -> None:
    entry = _visible_entry(session, project_id, issue_id, entry_id, email=actor, role=role)
    entry.deleted_at = datetime.utcnow()
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="time_entry.deleted",
        details={"timeEntryId": entry.id},
    )
    session.flush()
    logger.info("Time entry %s deleted by %s", entry.id, actor)
