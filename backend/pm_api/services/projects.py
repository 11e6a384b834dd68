from __future__ import annotations

import logging
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from .. import orm_models
from ..orm_models import ProjectRole
from ..schemas import Project, ProjectCreate, ProjectStats, ProjectUpdate, SlugCheck, StateIssueCount
from .activities import record_activity
from .clients import get_client_orm, map_client
from .errors import ConflictError, InvalidInputError, NotFoundError
from .members import get_membership, normalize_project_role

logger = logging.getLogger(__name__)


def map_project(project: orm_models.ProjectORM, role: ProjectRole | str | None = None) -> Project:
    client = project.client
    return Project(
        id=project.id,
        name=project.name,
        slug=project.slug,
        description=project.description or "",
        clientId=project.client_id,
        client=map_client(client) if client is not None else None,
        startDate=project.start_date,
        endDate=project.end_date,
        status=project.status,
        tags=list(project.tags or []),
        myRole=normalize_project_role(role),
        createdBy=project.created_by,
        createdAt=project.created_at,
        updatedAt=project.updated_at,
    )


def _slug_taken(session: Session, slug: str, *, exclude_id: str | None = None) -> bool:
    statement = (
        select(orm_models.ProjectORM.id)
        .where(orm_models.ProjectORM.slug == slug)
        .where(orm_models.ProjectORM.deleted_at.is_(None))
    )
    if exclude_id:
        statement = statement.where(orm_models.ProjectORM.id != exclude_id)
    return session.execute(statement.limit(1)).first() is not None


def _flush_project(session: Session, project: orm_models.ProjectORM) -> None:
    try:
        session.flush()
    except IntegrityError as exc:
        raise ConflictError("Project slug already exists", {"slug": project.slug}) from exc


def create_project(session: Session, payload: ProjectCreate, *, actor: str) -> Project:
    get_client_orm(session, payload.clientId)
    if _slug_taken(session, payload.slug):
        raise ConflictError("Project slug already exists", {"slug": payload.slug})

    project = orm_models.ProjectORM(
        name=payload.name,
        slug=payload.slug,
        description=payload.description,
        client_id=payload.clientId,
        start_date=payload.startDate,
        end_date=payload.endDate,
        status=payload.status,
        tags=list(payload.tags),
        created_by=actor,
    )
    project.members.append(
        orm_models.ProjectMemberORM(email=actor, role=ProjectRole.OWNER.value, created_by=actor)
    )
    session.add(project)
    _flush_project(session, project)
    record_activity(
        session,
        project_id=project.id,
        actor=actor,
        action="project.created",
        details={"name": project.name, "slug": project.slug},
    )
    session.flush()
    logger.info("Project %s (%s) created by %s", project.id, project.slug, actor)
    return map_project(project, ProjectRole.OWNER)


def list_projects(
    session: Session,
    email: str,
    *,
    name: Optional[str] = None,
    client_id: Optional[str] = None,
    status: Optional[str] = None,
    tag: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Project]:
    statement = (
        select(orm_models.ProjectORM, orm_models.ProjectMemberORM.role)
        .join(orm_models.ProjectMemberORM, orm_models.ProjectMemberORM.project_id == orm_models.ProjectORM.id)
        .options(selectinload(orm_models.ProjectORM.client))
        .where(orm_models.ProjectMemberORM.email == email)
        .order_by(orm_models.ProjectORM.name)
    )
    if name:
        statement = statement.where(func.lower(orm_models.ProjectORM.name).contains(name.strip().lower()))
    if client_id:
        statement = statement.where(orm_models.ProjectORM.client_id == client_id)
    if status:
        statement = statement.where(orm_models.ProjectORM.status == status)
    if start_date:
        statement = statement.where(
            or_(orm_models.ProjectORM.start_date.is_(None), orm_models.ProjectORM.start_date >= start_date)
        )
    if end_date:
        statement = statement.where(
            or_(orm_models.ProjectORM.end_date.is_(None), orm_models.ProjectORM.end_date <= end_date)
        )

    result: List[Project] = []
    for project, role in session.execute(statement).all():
        if tag and tag not in (project.tags or []):
            continue
        result.append(map_project(project, role))
    return result


def get_project(session: Session, project: orm_models.ProjectORM, role: ProjectRole) -> Project:
    return map_project(project, role)


def get_project_by_slug(session: Session, slug: str, email: str) -> Project:
    normalized = slug.strip().lower()
    project = session.execute(
        select(orm_models.ProjectORM).where(orm_models.ProjectORM.slug == normalized)
    ).scalar_one_or_none()
    membership = get_membership(session, project_id=project.id, email=email) if project else None
    if project is None or membership is None:
        raise NotFoundError("Project not found", {"slug": normalized})
    return map_project(project, membership.role)


def check_slug(session: Session, slug: str) -> SlugCheck:
    normalized = slug.strip().lower()
    return SlugCheck(slug=normalized, exists=_slug_taken(session, normalized))


def update_project(
    session: Session,
    project: orm_models.ProjectORM,
    payload: ProjectUpdate,
    *,
    actor: str,
) -> Project:
    data = payload.model_dump(exclude_unset=True)
    changes: dict[str, object] = {}

    if data.get("slug") and data["slug"] != project.slug:
        if _slug_taken(session, data["slug"], exclude_id=project.id):
            raise ConflictError("Project slug already exists", {"slug": data["slug"]})
        changes["slug"] = data["slug"]
        project.slug = data["slug"]
    if data.get("clientId") and data["clientId"] != project.client_id:
        get_client_orm(session, data["clientId"])
        changes["clientId"] = data["clientId"]
        project.client_id = data["clientId"]

    field_map = {
        "name": "name",
        "description": "description",
        "status": "status",
        "tags": "tags",
        "startDate": "start_date",
        "endDate": "end_date",
    }
    for field, column in field_map.items():
        if field not in data:
            continue
        value = data[field]
        if value is None and field in {"name", "status", "tags", "description"}:
            continue
        setattr(project, column, value)
        changes[field] = value.isoformat() if isinstance(value, date) else value

    if project.start_date and project.end_date and project.end_date < project.start_date:
        raise InvalidInputError("endDate must be on or after startDate", {"projectId": project.id})

    _flush_project(session, project)
    record_activity(session, project_id=project.id, actor=actor, action="project.updated", details=changes)
    session.flush()
    session.expire(project, ["client"])
    logger.info("Project %s updated by %s", project.id, actor)
    membership = get_membership(session, project_id=project.id, email=actor)
    return map_project(project, membership.role if membership else None)


def delete_project(session: Session, project: orm_models.ProjectORM, *, actor: str) -> None:
    project.deleted_at = datetime.utcnow()
    record_activity(
        session,
        project_id=project.id,
        actor=actor,
        action="project.deleted",
        details={"slug": project.slug},
    )
    session.flush()
    logger.info("Project %s deleted by %s", project.id, actor)


def get_project_stats(session: Session, project: orm_models.ProjectORM) -> ProjectStats:
    issue_model = orm_models.IssueORM
    totals = session.execute(
        select(
            func.count(issue_model.id),
            func.coalesce(func.sum(case((issue_model.completed_percentage >= 100, 1), else_=0)), 0),
            func.coalesce(func.sum(case((issue_model.is_draft.is_(True), 1), else_=0)), 0),
            func.coalesce(func.sum(issue_model.estimated_hours), 0.0),
        )
        .where(issue_model.project_id == project.id)
        .where(issue_model.deleted_at.is_(None))
    ).one()

    per_state = dict(
        session.execute(
            select(issue_model.state_id, func.count(issue_model.id))
            .where(issue_model.project_id == project.id)
            .where(issue_model.deleted_at.is_(None))
            .group_by(issue_model.state_id)
        ).all()
    )
    states = (
        session.execute(
            select(orm_models.ProjectStateORM)
            .where(orm_models.ProjectStateORM.project_id == project.id)
            .order_by(orm_models.ProjectStateORM.sequence)
        )
        .scalars()
        .all()
    )
    logged = session.execute(
        select(func.coalesce(func.sum(orm_models.TimeEntryORM.hours), 0.0)).where(
            orm_models.TimeEntryORM.project_id == project.id,
            orm_models.TimeEntryORM.deleted_at.is_(None),
        )
    ).scalar_one()

    return ProjectStats(
        projectId=project.id,
        totalIssues=int(totals[0] or 0),
        completedIssues=int(totals[1] or 0),
        draftIssues=int(totals[2] or 0),
        issuesByState=[
            StateIssueCount(
                stateId=state.id,
                name=state.name,
                sequence=state.sequence,
                issues=int(per_state.get(state.id, 0)),
            )
            for state in states
        ],
        loggedHours=round(float(logged or 0.0), 2),
        estimatedHours=round(float(totals[3] or 0.0), 2),
    )
