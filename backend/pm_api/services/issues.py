from __future__ import annotations

import logging
from collections import defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from .. import orm_models
from ..schemas import Issue, IssueCreate, IssueSummary, IssueUpdate, LabelSummary
from .activities import record_activity
from .errors import InvalidInputError, NotFoundError
from .sequencing import issue_sequencer, lock_project_scope
from .states import get_state_orm, map_state

logger = logging.getLogger(__name__)


def issue_key(project: orm_models.ProjectORM, sequence: int) -> str:
    return f"{project.slug.upper()}-{sequence}"


def _summary(project: orm_models.ProjectORM, issue: orm_models.IssueORM) -> IssueSummary:
    return IssueSummary(
        id=issue.id,
        key=issue_key(project, issue.sequence),
        sequence=issue.sequence,
        title=issue.title,
        stateId=issue.state_id,
        completedPercentage=issue.completed_percentage,
    )


def _label_index(session: Session, project_id: str) -> Dict[str, orm_models.ProjectLabelORM]:
    labels = (
        session.execute(
            select(orm_models.ProjectLabelORM).where(orm_models.ProjectLabelORM.project_id == project_id)
        )
        .scalars()
        .all()
    )
    return {label.id: label for label in labels}


def _children_index(session: Session, project_id: str) -> Dict[str, List[orm_models.IssueORM]]:
    children: Dict[str, List[orm_models.IssueORM]] = defaultdict(list)
    rows = (
        session.execute(
            select(orm_models.IssueORM)
            .where(orm_models.IssueORM.project_id == project_id)
            .where(orm_models.IssueORM.parent_id.is_not(None))
            .order_by(orm_models.IssueORM.sequence)
        )
        .scalars()
        .all()
    )
    for row in rows:
        children[row.parent_id].append(row)
    return children


def _map_issue(
    project: orm_models.ProjectORM,
    issue: orm_models.IssueORM,
    labels: Dict[str, orm_models.ProjectLabelORM],
    children: Dict[str, List[orm_models.IssueORM]],
) -> Issue:
    return Issue(
        id=issue.id,
        key=issue_key(project, issue.sequence),
        sequence=issue.sequence,
        projectId=issue.project_id,
        title=issue.title,
        description=issue.description or "",
        priority=issue.priority,
        state=map_state(issue.state) if issue.state is not None else None,
        parentId=issue.parent_id,
        startDate=issue.start_date,
        endDate=issue.end_date,
        completedPercentage=issue.completed_percentage,
        point=issue.point,
        estimatedHours=issue.estimated_hours,
        labels=[
            LabelSummary(id=labels[label_id].id, name=labels[label_id].name, color=labels[label_id].color)
            for label_id in issue.label_ids or []
            if label_id in labels
        ],
        isDraft=issue.is_draft,
        completedAt=issue.completed_at,
        createdBy=issue.created_by,
        updatedBy=issue.updated_by,
        createdAt=issue.created_at,
        updatedAt=issue.updated_at,
        subIssues=[_summary(project, child) for child in children.get(issue.id, [])],
    )


def get_issue_orm(session: Session, project_id: str, issue_id: str) -> orm_models.IssueORM:
    issue = session.execute(
        select(orm_models.IssueORM)
        .where(orm_models.IssueORM.project_id == project_id)
        .where(orm_models.IssueORM.id == issue_id)
    ).scalar_one_or_none()
    if issue is None:
        raise NotFoundError("Issue not found", {"issueId": issue_id})
    return issue


def _validate_parent(
    session: Session,
    project_id: str,
    parent_id: str,
    *,
    issue_id: Optional[str] = None,
) -> orm_models.IssueORM:
    try:
        parent = get_issue_orm(session, project_id, parent_id)
    except NotFoundError as exc:
        raise NotFoundError("Parent issue not found", {"parentId": parent_id}) from exc
    if issue_id is None:
        return parent

    cursor: Optional[orm_models.IssueORM] = parent
    visited: set[str] = set()
    while cursor is not None and cursor.id not in visited:
        if cursor.id == issue_id:
            raise InvalidInputError("An issue cannot become a sub-issue of itself", {"parentId": parent_id})
        visited.add(cursor.id)
        cursor = get_issue_orm(session, project_id, cursor.parent_id) if cursor.parent_id else None
    return parent


def _validate_labels(session: Session, project_id: str, label_ids: Iterable[str]) -> List[str]:
    wanted: List[str] = []
    for label_id in label_ids:
        if label_id not in wanted:
            wanted.append(label_id)
    if not wanted:
        return wanted
    known = _label_index(session, project_id)
    missing = [label_id for label_id in wanted if label_id not in known]
    if missing:
        raise NotFoundError("Labels not found", {"labelIds": missing})
    return wanted


def _sync_completion(issue: orm_models.IssueORM) -> None:
    if issue.completed_percentage >= 100:
        if issue.completed_at is None:
            issue.completed_at = datetime.utcnow()
    else:
        issue.completed_at = None


def get_issue(session: Session, project: orm_models.ProjectORM, issue_id: str) -> Issue:
    issue = get_issue_orm(session, project.id, issue_id)
    return _map_issue(project, issue, _label_index(session, project.id), _children_index(session, project.id))


def list_issues(
    session: Session,
    project: orm_models.ProjectORM,
    *,
    title: Optional[str] = None,
    priority: Optional[str] = None,
    state_id: Optional[str] = None,
    parent_id: Optional[str] = None,
    is_draft: Optional[bool] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Issue]:
    statement = (
        select(orm_models.IssueORM)
        .options(selectinload(orm_models.IssueORM.state))
        .where(orm_models.IssueORM.project_id == project.id)
        .order_by(orm_models.IssueORM.sequence)
    )
    if title:
        statement = statement.where(func.lower(orm_models.IssueORM.title).contains(title.strip().lower()))
    if priority:
        statement = statement.where(orm_models.IssueORM.priority == priority)
    if state_id:
        statement = statement.where(orm_models.IssueORM.state_id == state_id)
    if parent_id:
        statement = statement.where(orm_models.IssueORM.parent_id == parent_id)
    if is_draft is not None:
        statement = statement.where(orm_models.IssueORM.is_draft.is_(is_draft))
    if start_date:
        statement = statement.where(orm_models.IssueORM.start_date >= start_date)
    if end_date:
        statement = statement.where(orm_models.IssueORM.end_date <= end_date)

    issues = session.execute(statement).scalars().all()
    labels = _label_index(session, project.id)
    children = _children_index(session, project.id)
    return [_map_issue(project, issue, labels, children) for issue in issues]


def create_issue(
    session: Session,
    project: orm_models.ProjectORM,
    payload: IssueCreate,
    *,
    actor: str,
) -> Issue:
    lock_project_scope(session, project.id)
    get_state_orm(session, project.id, payload.stateId)
    if payload.parentId:
        _validate_parent(session, project.id, payload.parentId)
    label_ids = _validate_labels(session, project.id, payload.labelIds)

    issue = orm_models.IssueORM(
        project_id=project.id,
        title=payload.title,
        description=payload.description,
        priority=payload.priority.value,
        state_id=payload.stateId,
        parent_id=payload.parentId,
        start_date=payload.startDate,
        end_date=payload.endDate,
        completed_percentage=payload.completedPercentage,
        point=payload.point,
        estimated_hours=payload.estimatedHours,
        label_ids=label_ids,
        is_draft=payload.isDraft,
        created_by=actor,
        updated_by=actor,
    )
    _sync_completion(issue)
    issue_sequencer().assign(session, issue)
    record_activity(
        session,
        project_id=project.id,
        issue_id=issue.id,
        actor=actor,
        action="issue.created",
        details={"key": issue_key(project, issue.sequence), "title": issue.title},
    )
    session.flush()
    logger.info("Issue %s created as %s by %s", issue.id, issue_key(project, issue.sequence), actor)
    return get_issue(session, project, issue.id)


def update_issue(
    session: Session,
    project: orm_models.ProjectORM,
    issue_id: str,
    payload: IssueUpdate,
    *,
    actor: str,
) -> Issue:
    issue = get_issue_orm(session, project.id, issue_id)
    provided = payload.model_fields_set
    changes: dict[str, object] = {}

    if payload.stateId is not None and payload.stateId != issue.state_id:
        lock_project_scope(session, project.id)
        get_state_orm(session, project.id, payload.stateId)
        changes["stateId"] = {"from": issue.state_id, "to": payload.stateId}
        issue.state_id = payload.stateId
    if "parentId" in provided and payload.parentId != issue.parent_id:
        if payload.parentId is not None:
            _validate_parent(session, project.id, payload.parentId, issue_id=issue.id)
        changes["parentId"] = {"from": issue.parent_id, "to": payload.parentId}
        issue.parent_id = payload.parentId
    if payload.labelIds is not None:
        issue.label_ids = _validate_labels(session, project.id, payload.labelIds)
        changes["labelIds"] = list(issue.label_ids)

    simple_fields = {
        "title": "title",
        "description": "description",
        "point": "point",
        "estimatedHours": "estimated_hours",
        "isDraft": "is_draft",
        "completedPercentage": "completed_percentage",
    }
    for field, column in simple_fields.items():
        if field not in provided:
            continue
        value = getattr(payload, field)
        if value is None and field in {"title", "description", "isDraft", "completedPercentage"}:
            continue
        setattr(issue, column, value)
        changes[field] = value
    if payload.priority is not None:
        issue.priority = payload.priority.value
        changes["priority"] = issue.priority
    for field, column in (("startDate", "start_date"), ("endDate", "end_date")):
        if field in provided:
            value = getattr(payload, field)
            setattr(issue, column, value)
            changes[field] = value.isoformat() if value else None

    if issue.start_date and issue.end_date and issue.end_date < issue.start_date:
        raise InvalidInputError("endDate must be on or after startDate", {"issueId": issue.id})

    _sync_completion(issue)
    issue.updated_by = actor
    record_activity(
        session,
        project_id=project.id,
        issue_id=issue.id,
        actor=actor,
        action="issue.updated",
        details=changes,
    )
    session.flush()
    session.expire(issue, ["state"])
    logger.info("Issue %s updated by %s", issue.id, actor)
    return get_issue(session, project, issue.id)


def delete_issue(session: Session, project: orm_models.ProjectORM, issue_id: str, *, actor: str) -> None:
    issue = get_issue_orm(session, project.id, issue_id)
    children = (
        session.execute(select(orm_models.IssueORM).where(orm_models.IssueORM.parent_id == issue.id))
        .scalars()
        .all()
    )
    for child in children:
        child.parent_id = None
        child.updated_by = actor

    key = issue_key(project, issue.sequence)
    shifted = issue_sequencer().remove(session, issue)
    record_activity(
        session,
        project_id=project.id,
        issue_id=issue.id,
        actor=actor,
        action="issue.deleted",
        details={"key": key, "detachedSubIssues": [child.id for child in children]},
    )
    session.flush()
    logger.info("Issue %s (%s) deleted by %s, %d siblings shifted", issue.id, key, actor, shifted)
