from __future__ import annotations

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import Assignee
from .activities import record_activity
from .auth import normalize_email
from .errors import ConflictError, InvalidInputError, NotFoundError
from .issues import get_issue_orm
from .members import get_membership

logger = logging.getLogger(__name__)


def _map_assignee(assignee: orm_models.IssueAssigneeORM) -> Assignee:
    return Assignee(
        id=assignee.id,
        projectId=assignee.project_id,
        issueId=assignee.issue_id,
        email=assignee.email,
        createdBy=assignee.created_by,
        createdAt=assignee.created_at,
    )


def add_assignee(session: Session, project_id: str, issue_id: str, email: str, *, actor: str) -> Assignee:
    get_issue_orm(session, project_id, issue_id)
    normalized = normalize_email(email)
    if get_membership(session, project_id=project_id, email=normalized) is None:
        raise InvalidInputError("Assignee must be a project member", {"email": normalized})

    existing = session.execute(
        select(orm_models.IssueAssigneeORM)
        .where(orm_models.IssueAssigneeORM.issue_id == issue_id)
        .where(orm_models.IssueAssigneeORM.email == normalized)
    ).scalar_one_or_none()
    if existing is not None:
        raise ConflictError("Already assigned", {"email": normalized})

    assignee = orm_models.IssueAssigneeORM(
        project_id=project_id,
        issue_id=issue_id,
        email=normalized,
        created_by=actor,
    )
    session.add(assignee)
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="issue.assigned",
        details={"email": normalized},
    )
    session.flush()
    logger.info("Issue %s assigned to %s by %s", issue_id, normalized, actor)
    return _map_assignee(assignee)


def list_assignees(session: Session, project_id: str, issue_id: str) -> List[Assignee]:
    get_issue_orm(session, project_id, issue_id)
    assignees = (
        session.execute(
            select(orm_models.IssueAssigneeORM)
            .where(orm_models.IssueAssigneeORM.issue_id == issue_id)
            .order_by(orm_models.IssueAssigneeORM.created_at, orm_models.IssueAssigneeORM.email)
        )
        .scalars()
        .all()
    )
    return [_map_assignee(assignee) for assignee in assignees]


def remove_assignee(session: Session, project_id: str, issue_id: str, assignee_id: str, *, actor: str) -> None:
    get_issue_orm(session, project_id, issue_id)
    assignee = session.execute(
        select(orm_models.IssueAssigneeORM)
        .where(orm_models.IssueAssigneeORM.issue_id == issue_id)
        .where(orm_models.IssueAssigneeORM.id == assignee_id)
    ).scalar_one_or_none()
    if assignee is None:
        raise NotFoundError("Assignee not found", {"assigneeId": assignee_id})
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="issue.unassigned",
        details={"email": assignee.email},
    )
    session.delete(assignee)
    session.flush()
    logger.info("Assignee %s removed from issue %s", assignee.email, issue_id)
