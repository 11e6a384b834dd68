from __future__ import annotations

from typing import Any, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import Activity


def record_activity(
    session: Session,
    *,
    project_id: str,
    actor: str,
    action: str,
    issue_id: Optional[str] = None,
    details: Optional[dict[str, Any]] = None,
) -> orm_models.ActivityORM:
    activity = orm_models.ActivityORM(
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action=action,
        details=details or {},
    )
    session.add(activity)
    return activity


def _map_activity(activity: orm_models.ActivityORM) -> Activity:
    return Activity(
        id=activity.id,
        projectId=activity.project_id,
        issueId=activity.issue_id,
        actor=activity.actor,
        action=activity.action,
        details=activity.details or {},
        createdAt=activity.created_at,
    )


def list_project_activities(session: Session, project_id: str) -> List[Activity]:
    activities = (
        session.execute(
            select(orm_models.ActivityORM)
            .where(orm_models.ActivityORM.project_id == project_id)
            .order_by(orm_models.ActivityORM.created_at.desc(), orm_models.ActivityORM.id)
        )
        .scalars()
        .all()
    )
    return [_map_activity(activity) for activity in activities]


def list_issue_activities(session: Session, project_id: str, issue_id: str) -> List[Activity]:
    activities = (
        session.execute(
            select(orm_models.ActivityORM)
            .where(orm_models.ActivityORM.project_id == project_id)
            .where(orm_models.ActivityORM.issue_id == issue_id)
            .order_by(orm_models.ActivityORM.created_at.desc(), orm_models.ActivityORM.id)
        )
        .scalars()
        .all()
    )
    return [_map_activity(activity) for activity in activities]
