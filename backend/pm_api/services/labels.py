from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import Label, LabelCreate, LabelUpdate
from .activities import record_activity
from .errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def _map_label(label: orm_models.ProjectLabelORM) -> Label:
    return Label(
        id=label.id,
        projectId=label.project_id,
        name=label.name,
        color=label.color,
        createdBy=label.created_by,
        createdAt=label.created_at,
        updatedAt=label.updated_at,
    )


def _ensure_unique_name(session: Session, project_id: str, name: str, *, exclude_id: Optional[str] = None) -> None:
    statement = (
        select(orm_models.ProjectLabelORM.id)
        .where(orm_models.ProjectLabelORM.project_id == project_id)
        .where(func.lower(orm_models.ProjectLabelORM.name) == name.lower())
        .where(orm_models.ProjectLabelORM.deleted_at.is_(None))
    )
    if exclude_id:
        statement = statement.where(orm_models.ProjectLabelORM.id != exclude_id)
    if session.execute(statement.limit(1)).first() is not None:
        raise ConflictError("Label name already exists", {"name": name})


def get_label_orm(session: Session, project_id: str, label_id: str) -> orm_models.ProjectLabelORM:
    label = session.execute(
        select(orm_models.ProjectLabelORM)
        .where(orm_models.ProjectLabelORM.project_id == project_id)
        .where(orm_models.ProjectLabelORM.id == label_id)
    ).scalar_one_or_none()
    if label is None:
        raise NotFoundError("Label not found", {"labelId": label_id})
    return label


def get_label(session: Session, project_id: str, label_id: str) -> Label:
    return _map_label(get_label_orm(session, project_id, label_id))


def list_labels(session: Session, project_id: str) -> List[Label]:
    labels = (
        session.execute(
            select(orm_models.ProjectLabelORM)
            .where(orm_models.ProjectLabelORM.project_id == project_id)
            .order_by(orm_models.ProjectLabelORM.name)
        )
        .scalars()
        .all()
    )
    return [_map_label(label) for label in labels]


def create_label(session: Session, project_id: str, payload: LabelCreate, *, actor: str) -> Label:
    _ensure_unique_name(session, project_id, payload.name)
    label = orm_models.ProjectLabelORM(
        project_id=project_id,
        name=payload.name,
        color=payload.color.lower(),
        created_by=actor,
    )
    session.add(label)
    session.flush()
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="label.created",
        details={"labelId": label.id, "name": label.name},
    )
    session.flush()
    logger.info("Label %s created in project %s", label.id, project_id)
    return _map_label(label)


def update_label(
    session: Session,
    project_id: str,
    label_id: str,
    payload: LabelUpdate,
    *,
    actor: str,
) -> Label:
    label = get_label_orm(session, project_id, label_id)
    changes: dict[str, str] = {}
    if payload.name is not None and payload.name != label.name:
        _ensure_unique_name(session, project_id, payload.name, exclude_id=label.id)
        label.name = payload.name
        changes["name"] = payload.name
    if payload.color is not None:
        label.color = payload.color.lower()
        changes["color"] = label.color
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="label.updated",
        details={"labelId": label.id, **changes},
    )
    session.flush()
    logger.info("Label %s updated by %s", label.id, actor)
    return _map_label(label)


def delete_label(session: Session, project_id: str, label_id: str, *, actor: str) -> None:
    label = get_label_orm(session, project_id, label_id)
    label.deleted_at = datetime.utcnow()
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="label.deleted",
        details={"labelId": label.id, "name": label.name},
    )
    session.flush()
    logger.info("Label %s deleted by %s", label.id, actor)
