from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import orm_models
from ..orm_models import ProjectRole
from ..schemas import Member, MemberOperation
from .activities import record_activity
from .auth import normalize_email
from .errors import ConflictError, InvalidInputError, NotFoundError

logger = logging.getLogger(__name__)

READ_ROLES = frozenset(ProjectRole)
WRITE_ROLES = frozenset({ProjectRole.OWNER, ProjectRole.MANAGER, ProjectRole.CONTRIBUTOR})
MANAGE_ROLES = frozenset({ProjectRole.OWNER, ProjectRole.MANAGER})
OWNER_ROLES = frozenset({ProjectRole.OWNER})


def normalize_project_role(value: ProjectRole | str | None) -> Optional[ProjectRole]:
    if isinstance(value, ProjectRole):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for item in ProjectRole:
            if item.value.lower() == normalized:
                return item
    return None


def map_member(membership: orm_models.ProjectMemberORM) -> Member:
    return Member(
        id=membership.id,
        projectId=membership.project_id,
        email=membership.email,
        role=normalize_project_role(membership.role) or ProjectRole.WATCHER,
        createdBy=membership.created_by,
        createdAt=membership.created_at,
        updatedAt=membership.updated_at,
    )


def get_live_project(session: Session, project_id: str) -> orm_models.ProjectORM:
    project = session.execute(
        select(orm_models.ProjectORM)
        .where(orm_models.ProjectORM.id == project_id)
        .where(orm_models.ProjectORM.deleted_at.is_(None))
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found", {"projectId": project_id})
    return project


def get_membership(session: Session, *, project_id: str, email: str) -> Optional[orm_models.ProjectMemberORM]:
    return session.execute(
        select(orm_models.ProjectMemberORM)
        .where(orm_models.ProjectMemberORM.project_id == project_id)
        .where(orm_models.ProjectMemberORM.email == normalize_email(email))
    ).scalar_one_or_none()


def require_project_role(
    session: Session,
    project_id: str,
    email: str,
    roles: Iterable[ProjectRole] = READ_ROLES,
) -> tuple[orm_models.ProjectORM, ProjectRole]:
    """Return the project and the caller's role, or hide the project entirely."""
    project = get_live_project(session, project_id)
    membership = get_membership(session, project_id=project_id, email=email)
    role = normalize_project_role(membership.role) if membership else None
    if role is None or role not in set(roles):
        logger.warning("Access to project %s denied for %s", project_id, email)
        raise NotFoundError("Project not found", {"projectId": project_id})
    return project, role


def count_owners(session: Session, project_id: str) -> int:
    return session.execute(
        select(func.count())
        .select_from(orm_models.ProjectMemberORM)
        .where(orm_models.ProjectMemberORM.project_id == project_id)
        .where(orm_models.ProjectMemberORM.role == ProjectRole.OWNER.value)
    ).scalar_one()


def _ensure_owner_persistence(
    session: Session,
    membership: orm_models.ProjectMemberORM,
    new_role: Optional[ProjectRole],
) -> None:
    if membership.role != ProjectRole.OWNER.value or new_role == ProjectRole.OWNER:
        return
    if count_owners(session, membership.project_id) <= 1:
        raise InvalidInputError("A project must keep at least one owner", {"email": membership.email})


def add_member(
    session: Session,
    project: orm_models.ProjectORM,
    *,
    email: str,
    role: ProjectRole,
    actor: str,
) -> orm_models.ProjectMemberORM:
    normalized = normalize_email(email)
    membership = get_membership(session, project_id=project.id, email=normalized)
    if membership is not None:
        if membership.role == role.value:
            raise ConflictError("Member already has this role", {"email": normalized, "role": role.value})
        _ensure_owner_persistence(session, membership, role)
        previous = membership.role
        membership.role = role.value
        record_activity(
            session,
            project_id=project.id,
            actor=actor,
            action="member.role_changed",
            details={"email": normalized, "from": previous, "to": role.value},
        )
        session.flush()
        logger.info("Member %s of project %s is now %s", normalized, project.id, role.value)
        return membership

    membership = orm_models.ProjectMemberORM(
        project_id=project.id,
        email=normalized,
        role=role.value,
        created_by=actor,
    )
    session.add(membership)
    record_activity(
        session,
        project_id=project.id,
        actor=actor,
        action="member.added",
        details={"email": normalized, "role": role.value},
    )
    session.flush()
    logger.info("Added %s to project %s as %s", normalized, project.id, role.value)
    return membership


def remove_member(
    session: Session,
    membership: orm_models.ProjectMemberORM,
    *,
    actor: str,
) -> None:
    _ensure_owner_persistence(session, membership, None)
    record_activity(
        session,
        project_id=membership.project_id,
        actor=actor,
        action="member.removed",
        details={"email": membership.email},
    )
    session.delete(membership)
    session.flush()
    logger.info("Removed %s from project %s", membership.email, membership.project_id)


def apply_member_operations(
    session: Session,
    project: orm_models.ProjectORM,
    operations: Iterable[MemberOperation],
    *,
    actor: str,
) -> List[Member]:
    for operation in operations:
        if operation.operation == "add":
            membership = get_membership(session, project_id=project.id, email=operation.email)
            if membership is not None and membership.role == operation.role.value:
                continue
            add_member(session, project, email=operation.email, role=operation.role, actor=actor)
        else:
            membership = get_membership(session, project_id=project.id, email=operation.email)
            if membership is None:
                continue
            remove_member(session, membership, actor=actor)
    return list_members(session, project.id)


def list_members(session: Session, project_id: str) -> List[Member]:
    memberships = (
        session.execute(
            select(orm_models.ProjectMemberORM)
            .where(orm_models.ProjectMemberORM.project_id == project_id)
            .order_by(orm_models.ProjectMemberORM.created_at, orm_models.ProjectMemberORM.email)
        )
        .scalars()
        .all()
    )
    return [map_member(membership) for membership in memberships]


def get_member_by_id(session: Session, project_id: str, member_id: str) -> orm_models.ProjectMemberORM:
    membership = session.execute(
        select(orm_models.ProjectMemberORM)
        .where(orm_models.ProjectMemberORM.project_id == project_id)
        .where(orm_models.ProjectMemberORM.id == member_id)
    ).scalar_one_or_none()
    if membership is None:
        raise NotFoundError("Member not found", {"memberId": member_id})
    return membership


def get_member_by_email(session: Session, project_id: str, email: str) -> orm_models.ProjectMemberORM:
    membership = get_membership(session, project_id=project_id, email=email)
    if membership is None:
        raise NotFoundError("Member not found", {"email": normalize_email(email)})
    return membership
