from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import IssueLink, IssueLinkCreate, IssueLinkUpdate
from .activities import record_activity
from .errors import ConflictError, NotFoundError
from .issues import get_issue_orm

logger = logging.getLogger(__name__)


def _map_link(link: orm_models.IssueLinkORM) -> IssueLink:
    return IssueLink(
        id=link.id,
        projectId=link.project_id,
        issueId=link.issue_id,
        title=link.title or "",
        url=link.url,
        createdBy=link.created_by,
        createdAt=link.created_at,
        updatedAt=link.updated_at,
    )


def _ensure_unique_url(session: Session, issue_id: str, url: str, *, exclude_id: Optional[str] = None) -> None:
    statement = (
        select(orm_models.IssueLinkORM.id)
        .where(orm_models.IssueLinkORM.issue_id == issue_id)
        .where(orm_models.IssueLinkORM.url == url)
        .where(orm_models.IssueLinkORM.deleted_at.is_(None))
    )
    if exclude_id:
        statement = statement.where(orm_models.IssueLinkORM.id != exclude_id)
    if session.execute(statement.limit(1)).first() is not None:
        raise ConflictError("Link already attached to this issue", {"url": url})


def _get_link_orm(session: Session, project_id: str, issue_id: str, link_id: str) -> orm_models.IssueLinkORM:
    get_issue_orm(session, project_id, issue_id)
    link = session.execute(
        select(orm_models.IssueLinkORM)
        .where(orm_models.IssueLinkORM.issue_id == issue_id)
        .where(orm_models.IssueLinkORM.id == link_id)
    ).scalar_one_or_none()
    if link is None:
        raise NotFoundError("Issue link not found", {"linkId": link_id})
    return link


def create_link(
    session: Session,
    project_id: str,
    issue_id: str,
    payload: IssueLinkCreate,
    *,
    actor: str,
) -> IssueLink:
    get_issue_orm(session, project_id, issue_id)
    url = str(payload.url)
    _ensure_unique_url(session, issue_id, url)
    link = orm_models.IssueLinkORM(
        project_id=project_id,
        issue_id=issue_id,
        title=payload.title.strip(),
        url=url,
        created_by=actor,
    )
    session.add(link)
    session.flush()
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="issue_link.created",
        details={"linkId": link.id, "url": url},
    )
    session.flush()
    logger.info("Link %s attached to issue %s", link.id, issue_id)
    return _map_link(link)


def list_links(session: Session, project_id: str, issue_id: str) -> List[IssueLink]:
    get_issue_orm(session, project_id, issue_id)
    links = (
        session.execute(
            select(orm_models.IssueLinkORM)
            .where(orm_models.IssueLinkORM.issue_id == issue_id)
            .order_by(orm_models.IssueLinkORM.created_at, orm_models.IssueLinkORM.id)
        )
        .scalars()
        .all()
    )
    return [_map_link(link) for link in links]


def get_link(session: Session, project_id: str, issue_id: str, link_id: str) -> IssueLink:
    return _map_link(_get_link_orm(session, project_id, issue_id, link_id))


def update_link(
    session: Session,
    project_id: str,
    issue_id: str,
    link_id: str,
    payload: IssueLinkUpdate,
    *,
    actor: str,
) -> IssueLink:
    link = _get_link_orm(session, project_id, issue_id, link_id)
    if payload.url is not None:
        url = str(payload.url)
        if url != link.url:
            _ensure_unique_url(session, issue_id, url, exclude_id=link.id)
            link.url = url
    if payload.title is not None:
        link.title = payload.title.strip()
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="issue_link.updated",
        details={"linkId": link.id, "url": link.url, "title": link.title},
    )
    session.flush()
    return _map_link(link)


def delete_link(session: Session, project_id: str, issue_id: str, link_id: str, *, actor: str) -> None:
    link = _get_link_orm(session, project_id, issue_id, link_id)
    link.deleted_at = datetime.utcnow()
    record_activity(
        session,
        project_id=project_id,
        issue_id=issue_id,
        actor=actor,
        action="issue_link.deleted",
        details={"linkId": link.id, "url": link.url},
    )
    session.flush()
    logger.info("Link %s removed from issue %s", link.id, issue_id)
