from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import Client, ClientCreate, ClientUpdate
from .auth import normalize_email
from .errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def map_client(client: orm_models.ClientORM) -> Client:
    return Client(
        id=client.id,
        name=client.name,
        managerEmails=list(client.manager_emails or []),
        country=client.country or "",
        createdBy=client.created_by,
        createdAt=client.created_at,
        updatedAt=client.updated_at,
    )


def _normalize_emails(values) -> list[str]:
    result: list[str] = []
    for value in values or []:
        email = normalize_email(str(value))
        if email and email not in result:
            result.append(email)
    return result


def get_client_orm(session: Session, client_id: str) -> orm_models.ClientORM:
    client = session.execute(
        select(orm_models.ClientORM).where(orm_models.ClientORM.id == client_id)
    ).scalar_one_or_none()
    if client is None:
        raise NotFoundError("Client not found", {"clientId": client_id})
    return client


def _get_owned_client(session: Session, client_id: str, actor: str) -> orm_models.ClientORM:
    client = get_client_orm(session, client_id)
    if client.created_by != actor:
        logger.warning("Client %s is not editable by %s", client_id, actor)
        raise NotFoundError("Client not found", {"clientId": client_id})
    return client


def list_clients(
    session: Session,
    *,
    name: Optional[str] = None,
    country: Optional[str] = None,
    manager_email: Optional[str] = None,
) -> List[Client]:
    statement = select(orm_models.ClientORM).order_by(orm_models.ClientORM.name)
    if name:
        statement = statement.where(func.lower(orm_models.ClientORM.name).contains(name.strip().lower()))
    if country:
        statement = statement.where(func.lower(orm_models.ClientORM.country).contains(country.strip().lower()))
    clients = session.execute(statement).scalars().all()
    if manager_email:
        wanted = normalize_email(manager_email)
        clients = [client for client in clients if wanted in (client.manager_emails or [])]
    return [map_client(client) for client in clients]


def get_client(session: Session, client_id: str) -> Client:
    return map_client(get_client_orm(session, client_id))


def create_client(session: Session, payload: ClientCreate, *, actor: str) -> Client:
    client = orm_models.ClientORM(
        name=payload.name,
        manager_emails=_normalize_emails(payload.managerEmails),
        country=payload.country or "",
        created_by=actor,
    )
    session.add(client)
    session.flush()
    logger.info("Client %s created by %s", client.id, actor)
    return map_client(client)


def update_client(session: Session, client_id: str, payload: ClientUpdate, *, actor: str) -> Client:
    client = _get_owned_client(session, client_id, actor)
    data = payload.model_dump(exclude_unset=True)
    if data.get("name") is not None:
        client.name = data["name"]
    if "country" in data:
        client.country = data["country"] or ""
    if "managerEmails" in data:
        client.manager_emails = _normalize_emails(data["managerEmails"])
    session.flush()
    logger.info("Client %s updated by %s", client.id, actor)
    return map_client(client)


def delete_client(session: Session, client_id: str, *, actor: str) -> None:
    client = _get_owned_client(session, client_id, actor)
    projects = session.execute(
        select(func.count())
        .select_from(orm_models.ProjectORM)
        .where(orm_models.ProjectORM.client_id == client.id)
        .where(orm_models.ProjectORM.deleted_at.is_(None))
    ).scalar_one()
    if projects:
        raise ConflictError("Client still has projects", {"clientId": client.id, "projects": projects})
    client.deleted_at = datetime.utcnow()
    session.flush()
    logger.info("Client %s deleted by %s", client.id, actor)
