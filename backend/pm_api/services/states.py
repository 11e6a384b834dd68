from __future__ import annotations

import logging
from typing import List, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from .. import orm_models
from ..schemas import State, StateCreate, StateUpdate
from .activities import record_activity
from .errors import ConflictError, NotFoundError
from .sequencing import STATE_SEQUENCER, lock_project_scope

logger = logging.getLogger(__name__)


def map_state(state: orm_models.ProjectStateORM) -> State:
    return State(
        id=state.id,
        projectId=state.project_id,
        name=state.name,
        sequence=state.sequence,
        createdBy=state.created_by,
        createdAt=state.created_at,
        updatedAt=state.updated_at,
    )


def get_state_orm(session: Session, project_id: str, state_id: str) -> orm_models.ProjectStateORM:
    state = session.execute(
        select(orm_models.ProjectStateORM)
        .where(orm_models.ProjectStateORM.project_id == project_id)
        .where(orm_models.ProjectStateORM.id == state_id)
    ).scalar_one_or_none()
    if state is None:
        raise NotFoundError("State not found", {"stateId": state_id})
    return state


def list_states(session: Session, project_id: str) -> List[State]:
    states = (
        session.execute(
            select(orm_models.ProjectStateORM)
            .where(orm_models.ProjectStateORM.project_id == project_id)
            .order_by(orm_models.ProjectStateORM.sequence)
        )
        .scalars()
        .all()
    )
    return [map_state(state) for state in states]


def create_state(session: Session, project_id: str, payload: StateCreate, *, actor: str) -> State:
    state = orm_models.ProjectStateORM(project_id=project_id, name=payload.name, created_by=actor)
    STATE_SEQUENCER.assign(session, state)
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="state.created",
        details={"stateId": state.id, "name": state.name, "sequence": state.sequence},
    )
    session.flush()
    logger.info("State %s created in project %s at %d", state.id, project_id, state.sequence)
    return map_state(state)


def update_state(
    session: Session,
    project_id: str,
    state_id: str,
    payload: StateUpdate,
    *,
    actor: str,
) -> State:
    state = get_state_orm(session, project_id, state_id)
    previous = state.name
    state.name = payload.name
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="state.renamed",
        details={"stateId": state.id, "from": previous, "to": state.name},
    )
    session.flush()
    logger.info("State %s renamed by %s", state.id, actor)
    return map_state(state)


def delete_state(session: Session, project_id: str, state_id: str, *, actor: str) -> None:
    # Issue writers take the same lock before checking their state.
    lock_project_scope(session, project_id)
    state = get_state_orm(session, project_id, state_id)
    in_use = session.execute(
        select(func.count())
        .select_from(orm_models.IssueORM)
        .where(orm_models.IssueORM.state_id == state.id)
        .where(orm_models.IssueORM.deleted_at.is_(None))
    ).scalar_one()
    if in_use:
        logger.warning("State %s still holds %d issues", state.id, in_use)
        raise ConflictError("State still has issues", {"stateId": state.id, "issues": in_use})

    removed_sequence = state.sequence
    shifted = STATE_SEQUENCER.remove(session, state)
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="state.deleted",
        details={"stateId": state.id, "name": state.name, "sequence": removed_sequence},
    )
    session.flush()
    logger.info("State %s deleted from project %s, %d siblings shifted", state.id, project_id, shifted)


def reorder_states(session: Session, project_id: str, ordered_ids: Sequence[str], *, actor: str) -> List[State]:
    ordered = STATE_SEQUENCER.reorder(session, project_id, ordered_ids)
    record_activity(
        session,
        project_id=project_id,
        actor=actor,
        action="state.reordered",
        details={"stateSequence": [state.id for state in ordered]},
    )
    session.flush()
    return [map_state(state) for state in ordered]
