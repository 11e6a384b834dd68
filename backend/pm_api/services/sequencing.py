"""Dense ordering keys for sibling rows that live inside a project.

Two flavours exist and are kept apart on purpose:

* renumbered siblings (kanban states) always occupy ``1..N``; removing one
  shifts the later ones down and clients may submit a complete new order;
* permanent identifiers (issue numbers shown as ``KEY-42``) are handed out as
  ``max + 1`` and never change or get reused once a user has seen them.

Every operation runs inside the caller's transaction. Writers on the same
project are serialized by locking the project row; the partial unique index on
``(project_id, sequence)`` catches anything that slips past the lock.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Sequence

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import orm_models
from ..config import settings
from ..soft_delete import INCLUDE_DELETED_OPTION
from .errors import InvalidInputError, NotFoundError, SequenceConflictError

logger = logging.getLogger(__name__)


def lock_project_scope(session: Session, project_id: str) -> orm_models.ProjectORM:
    """Lock the live project row so sequence writers on it queue up."""
    project = session.execute(
        select(orm_models.ProjectORM)
        .where(orm_models.ProjectORM.id == project_id)
        .where(orm_models.ProjectORM.deleted_at.is_(None))
        .with_for_update()
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError("Project not found", {"projectId": project_id})
    return project


@dataclass(frozen=True)
class Sequencer:
    model: Any
    renumber_on_removal: bool

    @property
    def _name(self) -> str:
        return self.model.__tablename__

    def _live_rows(self, session: Session, project_id: str) -> list[Any]:
        return list(
            session.execute(
                select(self.model)
                .where(self.model.project_id == project_id)
                .where(self.model.deleted_at.is_(None))
                .order_by(self.model.sequence, self.model.created_at, self.model.id)
            )
            .scalars()
            .all()
        )

    def next_value(self, session: Session, project_id: str) -> int:
        statement = select(func.coalesce(func.max(self.model.sequence), 0)).where(
            self.model.project_id == project_id
        )
        if self.renumber_on_removal:
            statement = statement.where(self.model.deleted_at.is_(None))
        else:
            # Removed rows still own their number.
            statement = statement.execution_options(**{INCLUDE_DELETED_OPTION: True})
        current = session.execute(statement).scalar_one()
        return int(current or 0) + 1

    def assign(self, session: Session, entity: Any) -> Any:
        """Give ``entity`` the next sequence of its project and flush it."""
        lock_project_scope(session, entity.project_id)
        entity.sequence = self.next_value(session, entity.project_id)
        session.add(entity)
        try:
            session.flush()
        except IntegrityError as exc:
            logger.warning(
                "Sequence %s already taken in %s for project %s",
                entity.sequence,
                self._name,
                entity.project_id,
            )
            raise SequenceConflictError(
                "Sequence value already claimed by a concurrent writer",
                {"projectId": entity.project_id, "sequence": entity.sequence},
            ) from exc
        return entity

    def remove(self, session: Session, entity: Any, *, removed_at: datetime | None = None) -> int:
        """Soft-delete ``entity``; renumbered siblings are compacted afterwards."""
        lock_project_scope(session, entity.project_id)
        entity.deleted_at = removed_at or datetime.utcnow()
        session.flush()
        if not self.renumber_on_removal:
            return 0
        return self._compact(session, entity.project_id)

    def compact(self, session: Session, project_id: str) -> int:
        self._ensure_renumbered("compact")
        lock_project_scope(session, project_id)
        return self._compact(session, project_id)

    def _compact(self, session: Session, project_id: str) -> int:
        rows = self._live_rows(session, project_id)
        changed = _apply_positions(session, rows)
        if changed:
            logger.info("Compacted %d %s rows in project %s", changed, self._name, project_id)
        return changed

    def reorder(self, session: Session, project_id: str, ordered_ids: Sequence[str]) -> list[Any]:
        """Apply a complete client-supplied order; nothing is written on error."""
        self._ensure_renumbered("reorder")
        lock_project_scope(session, project_id)

        seen: set[str] = set()
        duplicates: list[str] = []
        for item_id in ordered_ids:
            if item_id in seen and item_id not in duplicates:
                duplicates.append(item_id)
            seen.add(item_id)
        if duplicates:
            raise InvalidInputError("Order contains duplicate ids", {"duplicates": duplicates})

        rows = {row.id: row for row in self._live_rows(session, project_id)}
        foreign = [item_id for item_id in ordered_ids if item_id not in rows]
        if foreign:
            raise NotFoundError("Ids do not belong to this project", {"ids": foreign})
        missing = [row_id for row_id in rows if row_id not in seen]
        if missing:
            raise InvalidInputError("Order must list every item of the project", {"missing": missing})

        ordered = [rows[item_id] for item_id in ordered_ids]
        changed = _apply_positions(session, ordered)
        logger.info("Reordered %s in project %s (%d changed)", self._name, project_id, changed)
        return ordered

    def _ensure_renumbered(self, operation: str) -> None:
        if not self.renumber_on_removal:
            raise InvalidInputError(
                f"Cannot {operation} permanent identifiers",
                {"table": self._name},
            )


def _apply_positions(session: Session, rows: Sequence[Any]) -> int:
    """Set ``rows[i].sequence = i + 1``, touching only rows that change.

    Changed rows are parked above the current maximum first so no intermediate
    flush collides with the partial unique index, whatever order the unit of
    work emits the updates in.
    """
    targets = [(row, position) for position, row in enumerate(rows, start=1) if row.sequence != position]
    if not targets:
        return 0

    parking = max(max(row.sequence for row in rows), len(rows)) + 1
    for offset, (row, _) in enumerate(targets):
        row.sequence = parking + offset
    session.flush()

    for row, position in targets:
        row.sequence = position
    session.flush()
    return len(targets)


STATE_SEQUENCER = Sequencer(orm_models.ProjectStateORM, renumber_on_removal=True)
PERMANENT_ISSUE_SEQUENCER = Sequencer(orm_models.IssueORM, renumber_on_removal=False)
RENUMBERED_ISSUE_SEQUENCER = Sequencer(orm_models.IssueORM, renumber_on_removal=True)


def issue_sequencer() -> Sequencer:
    if settings.issue_resequence_on_delete:
        return RENUMBERED_ISSUE_SEQUENCER
    return PERMANENT_ISSUE_SEQUENCER
