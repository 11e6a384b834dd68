from __future__ import annotations

from typing import Tuple, Type

from sqlalchemy import event
from sqlalchemy.orm import Session, with_loader_criteria

from . import orm_models

SOFT_DELETE_MODELS: Tuple[Type[object], ...] = (
    orm_models.ClientORM,
    orm_models.ProjectORM,
    orm_models.ProjectStateORM,
    orm_models.ProjectLabelORM,
    orm_models.IssueORM,
    orm_models.IssueLinkORM,
    orm_models.TimeEntryORM,
)

INCLUDE_DELETED_OPTION = "include_deleted"


def setup_soft_delete_events(session_cls: Type[Session]) -> None:
    """Hide rows carrying a ``deleted_at`` stamp from every ORM select.

    Statements executed with ``execution_options(include_deleted=True)`` see
    the removed rows as well.
    """
    if session_cls.__dict__.get("_soft_delete_installed"):
        return

    @event.listens_for(session_cls, "do_orm_execute")
    def _exclude_deleted(execute_state):  # type: ignore[unused-variable]
        if not execute_state.is_select:
            return
        if execute_state.execution_options.get(INCLUDE_DELETED_OPTION, False):
            return

        statement = execute_state.statement
        for model in SOFT_DELETE_MODELS:
            statement = statement.options(
                with_loader_criteria(
                    model,
                    lambda cls: cls.deleted_at.is_(None),
                    include_aliases=True,
                )
            )
        execute_state.statement = statement

    session_cls._soft_delete_installed = True  # type: ignore[attr-defined]
