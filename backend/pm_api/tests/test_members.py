from __future__ import annotations

import pytest

from backend.pm_api.orm_models import ProjectRole
from backend.pm_api.schemas import MemberOperation
from backend.pm_api.services.errors import ConflictError, InvalidInputError, NotFoundError
from backend.pm_api.services.members import (
    MANAGE_ROLES,
    WRITE_ROLES,
    add_member,
    apply_member_operations,
    get_member_by_email,
    list_members,
    remove_member,
    require_project_role,
)

OWNER = "owner@example.com"


def test_creator_is_owner(session, project):
    members = list_members(session, project.id)

    assert [(member.email, member.role) for member in members] == [(OWNER, ProjectRole.OWNER)]


def test_add_member_normalizes_email(session, project):
    membership = add_member(session, project, email=" Dev@Example.com ", role=ProjectRole.CONTRIBUTOR, actor=OWNER)

    assert membership.email == "dev@example.com"
    assert membership.role == ProjectRole.CONTRIBUTOR.value


def test_readding_with_same_role_conflicts(session, project):
    add_member(session, project, email="dev@example.com", role=ProjectRole.WATCHER, actor=OWNER)

    with pytest.raises(ConflictError):
        add_member(session, project, email="dev@example.com", role=ProjectRole.WATCHER, actor=OWNER)


def test_readding_with_other_role_updates_it(session, project):
    add_member(session, project, email="dev@example.com", role=ProjectRole.WATCHER, actor=OWNER)

    membership = add_member(session, project, email="dev@example.com", role=ProjectRole.MANAGER, actor=OWNER)

    assert membership.role == ProjectRole.MANAGER.value
    assert len(list_members(session, project.id)) == 2


def test_last_owner_cannot_leave_or_be_demoted(session, project):
    owner = get_member_by_email(session, project.id, OWNER)

    with pytest.raises(InvalidInputError):
        remove_member(session, owner, actor=OWNER)
    with pytest.raises(InvalidInputError):
        add_member(session, project, email=OWNER, role=ProjectRole.MANAGER, actor=OWNER)

    add_member(session, project, email="second@example.com", role=ProjectRole.OWNER, actor=OWNER)
    remove_member(session, owner, actor="second@example.com")
    assert [member.email for member in list_members(session, project.id)] == ["second@example.com"]


def test_bulk_operations(session, project):
    operations = [
        MemberOperation(operation="add", email="a@example.com", role=ProjectRole.CONTRIBUTOR),
        MemberOperation(operation="add", email="b@example.com", role=ProjectRole.WATCHER),
        MemberOperation(operation="remove", email="a@example.com"),
        MemberOperation(operation="remove", email="ghost@example.com"),
    ]

    members = apply_member_operations(session, project, operations, actor=OWNER)

    assert sorted(member.email for member in members) == ["b@example.com", OWNER]


def test_role_checks_hide_the_project(session, project):
    add_member(session, project, email="viewer@example.com", role=ProjectRole.WATCHER, actor=OWNER)

    _, role = require_project_role(session, project.id, "viewer@example.com")
    assert role == ProjectRole.WATCHER

    with pytest.raises(NotFoundError):
        require_project_role(session, project.id, "viewer@example.com", WRITE_ROLES)
    with pytest.raises(NotFoundError):
        require_project_role(session, project.id, "stranger@example.com")

    _, owner_role = require_project_role(session, project.id, OWNER, MANAGE_ROLES)
    assert owner_role == ProjectRole.OWNER
