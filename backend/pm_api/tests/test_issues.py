from __future__ import annotations

from datetime import date

import pytest

from backend.pm_api.orm_models import ProjectRole
from backend.pm_api.schemas import (
    IssueCreate,
    IssueLinkCreate,
    IssueLinkUpdate,
    IssueUpdate,
    LabelCreate,
    StateCreate,
)
from backend.pm_api.services import issues as issues_service
from backend.pm_api.services import states as states_service
from backend.pm_api.services.activities import list_issue_activities
from backend.pm_api.services.assignees import add_assignee, list_assignees, remove_assignee
from backend.pm_api.services.errors import ConflictError, InvalidInputError, NotFoundError
from backend.pm_api.services.issue_links import create_link, delete_link, list_links, update_link
from backend.pm_api.services.issues import create_issue, delete_issue, get_issue, list_issues, update_issue
from backend.pm_api.services.labels import create_label, delete_label
from backend.pm_api.services.members import add_member
from backend.pm_api.services.projects import get_project_stats
from backend.pm_api.services.sequencing import lock_project_scope
from backend.pm_api.services.states import create_state, delete_state, get_state_orm

OWNER = "owner@example.com"


def _issue(session, project, state, title="Task", **fields):
    return create_issue(session, project, IssueCreate(title=title, stateId=state.id, **fields), actor=OWNER)


def test_create_issue_returns_key_and_state(session, project, todo_state):
    issue = _issue(session, project, todo_state, title="Set up CI", priority="high")

    assert issue.key == "WEB-1"
    assert issue.state.id == todo_state.id
    assert issue.priority.value == "high"
    assert issue.createdBy == OWNER


def test_create_issue_requires_live_state(session, project, todo_state):
    delete_state(session, project.id, todo_state.id, actor=OWNER)

    with pytest.raises(NotFoundError):
        _issue(session, project, todo_state)


def test_create_issue_validates_labels(session, project, todo_state):
    label = create_label(session, project.id, LabelCreate(name="bug", color="#FF0000"), actor=OWNER)

    issue = _issue(session, project, todo_state, labelIds=[label.id, label.id])
    assert [item.name for item in issue.labels] == ["bug"]

    with pytest.raises(NotFoundError) as excinfo:
        _issue(session, project, todo_state, labelIds=["label-missing"])
    assert excinfo.value.details == {"labelIds": ["label-missing"]}


def test_deleted_labels_disappear_from_issues(session, project, todo_state):
    label = create_label(session, project.id, LabelCreate(name="bug"), actor=OWNER)
    issue = _issue(session, project, todo_state, labelIds=[label.id])

    delete_label(session, project.id, label.id, actor=OWNER)

    assert get_issue(session, project, issue.id).labels == []


def test_sub_issues_are_listed_on_parent(session, project, todo_state):
    parent = _issue(session, project, todo_state, title="Epic")
    child = _issue(session, project, todo_state, title="Story", parentId=parent.id)

    loaded = get_issue(session, project, parent.id)

    assert [item.id for item in loaded.subIssues] == [child.id]
    assert loaded.subIssues[0].key == "WEB-2"


def test_reparenting_cannot_create_cycles(session, project, todo_state):
    epic = _issue(session, project, todo_state, title="Epic")
    story = _issue(session, project, todo_state, title="Story", parentId=epic.id)
    task = _issue(session, project, todo_state, title="Task", parentId=story.id)

    with pytest.raises(InvalidInputError):
        update_issue(session, project, epic.id, IssueUpdate(parentId=task.id), actor=OWNER)
    with pytest.raises(InvalidInputError):
        update_issue(session, project, epic.id, IssueUpdate(parentId=epic.id), actor=OWNER)

    detached = update_issue(session, project, task.id, IssueUpdate(parentId=None), actor=OWNER)
    assert detached.parentId is None


def test_update_without_parent_keeps_parent(session, project, todo_state):
    epic = _issue(session, project, todo_state, title="Epic")
    story = _issue(session, project, todo_state, title="Story", parentId=epic.id)

    updated = update_issue(session, project, story.id, IssueUpdate(title="Renamed"), actor=OWNER)

    assert updated.parentId == epic.id
    assert updated.title == "Renamed"


def test_completion_timestamp_follows_percentage(session, project, todo_state):
    issue = _issue(session, project, todo_state)

    done = update_issue(session, project, issue.id, IssueUpdate(completedPercentage=100), actor=OWNER)
    assert done.completedAt is not None

    reopened = update_issue(session, project, issue.id, IssueUpdate(completedPercentage=50), actor=OWNER)
    assert reopened.completedAt is None


def test_moving_issue_to_another_state(session, project, todo_state):
    done_state = create_state(session, project.id, StateCreate(name="Done"), actor=OWNER)
    issue = _issue(session, project, todo_state)

    moved = update_issue(session, project, issue.id, IssueUpdate(stateId=done_state.id), actor=OWNER)

    assert moved.state.id == done_state.id
    with pytest.raises(ConflictError):
        delete_state(session, project.id, done_state.id, actor=OWNER)


def test_state_checks_happen_under_the_project_lock(session, project, todo_state, monkeypatch):
    doing = create_state(session, project.id, StateCreate(name="Doing"), actor=OWNER)
    spare = create_state(session, project.id, StateCreate(name="Spare"), actor=OWNER)
    events = []

    def locking(session, project_id):
        events.append("lock")
        return lock_project_scope(session, project_id)

    def checking(session, project_id, state_id):
        # A concurrent state delete arriving here must already be queued on the lock.
        events.append("check" if "lock" in events else "unlocked check")
        return get_state_orm(session, project_id, state_id)

    for module in (issues_service, states_service):
        monkeypatch.setattr(module, "lock_project_scope", locking)
        monkeypatch.setattr(module, "get_state_orm", checking)

    issue = _issue(session, project, todo_state)
    assert events[:2] == ["lock", "check"]

    events.clear()
    update_issue(session, project, issue.id, IssueUpdate(stateId=doing.id), actor=OWNER)
    assert events[:2] == ["lock", "check"]

    events.clear()
    delete_state(session, project.id, spare.id, actor=OWNER)
    assert events[:2] == ["lock", "check"]
    assert "unlocked check" not in events


def test_update_rejects_inverted_dates(session, project, todo_state):
    issue = _issue(session, project, todo_state, startDate=date(2024, 3, 10))

    with pytest.raises(InvalidInputError):
        update_issue(session, project, issue.id, IssueUpdate(endDate=date(2024, 3, 1)), actor=OWNER)


def test_delete_detaches_sub_issues(session, project, todo_state):
    parent = _issue(session, project, todo_state, title="Epic")
    child = _issue(session, project, todo_state, title="Story", parentId=parent.id)

    delete_issue(session, project, parent.id, actor=OWNER)

    assert get_issue(session, project, child.id).parentId is None
    with pytest.raises(NotFoundError):
        get_issue(session, project, parent.id)


def test_list_issues_filters(session, project, todo_state):
    _issue(session, project, todo_state, title="Write docs", priority="low")
    _issue(session, project, todo_state, title="Fix login", priority="urgent", isDraft=True)

    assert [item.title for item in list_issues(session, project, title="login")] == ["Fix login"]
    assert [item.title for item in list_issues(session, project, priority="low")] == ["Write docs"]
    assert [item.title for item in list_issues(session, project, is_draft=True)] == ["Fix login"]
    assert len(list_issues(session, project, state_id=todo_state.id)) == 2


def test_issue_activities_are_recorded(session, project, todo_state):
    issue = _issue(session, project, todo_state)
    update_issue(session, project, issue.id, IssueUpdate(title="Renamed"), actor=OWNER)

    actions = [activity.action for activity in list_issue_activities(session, project.id, issue.id)]

    assert set(actions) == {"issue.created", "issue.updated"}


def test_links_reject_duplicate_urls(session, project, todo_state):
    issue = _issue(session, project, todo_state)
    link = create_link(
        session, project.id, issue.id, IssueLinkCreate(title="Spec", url="https://example.com/doc"), actor=OWNER
    )

    with pytest.raises(ConflictError):
        create_link(session, project.id, issue.id, IssueLinkCreate(url="https://example.com/doc"), actor=OWNER)

    updated = update_link(session, project.id, issue.id, link.id, IssueLinkUpdate(title="Design"), actor=OWNER)
    assert updated.title == "Design"

    delete_link(session, project.id, issue.id, link.id, actor=OWNER)
    assert list_links(session, project.id, issue.id) == []


def test_assignees_must_be_members(session, project, todo_state):
    issue = _issue(session, project, todo_state)

    with pytest.raises(InvalidInputError):
        add_assignee(session, project.id, issue.id, "stranger@example.com", actor=OWNER)

    add_member(session, project, email="dev@example.com", role=ProjectRole.CONTRIBUTOR, actor=OWNER)
    assignee = add_assignee(session, project.id, issue.id, "Dev@Example.com", actor=OWNER)
    assert assignee.email == "dev@example.com"

    with pytest.raises(ConflictError):
        add_assignee(session, project.id, issue.id, "dev@example.com", actor=OWNER)

    remove_assignee(session, project.id, issue.id, assignee.id, actor=OWNER)
    assert list_assignees(session, project.id, issue.id) == []


def test_project_stats(session, project, todo_state):
    done_state = create_state(session, project.id, StateCreate(name="Done"), actor=OWNER)
    _issue(session, project, todo_state, estimatedHours=3)
    _issue(session, project, done_state, completedPercentage=100, estimatedHours=2)
    removed = _issue(session, project, done_state, isDraft=True)
    delete_issue(session, project, removed.id, actor=OWNER)

    stats = get_project_stats(session, project)

    assert stats.totalIssues == 2
    assert stats.completedIssues == 1
    assert stats.draftIssues == 0
    assert stats.estimatedHours == 5
    assert [(item.name, item.issues) for item in stats.issuesByState] == [("Todo", 1), ("Done", 1)]
