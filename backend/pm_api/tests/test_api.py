from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool

from backend.pm_api.database import get_session
from backend.pm_api.main import app
from backend.pm_api.services.auth import create_access_token

OWNER = "owner@example.com"
DEV = "dev@example.com"


def _headers(email: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(email)}"}


@pytest.fixture()
def api(session_factory):
    factory = session_factory(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    def override_session():
        session = factory()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    app.dependency_overrides[get_session] = override_session
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture()
def project_id(api):
    client = api.post("/api/v1/client", json={"name": "Acme"}, headers=_headers(OWNER))
    assert client.status_code == 201
    response = api.post(
        "/api/v1/project",
        json={"name": "Website", "slug": "web", "clientId": client.json()["id"]},
        headers=_headers(OWNER),
    )
    assert response.status_code == 201
    return response.json()["id"]


def _create_state(api, project_id, name):
    response = api.post(f"/api/v1/project/{project_id}/state", json={"name": name}, headers=_headers(OWNER))
    assert response.status_code == 201
    return response.json()


def test_system_endpoints(api):
    assert api.get("/healthz").json() == {"status": "ok"}
    assert "version" in api.get("/version").json()


def test_requests_need_a_valid_token(api):
    assert api.get("/api/v1/projects").status_code == 401
    assert api.get("/api/v1/projects", headers={"Authorization": "Bearer nope"}).status_code == 401

    expired = create_access_token(OWNER, expires_delta=timedelta(minutes=-1))
    response = api.get("/api/v1/projects", headers={"Authorization": f"Bearer {expired}"})
    assert response.status_code == 401
    assert response.json()["detail"] == "Token expired"


def test_project_lifecycle(api, project_id):
    listed = api.get("/api/v1/projects", headers=_headers(OWNER)).json()
    assert [(item["slug"], item["myRole"]) for item in listed] == [("web", "Owner")]

    duplicate = api.post(
        "/api/v1/project",
        json={"name": "Again", "slug": "web", "clientId": listed[0]["clientId"]},
        headers=_headers(OWNER),
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "conflict"

    check = api.get("/api/v1/projects/slug/web/check", headers=_headers(OWNER))
    assert check.json() == {"slug": "web", "exists": True}


def test_non_members_get_not_found(api, project_id):
    assert api.get(f"/api/v1/project/{project_id}", headers=_headers(DEV)).status_code == 404
    assert api.get(f"/api/v1/project/{project_id}/states", headers=_headers(DEV)).status_code == 404


def test_watchers_cannot_write(api, project_id):
    added = api.post(
        f"/api/v1/project/{project_id}/member",
        json={"email": DEV, "role": "Watcher"},
        headers=_headers(OWNER),
    )
    assert added.status_code == 201

    assert api.get(f"/api/v1/project/{project_id}/states", headers=_headers(DEV)).status_code == 200
    forbidden = api.post(f"/api/v1/project/{project_id}/state", json={"name": "X"}, headers=_headers(DEV))
    assert forbidden.status_code == 404

    again = api.post(
        f"/api/v1/project/{project_id}/member",
        json={"email": DEV, "role": "Watcher"},
        headers=_headers(OWNER),
    )
    assert again.status_code == 409


def test_state_ordering_over_http(api, project_id):
    todo = _create_state(api, project_id, "Todo")
    doing = _create_state(api, project_id, "Doing")
    done = _create_state(api, project_id, "Done")
    assert [todo["sequence"], doing["sequence"], done["sequence"]] == [1, 2, 3]

    reordered = api.put(
        f"/api/v1/project/{project_id}/states",
        json={"stateSequence": [done["id"], todo["id"], doing["id"]]},
        headers=_headers(OWNER),
    )
    assert reordered.status_code == 200
    assert [(item["name"], item["sequence"]) for item in reordered.json()] == [
        ("Done", 1),
        ("Todo", 2),
        ("Doing", 3),
    ]

    incomplete = api.put(
        f"/api/v1/project/{project_id}/states",
        json={"stateSequence": [todo["id"]]},
        headers=_headers(OWNER),
    )
    assert incomplete.status_code == 400
    assert incomplete.json()["detail"]["code"] == "validation_failed"

    deleted = api.delete(f"/api/v1/project/{project_id}/state/{done['id']}", headers=_headers(OWNER))
    assert deleted.status_code == 204
    states = api.get(f"/api/v1/project/{project_id}/states", headers=_headers(OWNER)).json()
    assert [(item["name"], item["sequence"]) for item in states] == [("Todo", 1), ("Doing", 2)]


def test_issue_flow_over_http(api, project_id):
    todo = _create_state(api, project_id, "Todo")

    created = api.post(
        f"/api/v1/project/{project_id}/issue",
        json={"title": "First", "stateId": todo["id"]},
        headers=_headers(OWNER),
    )
    assert created.status_code == 201
    assert created.json()["key"] == "WEB-1"

    busy_state = api.delete(f"/api/v1/project/{project_id}/state/{todo['id']}", headers=_headers(OWNER))
    assert busy_state.status_code == 409

    issue_id = created.json()["id"]
    patched = api.patch(
        f"/api/v1/project/{project_id}/issue/{issue_id}",
        json={"completedPercentage": 100},
        headers=_headers(OWNER),
    )
    assert patched.status_code == 200
    assert patched.json()["completedAt"] is not None

    missing_state = api.post(
        f"/api/v1/project/{project_id}/issue",
        json={"title": "Broken", "stateId": "state-missing"},
        headers=_headers(OWNER),
    )
    assert missing_state.status_code == 404

    activities = api.get(f"/api/v1/project/{project_id}/issue/{issue_id}/activities", headers=_headers(OWNER))
    assert {item["action"] for item in activities.json()} == {"issue.created", "issue.updated"}


def test_failed_update_leaves_no_partial_changes(api, project_id):
    todo = _create_state(api, project_id, "Todo")
    created = api.post(
        f"/api/v1/project/{project_id}/issue",
        json={"title": "Orig", "stateId": todo["id"], "startDate": "2024-05-10"},
        headers=_headers(OWNER),
    )
    issue_id = created.json()["id"]

    rejected = api.patch(
        f"/api/v1/project/{project_id}/issue/{issue_id}",
        json={"title": "Changed", "endDate": "2024-05-01"},
        headers=_headers(OWNER),
    )
    assert rejected.status_code == 400

    stored = api.get(f"/api/v1/project/{project_id}/issue/{issue_id}", headers=_headers(OWNER)).json()
    assert stored["title"] == "Orig"
    assert stored["endDate"] is None
    activities = api.get(f"/api/v1/project/{project_id}/issue/{issue_id}/activities", headers=_headers(OWNER))
    assert [item["action"] for item in activities.json()] == ["issue.created"]
