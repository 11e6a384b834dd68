from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from . import __version__, orm_models
from .config import settings
from .database import get_session, init_db
from .orm_models import ProjectRole
from .schemas import (
    Activity,
    Assignee,
    AssigneeCreate,
    Client,
    ClientCreate,
    ClientUpdate,
    Health,
    Issue,
    IssueCreate,
    IssueLink,
    IssueLinkCreate,
    IssueLinkUpdate,
    IssuePriority,
    IssueUpdate,
    Label,
    LabelCreate,
    LabelUpdate,
    Member,
    MemberCreate,
    MemberOperationsRequest,
    Project,
    ProjectCreate,
    ProjectStats,
    ProjectUpdate,
    SlugCheck,
    State,
    StateCreate,
    StateSequenceUpdate,
    StateUpdate,
    TimeEntry,
    TimeEntryCreate,
    TimeEntryUpdate,
    VersionInfo,
)
from .services import (
    activities as activity_service,
    assignees as assignee_service,
    clients as client_service,
    issue_links as link_service,
    issues as issue_service,
    labels as label_service,
    members as member_service,
    projects as project_service,
    states as state_service,
    time_entries as time_entry_service,
)
from .services.auth import decode_access_token, email_from_payload
from .services.errors import ServiceError
from .services.members import MANAGE_ROLES, OWNER_ROLES, READ_ROLES, WRITE_ROLES

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


app = FastAPI(title="Project Management API", version=__version__)

# Tokens are issued by the identity provider; this service only verifies them.
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")


@app.on_event("startup")
def startup_event() -> None:  # pragma: no cover - side effect
    configure_logging()
    init_db()
    logger.info("Database ready (issue resequencing on delete: %s)", settings.issue_resequence_on_delete)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_current_user(token: str = Depends(oauth2_scheme)) -> str:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return email_from_payload(decode_access_token(token))


def _raise_service_error(error: ServiceError) -> None:
    status_map = {
        "validation_failed": status.HTTP_400_BAD_REQUEST,
        "not_found": status.HTTP_404_NOT_FOUND,
        "conflict": status.HTTP_409_CONFLICT,
        "sequence_conflict": status.HTTP_409_CONFLICT,
    }
    http_status = status_map.get(error.code, status.HTTP_400_BAD_REQUEST)
    raise HTTPException(status_code=http_status, detail=error.to_dict())


@dataclass
class ProjectAccess:
    project: orm_models.ProjectORM
    role: ProjectRole
    email: str


def require_project_roles(roles=READ_ROLES):
    def dependency(
        project_id: str,
        session: Session = Depends(get_session),
        email: str = Depends(get_current_user),
    ) -> ProjectAccess:
        try:
            project, role = member_service.require_project_role(session, project_id, email, roles)
        except ServiceError as error:
            _raise_service_error(error)
        return ProjectAccess(project=project, role=role, email=email)

    return dependency


read_access = require_project_roles(READ_ROLES)
write_access = require_project_roles(WRITE_ROLES)
manage_access = require_project_roles(MANAGE_ROLES)
owner_access = require_project_roles(OWNER_ROLES)


@app.get("/healthz", response_model=Health, tags=["system"])
def healthcheck() -> Health:
    return Health()


@app.get("/version", response_model=VersionInfo, tags=["system"])
def api_version() -> VersionInfo:
    return VersionInfo(version=__version__)


api = APIRouter(prefix="/api/v1")


# === Clients ================================================================


@api.post("/client", response_model=Client, status_code=201, tags=["clients"])
def api_create_client(
    payload: ClientCreate,
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> Client:
    return client_service.create_client(session, payload, actor=email)


@api.get("/clients", response_model=list[Client], tags=["clients"])
def api_list_clients(
    name: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None),
    managerEmail: Optional[str] = Query(default=None),
    session: Session = Depends(get_session),
    _email: str = Depends(get_current_user),
) -> list[Client]:
    return client_service.list_clients(session, name=name, country=country, manager_email=managerEmail)


@api.get("/client/{client_id}", response_model=Client, tags=["clients"])
def api_get_client(
    client_id: str,
    session: Session = Depends(get_session),
    _email: str = Depends(get_current_user),
) -> Client:
    try:
        return client_service.get_client(session, client_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.put("/client/{client_id}", response_model=Client, tags=["clients"])
def api_update_client(
    client_id: str,
    payload: ClientUpdate,
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> Client:
    try:
        return client_service.update_client(session, client_id, payload, actor=email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete("/client/{client_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["clients"])
def api_delete_client(
    client_id: str,
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> Response:
    try:
        client_service.delete_client(session, client_id, actor=email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Projects ===============================================================


@api.post("/project", response_model=Project, status_code=201, tags=["projects"])
def api_create_project(
    payload: ProjectCreate,
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> Project:
    try:
        return project_service.create_project(session, payload, actor=email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/projects", response_model=list[Project], tags=["projects"])
def api_list_projects(
    name: Optional[str] = Query(default=None),
    clientId: Optional[str] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    tag: Optional[str] = Query(default=None),
    startDate: Optional[date] = Query(default=None),
    endDate: Optional[date] = Query(default=None),
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> list[Project]:
    return project_service.list_projects(
        session,
        email,
        name=name,
        client_id=clientId,
        status=status_filter,
        tag=tag,
        start_date=startDate,
        end_date=endDate,
    )


@api.get("/projects/slug/{slug}/check", response_model=SlugCheck, tags=["projects"])
def api_check_project_slug(
    slug: str,
    session: Session = Depends(get_session),
    _email: str = Depends(get_current_user),
) -> SlugCheck:
    return project_service.check_slug(session, slug)


@api.get("/projects/slug/{slug}", response_model=Project, tags=["projects"])
def api_get_project_by_slug(
    slug: str,
    session: Session = Depends(get_session),
    email: str = Depends(get_current_user),
) -> Project:
    try:
        return project_service.get_project_by_slug(session, slug, email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}", response_model=Project, tags=["projects"])
def api_get_project(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> Project:
    return project_service.get_project(session, access.project, access.role)


@api.put("/project/{project_id}", response_model=Project, tags=["projects"])
def api_update_project(
    payload: ProjectUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(owner_access),
) -> Project:
    try:
        return project_service.update_project(session, access.project, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete("/project/{project_id}", status_code=status.HTTP_204_NO_CONTENT, tags=["projects"])
def api_delete_project(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(owner_access),
) -> Response:
    project_service.delete_project(session, access.project, actor=access.email)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@api.get("/project/{project_id}/stats", response_model=ProjectStats, tags=["projects"])
def api_project_stats(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> ProjectStats:
    return project_service.get_project_stats(session, access.project)


@api.get("/project/{project_id}/activities", response_model=list[Activity], tags=["projects"])
def api_project_activities(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Activity]:
    return activity_service.list_project_activities(session, access.project.id)


# === Members ================================================================


@api.post("/project/{project_id}/member", response_model=Member, status_code=201, tags=["members"])
def api_add_member(
    payload: MemberCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Member:
    try:
        membership = member_service.add_member(
            session, access.project, email=payload.email, role=payload.role, actor=access.email
        )
    except ServiceError as error:
        _raise_service_error(error)
    return member_service.map_member(membership)


@api.post("/project/{project_id}/members/operation", response_model=list[Member], tags=["members"])
def api_member_operations(
    payload: MemberOperationsRequest,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> list[Member]:
    try:
        return member_service.apply_member_operations(
            session, access.project, payload.operations, actor=access.email
        )
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/members", response_model=list[Member], tags=["members"])
def api_list_members(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Member]:
    return member_service.list_members(session, access.project.id)


@api.get("/project/{project_id}/member/id/{member_id}", response_model=Member, tags=["members"])
def api_get_member_by_id(
    member_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> Member:
    try:
        return member_service.map_member(member_service.get_member_by_id(session, access.project.id, member_id))
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/member/email/{email}", response_model=Member, tags=["members"])
def api_get_member_by_email(
    email: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> Member:
    try:
        return member_service.map_member(member_service.get_member_by_email(session, access.project.id, email))
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/member/id/{member_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["members"],
)
def api_remove_member_by_id(
    member_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Response:
    try:
        membership = member_service.get_member_by_id(session, access.project.id, member_id)
        member_service.remove_member(session, membership, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@api.delete(
    "/project/{project_id}/member/email/{email}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["members"],
)
def api_remove_member_by_email(
    email: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Response:
    try:
        membership = member_service.get_member_by_email(session, access.project.id, email)
        member_service.remove_member(session, membership, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === States =================================================================


@api.post("/project/{project_id}/state", response_model=State, status_code=201, tags=["states"])
def api_create_state(
    payload: StateCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> State:
    try:
        return state_service.create_state(session, access.project.id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/states", response_model=list[State], tags=["states"])
def api_list_states(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[State]:
    return state_service.list_states(session, access.project.id)


@api.put("/project/{project_id}/states", response_model=list[State], tags=["states"])
def api_reorder_states(
    payload: StateSequenceUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> list[State]:
    try:
        return state_service.reorder_states(session, access.project.id, payload.stateSequence, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/state/{state_id}", response_model=State, tags=["states"])
def api_get_state(
    state_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> State:
    try:
        return state_service.map_state(state_service.get_state_orm(session, access.project.id, state_id))
    except ServiceError as error:
        _raise_service_error(error)


@api.put("/project/{project_id}/state/{state_id}", response_model=State, tags=["states"])
def api_update_state(
    state_id: str,
    payload: StateUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> State:
    try:
        return state_service.update_state(session, access.project.id, state_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/state/{state_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["states"],
)
def api_delete_state(
    state_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Response:
    try:
        state_service.delete_state(session, access.project.id, state_id, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Labels =================================================================


@api.post("/project/{project_id}/label", response_model=Label, status_code=201, tags=["labels"])
def api_create_label(
    payload: LabelCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Label:
    try:
        return label_service.create_label(session, access.project.id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/labels", response_model=list[Label], tags=["labels"])
def api_list_labels(
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Label]:
    return label_service.list_labels(session, access.project.id)


@api.get("/project/{project_id}/label/{label_id}", response_model=Label, tags=["labels"])
def api_get_label(
    label_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> Label:
    try:
        return label_service.get_label(session, access.project.id, label_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.put("/project/{project_id}/label/{label_id}", response_model=Label, tags=["labels"])
def api_update_label(
    label_id: str,
    payload: LabelUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Label:
    try:
        return label_service.update_label(session, access.project.id, label_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/label/{label_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["labels"],
)
def api_delete_label(
    label_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(manage_access),
) -> Response:
    try:
        label_service.delete_label(session, access.project.id, label_id, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Issues =================================================================


@api.post("/project/{project_id}/issue", response_model=Issue, status_code=201, tags=["issues"])
def api_create_issue(
    payload: IssueCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Issue:
    try:
        return issue_service.create_issue(session, access.project, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get("/project/{project_id}/issues", response_model=list[Issue], tags=["issues"])
def api_list_issues(
    title: Optional[str] = Query(default=None),
    priority: Optional[IssuePriority] = Query(default=None),
    stateId: Optional[str] = Query(default=None),
    parentId: Optional[str] = Query(default=None),
    isDraft: Optional[bool] = Query(default=None),
    startDate: Optional[date] = Query(default=None),
    endDate: Optional[date] = Query(default=None),
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Issue]:
    return issue_service.list_issues(
        session,
        access.project,
        title=title,
        priority=priority.value if priority else None,
        state_id=stateId,
        parent_id=parentId,
        is_draft=isDraft,
        start_date=startDate,
        end_date=endDate,
    )


@api.get("/project/{project_id}/issue/{issue_id}", response_model=Issue, tags=["issues"])
def api_get_issue(
    issue_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> Issue:
    try:
        return issue_service.get_issue(session, access.project, issue_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.patch("/project/{project_id}/issue/{issue_id}", response_model=Issue, tags=["issues"])
def api_update_issue(
    issue_id: str,
    payload: IssueUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Issue:
    try:
        return issue_service.update_issue(session, access.project, issue_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/issue/{issue_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["issues"],
)
def api_delete_issue(
    issue_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Response:
    try:
        issue_service.delete_issue(session, access.project, issue_id, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@api.get(
    "/project/{project_id}/issue/{issue_id}/activities",
    response_model=list[Activity],
    tags=["issues"],
)
def api_issue_activities(
    issue_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Activity]:
    try:
        issue_service.get_issue_orm(session, access.project.id, issue_id)
    except ServiceError as error:
        _raise_service_error(error)
    return activity_service.list_issue_activities(session, access.project.id, issue_id)


# === Issue links ============================================================


@api.post(
    "/project/{project_id}/issue/{issue_id}/issue-link",
    response_model=IssueLink,
    status_code=201,
    tags=["issue links"],
)
def api_create_issue_link(
    issue_id: str,
    payload: IssueLinkCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> IssueLink:
    try:
        return link_service.create_link(session, access.project.id, issue_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get(
    "/project/{project_id}/issue/{issue_id}/issue-links",
    response_model=list[IssueLink],
    tags=["issue links"],
)
def api_list_issue_links(
    issue_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[IssueLink]:
    try:
        return link_service.list_links(session, access.project.id, issue_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.get(
    "/project/{project_id}/issue/{issue_id}/issue-link/{link_id}",
    response_model=IssueLink,
    tags=["issue links"],
)
def api_get_issue_link(
    issue_id: str,
    link_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> IssueLink:
    try:
        return link_service.get_link(session, access.project.id, issue_id, link_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.put(
    "/project/{project_id}/issue/{issue_id}/issue-link/{link_id}",
    response_model=IssueLink,
    tags=["issue links"],
)
def api_update_issue_link(
    issue_id: str,
    link_id: str,
    payload: IssueLinkUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> IssueLink:
    try:
        return link_service.update_link(session, access.project.id, issue_id, link_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/issue/{issue_id}/issue-link/{link_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["issue links"],
)
def api_delete_issue_link(
    issue_id: str,
    link_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Response:
    try:
        link_service.delete_link(session, access.project.id, issue_id, link_id, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Issue assignees ========================================================


@api.post(
    "/project/{project_id}/issue/{issue_id}/assignee",
    response_model=Assignee,
    status_code=201,
    tags=["assignees"],
)
def api_add_assignee(
    issue_id: str,
    payload: AssigneeCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Assignee:
    try:
        return assignee_service.add_assignee(session, access.project.id, issue_id, payload.email, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get(
    "/project/{project_id}/issue/{issue_id}/assignees",
    response_model=list[Assignee],
    tags=["assignees"],
)
def api_list_assignees(
    issue_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[Assignee]:
    try:
        return assignee_service.list_assignees(session, access.project.id, issue_id)
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/issue/{issue_id}/assignee/{assignee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["assignees"],
)
def api_remove_assignee(
    issue_id: str,
    assignee_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Response:
    try:
        assignee_service.remove_assignee(session, access.project.id, issue_id, assignee_id, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# === Time entries ===========================================================


@api.post(
    "/project/{project_id}/issue/{issue_id}/time-entry",
    response_model=TimeEntry,
    status_code=201,
    tags=["time entries"],
)
def api_create_time_entry(
    issue_id: str,
    payload: TimeEntryCreate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> TimeEntry:
    try:
        return time_entry_service.create_entry(session, access.project.id, issue_id, payload, actor=access.email)
    except ServiceError as error:
        _raise_service_error(error)


@api.get(
    "/project/{project_id}/issue/{issue_id}/time-entries",
    response_model=list[TimeEntry],
    tags=["time entries"],
)
def api_list_time_entries(
    issue_id: str,
    date_filter: Optional[date] = Query(default=None, alias="date"),
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> list[TimeEntry]:
    try:
        return time_entry_service.list_entries(
            session,
            access.project.id,
            issue_id,
            email=access.email,
            role=access.role,
            on_date=date_filter,
        )
    except ServiceError as error:
        _raise_service_error(error)


@api.get(
    "/project/{project_id}/issue/{issue_id}/time-entry/{entry_id}",
    response_model=TimeEntry,
    tags=["time entries"],
)
def api_get_time_entry(
    issue_id: str,
    entry_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(read_access),
) -> TimeEntry:
    try:
        return time_entry_service.get_entry(
            session, access.project.id, issue_id, entry_id, email=access.email, role=access.role
        )
    except ServiceError as error:
        _raise_service_error(error)


@api.put(
    "/project/{project_id}/issue/{issue_id}/time-entry/{entry_id}",
    response_model=TimeEntry,
    tags=["time entries"],
)
def api_update_time_entry(
    issue_id: str,
    entry_id: str,
    payload: TimeEntryUpdate,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> TimeEntry:
    try:
        return time_entry_service.update_entry(
            session, access.project.id, issue_id, entry_id, payload, actor=access.email, role=access.role
        )
    except ServiceError as error:
        _raise_service_error(error)


@api.delete(
    "/project/{project_id}/issue/{issue_id}/time-entry/{entry_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["time entries"],
)
def api_delete_time_entry(
    issue_id: str,
    entry_id: str,
    session: Session = Depends(get_session),
    access: ProjectAccess = Depends(write_access),
) -> Response:
    try:
        time_entry_service.delete_entry(
            session, access.project.id, issue_id, entry_id, actor=access.email, role=access.role
        )
    except ServiceError as error:
        _raise_service_error(error)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


app.include_router(api)
