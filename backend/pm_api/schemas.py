from __future__ import annotations

import re
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import AnyHttpUrl, BaseModel, EmailStr, Field, field_validator, model_validator

from .orm_models import ProjectRole

DateType = date
TimeType = time

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class Health(BaseModel):
    status: str = "ok"


class VersionInfo(BaseModel):
    version: str


def _strip(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip()
    return value


def _check_date_range(start: Optional[date], end: Optional[date]) -> None:
    if start and end and end < start:
        raise ValueError("endDate must be on or after startDate")


# === Clients ================================================================


class ClientCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    managerEmails: list[EmailStr] = Field(default_factory=list)
    country: str = ""

    @field_validator("name", "country", mode="before")
    @classmethod
    def _strip_strings(cls, value: Any) -> Any:
        return _strip(value)


class ClientUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    managerEmails: Optional[list[EmailStr]] = None
    country: Optional[str] = None

    @field_validator("name", "country", mode="before")
    @classmethod
    def _strip_strings(cls, value: Any) -> Any:
        return _strip(value)


class Client(BaseModel):
    id: str
    name: str
    managerEmails: list[str]
    country: str
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


# === Projects ===============================================================


class ProjectBase(BaseModel):
    @field_validator("slug", mode="before", check_fields=False)
    @classmethod
    def _normalize_slug(cls, value: Any) -> Any:
        if value is None:
            return None
        normalized = str(value).strip().lower()
        if not SLUG_PATTERN.match(normalized):
            raise ValueError("slug may contain lowercase letters, digits and single dashes")
        return normalized

    @field_validator("tags", mode="before", check_fields=False)
    @classmethod
    def _normalize_tags(cls, value: Any) -> Any:
        if value is None:
            return None
        result: list[str] = []
        for raw in value:
            tag = str(raw).strip()
            if tag and tag not in result:
                result.append(tag)
        return result

    @model_validator(mode="after")
    def _validate_dates(self):
        _check_date_range(getattr(self, "startDate", None), getattr(self, "endDate", None))
        return self


class ProjectCreate(ProjectBase):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=2, max_length=64)
    description: str = ""
    clientId: str
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    status: str = "active"
    tags: list[str] = Field(default_factory=list)


class ProjectUpdate(ProjectBase):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    slug: Optional[str] = Field(default=None, min_length=2, max_length=64)
    description: Optional[str] = None
    clientId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    status: Optional[str] = None
    tags: Optional[list[str]] = None


class Project(BaseModel):
    id: str
    name: str
    slug: str
    description: str
    clientId: str
    client: Optional[Client] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    status: str
    tags: list[str]
    myRole: Optional[ProjectRole] = None
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


class SlugCheck(BaseModel):
    slug: str
    exists: bool


class StateIssueCount(BaseModel):
    stateId: str
    name: str
    sequence: int
    issues: int


class ProjectStats(BaseModel):
    projectId: str
    totalIssues: int
    completedIssues: int
    draftIssues: int
    issuesByState: list[StateIssueCount]
    loggedHours: float
    estimatedHours: float


# === Members ================================================================


class MemberCreate(BaseModel):
    email: EmailStr
    role: ProjectRole


class MemberOperation(BaseModel):
    operation: Literal["add", "remove"]
    email: EmailStr
    role: Optional[ProjectRole] = None

    @model_validator(mode="after")
    def _require_role_for_add(self):
        if self.operation == "add" and self.role is None:
            raise ValueError("role is required when adding a member")
        return self


class MemberOperationsRequest(BaseModel):
    operations: list[MemberOperation] = Field(min_length=1)


class Member(BaseModel):
    id: str
    projectId: str
    email: str
    role: ProjectRole
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


# === States =================================================================


class StateCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)


class StateUpdate(StateCreate):
    pass


class State(BaseModel):
    id: str
    projectId: str
    name: str
    sequence: int
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


class StateSequenceUpdate(BaseModel):
    stateSequence: list[str]


# === Labels =================================================================


class LabelCreate(BaseModel):
    name: str = Field(min_length=1, max_length=80)
    color: str = Field(default="#6b7280", pattern=r"^#[0-9a-fA-F]{6}$")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)


class LabelUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=80)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")

    @field_validator("name", mode="before")
    @classmethod
    def _strip_name(cls, value: Any) -> Any:
        return _strip(value)


class Label(BaseModel):
    id: str
    projectId: str
    name: str
    color: str
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


class LabelSummary(BaseModel):
    id: str
    name: str
    color: str


# === Issues =================================================================


class IssuePriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class IssueCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = ""
    priority: IssuePriority = IssuePriority.MEDIUM
    stateId: str
    parentId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    completedPercentage: int = Field(default=0, ge=0, le=100)
    point: Optional[int] = Field(default=None, ge=0)
    estimatedHours: Optional[float] = Field(default=None, ge=0)
    labelIds: list[str] = Field(default_factory=list)
    isDraft: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return _strip(value)

    @model_validator(mode="after")
    def _validate_dates(self):
        _check_date_range(self.startDate, self.endDate)
        return self


class IssueUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[IssuePriority] = None
    stateId: Optional[str] = None
    parentId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    completedPercentage: Optional[int] = Field(default=None, ge=0, le=100)
    point: Optional[int] = Field(default=None, ge=0)
    estimatedHours: Optional[float] = Field(default=None, ge=0)
    labelIds: Optional[list[str]] = None
    isDraft: Optional[bool] = None

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return _strip(value)


class IssueSummary(BaseModel):
    id: str
    key: str
    sequence: int
    title: str
    stateId: str
    completedPercentage: int


class Issue(BaseModel):
    id: str
    key: str
    sequence: int
    projectId: str
    title: str
    description: str
    priority: IssuePriority
    state: Optional[State] = None
    parentId: Optional[str] = None
    startDate: Optional[date] = None
    endDate: Optional[date] = None
    completedPercentage: int
    point: Optional[int] = None
    estimatedHours: Optional[float] = None
    labels: list[LabelSummary] = Field(default_factory=list)
    isDraft: bool
    completedAt: Optional[datetime] = None
    createdBy: str
    updatedBy: str
    createdAt: datetime
    updatedAt: datetime
    subIssues: list[IssueSummary] = Field(default_factory=list)


# === Issue links & assignees ================================================


class IssueLinkCreate(BaseModel):
    title: str = ""
    url: AnyHttpUrl


class IssueLinkUpdate(BaseModel):
    title: Optional[str] = None
    url: Optional[AnyHttpUrl] = None


class IssueLink(BaseModel):
    id: str
    projectId: str
    issueId: str
    title: str
    url: str
    createdBy: str
    createdAt: datetime
    updatedAt: datetime


class AssigneeCreate(BaseModel):
    email: EmailStr


class Assignee(BaseModel):
    id: str
    projectId: str
    issueId: str
    email: str
    createdBy: str
    createdAt: datetime


# === Time entries ===========================================================


class TimeEntryCreate(BaseModel):
    date: DateType
    startTime: TimeType
    endTime: TimeType
    notes: str = ""

    @model_validator(mode="after")
    def _validate_times(self):
        if self.endTime <= self.startTime:
            raise ValueError("endTime must be after startTime")
        return self


class TimeEntryUpdate(BaseModel):
    date: Optional[DateType] = None
    startTime: Optional[TimeType] = None
    endTime: Optional[TimeType] = None
    notes: Optional[str] = None


class TimeEntry(BaseModel):
    id: str
    projectId: str
    issueId: str
    createdBy: str
    date: DateType
    startTime: datetime
    endTime: datetime
    hours: float
    notes: str
    createdAt: datetime
    updatedAt: datetime


# === Activities =============================================================


class Activity(BaseModel):
    id: str
    projectId: str
    issueId: Optional[str] = None
    actor: str
    action: str
    details: dict[str, Any] = Field(default_factory=dict)
    createdAt: datetime
