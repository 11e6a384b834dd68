from __future__ import annotations

import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


LIVE_ROWS = text("deleted_at IS NULL")


class ProjectRole(str, PyEnum):
    OWNER = "Owner"
    MANAGER = "Manager"
    CONTRIBUTOR = "Contributor"
    WATCHER = "Watcher"


class ClientORM(Base):
    __tablename__ = "clients"

    id = Column(String, primary_key=True, default=lambda: generate_id("client"))
    name = Column(String, nullable=False)
    manager_emails = Column(JSON, nullable=False, default=list)
    country = Column(String, nullable=False, default="")
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)


class ProjectORM(Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=lambda: generate_id("project"))
    name = Column(String, nullable=False)
    slug = Column(String, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    client_id = Column(String, ForeignKey("clients.id", ondelete="RESTRICT"), nullable=False, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, default="active")
    tags = Column(JSON, nullable=False, default=list)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    client = relationship("ClientORM")
    members = relationship(
        "ProjectMemberORM",
        back_populates="project",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index(
            "uq_projects_live_slug",
            "slug",
            unique=True,
            sqlite_where=LIVE_ROWS,
            postgresql_where=LIVE_ROWS,
        ),
    )


class ProjectMemberORM(Base):
    __tablename__ = "project_members"

    id = Column(String, primary_key=True, default=lambda: generate_id("member"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=False)
    role = Column(String, nullable=False, default=ProjectRole.WATCHER.value)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    project = relationship("ProjectORM", back_populates="members")

    __table_args__ = (
        UniqueConstraint("project_id", "email", name="uq_project_member_email"),
    )


class ProjectStateORM(Base):
    __tablename__ = "project_states"

    id = Column(String, primary_key=True, default=lambda: generate_id("state"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    sequence = Column(Integer, nullable=False)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index(
            "uq_project_states_live_sequence",
            "project_id",
            "sequence",
            unique=True,
            sqlite_where=LIVE_ROWS,
            postgresql_where=LIVE_ROWS,
        ),
    )


class ProjectLabelORM(Base):
    __tablename__ = "project_labels"

    id = Column(String, primary_key=True, default=lambda: generate_id("label"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    color = Column(String, nullable=False, default="#6b7280")
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)


class IssueORM(Base):
    __tablename__ = "issues"

    id = Column(String, primary_key=True, default=lambda: generate_id("issue"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    priority = Column(String, nullable=False, default="medium")
    state_id = Column(String, ForeignKey("project_states.id", ondelete="RESTRICT"), nullable=False, index=True)
    parent_id = Column(String, ForeignKey("issues.id", ondelete="SET NULL"), nullable=True, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    completed_percentage = Column(Integer, nullable=False, default=0)
    point = Column(Integer, nullable=True)
    estimated_hours = Column(Float, nullable=True)
    label_ids = Column(JSON, nullable=False, default=list)
    is_draft = Column(Boolean, nullable=False, default=False)
    completed_at = Column(DateTime, nullable=True)
    created_by = Column(String, nullable=False)
    updated_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    project = relationship("ProjectORM")
    state = relationship("ProjectStateORM")

    __table_args__ = (
        Index(
            "uq_issues_live_sequence",
            "project_id",
            "sequence",
            unique=True,
            sqlite_where=LIVE_ROWS,
            postgresql_where=LIVE_ROWS,
        ),
    )


class IssueAssigneeORM(Base):
    __tablename__ = "issue_assignees"

    id = Column(String, primary_key=True, default=lambda: generate_id("assignee"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(String, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    email = Column(String, nullable=False)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("issue_id", "email", name="uq_issue_assignee_email"),
    )


class IssueLinkORM(Base):
    __tablename__ = "issue_links"

    id = Column(String, primary_key=True, default=lambda: generate_id("link"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(String, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    title = Column(String, nullable=False, default="")
    url = Column(String, nullable=False)
    created_by = Column(String, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)


class TimeEntryORM(Base):
    __tablename__ = "time_entries"

    id = Column(String, primary_key=True, default=lambda: generate_id("time"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(String, ForeignKey("issues.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by = Column(String, nullable=False, index=True)
    date = Column(Date, nullable=False)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    hours = Column(Float, nullable=False, default=0.0)
    notes = Column(Text, nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)


class ActivityORM(Base):
    __tablename__ = "activities"

    id = Column(String, primary_key=True, default=lambda: generate_id("activity"))
    project_id = Column(String, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    issue_id = Column(String, ForeignKey("issues.id", ondelete="CASCADE"), nullable=True, index=True)
    actor = Column(String, nullable=False)
    action = Column(String, nullable=False)
    details = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)
