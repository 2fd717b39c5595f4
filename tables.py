import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import relationship

from database import Base


def utc_now() -> datetime:
    """Naive UTC timestamp; SQLite drops tzinfo so everything is stored naive."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class TimestampMixin:
    created_at = Column(DateTime, default=utc_now, nullable=False)
    updated_at = Column(DateTime, default=utc_now, onupdate=utc_now, nullable=False)


class UserRow(TimestampMixin, Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String)
    email = Column(String, unique=True, index=True, nullable=False)
    password = Column(String, nullable=False)
    image = Column(String)

    tasks = relationship("TaskRow", cascade="all, delete-orphan", passive_deletes=True)
    projects = relationship("ProjectRow", cascade="all, delete-orphan", passive_deletes=True)
    meetings = relationship("MeetingRow", cascade="all, delete-orphan", passive_deletes=True)
    notes = relationship("NoteRow", cascade="all, delete-orphan", passive_deletes=True)
    tags = relationship("TagRow", cascade="all, delete-orphan", passive_deletes=True)


class TaskRow(TimestampMixin, Base):
    __tablename__ = "tasks"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    status = Column(String, default="TODO", nullable=False)
    priority = Column(String, default="MEDIUM", nullable=False)
    due_date = Column(DateTime)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    project_id = Column(String, ForeignKey("projects.id", ondelete="SET NULL"), index=True)


class ProjectRow(TimestampMixin, Base):
    __tablename__ = "projects"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    status = Column(String, default="ACTIVE", nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)


class MeetingRow(TimestampMixin, Base):
    __tablename__ = "meetings"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    description = Column(Text)
    start_time = Column(DateTime, nullable=False)
    end_time = Column(DateTime, nullable=False)
    duration = Column(String, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)


class NoteRow(TimestampMixin, Base):
    __tablename__ = "notes"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)


class TagRow(TimestampMixin, Base):
    __tablename__ = "tags"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    color = Column(String, default="#CCCCCC", nullable=False)
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
