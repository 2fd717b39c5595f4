from datetime import datetime, timezone
from typing import Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

TaskStatus = Literal["TODO", "IN_PROGRESS", "COMPLETED"]
TaskPriority = Literal["LOW", "MEDIUM", "HIGH"]
ProjectStatus = Literal["ACTIVE", "COMPLETED", "ARCHIVED"]

HEX_COLOR = r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$"


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _reject_null(value):
    if value is None:
        raise ValueError("Field cannot be null")
    return value


class APIModel(BaseModel):
    """camelCase on the wire, snake_case in Python; accepts both on input."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# Users

class UserBase(APIModel):
    email: EmailStr
    name: Optional[str] = None


class UserCreate(UserBase):
    password: str = Field(min_length=6)


class LoginRequest(APIModel):
    email: EmailStr
    password: str = Field(min_length=1)


class User(UserBase):
    id: str
    image: Optional[str] = None
    created_at: datetime
    updated_at: datetime


# Tasks

class TaskBase(APIModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: TaskStatus = "TODO"
    priority: TaskPriority = "MEDIUM"
    due_date: Optional[datetime] = None
    project_id: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def due_date_to_utc(cls, value):
        return _naive_utc(value)


class TaskCreate(TaskBase):
    pass


class TaskUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None
    project_id: Optional[str] = None

    @field_validator("title", "status", "priority", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)

    @field_validator("due_date")
    @classmethod
    def due_date_to_utc(cls, value):
        return _naive_utc(value)


class Task(TaskBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


# Projects

class ProjectBase(APIModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    status: ProjectStatus = "ACTIVE"


class ProjectCreate(ProjectBase):
    pass


class ProjectUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None

    @field_validator("title", "status", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class Project(ProjectBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


# Meetings

class MeetingBase(APIModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    start_time: datetime
    end_time: datetime
    duration: Optional[str] = None

    @field_validator("start_time", "end_time")
    @classmethod
    def times_to_utc(cls, value):
        return _naive_utc(value)


class MeetingCreate(MeetingBase):
    @model_validator(mode="after")
    def check_time_order(self):
        if self.end_time < self.start_time:
            raise ValueError("End time must not be before start time")
        return self


class MeetingUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[str] = None

    @field_validator("title", "start_time", "end_time", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)

    @field_validator("start_time", "end_time")
    @classmethod
    def times_to_utc(cls, value):
        return _naive_utc(value)


class Meeting(MeetingBase):
    id: str
    duration: str
    user_id: str
    created_at: datetime
    updated_at: datetime


# Notes

class NoteBase(APIModel):
    title: str = Field(min_length=1)
    content: str = Field(min_length=1)


class NoteCreate(NoteBase):
    pass


class NoteUpdate(APIModel):
    title: Optional[str] = Field(None, min_length=1)
    content: Optional[str] = Field(None, min_length=1)

    @field_validator("title", "content", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class Note(NoteBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


# Tags

class TagBase(APIModel):
    name: str = Field(min_length=1)
    color: str = Field("#CCCCCC", pattern=HEX_COLOR)


class TagCreate(TagBase):
    pass


class TagUpdate(APIModel):
    name: Optional[str] = Field(None, min_length=1)
    color: Optional[str] = Field(None, pattern=HEX_COLOR)

    @field_validator("name", "color", mode="before")
    @classmethod
    def reject_null(cls, value):
        return _reject_null(value)


class Tag(TagBase):
    id: str
    user_id: str
    created_at: datetime
    updated_at: datetime


# Dashboard and errors

class DashboardSummary(APIModel):
    total_tasks: int
    completed_tasks: int
    overdue_tasks: int
    total_projects: int
    active_projects: int
    completed_projects: int
    total_meetings: int
    upcoming_meetings: int
    total_notes: int
    total_tags: int


class ErrorResponse(APIModel):
    status: Literal["error"] = "error"
    message: str
    code: str
    errors: Optional[Dict[str, str]] = None
    path: Optional[str] = None
    method: Optional[str] = None
    timestamp: Optional[datetime] = None
    request_id: Optional[str] = None
