import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional, Type

from fastapi import Request
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from errors import NotFoundError, handle_database_error
from tables import MeetingRow, NoteRow, ProjectRow, TagRow, TaskRow, UserRow, utc_now

logger = logging.getLogger(__name__)


def meeting_duration(start_time: datetime, end_time: datetime) -> str:
    minutes = round((end_time - start_time).total_seconds() / 60)
    return f"{minutes} minutes"


class DatabaseStorage:
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        session = self.session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            logger.error("Database operation failed: %s", exc)
            raise handle_database_error(exc) from exc
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def _list(self, model: Type, user_id: str, *order_by) -> List[Any]:
        with self._session() as session:
            query = select(model).where(model.user_id == user_id).order_by(*order_by)
            return list(session.scalars(query))

    def _get(self, model: Type, row_id: str) -> Optional[Any]:
        with self._session() as session:
            return session.get(model, row_id)

    def _insert(self, model: Type, data: Dict) -> Any:
        with self._session() as session:
            row = model(**data)
            session.add(row)
            session.flush()
            session.refresh(row)
            return row

    def _update(self, model: Type, row_id: str, data: Dict, entity: str) -> Any:
        with self._session() as session:
            row = session.get(model, row_id)
            if row is None:
                raise NotFoundError(entity, row_id)
            for key, value in data.items():
                setattr(row, key, value)
            row.updated_at = utc_now()
            session.flush()
            session.refresh(row)
            return row

    def _delete(self, model: Type, row_id: str, entity: str):
        with self._session() as session:
            row = session.get(model, row_id)
            if row is None:
                raise NotFoundError(entity, row_id)
            session.delete(row)

    # Users

    def get_user(self, user_id: str) -> Optional[UserRow]:
        return self._get(UserRow, user_id)

    def get_user_by_email(self, email: str) -> Optional[UserRow]:
        with self._session() as session:
            return session.scalars(select(UserRow).where(func.lower(UserRow.email) == email.lower())).first()

    def save_user(self, user: Dict) -> UserRow:
        return self._insert(UserRow, user)

    def delete_user(self, user_id: str):
        self._delete(UserRow, user_id, "User")

    # Tasks

    def get_tasks(self, user_id: str) -> List[TaskRow]:
        return self._list(TaskRow, user_id, TaskRow.created_at)

    def get_task(self, task_id: str) -> Optional[TaskRow]:
        return self._get(TaskRow, task_id)

    def get_tasks_by_project(self, project_id: str, user_id: str) -> List[TaskRow]:
        with self._session() as session:
            query = (
                select(TaskRow)
                .where(TaskRow.project_id == project_id, TaskRow.user_id == user_id)
                .order_by(TaskRow.created_at)
            )
            return list(session.scalars(query))

    def get_tasks_due_between(self, user_id: str, start: datetime, end: datetime) -> List[TaskRow]:
        with self._session() as session:
            query = (
                select(TaskRow)
                .where(TaskRow.user_id == user_id, TaskRow.due_date >= start, TaskRow.due_date < end)
                .order_by(TaskRow.due_date)
            )
            return list(session.scalars(query))

    def get_overdue_tasks(self, user_id: str, now: datetime) -> List[TaskRow]:
        with self._session() as session:
            query = (
                select(TaskRow)
                .where(
                    TaskRow.user_id == user_id,
                    TaskRow.due_date < now,
                    TaskRow.status != "COMPLETED",
                )
                .order_by(TaskRow.due_date)
            )
            return list(session.scalars(query))

    def save_task(self, task: Dict) -> TaskRow:
        return self._insert(TaskRow, task)

    def update_task(self, task_id: str, task_data: Dict) -> TaskRow:
        return self._update(TaskRow, task_id, task_data, "Task")

    def delete_task(self, task_id: str):
        self._delete(TaskRow, task_id, "Task")

    # Projects

    def get_projects(self, user_id: str) -> List[ProjectRow]:
        return self._list(ProjectRow, user_id, ProjectRow.created_at)

    def get_project(self, project_id: str) -> Optional[ProjectRow]:
        return self._get(ProjectRow, project_id)

    def save_project(self, project: Dict) -> ProjectRow:
        return self._insert(ProjectRow, project)

    def update_project(self, project_id: str, project_data: Dict) -> ProjectRow:
        return self._update(ProjectRow, project_id, project_data, "Project")

    def delete_project(self, project_id: str):
        self._delete(ProjectRow, project_id, "Project")

    # Meetings

    def get_meetings(self, user_id: str) -> List[MeetingRow]:
        return self._list(MeetingRow, user_id, MeetingRow.start_time)

    def get_meeting(self, meeting_id: str) -> Optional[MeetingRow]:
        return self._get(MeetingRow, meeting_id)

    def get_upcoming_meetings(self, user_id: str, now: datetime) -> List[MeetingRow]:
        with self._session() as session:
            query = (
                select(MeetingRow)
                .where(MeetingRow.user_id == user_id, MeetingRow.start_time > now)
                .order_by(MeetingRow.start_time)
            )
            return list(session.scalars(query))

    def save_meeting(self, meeting: Dict) -> MeetingRow:
        if not meeting.get("duration"):
            meeting = {**meeting, "duration": meeting_duration(meeting["start_time"], meeting["end_time"])}
        return self._insert(MeetingRow, meeting)

    def update_meeting(self, meeting_id: str, meeting_data: Dict) -> MeetingRow:
        times_changed = "start_time" in meeting_data or "end_time" in meeting_data
        if (times_changed or "duration" in meeting_data) and not meeting_data.get("duration"):
            current = self.get_meeting(meeting_id)
            if current is None:
                raise NotFoundError("Meeting", meeting_id)
            start = meeting_data.get("start_time") or current.start_time
            end = meeting_data.get("end_time") or current.end_time
            meeting_data = {**meeting_data, "duration": meeting_duration(start, end)}
        return self._update(MeetingRow, meeting_id, meeting_data, "Meeting")

    def delete_meeting(self, meeting_id: str):
        self._delete(MeetingRow, meeting_id, "Meeting")

    # Notes

    def get_notes(self, user_id: str) -> List[NoteRow]:
        return self._list(NoteRow, user_id, NoteRow.created_at.desc())

    def get_note(self, note_id: str) -> Optional[NoteRow]:
        return self._get(NoteRow, note_id)

    def save_note(self, note: Dict) -> NoteRow:
        return self._insert(NoteRow, note)

    def update_note(self, note_id: str, note_data: Dict) -> NoteRow:
        return self._update(NoteRow, note_id, note_data, "Note")

    def delete_note(self, note_id: str):
        self._delete(NoteRow, note_id, "Note")

    # Tags

    def get_tags(self, user_id: str) -> List[TagRow]:
        return self._list(TagRow, user_id, TagRow.created_at)

    def get_tag(self, tag_id: str) -> Optional[TagRow]:
        return self._get(TagRow, tag_id)

    def save_tag(self, tag: Dict) -> TagRow:
        return self._insert(TagRow, tag)

    def update_tag(self, tag_id: str, tag_data: Dict) -> TagRow:
        return self._update(TagRow, tag_id, tag_data, "Tag")

    def delete_tag(self, tag_id: str):
        self._delete(TagRow, tag_id, "Tag")


def get_storage(request: Request) -> DatabaseStorage:
    return request.app.state.storage
