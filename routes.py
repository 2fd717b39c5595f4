import logging
from datetime import timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from auth import get_current_user
from errors import ForbiddenError, NotFoundError, ValidationError
from models import (
    DashboardSummary,
    Meeting,
    MeetingCreate,
    MeetingUpdate,
    Note,
    NoteCreate,
    NoteUpdate,
    Project,
    ProjectCreate,
    ProjectUpdate,
    Tag,
    TagCreate,
    TagUpdate,
    Task,
    TaskCreate,
    TaskUpdate,
)
from storage import DatabaseStorage, get_storage
from tables import UserRow, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


def _check_owner(row, current_user: UserRow, entity: str, row_id: str):
    if row is None:
        raise NotFoundError(entity, row_id)
    if row.user_id != current_user.id:
        raise ForbiddenError(f"You do not have access to this {entity.lower()}")
    return row


def _check_project(storage: DatabaseStorage, project_id: Optional[str], current_user: UserRow):
    if project_id is None:
        return
    _check_owner(storage.get_project(project_id), current_user, "Project", project_id)


# Tasks

@router.get("/tasks", response_model=List[Task])
def get_tasks(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_tasks(current_user.id)


@router.get("/tasks/today", response_model=List[Task])
def get_todays_tasks(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    start = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
    return storage.get_tasks_due_between(current_user.id, start, start + timedelta(days=1))


@router.get("/tasks/overdue", response_model=List[Task])
def get_overdue_tasks(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_overdue_tasks(current_user.id, utc_now())


@router.get("/tasks/project/{project_id}", response_model=List[Task])
def get_tasks_by_project(
    project_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_project(storage, project_id, current_user)
    return storage.get_tasks_by_project(project_id, current_user.id)


@router.get("/tasks/{task_id}", response_model=Task)
def get_task(
    task_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return _check_owner(storage.get_task(task_id), current_user, "Task", task_id)


@router.post("/tasks", response_model=Task, status_code=status.HTTP_201_CREATED)
def create_task(
    task: TaskCreate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_project(storage, task.project_id, current_user)
    created = storage.save_task({**task.model_dump(), "user_id": current_user.id})
    logger.info(f"Task created: {created.id} (user {current_user.id})")
    return created


@router.patch("/tasks/{task_id}", response_model=Task)
def update_task(
    task_id: str,
    task_data: TaskUpdate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_task(task_id), current_user, "Task", task_id)
    changes = task_data.model_dump(exclude_unset=True)
    if "project_id" in changes:
        _check_project(storage, changes["project_id"], current_user)
    updated = storage.update_task(task_id, changes)
    logger.info(f"Task updated: {task_id} (user {current_user.id})")
    return updated


@router.post("/tasks/{task_id}/complete", response_model=Task)
def complete_task(
    task_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_task(task_id), current_user, "Task", task_id)
    logger.info(f"Task completed: {task_id} (user {current_user.id})")
    return storage.update_task(task_id, {"status": "COMPLETED"})


@router.post("/tasks/{task_id}/reopen", response_model=Task)
def reopen_task(
    task_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_task(task_id), current_user, "Task", task_id)
    logger.info(f"Task reopened: {task_id} (user {current_user.id})")
    return storage.update_task(task_id, {"status": "TODO"})


@router.delete("/tasks/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_task(
    task_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_task(task_id), current_user, "Task", task_id)
    storage.delete_task(task_id)
    logger.info(f"Task deleted: {task_id} (user {current_user.id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Projects

@router.get("/projects", response_model=List[Project])
def get_projects(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_projects(current_user.id)


@router.get("/projects/{project_id}", response_model=Project)
def get_project(
    project_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return _check_owner(storage.get_project(project_id), current_user, "Project", project_id)


@router.post("/projects", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(
    project: ProjectCreate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    created = storage.save_project({**project.model_dump(), "user_id": current_user.id})
    logger.info(f"Project created: {created.id} (user {current_user.id})")
    return created


@router.patch("/projects/{project_id}", response_model=Project)
def update_project(
    project_id: str,
    project_data: ProjectUpdate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_project(project_id), current_user, "Project", project_id)
    updated = storage.update_project(project_id, project_data.model_dump(exclude_unset=True))
    logger.info(f"Project updated: {project_id} (user {current_user.id})")
    return updated


@router.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_project(
    project_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_project(project_id), current_user, "Project", project_id)
    storage.delete_project(project_id)
    logger.info(f"Project deleted: {project_id} (user {current_user.id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Meetings

@router.get("/meetings", response_model=List[Meeting])
def get_meetings(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_meetings(current_user.id)


@router.get("/meetings/{meeting_id}", response_model=Meeting)
def get_meeting(
    meeting_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return _check_owner(storage.get_meeting(meeting_id), current_user, "Meeting", meeting_id)


@router.post("/meetings", response_model=Meeting, status_code=status.HTTP_201_CREATED)
def create_meeting(
    meeting: MeetingCreate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    created = storage.save_meeting({**meeting.model_dump(), "user_id": current_user.id})
    logger.info(f"Meeting created: {created.id} (user {current_user.id})")
    return created


@router.patch("/meetings/{meeting_id}", response_model=Meeting)
def update_meeting(
    meeting_id: str,
    meeting_data: MeetingUpdate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    existing = _check_owner(storage.get_meeting(meeting_id), current_user, "Meeting", meeting_id)
    changes = meeting_data.model_dump(exclude_unset=True)
    start = changes.get("start_time", existing.start_time)
    end = changes.get("end_time", existing.end_time)
    if end < start:
        raise ValidationError({"endTime": "End time must not be before start time"})
    updated = storage.update_meeting(meeting_id, changes)
    logger.info(f"Meeting updated: {meeting_id} (user {current_user.id})")
    return updated


@router.delete("/meetings/{meeting_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_meeting(
    meeting_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_meeting(meeting_id), current_user, "Meeting", meeting_id)
    storage.delete_meeting(meeting_id)
    logger.info(f"Meeting deleted: {meeting_id} (user {current_user.id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Notes

@router.get("/notes", response_model=List[Note])
def get_notes(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_notes(current_user.id)


@router.get("/notes/{note_id}", response_model=Note)
def get_note(
    note_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return _check_owner(storage.get_note(note_id), current_user, "Note", note_id)


@router.post("/notes", response_model=Note, status_code=status.HTTP_201_CREATED)
def create_note(
    note: NoteCreate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    created = storage.save_note({**note.model_dump(), "user_id": current_user.id})
    logger.info(f"Note created: {created.id} (user {current_user.id})")
    return created


@router.patch("/notes/{note_id}", response_model=Note)
def update_note(
    note_id: str,
    note_data: NoteUpdate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_note(note_id), current_user, "Note", note_id)
    updated = storage.update_note(note_id, note_data.model_dump(exclude_unset=True))
    logger.info(f"Note updated: {note_id} (user {current_user.id})")
    return updated


@router.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    note_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_note(note_id), current_user, "Note", note_id)
    storage.delete_note(note_id)
    logger.info(f"Note deleted: {note_id} (user {current_user.id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Tags

@router.get("/tags", response_model=List[Tag])
def get_tags(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return storage.get_tags(current_user.id)


@router.get("/tags/{tag_id}", response_model=Tag)
def get_tag(
    tag_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    return _check_owner(storage.get_tag(tag_id), current_user, "Tag", tag_id)


@router.post("/tags", response_model=Tag, status_code=status.HTTP_201_CREATED)
def create_tag(
    tag: TagCreate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    created = storage.save_tag({**tag.model_dump(), "user_id": current_user.id})
    logger.info(f"Tag created: {created.id} (user {current_user.id})")
    return created


@router.patch("/tags/{tag_id}", response_model=Tag)
def update_tag(
    tag_id: str,
    tag_data: TagUpdate,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_tag(tag_id), current_user, "Tag", tag_id)
    updated = storage.update_tag(tag_id, tag_data.model_dump(exclude_unset=True))
    logger.info(f"Tag updated: {tag_id} (user {current_user.id})")
    return updated


@router.delete("/tags/{tag_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_tag(
    tag_id: str,
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    _check_owner(storage.get_tag(tag_id), current_user, "Tag", tag_id)
    storage.delete_tag(tag_id)
    logger.info(f"Tag deleted: {tag_id} (user {current_user.id})")
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Dashboard

@router.get("/dashboard", response_model=DashboardSummary)
def get_dashboard(
    current_user: UserRow = Depends(get_current_user),
    storage: DatabaseStorage = Depends(get_storage),
):
    now = utc_now()
    tasks = storage.get_tasks(current_user.id)
    projects = storage.get_projects(current_user.id)
    meetings = storage.get_meetings(current_user.id)
    return DashboardSummary(
        total_tasks=len(tasks),
        completed_tasks=sum(1 for t in tasks if t.status == "COMPLETED"),
        overdue_tasks=sum(1 for t in tasks if t.due_date and t.due_date < now and t.status != "COMPLETED"),
        total_projects=len(projects),
        active_projects=sum(1 for p in projects if p.status == "ACTIVE"),
        completed_projects=sum(1 for p in projects if p.status == "COMPLETED"),
        total_meetings=len(meetings),
        upcoming_meetings=sum(1 for m in meetings if m.start_time > now),
        total_notes=len(storage.get_notes(current_user.id)),
        total_tags=len(storage.get_tags(current_user.id)),
    )
