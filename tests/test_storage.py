"""Tests for the SQLAlchemy storage layer and database error translation."""
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from database import create_db_engine, create_session_factory, init_db
from errors import (
    AppError,
    BadRequestError,
    ConflictError,
    DatabaseConnectionError,
    DatabaseError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    UnauthorizedError,
    ValidationError,
    handle_database_error,
)
from storage import DatabaseStorage, meeting_duration
from tables import utc_now


@pytest.fixture
def storage():
    engine = create_db_engine("sqlite://")
    init_db(engine)
    yield DatabaseStorage(create_session_factory(engine))
    engine.dispose()


@pytest.fixture
def user(storage):
    return storage.save_user({"email": "frank@example.com", "name": "Frank", "password": "x.y"})


def test_meeting_duration() -> None:
    start = datetime(2030, 1, 1, 9, 0)
    assert meeting_duration(start, start + timedelta(minutes=30)) == "30 minutes"
    assert meeting_duration(start, start) == "0 minutes"


def test_save_and_get_user(storage, user) -> None:
    assert user.id
    assert user.created_at is not None
    assert storage.get_user(user.id).email == "frank@example.com"
    assert storage.get_user_by_email("frank@example.com").id == user.id
    assert storage.get_user_by_email("nobody@example.com") is None


def test_duplicate_email_is_a_conflict(storage, user) -> None:
    with pytest.raises(ConflictError) as excinfo:
        storage.save_user({"email": "frank@example.com", "password": "x.y"})
    assert excinfo.value.message == "email already exists"


def test_task_for_missing_user_is_rejected(storage) -> None:
    with pytest.raises(BadRequestError):
        storage.save_task({"title": "Orphan", "user_id": "missing"})


def test_update_sets_updated_at(storage, user) -> None:
    task = storage.save_task({"title": "Draft", "user_id": user.id})
    updated = storage.update_task(task.id, {"title": "Final"})
    assert updated.title == "Final"
    assert updated.updated_at >= task.updated_at


def test_update_and_delete_missing_rows(storage) -> None:
    with pytest.raises(NotFoundError):
        storage.update_task("missing", {"title": "x"})
    with pytest.raises(NotFoundError):
        storage.delete_note("missing")
    with pytest.raises(NotFoundError):
        storage.update_meeting("missing", {"end_time": utc_now()})


def test_deleting_user_removes_their_data(storage, user) -> None:
    task = storage.save_task({"title": "Mine", "user_id": user.id})
    tag = storage.save_tag({"name": "mine", "user_id": user.id})
    storage.delete_user(user.id)
    assert storage.get_task(task.id) is None
    assert storage.get_tag(tag.id) is None


def test_upcoming_meetings(storage, user) -> None:
    now = utc_now()
    storage.save_meeting({
        "title": "Past", "user_id": user.id,
        "start_time": now - timedelta(hours=2), "end_time": now - timedelta(hours=1),
    })
    future = storage.save_meeting({
        "title": "Future", "user_id": user.id,
        "start_time": now + timedelta(hours=1), "end_time": now + timedelta(hours=2),
    })
    assert future.duration == "60 minutes"
    assert [m.id for m in storage.get_upcoming_meetings(user.id, now)] == [future.id]


def test_notes_are_newest_first(storage, user) -> None:
    first = storage.save_note({"title": "First", "content": "a", "user_id": user.id})
    second = storage.save_note({"title": "Second", "content": "b", "user_id": user.id})
    storage.update_note(first.id, {"created_at": first.created_at - timedelta(minutes=1)})
    assert [n.id for n in storage.get_notes(user.id)] == [second.id, first.id]


def test_handle_database_error_mapping() -> None:
    """Driver errors turn into API errors with the matching status."""
    unique = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: users.email"))
    assert isinstance(handle_database_error(unique), ConflictError)

    postgres_unique = IntegrityError(
        "INSERT", {}, Exception('duplicate key value violates unique constraint "users_email_key"'))
    assert handle_database_error(postgres_unique).message == "email already exists"

    not_null = IntegrityError("INSERT", {}, Exception("NOT NULL constraint failed: tasks.title"))
    error = handle_database_error(not_null)
    assert isinstance(error, BadRequestError)
    assert error.message == "title cannot be null"

    connection = OperationalError("SELECT 1", {}, Exception("could not connect to server"))
    assert isinstance(handle_database_error(connection), DatabaseConnectionError)
    assert handle_database_error(connection).status_code == 503

    other = handle_database_error(OperationalError("SELECT 1", {}, Exception("disk I/O error")))
    assert type(other) is DatabaseError
    assert other.status_code == 500

    not_found = NotFoundError("Task", "1")
    assert handle_database_error(not_found) is not_found


@pytest.mark.parametrize("error_class, status_code, code", [
    (BadRequestError, 400, "BAD_REQUEST"),
    (UnauthorizedError, 401, "UNAUTHORIZED"),
    (ForbiddenError, 403, "FORBIDDEN"),
    (ConflictError, 409, "CONFLICT"),
    (RateLimitError, 429, "RATE_LIMIT"),
    (DatabaseError, 500, "DATABASE_ERROR"),
])
def test_error_classes(error_class, status_code, code) -> None:
    error = error_class()
    assert isinstance(error, AppError)
    assert (error.status_code, error.code) == (status_code, code)
    assert error.message == error_class.default_message
    assert error_class("custom").message == "custom"


def test_validation_and_not_found_errors() -> None:
    error = ValidationError({"title": "Required"})
    assert (error.status_code, error.code, error.errors) == (400, "VALIDATION_ERROR", {"title": "Required"})
    assert NotFoundError("Tag").message == "Tag not found"


def test_update_meeting_without_duration_recomputes(storage, user) -> None:
    start = datetime(2030, 1, 1, 9, 0)
    meeting = storage.save_meeting({
        "title": "Sync", "user_id": user.id,
        "start_time": start, "end_time": start + timedelta(minutes=25), "duration": "short",
    })
    assert storage.update_meeting(meeting.id, {"duration": None}).duration == "25 minutes"


def test_get_user_by_email_ignores_case(storage, user) -> None:
    assert storage.get_user_by_email("FRANK@example.COM").id == user.id
