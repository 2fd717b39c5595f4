"""Tests for the in-memory error tracking service."""
import sys
import threading

import pytest

from error_handling import ErrorSeverity, create_error
from error_service import MAX_ERROR_COUNT, ErrorTrackingService, error_tracking_service


@pytest.fixture
def service():
    return ErrorTrackingService()


def test_recent_errors_are_newest_first_and_capped(service) -> None:
    """The oldest entries fall off once the buffer is full."""
    for i in range(MAX_ERROR_COUNT + 5):
        service.track_error(create_error(f"error {i}"))

    recent = service.get_recent_errors()
    assert len(recent) == MAX_ERROR_COUNT
    assert recent[0].message == "error 104"
    assert recent[-1].message == "error 5"


def test_get_recent_errors_returns_a_copy(service) -> None:
    service.track_error(create_error("boom"))
    service.get_recent_errors().clear()
    assert len(service.get_recent_errors()) == 1


def test_error_stats(service) -> None:
    service.track_error(create_error("a", severity=ErrorSeverity.WARNING))
    service.track_error(create_error("b", severity=ErrorSeverity.WARNING))
    service.track_error(create_error("c", severity=ErrorSeverity.CRITICAL))

    stats = service.get_error_stats()
    assert stats["total"] == 3
    assert stats["by_severity"][ErrorSeverity.WARNING] == 2
    assert stats["by_severity"][ErrorSeverity.CRITICAL] == 1
    assert stats["by_severity"][ErrorSeverity.INFO] == 0


def test_listeners_and_unsubscribe(service) -> None:
    seen = []
    remove = service.add_error_listener(seen.append)

    first = create_error("first")
    service.track_error(first)
    remove()
    service.track_error(create_error("second"))
    remove()

    assert seen == [first]


def test_failing_listener_does_not_stop_others(service) -> None:
    """A listener raising is logged and the rest still run."""
    seen = []

    def broken(_error):
        raise RuntimeError("listener bug")

    service.add_error_listener(broken)
    service.add_error_listener(seen.append)
    service.track_error(create_error("boom"))

    assert len(seen) == 1
    assert len(service.get_recent_errors()) == 1


def test_clear(service) -> None:
    service.track_error(create_error("boom"))
    service.clear()
    assert service.get_recent_errors() == []
    assert service.get_error_stats()["total"] == 0


def test_singleton() -> None:
    assert ErrorTrackingService.get_instance() is error_tracking_service


def test_init_hooks_uncaught_exceptions(service, monkeypatch) -> None:
    """Uncaught exceptions in threads end up in the tracker; init is idempotent."""
    monkeypatch.setattr(sys, "excepthook", lambda *args: None)
    monkeypatch.setattr(threading, "excepthook", lambda args: None)

    service.init()
    installed = threading.excepthook
    service.init()
    assert threading.excepthook is installed

    def crash():
        raise ValueError("worker crashed")

    worker = threading.Thread(target=crash, name="worker-1")
    worker.start()
    worker.join()

    [error] = service.get_recent_errors()
    assert error.message == "worker crashed"
    assert error.context.component == "Thread"
    assert error.context.additional_data == {"thread": "worker-1"}
    assert isinstance(error.original_error, ValueError)
