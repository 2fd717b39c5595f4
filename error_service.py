"""
In-memory error tracking.

A single process-wide ``ErrorTrackingService`` keeps the most recent errors
(newest first, capped at ``MAX_ERROR_COUNT``) and broadcasts every tracked
error to registered listeners.
"""
from __future__ import annotations

import logging
import sys
import threading
import typing as t
from collections import deque

from error_handling import EnhancedError, ErrorContext, ErrorSeverity, from_exception

logger = logging.getLogger(__name__)

MAX_ERROR_COUNT = 100

ErrorListener = t.Callable[[EnhancedError], None]


class ErrorTrackingService:
    _instance: t.Optional["ErrorTrackingService"] = None

    def __init__(self, max_error_count: int = MAX_ERROR_COUNT) -> None:
        self._errors: deque[EnhancedError] = deque(maxlen=max_error_count)
        self._listeners: list[ErrorListener] = []
        self._lock = threading.Lock()
        self._initialized = False

    @classmethod
    def get_instance(cls) -> "ErrorTrackingService":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def init(self) -> None:
        """Hooks uncaught exceptions (main and worker threads) into the tracker."""
        if self._initialized:
            return

        previous_excepthook = sys.excepthook
        previous_thread_hook = threading.excepthook

        def excepthook(exc_type, exc, tb):
            self.track_error(from_exception(
                exc,
                context=ErrorContext(component="Process", action="uncaughtException"),
                severity=ErrorSeverity.CRITICAL,
            ))
            previous_excepthook(exc_type, exc, tb)

        def thread_excepthook(args):
            self.track_error(from_exception(
                args.exc_value,
                context=ErrorContext(
                    component="Thread",
                    action="uncaughtException",
                    additional_data={"thread": getattr(args.thread, "name", None)},
                ),
            ))
            previous_thread_hook(args)

        sys.excepthook = excepthook
        threading.excepthook = thread_excepthook
        self._initialized = True
        logger.info("[ErrorTrackingService] Initialized")

    def track_error(self, error: EnhancedError) -> None:
        with self._lock:
            # deque(maxlen) drops from the right, i.e. the oldest entry
            self._errors.appendleft(error)
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(error)
            except Exception:
                logger.exception("Error in error listener")

    def get_recent_errors(self) -> list[EnhancedError]:
        with self._lock:
            return list(self._errors)

    def get_error_stats(self) -> dict[str, t.Any]:
        by_severity = {severity: 0 for severity in ErrorSeverity}
        errors = self.get_recent_errors()
        for error in errors:
            by_severity[error.severity] += 1
        return {"total": len(errors), "by_severity": by_severity}

    def add_error_listener(self, listener: ErrorListener) -> t.Callable[[], None]:
        """Registers a listener; returns a callable that removes it again."""
        with self._lock:
            self._listeners.append(listener)

        def remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return remove

    def clear(self) -> None:
        with self._lock:
            self._errors.clear()


error_tracking_service = ErrorTrackingService.get_instance()
