from __future__ import annotations

import logging
import typing as t
from dataclasses import dataclass

from error_handling import EnhancedError, log_error
from error_patterns import (
    ErrorRecognitionResult,
    FixAction,
    FixSuggestion,
    RecurringPattern,
    SelfHelpRecommendation,
    analyze_error,
    get_immediate_fix_suggestion,
    get_self_help_recommendations,
    identify_recurring_patterns,
)
from error_service import ErrorTrackingService, error_tracking_service

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    title: str
    description: str
    variant: t.Literal["default", "destructive"] = "default"
    duration: int = 5000


Notifier = t.Callable[[Notification], None]


def log_notification(notification: Notification) -> None:
    logger.warning("%s: %s", notification.title, notification.description)


class ErrorRecognition:
    """Tracks errors, classifies them and surfaces fixes through a notifier."""

    def __init__(
            self,
            service: t.Optional[ErrorTrackingService] = None,
            notifier: Notifier = log_notification,
            actions: t.Optional[t.Mapping[str, FixAction]] = None,
            monitor_recurring_patterns: bool = True,
            notify_on_high_priority_patterns: bool = True,
            auto_fix_enabled: bool = False,
    ) -> None:
        self.service = service or error_tracking_service
        self.notifier = notifier
        self.actions = dict(actions or {})
        self.notify_on_high_priority_patterns = notify_on_high_priority_patterns
        self.auto_fix_enabled = auto_fix_enabled
        self.recurring_patterns: list[RecurringPattern] = []
        self.pattern_suggestions: list[SelfHelpRecommendation] = []
        self._remove_listener: t.Optional[t.Callable[[], None]] = None
        if monitor_recurring_patterns:
            self.start_monitoring()

    def analyze_error(self, error: EnhancedError) -> ErrorRecognitionResult:
        return analyze_error(error)

    def get_fix_suggestion(self, error: EnhancedError) -> FixSuggestion:
        return get_immediate_fix_suggestion(error, self.actions)

    def apply_auto_fix(self, error: EnhancedError, notify: bool = True) -> bool:
        fix = self.get_fix_suggestion(error)
        if not (fix.actionable and fix.action):
            return False
        if notify:
            self.notifier(Notification(title="Auto-fix applied", description=fix.suggestion, duration=3000))
        fix.action()
        return True

    def handle_error(self, error: EnhancedError, auto_fix: t.Optional[bool] = None) -> ErrorRecognitionResult:
        log_error(error)
        self.service.track_error(error)
        analysis = analyze_error(error)

        description = error.message
        if analysis.pattern_found:
            description = f"{description}\n{analysis.fix_suggestions[0]}"
        self.notifier(Notification(
            title=analysis.pattern.name if analysis.pattern else "Error",
            description=description,
            variant="destructive",
            duration=6000,
        ))

        if self.auto_fix_enabled if auto_fix is None else auto_fix:
            self.apply_auto_fix(error)
        return analysis

    def check_recurring_patterns(self) -> list[SelfHelpRecommendation]:
        recent = self.service.get_recent_errors()
        self.recurring_patterns = identify_recurring_patterns(recent)
        self.pattern_suggestions = get_self_help_recommendations(recent)

        if self.notify_on_high_priority_patterns:
            urgent = next((r for r in self.pattern_suggestions if r.priority == "high"), None)
            if urgent:
                self.notifier(Notification(
                    title=urgent.title,
                    description=f"{urgent.description}\n{urgent.steps[0]}",
                    duration=8000,
                ))
        return self.pattern_suggestions

    def start_monitoring(self) -> None:
        if self._remove_listener is not None:
            return
        self.check_recurring_patterns()
        self._remove_listener = self.service.add_error_listener(lambda _error: self.check_recurring_patterns())

    def stop_monitoring(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None

    def close(self) -> None:
        self.stop_monitoring()

    def __enter__(self) -> "ErrorRecognition":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    @property
    def has_recurring_issues(self) -> bool:
        return bool(self.recurring_patterns)

    @property
    def high_priority_issues(self) -> list[SelfHelpRecommendation]:
        return [r for r in self.pattern_suggestions if r.priority == "high"]
