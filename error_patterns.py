"""
Heuristic error pattern recognition.

Errors are matched against an ordered table of known patterns; the first
pattern whose message keywords, original-exception keywords, status code or
extra predicate matches wins. Confidence is a heuristic score, not a
probability.
"""
from __future__ import annotations

import re
import typing as t
from collections import defaultdict
from dataclasses import dataclass, field

from error_handling import EnhancedError, ErrorSeverity

FixAction = t.Callable[[], t.Any]

GENERIC_SUGGESTIONS = [
    "Try refreshing the page",
    "Check your network connection",
    "Contact support if the issue persists",
]


@dataclass(frozen=True)
class ErrorPattern:
    id: str
    name: str
    description: str
    severity: ErrorSeverity
    suggestions: tuple[str, ...]
    message_keywords: tuple[str, ...] = ()
    original_keywords: tuple[str, ...] = ()
    status_code: t.Optional[int] = None
    predicate: t.Optional[t.Callable[[EnhancedError], bool]] = None
    documentation_url: t.Optional[str] = None

    def matches(self, error: EnhancedError) -> bool:
        message = error.message.lower()
        if any(keyword in message for keyword in self.message_keywords):
            return True
        original = str(error.original_error).lower() if error.original_error else ""
        if original and any(keyword in original for keyword in self.original_keywords):
            return True
        if self.status_code is not None and error.status_code == self.status_code:
            return True
        return bool(self.predicate and self.predicate(error))


@dataclass
class ErrorRecognitionResult:
    pattern_found: bool
    confidence: int
    fix_suggestions: list[str]
    pattern: t.Optional[ErrorPattern] = None
    contextual_help: str = ""


@dataclass
class RecurringPattern:
    pattern_id: str
    pattern_name: str
    count: int
    suggestions: list[str]
    severity: ErrorSeverity


@dataclass
class SelfHelpRecommendation:
    title: str
    description: str
    steps: list[str]
    priority: t.Literal["high", "medium", "low"]


@dataclass
class FixSuggestion:
    suggestion: str
    actionable: bool
    action: t.Optional[FixAction] = field(default=None, repr=False)


_NETWORK_KEYWORDS = ("network", "failed to fetch", "network error", "cannot connect", "connection refused")

KNOWN_ERROR_PATTERNS: tuple[ErrorPattern, ...] = (
    ErrorPattern(
        id="network-connectivity",
        name="Network Connectivity Issue",
        description="The application is unable to connect to the server or API endpoint",
        severity=ErrorSeverity.ERROR,
        message_keywords=_NETWORK_KEYWORDS,
        original_keywords=_NETWORK_KEYWORDS,
        suggestions=(
            "Check your internet connection",
            "Verify the API endpoint is accessible",
            "The server might be down or experiencing issues",
            "Check your firewall or network security settings",
            "Try again in a few moments",
        ),
        documentation_url="/help/network-connectivity-issues",
    ),
    ErrorPattern(
        id="authentication-expired",
        name="Authentication Expired",
        description="Your session has expired or authentication token is invalid",
        severity=ErrorSeverity.WARNING,
        message_keywords=("unauthorized", "authentication", "unauthenticated", "session expired", "not logged in"),
        original_keywords=("unauthorized",),
        status_code=401,
        suggestions=(
            "Log in again to refresh your session",
            "Your authentication has expired, please log in again",
            "Check if your account has the necessary permissions",
        ),
        documentation_url="/help/authentication-issues",
    ),
    ErrorPattern(
        id="validation-error",
        name="Form Validation Error",
        description="The data you entered doesn't meet the required format or rules",
        severity=ErrorSeverity.WARNING,
        message_keywords=("validation", "invalid input", "required field"),
        original_keywords=("validation",),
        status_code=400,
        predicate=lambda error: error.code == "VALIDATION_ERROR",
        suggestions=(
            "Check the form fields for any incorrect or missing values",
            "Make sure all required fields are filled",
            "Verify that dates, emails, and other formats are correct",
            "Some fields might have minimum or maximum length requirements",
        ),
        documentation_url="/help/validation-issues",
    ),
    ErrorPattern(
        id="permission-denied",
        name="Permission Denied",
        description="You don't have sufficient permissions to perform this action",
        severity=ErrorSeverity.ERROR,
        message_keywords=("permission", "forbidden", "access denied"),
        original_keywords=("permission", "forbidden"),
        status_code=403,
        suggestions=(
            "Contact an administrator to request access",
            "Your account doesn't have permission for this action",
            "You might need to be assigned to a different role or group",
            "Check if the resource has been shared with you",
        ),
        documentation_url="/help/permission-issues",
    ),
    ErrorPattern(
        id="resource-not-found",
        name="Resource Not Found",
        description="The requested item, page, or resource doesn't exist or has been moved",
        severity=ErrorSeverity.ERROR,
        message_keywords=("not found", "404", "does not exist", "could not find"),
        original_keywords=("not found",),
        status_code=404,
        suggestions=(
            "The item you're looking for may have been deleted",
            "Check that the ID or URL is correct",
            "The resource might have been moved or renamed",
            "Return to the previous page and try a different link",
        ),
        documentation_url="/help/missing-resources",
    ),
    ErrorPattern(
        id="server-error",
        name="Server Error",
        description="The server encountered an unexpected condition that prevented it from fulfilling the request",
        severity=ErrorSeverity.CRITICAL,
        message_keywords=("server error", "internal error", "500"),
        original_keywords=("server error",),
        status_code=500,
        suggestions=(
            "This is a server-side issue that has been logged for investigation",
            "Try again later as the issue might be temporary",
            "If the problem persists, contact support",
            "Check the application status page for any ongoing issues",
        ),
        documentation_url="/help/server-errors",
    ),
    ErrorPattern(
        id="rate-limit-exceeded",
        name="Rate Limit Exceeded",
        description="You've made too many requests in a short period of time",
        severity=ErrorSeverity.WARNING,
        message_keywords=("rate limit", "too many requests", "throttled"),
        original_keywords=("rate limit",),
        status_code=429,
        suggestions=(
            "Please wait before trying again",
            "You've hit the request limit for this API or feature",
            "Try again in a few minutes when your quota resets",
            "Consider optimizing your code to make fewer API calls",
        ),
        documentation_url="/help/rate-limiting",
    ),
    ErrorPattern(
        id="data-conflict",
        name="Data Conflict",
        description="The action couldn't be completed because it conflicts with the current state of the resource",
        severity=ErrorSeverity.ERROR,
        message_keywords=("conflict", "already exists", "duplicate"),
        original_keywords=("conflict",),
        status_code=409,
        suggestions=(
            "An item with this name or identifier already exists",
            "Try using a different identifier or name",
            "The resource has been modified by another user; refresh and try again",
            "Check for any unique constraints that might be violated",
        ),
        documentation_url="/help/data-conflicts",
    ),
    ErrorPattern(
        id="offline-mode",
        name="Offline Mode",
        description="The application is currently in offline mode or cannot connect to the internet",
        severity=ErrorSeverity.WARNING,
        message_keywords=("offline", "no internet", "disconnected"),
        original_keywords=("offline",),
        predicate=lambda error: error.context.additional_data.get("online") is False,
        suggestions=(
            "Check your internet connection",
            "You appear to be offline; some features may be limited",
            "Your changes will be saved locally and synced when you're back online",
            "Try reconnecting to your network",
        ),
        documentation_url="/help/offline-mode",
    ),
    ErrorPattern(
        id="browser-storage-full",
        name="Browser Storage Full",
        description="The browser's storage quota has been exceeded",
        severity=ErrorSeverity.WARNING,
        message_keywords=("quota", "storage", "exceeded", "full"),
        original_keywords=("quota exceeded", "storage full"),
        suggestions=(
            "Clear your browser cache and storage",
            "Try removing unnecessary data from other applications",
            "You might need to free up space in your browser storage",
            "Consider using private browsing or a different browser",
        ),
        documentation_url="/help/storage-issues",
    ),
)

_PATTERNS_BY_ID = {pattern.id: pattern for pattern in KNOWN_ERROR_PATTERNS}


def find_pattern(error: EnhancedError) -> t.Optional[ErrorPattern]:
    """Returns the first known pattern matching the error, if any."""
    for pattern in KNOWN_ERROR_PATTERNS:
        if pattern.matches(error):
            return pattern
    return None


def analyze_error(error: EnhancedError) -> ErrorRecognitionResult:
    pattern = find_pattern(error)
    if pattern is None:
        return ErrorRecognitionResult(
            pattern_found=False,
            confidence=0,
            fix_suggestions=list(GENERIC_SUGGESTIONS),
            contextual_help=_generic_help(error),
        )
    return ErrorRecognitionResult(
        pattern_found=True,
        pattern=pattern,
        confidence=calculate_confidence(error, pattern),
        fix_suggestions=list(pattern.suggestions),
        contextual_help=_contextual_help(error, pattern),
    )


def calculate_confidence(error: EnhancedError, pattern: ErrorPattern) -> int:
    confidence = 60
    if pattern.name.lower() in error.message.lower():
        confidence += 20
    if pattern.status_code is not None and error.status_code == pattern.status_code:
        confidence += 30
    component = error.context.component or ""
    if (pattern.id == "validation-error" and "Form" in component) or (
            pattern.id == "network-connectivity" and "API" in component):
        confidence += 10
    return min(confidence, 100)


def _contextual_help(error: EnhancedError, pattern: ErrorPattern) -> str:
    help_text = f"We've identified this as a **{pattern.name}**. {pattern.description}."
    data = error.context.additional_data

    if pattern.id == "network-connectivity":
        help_text += " This might be a temporary issue with your connection or our servers."
    elif pattern.id == "authentication-expired":
        help_text += " Your session may have timed out for security reasons."
    elif pattern.id == "validation-error" and data.get("fields"):
        help_text += f" Check these fields: {', '.join(data['fields'])}."
    elif pattern.id == "resource-not-found" and data.get("resourceId"):
        help_text += f" The resource with ID '{data['resourceId']}' could not be found."
    elif pattern.id == "server-error":
        help_text += " Our team has been notified of this issue."

    if pattern.documentation_url:
        help_text += f" [Learn more]({pattern.documentation_url})"
    return help_text


def _generic_help(error: EnhancedError) -> str:
    component = f" This occurred in the {error.context.component} component." if error.context.component else ""
    action = f" You were attempting to {error.context.action}." if error.context.action else ""
    return (
        f"We encountered an unexpected error.{component}{action} If this problem persists, "
        f'please contact support with the following error details: "{error.message}"'
    )


def _message_key(message: str) -> str:
    key = re.sub(r"[^\w\s]", "", message.lower())
    return re.sub(r"\s+", " ", key).strip()[:30]


def group_similar_errors(errors: t.Iterable[EnhancedError]) -> dict[str, list[EnhancedError]]:
    """Groups errors by matched pattern id, or by a normalized message prefix."""
    groups: dict[str, list[EnhancedError]] = defaultdict(list)
    for error in errors:
        pattern = find_pattern(error)
        key = pattern.id if pattern else f"unknown-{_message_key(error.message)}"
        groups[key].append(error)
    return dict(groups)


def identify_recurring_patterns(errors: t.Iterable[EnhancedError]) -> list[RecurringPattern]:
    """Known patterns seen at least twice, unknown groups at least three times; most frequent first."""
    patterns = []
    for key, group in group_similar_errors(errors).items():
        known = _PATTERNS_BY_ID.get(key)
        if known and len(group) > 1:
            patterns.append(RecurringPattern(
                pattern_id=known.id,
                pattern_name=known.name,
                count=len(group),
                suggestions=list(known.suggestions),
                severity=known.severity,
            ))
        elif known is None and len(group) >= 3:
            patterns.append(RecurringPattern(
                pattern_id=key,
                pattern_name=f"Recurring Error: {group[0].message[:50]}...",
                count=len(group),
                suggestions=[
                    "This error has occurred multiple times",
                    "Try refreshing the application",
                    "Check if you're taking the same action repeatedly",
                    "Consider reaching out to support",
                ],
                severity=ErrorSeverity.WARNING,
            ))
    patterns.sort(key=lambda p: p.count, reverse=True)
    return patterns


def generate_fix_recommendation(error: EnhancedError, recent_errors: t.Sequence[EnhancedError]) -> str:
    analysis = analyze_error(error)
    if not analysis.pattern_found:
        return "Try refreshing the page or checking your internet connection. If the problem persists, contact support."

    pattern = analysis.pattern
    similar = [e for e in recent_errors if find_pattern(e) is pattern]
    if len(similar) > 2:
        return (
            f"This issue has occurred {len(similar)} times recently. {pattern.suggestions[0]} "
            f"If the problem persists, consider these additional steps: {'. '.join(pattern.suggestions[1:3])}"
        )
    return analysis.fix_suggestions[0]


def get_self_help_recommendations(recent_errors: t.Sequence[EnhancedError]) -> list[SelfHelpRecommendation]:
    recommendations = []
    for pattern in identify_recurring_patterns(recent_errors):
        if pattern.count < 3:
            continue
        if pattern.severity == ErrorSeverity.CRITICAL or pattern.count > 5:
            priority = "high"
        elif pattern.severity == ErrorSeverity.ERROR or pattern.count > 3:
            priority = "medium"
        else:
            priority = "low"
        recommendations.append(SelfHelpRecommendation(
            title=f"Fix for recurring {pattern.pattern_name}",
            description=f"This issue has occurred {pattern.count} times. Here's how to resolve it:",
            steps=pattern.suggestions,
            priority=priority,
        ))
    return recommendations


def get_immediate_fix_suggestion(
        error: EnhancedError,
        actions: t.Optional[t.Mapping[str, FixAction]] = None,
) -> FixSuggestion:
    """Returns a suggestion and, where the caller supplied one, the fix to run.

    :param error: The error to fix.
    :param actions: Callbacks keyed by ``"reload"``, ``"login"`` and ``"back"``.
    :return: A FixSuggestion; ``actionable`` is False when no callback is bound.
    """
    actions = actions or {}
    analysis = analyze_error(error)

    if not analysis.pattern_found:
        return _bind("Try refreshing the page or check your internet connection", actions.get("reload"))

    pattern_id = analysis.pattern.id
    if pattern_id == "authentication-expired":
        return _bind("Your session has expired. Click here to log in again.", actions.get("login"))
    if pattern_id == "network-connectivity":
        return _bind("Check your internet connection and try again", actions.get("reload"))
    if pattern_id == "resource-not-found":
        return _bind("The resource was not found. Return to the previous page.", actions.get("back"))
    return FixSuggestion(suggestion=analysis.fix_suggestions[0], actionable=False)


def _bind(suggestion: str, action: t.Optional[FixAction]) -> FixSuggestion:
    return FixSuggestion(suggestion=suggestion, actionable=action is not None, action=action)
