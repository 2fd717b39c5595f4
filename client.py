"""
HTTP client for the ProductiTask API.

Keeps the session cookie between calls and reports every failed request to
the error tracking service before raising ``ApiError``.
"""
from __future__ import annotations

import logging
import os
import typing as t

import httpx

from error_handling import EnhancedError, ErrorContext, ErrorSeverity, create_error
from error_service import ErrorTrackingService, error_tracking_service

logger = logging.getLogger(__name__)

PRODUCTITASK_API_URL = os.getenv("PRODUCTITASK_API_URL", "http://localhost:5000")

# Timeout for standard CRUD operations (in seconds)
STANDARD_TIMEOUT = 30.0

RESOURCES = ("tasks", "projects", "meetings", "notes", "tags")


class ApiError(Exception):
    def __init__(
            self,
            message: str,
            status_code: int,
            code: t.Optional[str] = None,
            errors: t.Optional[dict[str, str]] = None,
            enhanced: t.Optional[EnhancedError] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.code = code
        self.errors = errors or {}
        self.enhanced = enhanced


def _severity_for(status_code: int) -> ErrorSeverity:
    if status_code >= 500:
        return ErrorSeverity.CRITICAL
    if status_code in (400, 401, 409, 429):
        return ErrorSeverity.WARNING
    return ErrorSeverity.ERROR


class ProductiTaskClient:
    def __init__(
            self,
            base_url: str = PRODUCTITASK_API_URL,
            timeout: float = STANDARD_TIMEOUT,
            transport: t.Optional[httpx.BaseTransport] = None,
            tracker: t.Optional[ErrorTrackingService] = None,
    ) -> None:
        self.tracker = tracker or error_tracking_service
        self._http = httpx.Client(base_url=base_url, timeout=timeout, transport=transport)

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> "ProductiTaskClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, json: t.Any = None) -> t.Any:
        action = f"{method} {path}"
        try:
            response = self._http.request(method, path, json=json)
        except httpx.TransportError as exc:
            error = create_error(
                f"Network error: {exc}",
                context=ErrorContext(component="API", action=action, route=path),
                original_error=exc,
                code="NETWORK_ERROR",
            )
            self.tracker.track_error(error)
            raise ApiError(error.message, 0, code="NETWORK_ERROR", enhanced=error) from exc

        if response.is_success:
            return response.json() if response.content else None

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or f"{response.status_code}: {response.reason_phrase}"
        fields = body.get("errors") or {}
        additional_data: dict[str, t.Any] = {"statusCode": response.status_code}
        if fields:
            additional_data["fields"] = fields
        if response.status_code == 404:
            additional_data["resourceId"] = path.rstrip("/").rsplit("/", 1)[-1]
        error = create_error(
            message,
            severity=_severity_for(response.status_code),
            context=ErrorContext(component="API", action=action, route=path, additional_data=additional_data),
            code=body.get("code"),
        )
        self.tracker.track_error(error)
        logger.debug("API request failed: %s -> %s %s", action, response.status_code, message)
        raise ApiError(message, response.status_code, code=body.get("code"), errors=fields, enhanced=error)

    # Auth

    def register(self, email: str, password: str, name: t.Optional[str] = None) -> dict:
        return self._request("POST", "/api/register", {"email": email, "password": password, "name": name})

    def login(self, email: str, password: str) -> dict:
        return self._request("POST", "/api/login", {"email": email, "password": password})

    def logout(self) -> None:
        self._request("POST", "/api/logout")

    def current_user(self) -> dict:
        return self._request("GET", "/api/user")

    # Entities

    def list(self, resource: str) -> list[dict]:
        return self._request("GET", f"/api/{_check_resource(resource)}")

    def get(self, resource: str, item_id: str) -> dict:
        return self._request("GET", f"/api/{_check_resource(resource)}/{item_id}")

    def create(self, resource: str, data: dict) -> dict:
        return self._request("POST", f"/api/{_check_resource(resource)}", data)

    def update(self, resource: str, item_id: str, data: dict) -> dict:
        return self._request("PATCH", f"/api/{_check_resource(resource)}/{item_id}", data)

    def delete(self, resource: str, item_id: str) -> None:
        self._request("DELETE", f"/api/{_check_resource(resource)}/{item_id}")

    # Task shortcuts

    def todays_tasks(self) -> list[dict]:
        return self._request("GET", "/api/tasks/today")

    def overdue_tasks(self) -> list[dict]:
        return self._request("GET", "/api/tasks/overdue")

    def project_tasks(self, project_id: str) -> list[dict]:
        return self._request("GET", f"/api/tasks/project/{project_id}")

    def complete_task(self, task_id: str) -> dict:
        return self._request("POST", f"/api/tasks/{task_id}/complete")

    def reopen_task(self, task_id: str) -> dict:
        return self._request("POST", f"/api/tasks/{task_id}/reopen")

    def dashboard(self) -> dict:
        return self._request("GET", "/api/dashboard")


def _check_resource(resource: str) -> str:
    if resource not in RESOURCES:
        raise ValueError(f"Unknown resource {resource!r}; expected one of {RESOURCES}")
    return resource
