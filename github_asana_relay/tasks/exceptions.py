"""Exceptions raised by task service clients."""

from typing import Any


class TaskServiceError(Exception):
    """Raised when the task service answers a request with an error status."""

    def __init__(self, status_code: int, message: str, errors: list[dict[str, Any]] | None = None, headers: dict[str, str] | None = None) -> None:
        """Initialize the exception with the HTTP status and the service's error details."""
        super().__init__(f"Task service error {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.errors = errors or []
        self.headers = headers or {}


class TaskNotFoundError(TaskServiceError):
    """Raised when a task (or other object) does not exist or was deleted."""

    pass


class InvalidContentError(TaskServiceError):
    """Raised when the service rejects rich text as structurally invalid."""

    pass


class RateLimitedError(TaskServiceError):
    """Raised when the service answers with 429 Too Many Requests."""

    @property
    def retry_after(self) -> float | None:
        """Seconds the service asked us to wait, if it said so."""
        value = self.headers.get("retry-after")
        if value is None:
            return None
        try:
            return float(value)
        except ValueError:
            return None
