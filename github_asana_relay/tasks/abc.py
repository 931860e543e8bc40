"""Base ABC for task service clients."""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator


class TaskServiceBase(ABC):
    """Base ABC for task service clients."""

    # Task CRUD
    @abstractmethod
    async def create_task(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a task with the given fields."""
        pass

    @abstractmethod
    async def update_task(self, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Update a task with the given fields."""
        pass

    @abstractmethod
    async def get_task(self, task_id: str) -> dict[str, Any]:
        """Get a task, raising TaskNotFoundError if it does not exist."""
        pass

    # Task lookup
    @abstractmethod
    async def search_tasks(self, project_id: str, field_id: str, value: str) -> list[dict[str, Any]]:
        """Search a project for tasks whose text custom field equals a value."""
        pass

    @abstractmethod
    def iter_project_tasks(self, project_id: str, opt_fields: list[str]) -> AsyncIterator[dict[str, Any]]:
        """Iterate over every task in a project."""
        pass

    # Attachments
    @abstractmethod
    async def create_attachment(self, task_id: str, content: bytes, filename: str, content_type: str) -> dict[str, Any]:
        """Upload a file and attach it to a task."""
        pass

    @abstractmethod
    async def list_attachments(self, task_id: str) -> list[dict[str, Any]]:
        """List the attachments of a task."""
        pass

    # Activity log
    @abstractmethod
    async def list_activity(self, task_id: str) -> list[dict[str, Any]]:
        """List the activity log entries (stories) of a task."""
        pass

    @abstractmethod
    async def delete_activity(self, entry_id: str) -> None:
        """Delete an activity log entry."""
        pass

    # Custom fields
    @abstractmethod
    async def get_field(self, field_id: str) -> dict[str, Any]:
        """Get a custom field together with its enum options."""
        pass

    @abstractmethod
    async def create_field_option(self, field_id: str, name: str, color: str) -> dict[str, Any]:
        """Create a new enum option on a custom field."""
        pass
