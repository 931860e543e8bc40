"""Fixtures for unit tests."""

import asyncio
import itertools
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Callable, Generator

import pytest
import structlog

from github_asana_relay.synchronize.models import EntityKind, EntityState, EventAction, SyncEvent
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.tasks.exceptions import InvalidContentError, TaskNotFoundError, TaskServiceError


@pytest.fixture(autouse=True)
def configure_structlog_for_caplog() -> Generator[None, None, None]:
    """Configure structlog for use with caplog."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    yield
    structlog.reset_defaults()


class FakeTaskService(TaskServiceBase):
    """In-memory task service; every call yields to the event loop like a network call would."""

    def __init__(self) -> None:
        self.tasks: dict[str, dict[str, Any]] = {}
        self.field_options: dict[str, list[dict[str, str]]] = {}
        self.attachments: dict[str, list[dict[str, str]]] = {}
        self.stories: dict[str, list[dict[str, str]]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.reject_html_notes = False
        self.failing_custom_fields: set[str] = set()
        self.update_failures: list[Exception] = []
        self._gids = itertools.count(1001)

    def _next_gid(self) -> str:
        return str(next(self._gids))

    def _view(self, task: dict[str, Any]) -> dict[str, Any]:
        return {
            "gid": task["gid"],
            "name": task["name"],
            "permalink_url": task["permalink_url"],
            "completed": task["completed"],
            "html_notes": task["html_notes"],
            "custom_fields": [
                {"gid": field_id, "text_value": value if isinstance(value, str) else None} for field_id, value in task["custom_fields"].items()
            ],
        }

    def _reject_custom_fields(self, custom_fields: dict[str, Any]) -> None:
        rejected = self.failing_custom_fields.intersection(custom_fields)
        if rejected:
            raise TaskServiceError(400, f"Custom field with ID {sorted(rejected)[0]} is not on given object")

    def delete_task(self, task_id: str) -> None:
        """Delete a task out-of-band, as a user would in the Asana UI."""
        del self.tasks[task_id]

    async def create_task(self, fields: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("create_task", fields))
        self._reject_custom_fields(fields.get("custom_fields", {}))
        gid = self._next_gid()
        self.tasks[gid] = {
            "gid": gid,
            "name": fields.get("name", ""),
            "projects": fields.get("projects", []),
            "permalink_url": f"https://app.asana.com/0/0/{gid}",
            "completed": False,
            "html_notes": "",
            "notes": "",
            "custom_fields": dict(fields.get("custom_fields", {})),
        }
        return self._view(self.tasks[gid])

    async def update_task(self, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("update_task", (task_id, fields)))
        if self.update_failures:
            raise self.update_failures.pop(0)
        if task_id not in self.tasks:
            raise TaskNotFoundError(404, "Unknown object")
        if "html_notes" in fields and self.reject_html_notes:
            raise InvalidContentError(400, "html_notes: XML is invalid")
        custom_fields = fields.get("custom_fields", {})
        self._reject_custom_fields(custom_fields)
        task = self.tasks[task_id]
        task["custom_fields"].update(custom_fields)
        for key, value in fields.items():
            if key != "custom_fields":
                task[key] = value
        return self._view(task)

    async def get_task(self, task_id: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("get_task", task_id))
        if task_id not in self.tasks:
            raise TaskNotFoundError(404, "Unknown object")
        return self._view(self.tasks[task_id])

    async def search_tasks(self, project_id: str, field_id: str, value: str) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        self.calls.append(("search_tasks", (project_id, field_id, value)))
        return [self._view(task) for task in self.tasks.values() if project_id in task["projects"] and task["custom_fields"].get(field_id) == value]

    async def iter_project_tasks(self, project_id: str, opt_fields: list[str]) -> AsyncIterator[dict[str, Any]]:
        self.calls.append(("iter_project_tasks", project_id))
        for task in list(self.tasks.values()):
            await asyncio.sleep(0)
            if project_id in task["projects"]:
                yield self._view(task)

    async def create_attachment(self, task_id: str, content: bytes, filename: str, content_type: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("create_attachment", (task_id, filename, content_type)))
        gid = self._next_gid()
        self.attachments.setdefault(task_id, []).append({"gid": gid, "name": filename})
        self.stories.setdefault(task_id, []).append({"gid": self._next_gid(), "resource_subtype": "attachment_added", "text": f"attached {filename}"})
        return {"gid": gid, "name": filename}

    async def list_attachments(self, task_id: str) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return list(self.attachments.get(task_id, []))

    async def list_activity(self, task_id: str) -> list[dict[str, Any]]:
        await asyncio.sleep(0)
        return list(self.stories.get(task_id, []))

    async def delete_activity(self, entry_id: str) -> None:
        await asyncio.sleep(0)
        self.calls.append(("delete_activity", entry_id))
        for stories in self.stories.values():
            stories[:] = [story for story in stories if story["gid"] != entry_id]

    async def get_field(self, field_id: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        return {"gid": field_id, "enum_options": list(self.field_options.get(field_id, []))}

    async def create_field_option(self, field_id: str, name: str, color: str) -> dict[str, Any]:
        await asyncio.sleep(0)
        self.calls.append(("create_field_option", (field_id, name, color)))
        option = {"gid": self._next_gid(), "name": name, "color": color}
        self.field_options.setdefault(field_id, []).append(option)
        return option

    def count(self, call_name: str) -> int:
        return sum(1 for name, _ in self.calls if name == call_name)


@pytest.fixture
def fake_task_service() -> FakeTaskService:
    """An empty in-memory task service."""
    return FakeTaskService()


@pytest.fixture
def make_event() -> Callable[..., SyncEvent]:
    """Factory for sync events about octo-org/octo-repo#42."""

    def _make_event(**overrides: Any) -> SyncEvent:
        values: dict[str, Any] = {
            "entity_kind": EntityKind.ISSUE,
            "action": EventAction.OPENED,
            "canonical_url": "https://github.com/octo-org/octo-repo/issues/42",
            "number": 42,
            "title": "Crash on startup",
            "body_markdown": "The app crashes when started.",
            "author_handle": "octocat",
            "author_url": "https://github.com/octocat",
            "repository_name": "octo-repo",
            "repository_full_name": "octo-org/octo-repo",
            "labels": frozenset({"bug"}),
            "state": EntityState.OPEN,
            "created_at": datetime(2024, 1, 15, 17, 30, tzinfo=timezone.utc),
        }
        values.update(overrides)
        return SyncEvent(**values)

    return _make_event
