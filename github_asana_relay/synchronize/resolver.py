"""Maps a GitHub entity URL to exactly one remote task.

Resolution order, stopping at the first hit:

1. the hinted task id, verified to still exist;
2. a search of the project for a task whose source-URL field equals the URL;
3. creation of a new task carrying the identity fields.

A found task always gets its identity fields refreshed, since labels or the
repository may have changed since the last sync.
"""

import html
from typing import Any

import structlog

from github_asana_relay.config import RelayConfig
from github_asana_relay.synchronize.fields import FieldMapper
from github_asana_relay.synchronize.models import RemoteTaskHandle, SyncEvent
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.tasks.exceptions import TaskNotFoundError, TaskServiceError

logger = structlog.get_logger(__name__)

LEGACY_SCAN_FIELDS = ["gid", "name", "permalink_url", "completed", "html_notes"]


def _handle_from_task(task: dict[str, Any]) -> RemoteTaskHandle:
    return RemoteTaskHandle(remote_id=task["gid"], permalink=task.get("permalink_url"), completed=task.get("completed"))


def _creation_order(task: dict[str, Any]) -> tuple[int, str]:
    """Sort key putting the oldest task first; Asana ids grow over time."""
    gid = str(task.get("gid", ""))
    return (int(gid) if gid.isdigit() else 0, gid)


def legacy_link_pattern(url: str) -> str:
    """The header link rendered into every task description for a URL."""
    escaped = html.escape(url)
    return f'GitHub:</strong> <a href="{escaped}">{escaped}</a>'


class TaskResolver:
    """Finds or creates the single task mirroring a GitHub entity."""

    def __init__(self, task_service: TaskServiceBase, field_mapper: FieldMapper, config: RelayConfig) -> None:
        self.task_service = task_service
        self.field_mapper = field_mapper
        self.config = config

    async def resolve(self, event: SyncEvent) -> RemoteTaskHandle:
        """Return the task for the event's URL, creating it if none exists."""
        handle: RemoteTaskHandle | None = None
        if event.remote_task_hint:
            handle = await self._verify_hint(event.remote_task_hint, event.canonical_url)
        if handle is None:
            handle = await self._search(event.canonical_url)
        if handle is None:
            return await self._create(event)

        await self.refresh_identity_fields(handle, event)
        return handle

    async def _verify_hint(self, task_id: str, url: str) -> RemoteTaskHandle | None:
        try:
            task = await self.task_service.get_task(task_id)
        except TaskNotFoundError:
            logger.info("Cached task no longer exists, searching instead", url=url, task_id=task_id)
            return None
        logger.debug("Using cached task", url=url, task_id=task_id)
        return _handle_from_task(task)

    async def _search(self, url: str) -> RemoteTaskHandle | None:
        field_id = self.config.fields.source_url
        if not field_id:
            return await self._scan_descriptions(url)

        candidates = await self.task_service.search_tasks(self.config.project_id, field_id, url)
        matches = [
            task
            for task in candidates
            if any(custom_field.get("gid") == field_id and custom_field.get("text_value") == url for custom_field in task.get("custom_fields") or [])
        ]
        if not matches:
            logger.debug("No existing task found by source URL", url=url, candidates=len(candidates))
            return None
        matches.sort(key=_creation_order)
        if len(matches) > 1:
            logger.warning("Several tasks mirror the same URL, using the oldest", url=url, task_ids=[task["gid"] for task in matches])
        logger.info("Found existing task by source URL", url=url, task_id=matches[0]["gid"])
        return _handle_from_task(matches[0])

    async def _scan_descriptions(self, url: str) -> RemoteTaskHandle | None:
        """Deprecated lookup by the header link in task descriptions.

        Only used when no source-URL field is configured; cost grows with the
        size of the project and quoted links can produce false positives.
        """
        pattern = legacy_link_pattern(url)
        async for task in self.task_service.iter_project_tasks(self.config.project_id, LEGACY_SCAN_FIELDS):
            if pattern in (task.get("html_notes") or ""):
                logger.info("Found existing task by description link", url=url, task_id=task["gid"])
                return _handle_from_task(task)
        return None

    async def _create(self, event: SyncEvent) -> RemoteTaskHandle:
        fields: dict[str, Any] = {"name": event.title, "projects": [self.config.project_id]}
        custom_fields = await self.identity_fields(event)
        if not custom_fields:
            task = await self.task_service.create_task(fields)
            logger.info("Created task", url=event.canonical_url, task_id=task["gid"])
            return _handle_from_task(task)

        try:
            task = await self.task_service.create_task({**fields, "custom_fields": custom_fields})
        except TaskServiceError as exc:
            if exc.status_code != 400 or isinstance(exc, TaskNotFoundError):
                raise
            logger.warning("Task creation with custom fields rejected, creating without them", url=event.canonical_url, error=str(exc))
        else:
            logger.info("Created task", url=event.canonical_url, task_id=task["gid"], custom_fields=sorted(custom_fields))
            return _handle_from_task(task)

        # Fields are written one by one afterwards so a single bad field only loses itself.
        task = await self.task_service.create_task(fields)
        handle = _handle_from_task(task)
        logger.info("Created task without custom fields", url=event.canonical_url, task_id=handle.remote_id)
        await self.refresh_identity_fields(handle, event)
        return handle

    async def identity_fields(self, event: SyncEvent) -> dict[str, Any]:
        """Build the custom field values identifying the entity.

        Unconfigured fields are skipped, as is any enum field whose option
        cannot be resolved.
        """
        fields = self.config.fields
        values: dict[str, Any] = {}
        if fields.source_url:
            values[fields.source_url] = event.canonical_url
        if fields.creator:
            values[fields.creator] = f"@{event.author_handle}"

        enum_fields = (
            (fields.repository, "repository", event.repository_name),
            (fields.entity_type, "entity_type", event.entity_kind.label),
        )
        for field_id, field_name, value in enum_fields:
            if not field_id:
                continue
            try:
                option_id = await self.field_mapper.resolve_option(field_id, value)
            except TaskServiceError as exc:
                logger.warning("Could not resolve custom field option, skipping field", field=field_name, field_id=field_id, value=value, error=str(exc))
                continue
            if option_id:
                values[field_id] = option_id

        if fields.labels:
            try:
                values[fields.labels] = await self.field_mapper.resolve_multi_option(fields.labels, event.labels)
            except TaskServiceError as exc:
                logger.warning("Could not resolve label options, skipping field", field_id=fields.labels, labels=sorted(event.labels), error=str(exc))
        return values

    async def refresh_identity_fields(self, handle: RemoteTaskHandle, event: SyncEvent) -> None:
        """Write identity fields onto an existing task, skipping any field that fails."""
        values = await self.identity_fields(event)
        if not values:
            return
        try:
            await self.task_service.update_task(handle.remote_id, {"custom_fields": values})
            return
        except TaskNotFoundError:
            raise
        except TaskServiceError as exc:
            logger.warning("Bulk custom field update failed, retrying field by field", task_id=handle.remote_id, error=str(exc))

        for field_id, value in values.items():
            try:
                await self.task_service.update_task(handle.remote_id, {"custom_fields": {field_id: value}})
            except TaskNotFoundError:
                raise
            except TaskServiceError as exc:
                logger.warning("Could not update custom field, skipping", task_id=handle.remote_id, field_id=field_id, error=str(exc))
