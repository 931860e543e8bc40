"""Per-event synchronization protocol."""

from typing import Callable

import structlog

from github_asana_relay.rendering.renderer import ContentRenderer
from github_asana_relay.synchronize.models import EntityState, RemoteTaskHandle, RenderedContent, SyncEvent, SyncResult, SyncStatus
from github_asana_relay.synchronize.resolver import TaskResolver
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.tasks.exceptions import InvalidContentError

logger = structlog.get_logger(__name__)


class SyncOrchestrator:
    """Drives one event through resolve, render and completion.

    The same three steps run whether or not the task existed before, and each
    step rewrites the full current state, so processing an event again (or
    out of order) converges on the same task.
    """

    def __init__(self, task_service: TaskServiceBase, resolver: TaskResolver, renderer: ContentRenderer) -> None:
        self.task_service = task_service
        self.resolver = resolver
        self.renderer = renderer

    async def process(self, event: SyncEvent, on_resolved: Callable[[RemoteTaskHandle], None] | None = None) -> SyncResult:
        """Process a single event and report the outcome.

        ``on_resolved`` is called with the task handle as soon as it is known,
        so a caller retrying after a later failure can reuse the same task.
        """
        logger.info("Processing event", url=event.canonical_url, action=event.action.value, entity_kind=event.entity_kind.value)

        # Step 1: resolve the remote task
        handle = await self.resolver.resolve(event)
        if on_resolved is not None:
            on_resolved(handle)

        # Step 2: render and push the description
        content = await self.renderer.render(event, handle.remote_id)
        await self._push_content(handle, event, content)

        # Step 3: mirror open/closed state, except for comments
        completed: bool | None = None
        permalink = handle.permalink
        if not event.is_comment_event:
            completed = event.state == EntityState.CLOSED
            task = await self.task_service.update_task(handle.remote_id, {"completed": completed})
            permalink = permalink or task.get("permalink_url")
            logger.info("Set task completion", url=event.canonical_url, task_id=handle.remote_id, completed=completed)

        return SyncResult(
            status=SyncStatus.PROCESSED,
            action=event.action.value,
            remote_task_id=handle.remote_id,
            permalink=permalink,
            completed=completed,
        )

    async def _push_content(self, handle: RemoteTaskHandle, event: SyncEvent, content: RenderedContent) -> None:
        """Update name and rich description, falling back once to plain text."""
        try:
            await self.task_service.update_task(handle.remote_id, {"name": event.title, "html_notes": content.html})
        except InvalidContentError as exc:
            logger.warning("Rich text rejected, falling back to plain text", url=event.canonical_url, task_id=handle.remote_id, error=exc.message)
            await self.task_service.update_task(handle.remote_id, {"name": event.title, "notes": content.raw_markdown})
            return
        logger.info("Updated task description", url=event.canonical_url, task_id=handle.remote_id, length=len(content.html))
