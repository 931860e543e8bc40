"""Wires the relay's collaborators together and runs deliveries through them."""

import time
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx
import structlog

from github_asana_relay.config import RelayConfig, ServiceCredentials
from github_asana_relay.configuration.env import Settings
from github_asana_relay.github.abc import GitHubClientBase
from github_asana_relay.github.adapter import GitHubKitAdapter
from github_asana_relay.ingestion.webhook import handle_delivery
from github_asana_relay.rendering.attachments import AttachmentPipeline
from github_asana_relay.rendering.renderer import ContentRenderer
from github_asana_relay.state.store import CoordinatorStateStore
from github_asana_relay.synchronize.coordinator import CoordinatorRegistry
from github_asana_relay.synchronize.fields import FieldMapper
from github_asana_relay.synchronize.orchestrator import SyncOrchestrator
from github_asana_relay.synchronize.resolver import TaskResolver
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.tasks.adapter import AsanaAdapter

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def build_registry(
    config: RelayConfig,
    task_service: TaskServiceBase,
    state_store: CoordinatorStateStore,
    github: GitHubClientBase | None = None,
    image_client: httpx.AsyncClient | None = None,
) -> CoordinatorRegistry:
    """Assemble orchestrator and coordinator registry from already-created clients."""
    attachments = AttachmentPipeline(task_service, image_client, settle_delay=config.image_settle_delay) if image_client is not None else None
    resolver = TaskResolver(task_service, FieldMapper(task_service), config)
    orchestrator = SyncOrchestrator(task_service, resolver, ContentRenderer(github=github, attachments=attachments))
    return CoordinatorRegistry(orchestrator, state_store, config)


@asynccontextmanager
async def relay_runtime(settings: Settings) -> AsyncIterator[CoordinatorRegistry]:
    """Create clients from settings, yield a ready registry and close everything afterwards."""
    config = RelayConfig.from_settings(settings)
    credentials = ServiceCredentials.from_settings(settings)

    task_service = AsanaAdapter.create(credentials.asana_pat, credentials.asana_api_url, workspace_id=config.workspace_id)
    github = GitHubKitAdapter.create(credentials.github_api_url, credentials.github_token)
    state_store = CoordinatorStateStore(credentials.state_db_path)
    try:
        async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0)) as image_client:
            await state_store.initialize()
            yield build_registry(config, task_service, state_store, github=github, image_client=image_client)
    finally:
        await task_service.aclose()
        await state_store.close()


async def run_relay_event(settings: Settings, event_type: str, payload: dict[str, Any]) -> dict[str, object]:
    """Relay a single webhook delivery and return the response contract."""
    start_time = time.time()
    async with relay_runtime(settings) as registry:
        response = await handle_delivery(registry, event_type, payload)
    logger.info("Relayed delivery", event_type=event_type, status=response.get("status"), duration=round(time.time() - start_time, 2))
    return response
