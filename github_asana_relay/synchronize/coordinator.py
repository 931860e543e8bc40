"""Per-entity serialization and retry around the sync orchestrator."""

import asyncio
import time
from typing import Awaitable, Callable

import aiosqlite
import structlog

from github_asana_relay.config import RelayConfig
from github_asana_relay.state.store import CoordinatorStateStore
from github_asana_relay.synchronize.models import RemoteTaskHandle, SyncEvent, SyncResult
from github_asana_relay.synchronize.orchestrator import SyncOrchestrator

logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]
Clock = Callable[[], float]


class EntityCoordinator:
    """Serializes every event for one GitHub entity and retries failed attempts.

    Events wait on an ``asyncio.Lock``, whose waiters are woken in arrival
    order, so deliveries for one entity are processed one at a time and FIFO.
    Retries are blind: any exception from an attempt, including its timeout,
    triggers the next attempt after the configured delay.
    """

    def __init__(
        self,
        canonical_url: str,
        orchestrator: SyncOrchestrator,
        state_store: CoordinatorStateStore,
        config: RelayConfig,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.canonical_url = canonical_url
        self.orchestrator = orchestrator
        self.state_store = state_store
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._pending = 0
        self.last_used = clock()

    @property
    def busy(self) -> bool:
        return self._pending > 0 or self._lock.locked()

    async def handle(self, event: SyncEvent) -> SyncResult:
        """Process an event for this entity once all earlier events are done."""
        if event.canonical_url != self.canonical_url:
            raise ValueError(f"Event for {event.canonical_url} routed to coordinator for {self.canonical_url}")
        self._pending += 1
        try:
            async with self._lock:
                return await self._handle_exclusively(event)
        finally:
            self._pending -= 1
            self.last_used = self._clock()

    async def _handle_exclusively(self, event: SyncEvent) -> SyncResult:
        cached_task_id = await self._load_cached_task_id()
        if cached_task_id:
            event = event.with_hint(cached_task_id)

        # A task resolved by a failed attempt is the hint for the next one.
        resolved: list[RemoteTaskHandle] = []
        attempt = 1
        while True:
            if resolved:
                event = event.with_hint(resolved[-1].remote_id)
            try:
                result = await self._attempt(event, resolved.append)
            except Exception as exc:
                logger.warning(
                    "Sync attempt failed",
                    url=self.canonical_url,
                    attempt=attempt,
                    max_attempts=self.config.max_attempts,
                    resolved_task_id=resolved[-1].remote_id if resolved else None,
                    error=str(exc),
                    error_type=type(exc).__name__,
                )
                if attempt >= self.config.max_attempts:
                    logger.error("All sync attempts failed", url=self.canonical_url, attempts=attempt, error=str(exc))
                    raise
                await self._sleep(self.config.retry_delay(attempt))
                attempt += 1
                continue

            if result.remote_task_id and result.remote_task_id != cached_task_id:
                await self._store_task_id(result.remote_task_id, cached_task_id)
            return result

    async def _attempt(self, event: SyncEvent, on_resolved: Callable[[RemoteTaskHandle], None]) -> SyncResult:
        if self.config.attempt_timeout is None:
            return await self.orchestrator.process(event, on_resolved=on_resolved)
        return await asyncio.wait_for(self.orchestrator.process(event, on_resolved=on_resolved), timeout=self.config.attempt_timeout)

    async def _load_cached_task_id(self) -> str | None:
        try:
            return await self.state_store.get_remote_task_id(self.canonical_url)
        except aiosqlite.Error as exc:
            logger.warning("Could not read cached task id, resolving without a hint", url=self.canonical_url, error=str(exc))
            return None

    async def _store_task_id(self, task_id: str, previous_task_id: str | None) -> None:
        try:
            await self.state_store.set_remote_task_id(self.canonical_url, task_id)
        except aiosqlite.Error as exc:
            logger.warning("Could not store task id", url=self.canonical_url, task_id=task_id, error=str(exc))
            return
        logger.info("Cached remote task id", url=self.canonical_url, task_id=task_id, previous_task_id=previous_task_id)


class CoordinatorRegistry:
    """Routes events to one lazily created coordinator per canonical URL."""

    def __init__(
        self,
        orchestrator: SyncOrchestrator,
        state_store: CoordinatorStateStore,
        config: RelayConfig,
        sleep: Sleep = asyncio.sleep,
        clock: Clock = time.monotonic,
    ) -> None:
        self.orchestrator = orchestrator
        self.state_store = state_store
        self.config = config
        self._sleep = sleep
        self._clock = clock
        self._coordinators: dict[str, EntityCoordinator] = {}

    def __len__(self) -> int:
        return len(self._coordinators)

    def get(self, canonical_url: str) -> EntityCoordinator:
        """Return the coordinator for a URL, creating it on first use."""
        self.evict_idle()
        coordinator = self._coordinators.get(canonical_url)
        if coordinator is None:
            coordinator = EntityCoordinator(canonical_url, self.orchestrator, self.state_store, self.config, sleep=self._sleep, clock=self._clock)
            self._coordinators[canonical_url] = coordinator
            logger.debug("Created coordinator", url=canonical_url, coordinators=len(self._coordinators))
        return coordinator

    async def dispatch(self, event: SyncEvent) -> SyncResult:
        """Hand an event to its entity's coordinator and wait for the result."""
        return await self.get(event.canonical_url).handle(event)

    def evict_idle(self) -> int:
        """Drop coordinators that are unlocked and unused for the idle timeout."""
        now = self._clock()
        idle = [
            url
            for url, coordinator in self._coordinators.items()
            if not coordinator.busy and now - coordinator.last_used >= self.config.coordinator_idle_timeout
        ]
        for url in idle:
            del self._coordinators[url]
        if idle:
            logger.debug("Evicted idle coordinators", count=len(idle), remaining=len(self._coordinators))
        return len(idle)
