"""Turns raw GitHub webhook deliveries into sync events.

Signature verification happens before a delivery reaches this module; here
the payload is only classified, validated and routed by entity URL.
"""

from enum import Enum
from typing import Any

import structlog

from github_asana_relay.synchronize.coordinator import CoordinatorRegistry
from github_asana_relay.synchronize.exceptions import EventPayloadError
from github_asana_relay.synchronize.models import EntityKind, EntityState, EventAction, SyncEvent, SyncResult

logger = structlog.get_logger(__name__)


class GitHubEventType(str, Enum):
    """Webhook event types the relay handles."""

    ISSUES = "issues"
    ISSUE_COMMENT = "issue_comment"
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_REVIEW_COMMENT = "pull_request_review_comment"


LIFECYCLE_ACTIONS = {
    "opened": EventAction.OPENED,
    "edited": EventAction.EDITED,
    "closed": EventAction.CLOSED,
    "reopened": EventAction.REOPENED,
}


def _classify(event_type: str, action: str | None) -> tuple[GitHubEventType, EventAction] | None:
    """Map a delivery to its event type and action, or None if it is not handled."""
    try:
        github_event = GitHubEventType(event_type)
    except ValueError:
        return None
    if github_event in (GitHubEventType.ISSUES, GitHubEventType.PULL_REQUEST):
        sync_action = LIFECYCLE_ACTIONS.get(action or "")
        return (github_event, sync_action) if sync_action else None
    if action == "created":
        return github_event, EventAction.COMMENT_CREATED
    return None


def _entity(event_type: GitHubEventType, payload: dict[str, Any]) -> tuple[EntityKind, dict[str, Any]]:
    """Pick the issue or pull request object a delivery is about."""
    if event_type in (GitHubEventType.PULL_REQUEST, GitHubEventType.PULL_REQUEST_REVIEW_COMMENT):
        item = payload.get("pull_request") or {}
        return EntityKind.PULL_REQUEST, item
    item = payload.get("issue") or {}
    # Comments on pull requests arrive as issue_comment with a pull_request key.
    if item.get("pull_request"):
        return EntityKind.PULL_REQUEST, item
    return EntityKind.ISSUE, item


def parse_delivery(event_type: str, payload: dict[str, Any]) -> SyncEvent | None:
    """Build a SyncEvent from a webhook delivery, or None when it should be ignored.

    Raises:
        EventPayloadError: If a handled delivery lacks the entity URL or creation time.
    """
    classified = _classify(event_type, payload.get("action"))
    if classified is None:
        return None
    github_event, action = classified
    kind, item = _entity(github_event, payload)

    url = item.get("html_url")
    if not url:
        raise EventPayloadError(event_type, "no issue or pull request html_url found")
    if not item.get("created_at"):
        raise EventPayloadError(event_type, f"{url} has no created_at timestamp")

    repository = payload.get("repository") or {}
    full_name = repository.get("full_name") or ""
    user = item.get("user") or {}
    return SyncEvent(
        entity_kind=kind,
        action=action,
        canonical_url=url,
        number=item.get("number") or 0,
        title=item.get("title") or "",
        body_markdown=item.get("body") or "",
        author_handle=user.get("login") or "ghost",
        author_url=user.get("html_url"),
        repository_name=repository.get("name") or full_name.split("/")[-1],
        repository_full_name=full_name,
        labels=frozenset(label["name"] for label in item.get("labels") or [] if label.get("name")),
        state=EntityState.CLOSED if item.get("state") == "closed" else EntityState.OPEN,
        created_at=item.get("created_at"),
    )


async def handle_delivery(registry: CoordinatorRegistry, event_type: str, payload: dict[str, Any]) -> dict[str, object]:
    """Route a webhook delivery through the registry and return the response contract."""
    event = parse_delivery(event_type, payload)
    if event is None:
        logger.info("Ignoring unsupported delivery", event_type=event_type, action=payload.get("action"))
        return SyncResult.ignored(f"unsupported event {event_type} with action {payload.get('action')}").to_response()
    logger.info("Routing delivery", event_type=event_type, action=event.action.value, url=event.canonical_url)
    result = await registry.dispatch(event)
    return result.to_response()
