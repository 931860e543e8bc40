"""Data models shared by the synchronization core."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict

from github_asana_relay.utils.constants import ENTITY_TYPE_ISSUE, ENTITY_TYPE_PULL_REQUEST


class EntityKind(str, Enum):
    """Kind of GitHub entity mirrored by a task."""

    ISSUE = "issue"
    PULL_REQUEST = "pull_request"

    @property
    def label(self) -> str:
        """Value written to the entity-type field."""
        if self is EntityKind.PULL_REQUEST:
            return ENTITY_TYPE_PULL_REQUEST
        return ENTITY_TYPE_ISSUE


class EventAction(str, Enum):
    """Lifecycle action carried by an inbound event."""

    OPENED = "opened"
    EDITED = "edited"
    CLOSED = "closed"
    REOPENED = "reopened"
    COMMENT_CREATED = "comment_created"


class EntityState(str, Enum):
    """Open/closed state of the GitHub entity."""

    OPEN = "open"
    CLOSED = "closed"


class SyncStatus(str, Enum):
    """Status reported back to the ingestion layer."""

    PROCESSED = "processed"
    IGNORED = "ignored"


class Comment(BaseModel):
    """A single comment on an issue or pull request."""

    model_config = ConfigDict(frozen=True)

    author_login: str
    author_url: str | None = None
    body: str = ""
    created_at: datetime
    url: str | None = None


class FileChange(BaseModel):
    """A file changed by a pull request, with its line counts."""

    model_config = ConfigDict(frozen=True)

    filename: str
    status: str = "modified"
    additions: int = 0
    deletions: int = 0
    previous_filename: str | None = None
    blob_url: str | None = None


class SyncEvent(BaseModel):
    """Immutable description of one inbound delivery for one GitHub entity."""

    model_config = ConfigDict(frozen=True)

    entity_kind: EntityKind
    action: EventAction
    canonical_url: str
    number: int
    title: str
    body_markdown: str = ""
    author_handle: str
    author_url: str | None = None
    repository_name: str
    repository_full_name: str
    labels: frozenset[str] = frozenset()
    state: EntityState = EntityState.OPEN
    created_at: datetime
    remote_task_hint: str | None = None

    @property
    def is_comment_event(self) -> bool:
        return self.action == EventAction.COMMENT_CREATED

    @property
    def is_pull_request(self) -> bool:
        return self.entity_kind == EntityKind.PULL_REQUEST

    def with_hint(self, remote_task_id: str | None) -> "SyncEvent":
        """Return a copy of this event carrying a resolution hint."""
        return self.model_copy(update={"remote_task_hint": remote_task_id})


@dataclass(frozen=True)
class RemoteTaskHandle:
    """The remote task mirroring a GitHub entity."""

    remote_id: str
    permalink: str | None = None
    completed: bool | None = None


@dataclass(frozen=True)
class RenderedContent:
    """Rich text for the task description plus the markdown it came from."""

    html: str
    raw_markdown: str


@dataclass(frozen=True)
class AttachmentRecord:
    """An image attachment on a task, addressed by its content hash."""

    content_hash: str
    filename: str
    remote_attachment_id: str
    created_in_this_pass: bool = False


@dataclass(frozen=True)
class FieldOption:
    """An enum option on a custom field."""

    field_id: str
    option_value: str
    remote_option_id: str


@dataclass
class SyncResult:
    """Outcome of processing one event, as reported to the caller."""

    status: SyncStatus
    action: str | None = None
    remote_task_id: str | None = None
    permalink: str | None = None
    completed: bool | None = None
    reason: str | None = None

    @property
    def result(self) -> str | bool | None:
        """The permalink when known, otherwise the completion outcome."""
        if self.permalink:
            return self.permalink
        return self.completed

    def to_response(self) -> dict[str, object]:
        """Serialize to the response contract consumed by the ingestion layer."""
        response: dict[str, object] = {"status": self.status.value}
        if self.status == SyncStatus.IGNORED:
            response["reason"] = self.reason
            return response
        response.update(
            {
                "action": self.action,
                "result": self.result,
                "remoteTaskId": self.remote_task_id,
            }
        )
        return response

    @classmethod
    def ignored(cls, reason: str) -> "SyncResult":
        return cls(status=SyncStatus.IGNORED, reason=reason)
