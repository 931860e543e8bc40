"""Contains unit tests for the synchronize.orchestrator module."""

import pytest

from github_asana_relay.config import FieldConfig, RelayConfig
from github_asana_relay.rendering.renderer import ContentRenderer
from github_asana_relay.synchronize.fields import FieldMapper
from github_asana_relay.synchronize.models import EntityState, EventAction, RemoteTaskHandle, SyncStatus
from github_asana_relay.synchronize.orchestrator import SyncOrchestrator
from github_asana_relay.synchronize.resolver import TaskResolver, legacy_link_pattern
from github_asana_relay.tasks.exceptions import TaskServiceError

URL = "https://github.com/octo-org/octo-repo/issues/42"


def make_orchestrator(task_service, fields: FieldConfig | None = None) -> SyncOrchestrator:
    fields = fields if fields is not None else FieldConfig(source_url="url-field", repository="repo-field")
    resolver = TaskResolver(task_service, FieldMapper(task_service), RelayConfig(project_id="proj", fields=fields))
    return SyncOrchestrator(task_service, resolver, ContentRenderer())


@pytest.mark.asyncio
async def test_process_opened_event(fake_task_service, make_event) -> None:
    """Test that an opened issue creates a described, incomplete task."""
    result = await make_orchestrator(fake_task_service).process(make_event())

    task = fake_task_service.tasks[result.remote_task_id]
    assert task["name"] == "Crash on startup"
    assert task["html_notes"].startswith("<body><strong>Created by:</strong>")
    assert legacy_link_pattern(URL) in task["html_notes"]
    assert "The app crashes when started." in task["html_notes"]
    assert task["completed"] is False
    assert result.to_response() == {
        "status": "processed",
        "action": "opened",
        "result": task["permalink_url"],
        "remoteTaskId": result.remote_task_id,
    }


@pytest.mark.asyncio
async def test_completion_follows_entity_state(fake_task_service, make_event) -> None:
    """Test close, comment and reopen: comments never change completion."""
    orchestrator = make_orchestrator(fake_task_service)

    opened = await orchestrator.process(make_event())
    closed = await orchestrator.process(make_event(action=EventAction.CLOSED, state=EntityState.CLOSED))
    task = fake_task_service.tasks[opened.remote_task_id]
    assert closed.completed is True
    assert task["completed"] is True

    commented = await orchestrator.process(make_event(action=EventAction.COMMENT_CREATED, state=EntityState.CLOSED))
    assert commented.completed is None
    assert task["completed"] is True
    completion_updates = [args for name, args in fake_task_service.calls if name == "update_task" and "completed" in args[1]]
    assert len(completion_updates) == 2

    reopened = await orchestrator.process(make_event(action=EventAction.REOPENED, state=EntityState.OPEN))
    assert reopened.completed is False
    assert task["completed"] is False
    assert {opened.remote_task_id, closed.remote_task_id, commented.remote_task_id, reopened.remote_task_id} == {opened.remote_task_id}
    assert fake_task_service.count("create_task") == 1


@pytest.mark.asyncio
async def test_comment_on_closed_entity_stays_closed(fake_task_service, make_event) -> None:
    """Test that a comment arriving first for a closed entity leaves the new task open."""
    result = await make_orchestrator(fake_task_service).process(make_event(action=EventAction.COMMENT_CREATED, state=EntityState.CLOSED))

    assert result.status == SyncStatus.PROCESSED
    assert result.action == "comment_created"
    assert fake_task_service.tasks[result.remote_task_id]["completed"] is False


@pytest.mark.asyncio
async def test_invalid_rich_text_falls_back_to_plain_notes(fake_task_service, make_event) -> None:
    """Test that rejected rich text is replaced by the raw markdown narrative."""
    fake_task_service.reject_html_notes = True

    result = await make_orchestrator(fake_task_service).process(make_event(body_markdown="Some **bold** text"))

    task = fake_task_service.tasks[result.remote_task_id]
    assert task["html_notes"] == ""
    assert task["notes"].startswith("**Created by:** [@octocat](https://github.com/octocat)")
    assert "Some **bold** text" in task["notes"]
    assert task["name"] == "Crash on startup"


@pytest.mark.asyncio
async def test_process_without_custom_fields(fake_task_service, make_event) -> None:
    """Test that every custom field is optional."""
    orchestrator = make_orchestrator(fake_task_service, FieldConfig())

    first = await orchestrator.process(make_event())
    second = await orchestrator.process(make_event(action=EventAction.EDITED, title="Renamed", remote_task_hint=first.remote_task_id))

    assert first.remote_task_id == second.remote_task_id
    assert fake_task_service.tasks[first.remote_task_id]["custom_fields"] == {}
    assert fake_task_service.tasks[first.remote_task_id]["name"] == "Renamed"


@pytest.mark.asyncio
async def test_processing_same_event_twice_changes_nothing(fake_task_service, make_event) -> None:
    """Test that a redelivered event leaves the task exactly as the first delivery did."""
    orchestrator = make_orchestrator(fake_task_service)
    event = make_event(body_markdown="Steps:\n\n1. start\n2. crash", labels=frozenset({"bug", "urgent"}))

    first = await orchestrator.process(event)
    snapshot = {key: value for key, value in fake_task_service.tasks[first.remote_task_id].items() if key != "custom_fields"}
    fields_snapshot = dict(fake_task_service.tasks[first.remote_task_id]["custom_fields"])
    second = await orchestrator.process(event)

    assert second.remote_task_id == first.remote_task_id
    assert second.to_response() == first.to_response()
    task = fake_task_service.tasks[first.remote_task_id]
    assert {key: value for key, value in task.items() if key != "custom_fields"} == snapshot
    assert task["custom_fields"] == fields_snapshot
    assert list(fake_task_service.tasks) == [first.remote_task_id]


@pytest.mark.asyncio
async def test_resolved_task_is_reported_before_later_steps_fail(fake_task_service, make_event) -> None:
    """Test that the resolved task reaches the callback even when pushing the description fails."""
    fake_task_service.update_failures = [TaskServiceError(503, "Service Unavailable")]
    resolved: list[RemoteTaskHandle] = []

    with pytest.raises(TaskServiceError):
        await make_orchestrator(fake_task_service, FieldConfig()).process(make_event(), on_resolved=resolved.append)

    assert [handle.remote_id for handle in resolved] == list(fake_task_service.tasks)
