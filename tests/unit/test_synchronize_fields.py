"""Contains unit tests for the synchronize.fields module."""

from unittest.mock import AsyncMock

import pytest

from github_asana_relay.synchronize.fields import FieldMapper
from github_asana_relay.tasks.exceptions import TaskServiceError
from github_asana_relay.utils.hashing import color_for_option


@pytest.mark.asyncio
async def test_resolve_option_returns_existing(fake_task_service) -> None:
    """Test that an existing option is reused without creating a new one."""
    fake_task_service.field_options["f1"] = [{"gid": "opt-1", "name": "octo-repo"}]
    mapper = FieldMapper(fake_task_service)

    assert await mapper.resolve_option("f1", "octo-repo") == "opt-1"
    assert fake_task_service.count("create_field_option") == 0


@pytest.mark.asyncio
async def test_resolve_option_creates_missing_with_derived_color(fake_task_service) -> None:
    """Test that a missing option is created once with its hash-derived color."""
    mapper = FieldMapper(fake_task_service)

    first = await mapper.resolve_option("f1", "octo-repo")
    second = await mapper.resolve_option("f1", "octo-repo")

    assert first == second
    assert fake_task_service.calls.count(("create_field_option", ("f1", "octo-repo", color_for_option("octo-repo")))) == 1


@pytest.mark.parametrize(
    "field_id,value",
    [
        pytest.param(None, "octo-repo", id="field not configured"),
        pytest.param("", "octo-repo", id="blank field"),
        pytest.param("f1", None, id="no value"),
        pytest.param("f1", "", id="empty value"),
    ],
)
@pytest.mark.asyncio
async def test_resolve_option_skips_unconfigured(fake_task_service, field_id: str | None, value: str | None) -> None:
    """Test that nothing is looked up without both a field and a value."""
    assert await FieldMapper(fake_task_service).resolve_option(field_id, value) is None
    assert fake_task_service.calls == []


@pytest.mark.asyncio
async def test_resolve_multi_option_sorted_and_deduplicated(fake_task_service) -> None:
    """Test that label options come back in sorted order, creating only what is missing."""
    fake_task_service.field_options["labels"] = [{"gid": "opt-bug", "name": "bug"}]
    mapper = FieldMapper(fake_task_service)

    option_ids = await mapper.resolve_multi_option("labels", ["urgent", "bug", "urgent", ""])

    names = {option["gid"]: option["name"] for option in fake_task_service.field_options["labels"]}
    assert [names[option_id] for option_id in option_ids] == ["bug", "urgent"]
    assert fake_task_service.count("create_field_option") == 1


@pytest.mark.asyncio
async def test_resolve_multi_option_empty(fake_task_service) -> None:
    """Test that no labels or no field yields an empty list without remote calls."""
    mapper = FieldMapper(fake_task_service)
    assert await mapper.resolve_multi_option("labels", []) == []
    assert await mapper.resolve_multi_option(None, ["bug"]) == []
    assert fake_task_service.calls == []


@pytest.mark.asyncio
async def test_resolve_option_propagates_service_errors() -> None:
    """Test that failures reading the field are left to the caller."""
    task_service = AsyncMock()
    task_service.get_field.side_effect = TaskServiceError(403, "Forbidden")

    with pytest.raises(TaskServiceError):
        await FieldMapper(task_service).resolve_option("f1", "octo-repo")
