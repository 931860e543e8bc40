"""Maps taxonomy values (repository, entity type, labels) to enum option ids."""

from typing import Iterable

import structlog

from github_asana_relay.synchronize.models import FieldOption
from github_asana_relay.tasks.abc import TaskServiceBase
from github_asana_relay.utils.hashing import color_for_option

logger = structlog.get_logger(__name__)


class FieldMapper:
    """Resolves option names on enum custom fields, creating missing options.

    Nothing is cached locally; the field's option list is read fresh on every
    call. Callers funnel all writes for one task through a single coordinator,
    which keeps duplicate option creation unlikely.
    """

    def __init__(self, task_service: TaskServiceBase) -> None:
        self.task_service = task_service

    async def _options(self, field_id: str) -> dict[str, FieldOption]:
        """Fetch the existing options of a field, keyed by name."""
        custom_field = await self.task_service.get_field(field_id)
        options: dict[str, FieldOption] = {}
        for option in custom_field.get("enum_options") or []:
            name = option.get("name")
            if name and name not in options:
                options[name] = FieldOption(field_id=field_id, option_value=name, remote_option_id=option["gid"])
        return options

    async def _create_option(self, field_id: str, value: str) -> FieldOption:
        color = color_for_option(value)
        created = await self.task_service.create_field_option(field_id, value, color)
        logger.info("Created custom field option", field_id=field_id, value=value, color=color, option_id=created["gid"])
        return FieldOption(field_id=field_id, option_value=value, remote_option_id=created["gid"])

    async def resolve_option(self, field_id: str | None, value: str | None) -> str | None:
        """Return the option id for a value, creating the option on first sight.

        Returns None when the field is not configured or there is no value.
        """
        if not field_id or not value:
            return None
        options = await self._options(field_id)
        if value in options:
            return options[value].remote_option_id
        return (await self._create_option(field_id, value)).remote_option_id

    async def resolve_multi_option(self, field_id: str | None, values: Iterable[str]) -> list[str]:
        """Return option ids for several values of a multi-enum field, in sorted value order."""
        if not field_id:
            return []
        wanted = sorted({value for value in values if value})
        if not wanted:
            return []
        options = await self._options(field_id)
        option_ids: list[str] = []
        for value in wanted:
            if value not in options:
                options[value] = await self._create_option(field_id, value)
            option_ids.append(options[value].remote_option_id)
        return option_ids
