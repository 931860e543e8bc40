"""Task service adapter for the Asana REST API, built on httpx."""

from functools import wraps
from typing import Any, AsyncIterator, Awaitable, Callable, Self, TypeVar

import httpx
import structlog

from github_asana_relay.utils.constants import ASANA_PAGE_LIMIT, DEFAULT_ASANA_API_URL
from github_asana_relay.utils.retry import retry_on_rate_limit

from .abc import TaskServiceBase
from .exceptions import InvalidContentError, RateLimitedError, TaskNotFoundError, TaskServiceError

logger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

TASK_FIELDS = ["gid", "name", "permalink_url", "completed"]
SEARCH_FIELDS = TASK_FIELDS + ["custom_fields.gid", "custom_fields.text_value"]


def handle_asana_400(func: F) -> F:
    """Decorator to turn Asana's rich text rejections into InvalidContentError."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except TaskServiceError as exc:
            if exc.status_code != 400:
                raise
            messages = " ".join(str(error.get("message", "")) for error in exc.errors) or exc.message
            if "xml" not in messages.lower() and "html" not in messages.lower():
                raise
            logger.error("Asana rejected rich text content", function=func.__name__, message=messages, status_code=400)
            raise InvalidContentError(exc.status_code, messages, exc.errors, exc.headers) from exc

    return wrapper  # type: ignore


def _error_from_response(response: httpx.Response) -> TaskServiceError:
    """Build the matching TaskServiceError for an error response."""
    try:
        errors = response.json().get("errors", [])
    except ValueError:
        errors = []
    message = "; ".join(str(error.get("message", "")) for error in errors) or response.reason_phrase
    headers = {key.lower(): value for key, value in response.headers.items()}
    if response.status_code == 404:
        return TaskNotFoundError(response.status_code, message, errors, headers)
    if response.status_code == 429:
        return RateLimitedError(response.status_code, message, errors, headers)
    return TaskServiceError(response.status_code, message, errors, headers)


class AsanaAdapter(TaskServiceBase):
    """Task service adapter for the Asana REST API."""

    def __init__(self, client: httpx.AsyncClient, workspace_id: str | None = None) -> None:
        """Initialize the adapter with an already-initialized httpx client."""
        self.client = client
        self.workspace_id = workspace_id

    @classmethod
    def create(cls, access_token: str, api_url: str = DEFAULT_ASANA_API_URL, workspace_id: str | None = None, timeout: float = 30.0) -> Self:
        """Create a new Asana adapter with an authenticated httpx client."""
        logger.info("Creating client for Asana", api_url=api_url, workspace_id=workspace_id)
        client = httpx.AsyncClient(
            base_url=api_url.rstrip("/"),
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
            },
            timeout=httpx.Timeout(timeout, connect=10.0),
        )
        return cls(client, workspace_id=workspace_id)

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self.client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Send a request and return the decoded JSON envelope."""
        logger.debug("Asana API request", method=method, path=path)
        response = await self.client.request(method, path, **kwargs)
        if response.is_error:
            error = _error_from_response(response)
            logger.debug("Asana API error", method=method, path=path, status_code=response.status_code, message=error.message)
            raise error
        if not response.content:
            return {}
        return response.json()

    async def _paginate(self, path: str, params: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        """Yield every item of a paginated Asana collection."""
        params = {**params, "limit": ASANA_PAGE_LIMIT}
        while True:
            page = await self._get_page(path, params)
            for item in page.get("data") or []:
                yield item
            next_page = page.get("next_page")
            if not next_page or not next_page.get("offset"):
                break
            params = {**params, "offset": next_page["offset"]}

    @retry_on_rate_limit()
    async def _get_page(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        return await self._request("GET", path, params=params)

    # Task CRUD
    @handle_asana_400
    @retry_on_rate_limit()
    async def create_task(self, fields: dict[str, Any]) -> dict[str, Any]:
        """Create a task with the given fields."""
        envelope = await self._request("POST", "/tasks", params={"opt_fields": ",".join(TASK_FIELDS)}, json={"data": fields})
        return envelope["data"]

    @handle_asana_400
    @retry_on_rate_limit()
    async def update_task(self, task_id: str, fields: dict[str, Any]) -> dict[str, Any]:
        """Update a task with the given fields."""
        envelope = await self._request("PUT", f"/tasks/{task_id}", params={"opt_fields": ",".join(TASK_FIELDS)}, json={"data": fields})
        return envelope["data"]

    @retry_on_rate_limit()
    async def get_task(self, task_id: str) -> dict[str, Any]:
        """Get a task, raising TaskNotFoundError if it does not exist."""
        envelope = await self._request("GET", f"/tasks/{task_id}", params={"opt_fields": ",".join(TASK_FIELDS)})
        return envelope["data"]

    # Task lookup
    async def search_tasks(self, project_id: str, field_id: str, value: str) -> list[dict[str, Any]]:
        """Search a project for tasks whose text custom field equals a value.

        Uses the workspace search endpoint when a workspace is configured, otherwise
        pages through the project's tasks and compares the field value locally.
        """
        if self.workspace_id:
            envelope = await self._get_page(
                f"/workspaces/{self.workspace_id}/tasks/search",
                {
                    "projects.any": project_id,
                    f"custom_fields.{field_id}.value": value,
                    "opt_fields": ",".join(SEARCH_FIELDS),
                },
            )
            return list(envelope.get("data") or [])

        matches: list[dict[str, Any]] = []
        async for task in self.iter_project_tasks(project_id, SEARCH_FIELDS):
            for custom_field in task.get("custom_fields") or []:
                if custom_field.get("gid") == field_id and custom_field.get("text_value") == value:
                    matches.append(task)
                    break
        return matches

    async def iter_project_tasks(self, project_id: str, opt_fields: list[str]) -> AsyncIterator[dict[str, Any]]:
        """Iterate over every task in a project."""
        async for task in self._paginate(f"/projects/{project_id}/tasks", {"opt_fields": ",".join(opt_fields)}):
            yield task

    # Attachments
    @retry_on_rate_limit()
    async def create_attachment(self, task_id: str, content: bytes, filename: str, content_type: str) -> dict[str, Any]:
        """Upload a file and attach it to a task."""
        logger.debug("Uploading attachment", task_id=task_id, filename=filename, size=len(content), content_type=content_type)
        envelope = await self._request(
            "POST",
            "/attachments",
            data={"parent": task_id, "resource_subtype": "asana"},
            files={"file": (filename, content, content_type)},
        )
        return envelope["data"]

    async def list_attachments(self, task_id: str) -> list[dict[str, Any]]:
        """List the attachments of a task."""
        return [attachment async for attachment in self._paginate("/attachments", {"parent": task_id, "opt_fields": "gid,name"})]

    # Activity log
    async def list_activity(self, task_id: str) -> list[dict[str, Any]]:
        """List the activity log entries (stories) of a task."""
        return [story async for story in self._paginate(f"/tasks/{task_id}/stories", {"opt_fields": "gid,resource_subtype,text,created_at"})]

    @retry_on_rate_limit()
    async def delete_activity(self, entry_id: str) -> None:
        """Delete an activity log entry."""
        await self._request("DELETE", f"/stories/{entry_id}")

    # Custom fields
    @retry_on_rate_limit()
    async def get_field(self, field_id: str) -> dict[str, Any]:
        """Get a custom field together with its enum options."""
        envelope = await self._request("GET", f"/custom_fields/{field_id}", params={"opt_fields": "gid,name,enum_options,enum_options.name"})
        return envelope["data"]

    @retry_on_rate_limit()
    async def create_field_option(self, field_id: str, name: str, color: str) -> dict[str, Any]:
        """Create a new enum option on a custom field."""
        envelope = await self._request("POST", f"/custom_fields/{field_id}/enum_options", json={"data": {"name": name, "color": color}})
        return envelope["data"]
