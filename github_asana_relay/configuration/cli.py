"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import json
import logging
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from github_asana_relay.configuration.env import Settings, load_settings
from github_asana_relay.configuration.exceptions import RequiredConfigurationElementError
from github_asana_relay.state.store import CoordinatorStateStore
from github_asana_relay.synchronize.driver import run_relay_event
from github_asana_relay.synchronize.exceptions import EventPayloadError

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="Relay GitHub issue and pull request events into Asana tasks.")


def configure_logging(debug: bool = False) -> None:
    """Configure structlog for console output at INFO, or DEBUG when requested."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG if debug else logging.INFO),
        cache_logger_on_first_use=True,
    )


@typer_app.callback()
def main_callback(
    ctx: typer.Context,
    debug: Annotated[bool, Option(envvar="DEBUG", help="Enable debug logging.")] = False,
) -> None:
    """Configure logging and load settings for every command."""
    configure_logging(debug)
    ctx.ensure_object(dict)
    ctx.obj["settings"] = load_settings()


@typer_app.command(name="relay-event")
def relay_event_cli(
    ctx: typer.Context,
    event_type: Annotated[str, Argument(help="GitHub event type, as sent in the X-GitHub-Event header.")],
    payload_path: Annotated[Path, Argument(help="Path to a JSON file holding the webhook payload.")],
) -> None:
    """Relay a saved webhook delivery into Asana and print the response."""
    if not payload_path.exists():
        typer.echo(f"Payload file not found: {payload_path.absolute()}", err=True)
        raise typer.Exit(1)
    try:
        payload = json.loads(payload_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        typer.echo(f"Payload file is not valid JSON: {exc}", err=True)
        raise typer.Exit(1) from exc

    settings: Settings = ctx.obj["settings"]
    try:
        response = asyncio.run(run_relay_event(settings, event_type, payload))
    except (RequiredConfigurationElementError, EventPayloadError) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(1) from exc
    except Exception as exc:
        typer.echo(json.dumps({"status": "failed", "error": str(exc), "errorType": type(exc).__name__}, indent=2), err=True)
        raise typer.Exit(1) from exc
    typer.echo(json.dumps(response, indent=2))


@typer_app.command(name="show-state")
def show_state_cli(
    ctx: typer.Context,
    url: Annotated[str, Argument(help="Canonical GitHub URL of the issue or pull request.")],
) -> None:
    """Print the cached Asana task id for an entity."""
    settings: Settings = ctx.obj["settings"]

    async def show_state() -> str | None:
        store = CoordinatorStateStore(settings.STATE_DB_PATH)
        try:
            return await store.get_remote_task_id(url)
        finally:
            await store.close()

    task_id = asyncio.run(show_state())
    if task_id is None:
        typer.echo(f"No cached task for {url}")
        raise typer.Exit(1)
    typer.echo(task_id)


@typer_app.command(name="forget-state")
def forget_state_cli(
    ctx: typer.Context,
    url: Annotated[str, Argument(help="Canonical GitHub URL of the issue or pull request.")],
) -> None:
    """Clear the cached Asana task id for an entity so the next sync searches again."""
    settings: Settings = ctx.obj["settings"]

    async def forget_state() -> bool:
        store = CoordinatorStateStore(settings.STATE_DB_PATH)
        try:
            return await store.clear(url)
        finally:
            await store.close()

    if asyncio.run(forget_state()):
        typer.echo(f"Forgot cached task for {url}")
    else:
        typer.echo(f"No cached task for {url}")


if __name__ == "__main__":
    typer_app()
