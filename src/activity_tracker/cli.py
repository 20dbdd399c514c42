"""Main CLI entry point for activity-tracker."""

import asyncio
import dataclasses
import json
from pathlib import Path

import typer
import yaml
from dotenv import load_dotenv

from activity_tracker.config import TrackerConfig, get_config_path, load_tracker_config
from activity_tracker.constants import VERSION
from activity_tracker.exceptions import ConfigurationError
from activity_tracker.logging_config import configure_logging
from activity_tracker.notifications import ConsoleNotifier
from activity_tracker.session import ActivitySession
from activity_tracker.sync.models import FlushResult
from activity_tracker.utils import (
    console,
    print_error,
    print_header,
    print_info,
    print_success,
    print_warning,
)
from activity_tracker.watcher import SaveWatcher, project_name_for

# Load .env file from current directory if it exists
load_dotenv(Path.cwd() / ".env", verbose=False)

app = typer.Typer(
    name="activity-tracker",
    help="Capture coding activity and sync it to a remote activity log.",
    no_args_is_help=True,
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"activity-tracker {VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Capture coding activity and sync it to a remote activity log."""


def _load(project_root: Path, log_file: Path | None = None) -> TrackerConfig:
    config = load_tracker_config(project_root)
    configure_logging(config.get_effective_log_level(), log_file, config.log_rotation)
    return config


def _without_supervisor(config: TrackerConfig) -> TrackerConfig:
    """Copy of the config for one-shot commands that must not schedule syncs."""
    return dataclasses.replace(
        config, supervisor=dataclasses.replace(config.supervisor, enabled=False)
    )


def _print_flush_result(result: FlushResult) -> None:
    if result.records_written:
        print_success(
            f"Synced {result.records_written} activities "
            f"for {len(result.projects_written)} project(s)"
        )
    for project, error in result.errors.items():
        print_error(f"{project}: {error}")
    if result.records_dropped:
        print_warning(f"{result.records_dropped} activities could not be synced and were dropped")


async def _activate(session: ActivitySession) -> None:
    try:
        await session.activate()
    except ConfigurationError:
        await session.client.aclose()
        raise


async def _watch(project_root: Path, config: TrackerConfig, project: str | None) -> FlushResult:
    session = ActivitySession.from_project(project_root, ConsoleNotifier(), config)
    await _activate(session)
    session.start()

    watcher = SaveWatcher(project_root, session, asyncio.get_running_loop(), project)
    watcher.start()
    try:
        await asyncio.Event().wait()
    finally:
        await watcher.stop()
        result = await session.aclose()
    return result


@app.command("watch")
def watch(
    path: Path = typer.Argument(Path("."), help="Workspace directory to track"),
    project: str | None = typer.Option(
        None,
        "--project",
        "-p",
        help="Project name for the activity log (defaults to the folder name)",
    ),
    log_file: Path | None = typer.Option(
        None,
        "--log-file",
        help="Write logs to this file (rotated) instead of stderr",
    ),
) -> None:
    """Track saved files in a workspace until interrupted.

    \b
    Examples:
        activity-tracker watch
        activity-tracker watch ~/code/api --project api
    """
    project_root = path.resolve()
    config = _load(project_root, log_file)

    print_header("Activity Tracker")
    print_info(f"Workspace: {project_root}")
    print_info(f"Destination: {config.remote.backend}:{config.remote.repository}")
    console.print("Press Ctrl+C to stop.")

    try:
        asyncio.run(_watch(project_root, config, project))
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except KeyboardInterrupt:
        print_info("Stopped")


async def _push(project_root: Path, config: TrackerConfig, file: Path, project: str) -> FlushResult:
    session = ActivitySession.from_project(project_root, ConsoleNotifier(), config)
    await _activate(session)
    session.start()
    text = await asyncio.to_thread(file.read_text, encoding="utf-8")
    await session.on_save_event(str(file), text, project)
    return await session.aclose()


@app.command("push")
def push(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="File to record"),
    project: str | None = typer.Option(
        None,
        "--project",
        "-p",
        help="Project name for the activity log (defaults to the current folder name)",
    ),
) -> None:
    """Record one file as a new activity and sync it immediately."""
    project_root = Path.cwd()
    config = _without_supervisor(_load(project_root))
    project_name = project or project_name_for(project_root)

    try:
        result = asyncio.run(_push(project_root, config, file.resolve(), project_name))
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e
    except (OSError, UnicodeDecodeError) as e:
        print_error(f"Could not read {file}: {e}")
        raise typer.Exit(code=1) from e

    _print_flush_result(result)
    if not result.success:
        raise typer.Exit(code=1)


async def _verify(project_root: Path, config: TrackerConfig) -> str | None:
    session = ActivitySession.from_project(project_root, ConsoleNotifier(), config)
    await _activate(session)
    identity = session.identity
    await session.aclose()
    return identity


@app.command("verify")
def verify(
    path: Path = typer.Argument(Path("."), help="Workspace directory"),
) -> None:
    """Check the credential and the destination repository."""
    project_root = path.resolve()
    config = _without_supervisor(_load(project_root))

    try:
        identity = asyncio.run(_verify(project_root, config))
    except ConfigurationError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from e

    print_success(f"Remote ready: {config.remote.backend}:{config.remote.repository}")
    if config.uses_github:
        print_info(f"Authenticated to GitHub as {identity}")
    else:
        print_info(f"Local store: {identity}")


@app.command("config")
def show_config(
    path: Path = typer.Argument(Path("."), help="Workspace directory"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show the effective configuration."""
    project_root = path.resolve()
    config = load_tracker_config(project_root)
    data = config.to_dict()
    if data["remote"].get("token"):
        data["remote"]["token"] = "***"

    if as_json:
        console.print_json(json.dumps(data))
        return

    config_file = get_config_path(project_root)
    source = str(config_file) if config_file.exists() else "defaults"
    print_info(f"Configuration ({source}):")
    console.print(yaml.safe_dump(data, default_flow_style=False, sort_keys=False))


def main() -> None:
    """Console script entry point."""
    app()


if __name__ == "__main__":
    main()
