"""Command line interface for GitLab Storage Moves."""

import asyncio
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

import click
import httpx
from rich.console import Console
from rich.table import Table

from . import __version__
from .api_clients.base_client import APIClientError, GitLabAPIClient
from .api_clients.models import VisibilityValue
from .api_clients.snippet_repository_storage_moves import (
    RetrieveAllSnippetStorageMovesOptions,
    ScheduleSnippetStorageMoveOptions,
    SnippetRepositoryStorageMove,
)
from .config import Config, ConfigManager, GitLabConfig, create_client

console = Console()

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run a coroutine whether or not an event loop is already running.

    Click commands are synchronous; tests may invoke them from inside a
    running loop, in which case the coroutine runs on a separate thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)

    result = None
    exception = None

    def run_in_new_loop():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    thread = threading.Thread(target=run_in_new_loop)
    thread.start()
    thread.join()

    if exception:
        raise exception
    return result


def _get_client(ctx) -> GitLabAPIClient:
    config_manager: ConfigManager = ctx.obj["config_manager"]
    try:
        config = config_manager.load()
    except ValueError as e:
        console.print(f"❌ {e}", style="red")
        sys.exit(1)
    return create_client(config)


def _format_time(value) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def _format_visibility(value) -> str:
    return value.value if isinstance(value, VisibilityValue) else value


def _display_moves(moves: List[SnippetRepositoryStorageMove]) -> None:
    if not moves:
        console.print("No snippet repository storage moves found", style="yellow")
        return

    table = Table(title="Snippet Repository Storage Moves")
    table.add_column("ID", justify="right")
    table.add_column("Snippet", justify="right")
    table.add_column("State")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Created")

    for move in moves:
        table.add_row(
            str(move.id),
            str(move.snippet.id),
            move.state,
            move.source_storage_name,
            move.destination_storage_name,
            _format_time(move.created_at),
        )
    console.print(table)


def _display_move(move: SnippetRepositoryStorageMove) -> None:
    table = Table(title=f"Storage Move {move.id}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    table.add_row("State", move.state)
    table.add_row("Source", move.source_storage_name)
    table.add_row("Destination", move.destination_storage_name)
    table.add_row("Created", _format_time(move.created_at))
    table.add_row("Snippet ID", str(move.snippet.id))
    table.add_row("Snippet title", move.snippet.title)
    table.add_row("Visibility", _format_visibility(move.snippet.visibility))
    table.add_row("Project ID", str(move.snippet.project_id))
    table.add_row("Web URL", move.snippet.web_url)
    console.print(table)


async def _run_with_client(client: GitLabAPIClient, operation):
    """Run ``operation(client)`` and always close the client."""
    async with client:
        return await operation(client)


def _execute(ctx, operation):
    """Run an API operation, reporting failures and exiting non-zero."""
    client = _get_client(ctx)
    try:
        return run_async(_run_with_client(client, operation))
    except APIClientError as e:
        console.print(f"❌ GitLab API error: {e}", style="red")
        sys.exit(1)
    except httpx.HTTPError as e:
        console.print(f"❌ Request to GitLab failed: {e}", style="red")
        sys.exit(1)


@click.group()
@click.option("--config", "-c", type=click.Path(exists=False), help="Config file path")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__, prog_name="gl-storage-moves")
@click.pass_context
def cli(ctx, config: Optional[str], verbose: bool):
    """Inspect and schedule GitLab snippet repository storage moves.

    \b
    CONFIGURATION:
      Config file: .gitlab-storage-moves/config.json
      Environment: GITLAB_URL, GITLAB_TOKEN (override the config file)

    \b
    EXAMPLES:
      gl-storage-moves list
      gl-storage-moves list --snippet 42
      gl-storage-moves show 7 --snippet 42
      gl-storage-moves schedule 42 --destination storage2
      gl-storage-moves schedule-all --source default --destination storage2
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s:%(name)s:%(message)s",
    )
    if not verbose:
        logging.getLogger("httpx").setLevel(logging.WARNING)

    ctx.obj["config_manager"] = ConfigManager(Path(config) if config else None)


@cli.command()
@click.option("--url", required=True, help="GitLab instance URL")
@click.option("--token", help="Personal access token (prefer GITLAB_TOKEN)")
@click.option("--timeout", type=float, default=30.0, help="Read timeout in seconds")
@click.option("--force", "-f", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init(ctx, url: str, token: Optional[str], timeout: float, force: bool):
    """Write a configuration file."""
    config_manager: ConfigManager = ctx.obj["config_manager"]
    if config_manager.config_path.exists() and not force:
        console.print(
            f"❌ Configuration already exists at {config_manager.config_path}. "
            "Use --force to overwrite.",
            style="red",
        )
        sys.exit(1)

    try:
        config = Config(gitlab=GitLabConfig(url=url, token=token, timeout=timeout))
    except ValueError as e:
        console.print(f"❌ Invalid configuration: {e}", style="red")
        sys.exit(1)

    config_manager.save(config)
    console.print(f"✅ Configuration saved to {config_manager.config_path}", style="green")


@cli.command("list")
@click.option("--snippet", "snippet_id", type=int, help="Only moves for this snippet")
@click.option("--page", type=int, help="Page number")
@click.option("--per-page", type=int, help="Items per page")
@click.pass_context
def list_moves(
    ctx, snippet_id: Optional[int], page: Optional[int], per_page: Optional[int]
):
    """List snippet repository storage moves."""
    opts = RetrieveAllSnippetStorageMovesOptions(page=page, per_page=per_page)

    async def operation(client: GitLabAPIClient):
        service = client.snippet_repository_storage_moves
        if snippet_id is not None:
            return await service.retrieve_all_storage_moves_for_snippet(
                snippet_id, opts
            )
        return await service.retrieve_all_snippet_storage_moves(opts)

    moves, response = _execute(ctx, operation)
    _display_moves(moves)
    if response.next_page:
        console.print(
            f"Page {response.current_page} of {response.total_pages or '?'}; "
            f"next page: {response.next_page}",
            style="dim",
        )


@cli.command()
@click.argument("move_id", type=int)
@click.option("--snippet", "snippet_id", type=int, help="Snippet the move belongs to")
@click.pass_context
def show(ctx, move_id: int, snippet_id: Optional[int]):
    """Show a single snippet repository storage move."""

    async def operation(client: GitLabAPIClient):
        service = client.snippet_repository_storage_moves
        if snippet_id is not None:
            return await service.get_storage_move_for_snippet(snippet_id, move_id)
        return await service.get_snippet_storage_move(move_id)

    move, _ = _execute(ctx, operation)
    if move is None:
        console.print(f"Storage move {move_id} returned no data", style="yellow")
        return
    _display_move(move)


@cli.command()
@click.argument("snippet_id", type=int)
@click.option("--source", help="Source storage name")
@click.option("--destination", help="Destination storage name")
@click.pass_context
def schedule(ctx, snippet_id: int, source: Optional[str], destination: Optional[str]):
    """Schedule a repository storage move for a snippet."""
    opts = ScheduleSnippetStorageMoveOptions(
        source_storage_name=source, destination_storage_name=destination
    )

    async def operation(client: GitLabAPIClient):
        service = client.snippet_repository_storage_moves
        return await service.schedule_storage_move_for_snippet(snippet_id, opts)

    move, _ = _execute(ctx, operation)
    console.print(f"✅ Scheduled storage move for snippet {snippet_id}", style="green")
    if move is not None:
        _display_move(move)


@cli.command("schedule-all")
@click.option("--source", help="Source storage name")
@click.option("--destination", help="Destination storage name")
@click.pass_context
def schedule_all(ctx, source: Optional[str], destination: Optional[str]):
    """Schedule storage moves for all snippets on a storage shard."""
    opts = ScheduleSnippetStorageMoveOptions(
        source_storage_name=source, destination_storage_name=destination
    )

    async def operation(client: GitLabAPIClient):
        service = client.snippet_repository_storage_moves
        return await service.schedule_all_snippet_storage_moves(opts)

    response = _execute(ctx, operation)
    console.print(
        f"✅ Scheduled storage moves for all snippets (HTTP {response.status_code})",
        style="green",
    )


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
