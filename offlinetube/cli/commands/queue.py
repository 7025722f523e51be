"""
Download queue CLI commands, talking to a running server.
"""

import asyncio
import json
from typing import Any, Dict, Optional

import aiohttp
import click
from rich.console import Console
from rich.table import Table

from ...config import settings
from ...config.logging_config import get_logger
from ...utils.constants import USER_AGENT

logger = get_logger(__name__)
console = Console()

STATUS_STYLES = {
    'queued': '[blue]⏳ Queued[/blue]',
    'starting': '[cyan]🚀 Starting[/cyan]',
    'in_progress': '[yellow]⚡ Downloading[/yellow]',
    'ready': '[green]✅ Ready[/green]',
    'error': '[red]❌ Error[/red]',
    'paused': '[dim]⏸ Paused[/dim]',
}


def _queue_url(server: str, path: str = '') -> str:
    return f"{server.rstrip('/')}{settings.API_PREFIX}/queue{path}"


async def _request(method: str, url: str) -> Dict[str, Any]:
    timeout = aiohttp.ClientTimeout(total=settings.EXECUTOR_REQUEST_TIMEOUT)
    async with aiohttp.ClientSession(timeout=timeout, headers={"User-Agent": USER_AGENT}) as session:
        async with session.request(method, url) as response:
            body = await response.json(content_type=None)
            if response.status >= 400:
                message = body.get('message') if isinstance(body, dict) else None
                raise click.ClickException(message or f"Server answered HTTP {response.status}")
            return body


def _call(method: str, url: str) -> Dict[str, Any]:
    try:
        return asyncio.run(_request(method, url))
    except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
        logger.error(f"Queue request to {url} failed: {exc}")
        raise click.ClickException(f"Could not reach server at {url}: {exc}")


@click.group(name='queue')
def queue_group():
    """Download queue commands."""
    pass


@queue_group.command(name='list')
@click.option(
    '--server',
    default=settings.EXECUTOR_BASE_URL,
    help='Base URL of the running server'
)
@click.option(
    '--status',
    type=click.Choice(sorted(STATUS_STYLES)),
    help='Filter by task status'
)
@click.option(
    '--json-output',
    is_flag=True,
    help='Output in JSON format'
)
def list_tasks(server: str, status: Optional[str], json_output: bool):
    """List queued downloads."""
    snapshot = _call('GET', _queue_url(server))
    tasks = [task for task in snapshot.get('tasks', []) if status is None or task['status'] == status]

    if json_output:
        click.echo(json.dumps({**snapshot, 'tasks': tasks}, indent=2))
        return

    if not tasks:
        console.print("📭 The download queue is empty.")
        return

    table = Table(
        title=(
            f"Download queue ({len(tasks)} tasks, {snapshot.get('in_flight', 0)}/"
            f"{snapshot.get('budget', 0)} in flight, {snapshot.get('overall_progress', 0)}% overall)"
        )
    )
    table.add_column("Video", style="cyan", no_wrap=True)
    table.add_column("Title", style="white")
    table.add_column("Quality", style="blue")
    table.add_column("Status")
    table.add_column("Progress", style="magenta")
    table.add_column("Details", style="dim")

    for task in tasks:
        title = task['title']
        details = task.get('error_message') or task.get('filename') or ''
        table.add_row(
            task['id'],
            title[:40] + "..." if len(title) > 40 else title,
            task['selected_quality'],
            STATUS_STYLES.get(task['status'], task['status']),
            f"{task['progress']}%",
            details,
        )

    console.print(table)


@queue_group.command(name='clear-finished')
@click.option(
    '--server',
    default=settings.EXECUTOR_BASE_URL,
    help='Base URL of the running server'
)
def clear_finished(server: str):
    """Remove ready and failed tasks from the queue."""
    result = _call('POST', _queue_url(server, '/clear-finished'))
    click.echo(f"🧹 {result.get('message', 'Finished tasks cleared')}")
