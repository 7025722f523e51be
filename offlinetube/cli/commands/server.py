"""
Server management CLI commands.
"""

import sys

import click
import uvicorn

from ...config import settings
from ...config.logging_config import get_logger

logger = get_logger(__name__)


@click.group(name='server')
def server_group():
    """Server management commands."""
    pass


@server_group.command()
@click.option(
    '--host',
    default=settings.API_HOST,
    help=f'Host to bind to (default: {settings.API_HOST})'
)
@click.option(
    '--port',
    type=int,
    default=settings.API_PORT,
    help=f'Port to bind to (default: {settings.API_PORT})'
)
@click.option(
    '--reload',
    is_flag=True,
    help='Enable auto-reload for development'
)
@click.option(
    '--log-level',
    type=click.Choice(['debug', 'info', 'warning', 'error']),
    default='info',
    help='Log level'
)
def start(host: str, port: int, reload: bool, log_level: str):
    """
    Start the API server.

    The queue lives in this process, so a single worker is always used.
    """
    click.echo(f"🚀 Starting OfflineTube on {host}:{port}")

    config = uvicorn.Config(
        app="offlinetube.api.main:app",
        host=host,
        port=port,
        workers=1,
        reload=reload,
        log_level=log_level,
        access_log=True,
        server_header=False,
    )
    server = uvicorn.Server(config)

    click.echo(f"📡 Server running at http://{host}:{port}")
    if settings.DEBUG:
        click.echo(f"📚 API docs available at http://{host}:{port}{settings.API_DOCS_URL}")
    click.echo("Press Ctrl+C to stop")

    try:
        server.run()
    except OSError as exc:
        click.echo(f"❌ Failed to start server: {exc}", err=True)
        logger.error(f"Server start failed: {exc}", exc_info=True)
        sys.exit(1)
