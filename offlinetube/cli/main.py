"""
Main CLI entry point for OfflineTube.
"""

import sys

import click

from ..config import settings
from ..config.logging_config import setup_logging, get_logger
from .commands.config import config_group
from .commands.queue import queue_group
from .commands.server import server_group

logger = get_logger(__name__)


@click.group()
@click.version_option(version=settings.APP_VERSION, prog_name=settings.APP_NAME)
@click.option(
    '--verbose', '-v',
    count=True,
    help='Increase verbosity (use -v or -vv)'
)
@click.option(
    '--quiet', '-q',
    is_flag=True,
    help='Suppress output except errors'
)
@click.pass_context
def cli(ctx, verbose: int, quiet: bool):
    """
    OfflineTube CLI.

    Run the download server, inspect configuration and manage the download
    queue of a running server.
    """
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['quiet'] = quiet

    if quiet:
        log_level = 'ERROR'
    elif verbose >= 2:
        log_level = 'DEBUG'
    elif verbose == 1:
        log_level = 'INFO'
    else:
        log_level = settings.LOG_LEVEL.value

    setup_logging(log_level=log_level, log_file=settings.LOG_FILE, json_format=False)
    logger.debug(f"CLI initialized with verbosity level: {verbose}")


cli.add_command(config_group)
cli.add_command(queue_group)
cli.add_command(server_group)


@cli.command()
def version():
    """Show version information."""
    click.echo(f"{settings.APP_NAME} v{settings.APP_VERSION}")
    click.echo(f"Environment: {settings.ENVIRONMENT.value}")
    click.echo(f"Python: {sys.version}")
    click.echo(f"Platform: {sys.platform}")


def main():
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        click.echo("\n⚠️  Operation cancelled by user", err=True)
        sys.exit(130)


if __name__ == '__main__':
    main()
