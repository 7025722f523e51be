"""
Configuration management CLI commands.
"""

import json
from pathlib import Path
from typing import Any, Dict

import click
import yaml

from ...config import settings
from ...config.logging_config import get_logger

logger = get_logger(__name__)


@click.group(name='config')
def config_group():
    """Configuration management commands."""
    pass


def _config_data(include_secrets: bool) -> Dict[str, Any]:
    return {
        'app': {
            'name': settings.APP_NAME,
            'version': settings.APP_VERSION,
            'environment': settings.ENVIRONMENT.value,
            'debug': settings.DEBUG,
        },
        'api': {
            'host': settings.API_HOST,
            'port': settings.API_PORT,
            'prefix': settings.API_PREFIX,
        },
        'downloads': {
            'dir': str(settings.DOWNLOADS_DIR),
            'url_path': settings.DOWNLOADS_URL_PATH,
            'ytdlp_binary': settings.YTDLP_BINARY,
            'archive_name_prefix': settings.ARCHIVE_NAME_PREFIX,
        },
        'queue': {
            'max_concurrent_downloads': settings.MAX_CONCURRENT_DOWNLOADS,
            'default_video_quality': settings.DEFAULT_VIDEO_QUALITY.value,
        },
        'executor': {
            'base_url': settings.EXECUTOR_BASE_URL,
            'request_timeout': settings.EXECUTOR_REQUEST_TIMEOUT,
            'completion_check': settings.EXECUTOR_COMPLETION_CHECK,
            'poll_interval': settings.EXECUTOR_POLL_INTERVAL,
            'completion_timeout': settings.EXECUTOR_COMPLETION_TIMEOUT,
        },
        'youtube': {
            'api_key': (settings.YOUTUBE_API_KEY if include_secrets else '[HIDDEN]') if settings.YOUTUBE_API_KEY else None,
            'channel_url': settings.YOUTUBE_CHANNEL_URL,
        },
        'logging': {
            'level': settings.LOG_LEVEL.value,
            'file': str(settings.LOG_FILE) if settings.LOG_FILE else None,
        },
    }


@config_group.command()
@click.option(
    '--format',
    type=click.Choice(['json', 'yaml', 'env']),
    default='yaml',
    help='Output format'
)
@click.option(
    '--output', '-o',
    type=click.Path(),
    help='Output file (default: stdout)'
)
@click.option(
    '--include-secrets',
    is_flag=True,
    help='Include sensitive configuration values'
)
def show(format: str, output: str, include_secrets: bool):
    """Show current configuration."""
    config_data = _config_data(include_secrets)

    if format == 'json':
        output_text = json.dumps(config_data, indent=2)
    elif format == 'yaml':
        output_text = yaml.dump(config_data, default_flow_style=False, indent=2)
    else:
        output_text = _dict_to_env(config_data)

    if output:
        Path(output).write_text(output_text)
        click.echo(f"✅ Configuration written to {output}")
    else:
        click.echo(output_text)


def _dict_to_env(data: Dict[str, Any], prefix: str = '') -> str:
    """Convert nested dict to environment variable format."""
    lines = []

    for key, value in data.items():
        env_key = f"{prefix}{key.upper()}" if prefix else key.upper()

        if isinstance(value, dict):
            lines.extend(_dict_to_env(value, f"{env_key}_").split('\n'))
        else:
            lines.append(f"{env_key}={'' if value is None else value}")

    return '\n'.join(lines)
