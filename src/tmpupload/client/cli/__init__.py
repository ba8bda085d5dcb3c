"""Command-line interface for tmpupload.

This module provides the main CLI entry point and assembles all commands.

Commands:
- upload: Upload a file (interactive or as a worker writing a status file)
- status: Show or follow a task status file
- config set / config show: Manage saved preferences
"""

from __future__ import annotations

import click

from tmpupload.client.cli.config import (
    get_config_dir,
    get_config_file,
    load_config,
    save_config,
)
from tmpupload.client.cli.preferences import config
from tmpupload.client.cli.status import status
from tmpupload.client.cli.upload import upload


@click.group()
@click.version_option()
def cli() -> None:
    """tmpupload - Resumable chunked uploads to TmpLink."""


cli.add_command(upload)
cli.add_command(status)
cli.add_command(config)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    "cli",
    "main",
    "get_config_dir",
    "get_config_file",
    "load_config",
    "save_config",
]
