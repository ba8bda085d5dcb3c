"""Status command for the tmpupload CLI.

Commands:
- status: Show (or follow) a task status file written by an upload worker
"""

from __future__ import annotations

import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from tmpupload.client.cli.upload import format_size, format_speed
from tmpupload.core.types import TaskState

if TYPE_CHECKING:
    from tmpupload.client.status import TaskStatus


def describe_task(task: TaskStatus) -> str:
    """Render one task record as a single line."""
    line = f"[{task.status.value}] {task.file_name} ({format_size(task.file_size)})"
    if task.status == TaskState.UPLOADING:
        line += f" {task.progress:.1f}% {format_speed(task.upload_speed)}"
    elif task.status == TaskState.COMPLETED and task.download_url:
        line += f" {task.download_url}"
    elif task.status == TaskState.FAILED and task.error_msg:
        line += f" {task.error_msg}"
    return line


@click.command()
@click.argument("status_file", type=click.Path(path_type=Path))
@click.option("--watch", "-w", is_flag=True, help="Follow the task until it finishes.")
@click.option("--interval", type=float, default=1.0, show_default=True,
              help="Seconds between reads in watch mode.")
def status(status_file: Path, watch: bool, interval: float) -> None:
    """Show the state of the upload task recorded in STATUS_FILE."""
    from tmpupload.client.status import read_task_status, watch_task_status

    if watch:
        last = None
        for task in watch_task_status(status_file, interval=interval):
            click.echo(describe_task(task))
            last = task
        if last is not None and last.status == TaskState.FAILED:
            sys.exit(1)
        return

    task = read_task_status(status_file)
    if task is None:
        click.echo(f"No status available in {status_file}", err=True)
        sys.exit(1)
    click.echo(describe_task(task))
    if task.status == TaskState.FAILED:
        sys.exit(1)
