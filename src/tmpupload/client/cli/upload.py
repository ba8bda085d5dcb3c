"""Upload command for the tmpupload CLI.

Commands:
- upload: Upload a file and print its download link

Without --task-id the command shows a progress line on the terminal.
With --task-id (or --status-file) it runs as a worker for another
process and reports through the task status file instead.
"""

from __future__ import annotations

import logging
import os
import sys
import time
from pathlib import Path
from typing import NoReturn

import click

from tmpupload.client.cli.config import load_config, resolve
from tmpupload.core.types import FileValidity

logger = logging.getLogger(__name__)

# Largest file accepted by the service
MAX_FILE_SIZE = 50 * 1024 * 1024 * 1024  # 50 GB

MODEL_CHOICES = [str(v.value) for v in FileValidity]


def setup_logging(debug: bool, log_path: Path | None = None) -> None:
    """Configure the tmpupload logger.

    Args:
        debug: Log at DEBUG level instead of WARNING.
        log_path: Optional file receiving the same records.
    """
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    formatter = logging.Formatter(log_format)

    root_logger = logging.getLogger("tmpupload")
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(logging.DEBUG if debug else logging.WARNING)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(formatter)
    root_logger.addHandler(stderr_handler)

    if log_path is not None:
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)


def format_size(size: int) -> str:
    """Format a byte count for display."""
    if size < 1024:
        return f"{size}B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f}KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f}MB"
    return f"{size / (1024 * 1024 * 1024):.1f}GB"


def format_speed(kb_per_second: float) -> str:
    """Format a KB/s rate for display."""
    if kb_per_second >= 1024:
        return f"{kb_per_second / 1024:.1f} MB/s"
    return f"{kb_per_second:.1f} KB/s"


class ProgressLine:
    """Single-line terminal progress display."""

    def __init__(self, file_name: str, file_size: int) -> None:
        from tmpupload.client.upload.progress import SpeedCalculator

        self._file_name = file_name
        self.speed = SpeedCalculator(file_size)
        self._last_len = 0

    def __call__(self, uploaded_bytes: int, total_bytes: int) -> None:
        percent = uploaded_bytes / total_bytes * 100 if total_bytes else 100.0
        rate = self.speed.update(uploaded_bytes)
        line = (
            f"Uploading {self._file_name}: {percent:5.1f}% "
            f"({format_size(uploaded_bytes)}/{format_size(total_bytes)}) "
            f"{format_speed(rate)}"
        )
        padding = " " * max(0, self._last_len - len(line))
        click.echo(f"\r{line}{padding}", nl=False)
        self._last_len = len(line)

    def clear(self) -> None:
        if self._last_len:
            click.echo("\r" + " " * self._last_len + "\r", nl=False)
            self._last_len = 0


@click.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--token", default=None, help="API token (defaults to the saved token).")
@click.option("--task-id", default=None, help="Task id; enables worker mode.")
@click.option("--status-file", type=click.Path(path_type=Path), default=None,
              help="Task status file (default: <task-id>_status.json).")
@click.option("--chunk-size", type=click.IntRange(1, 99), default=3, show_default=True,
              help="Chunk size in MB.")
@click.option("--model", type=click.Choice(MODEL_CHOICES), default=None,
              help="Validity: 0=24h, 1=3 days, 2=7 days, 99=permanent.")
@click.option("--mr-id", default=None, help="Destination folder id (0 = root).")
@click.option("--quick-upload/--no-quick-upload", default=True, show_default=True,
              help="Skip the upload when the server already has the file.")
@click.option("--upload-server", default=None, help="Force an upload server URL.")
@click.option("--server-name", default=None, help="Upload server name for display.")
@click.option("--timeout", type=float, default=None, help="Abort the upload after N seconds.")
@click.option("--debug", is_flag=True, help="Verbose logging to stderr and api_requests.log.")
def upload(
    file: Path,
    token: str | None,
    task_id: str | None,
    status_file: Path | None,
    chunk_size: int,
    model: str | None,
    mr_id: str | None,
    quick_upload: bool,
    upload_server: str | None,
    server_name: str | None,
    timeout: float | None,
    debug: bool,
) -> None:
    """Upload FILE and print its download link."""
    from tmpupload.client.api import APIError, HTTPClient
    from tmpupload.client.status import TaskStatus, TaskStatusFile
    from tmpupload.client.upload import (
        CancellationToken,
        FileUploader,
        UploadError,
    )
    from tmpupload.core.config import ServerConfig, UploadConfig

    setup_logging(debug, Path("api_requests.log") if debug else None)

    saved = load_config()
    final_token = resolve(token, "token", saved)
    final_model = int(resolve(model, "model", saved))
    final_mr_id = str(resolve(mr_id, "mr_id", saved))

    if not final_token:
        click.echo(
            "Error: No token given. Use --token or 'tmpupload config set --token'.",
            err=True,
        )
        sys.exit(1)

    worker_mode = task_id is not None or status_file is not None
    if task_id is None:
        task_id = f"upload_{int(time.time())}"
    if status_file is None:
        status_file = Path(f"{task_id}_status.json")

    file_size = file.stat().st_size
    if file_size > MAX_FILE_SIZE:
        click.echo(
            f"Error: File is {file_size / (1024 ** 3):.1f}GB, the limit is 50GB.",
            err=True,
        )
        sys.exit(1)

    upload_config = UploadConfig.from_megabytes(
        chunk_size,
        model=final_model,
        mr_id=final_mr_id,
        quick_upload=quick_upload,
        upload_server=upload_server or None,
    )
    logger.debug(f"Uploading {file} with chunk size {upload_config.chunk_size} bytes")

    status: TaskStatusFile | None = None
    if worker_mode:
        status = TaskStatusFile(
            status_file,
            TaskStatus(
                id=task_id,
                file_path=str(file),
                file_name=file.name,
                file_size=file_size,
                server_name=server_name,
                process_id=os.getpid(),
            ),
        )

    def fail(message: str) -> NoReturn:
        if status is not None:
            status.fail(message)
        click.echo(f"Error: {message}", err=True)
        sys.exit(1)

    started = time.monotonic()
    with HTTPClient(ServerConfig(token=final_token)) as client:
        try:
            uid = client.validate_token()
        except APIError as e:
            fail(f"Token validation failed: {e}")
        logger.debug(f"Token valid for uid {uid}")

        progress_line: ProgressLine | None = None
        if status is not None:
            status.start()
            on_progress = status.on_progress
        else:
            progress_line = ProgressLine(file.name, file_size)
            on_progress = progress_line

        uploader = FileUploader(client, upload_config)
        try:
            result = uploader.upload_file(
                file,
                progress_callback=on_progress,
                cancel=CancellationToken(timeout),
            )
        except UploadError as e:
            if progress_line is not None:
                progress_line.clear()
            fail(f"Upload of {file.name} failed: {e}")
        except Exception as e:
            if status is not None:
                status.fail(f"Unexpected error during upload: {e}")
            raise

    if status is not None:
        status.complete(result.download_url)
        return

    assert progress_line is not None
    progress_line.clear()
    elapsed = time.monotonic() - started
    click.echo("Upload complete")
    click.echo(f"File: {file.name}")
    click.echo(f"Size: {format_size(file_size)}")
    if result.quick_upload:
        click.echo("Quick upload: the server already had this file")
    click.echo(f"Average speed: {format_speed(progress_line.speed.final_speed())}")
    click.echo(f"Total time: {elapsed:.0f}s")
    click.echo(f"Download link: {result.download_url}")
