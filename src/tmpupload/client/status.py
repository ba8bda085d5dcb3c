"""Task status file shared between an upload worker and its observers.

This module provides:
- TaskStatus: the persisted record of one upload task
- TaskStatusFile: single-writer side, atomic replace on every write
- read_task_status / watch_task_status: read-only observer side

Architecture:
    Upload worker (TaskStatusFile) ──json file──► Observer (watch_task_status)

Exactly one process writes a given file. Writes go to a temporary file
in the same directory followed by ``os.replace``, so observers see
either the previous or the new record, never a partial one.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import time
from collections.abc import Iterator
from dataclasses import asdict, dataclass, field, fields
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

from tmpupload.client.upload.progress import SpeedCalculator
from tmpupload.core.types import TaskState

if TYPE_CHECKING:
    from tmpupload.client.upload.cancellation import CancellationToken

logger = logging.getLogger(__name__)

# Observer polling interval in seconds
DEFAULT_WATCH_INTERVAL = 1.0


class TaskStateError(Exception):
    """A terminal task record was about to be modified."""


def _now() -> datetime:
    return datetime.now(UTC)


@dataclass
class TaskStatus:
    """Persisted status of one upload task.

    Attributes:
        id: Task identifier.
        status: Lifecycle state.
        file_path: Path of the uploaded file.
        file_name: Base name of the file.
        file_size: Size in bytes.
        progress: Percentage 0-100.
        upload_speed: Smoothed rate in KB/s.
        server_name: Display name of the upload server.
        process_id: PID of the writing process.
        download_url: Set once completed.
        error_msg: Set once failed.
        created_at: Creation time.
        updated_at: Time of the last write.
    """

    id: str
    file_path: str
    file_name: str
    file_size: int
    status: TaskState = TaskState.PENDING
    progress: float = 0.0
    upload_speed: float = 0.0
    server_name: str | None = None
    process_id: int | None = None
    download_url: str | None = None
    error_msg: str | None = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the JSON representation."""
        data = asdict(self)
        data["status"] = self.status.value
        data["created_at"] = self.created_at.isoformat()
        data["updated_at"] = self.updated_at.isoformat()
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TaskStatus:
        """Create from the JSON representation, ignoring unknown fields."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["status"] = TaskState(values.get("status", TaskState.PENDING.value))
        for key in ("created_at", "updated_at"):
            if key in values:
                values[key] = datetime.fromisoformat(values[key])
        return cls(**values)


def write_task_status(path: Path, task: TaskStatus) -> None:
    """Atomically replace the status file with ``task``."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(
        prefix=f".{path.name}.", suffix=".tmp", dir=path.parent
    )
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(task.to_dict(), f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_task_status(path: Path) -> TaskStatus | None:
    """Read a status file.

    Returns:
        The record, or None if the file is missing or cannot be parsed yet.
    """
    try:
        raw = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    try:
        data = json.loads(raw)
        if not isinstance(data, dict):
            return None
        return TaskStatus.from_dict(data)
    except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
        logger.debug(f"Unreadable status file {path}: {e}")
        return None


def watch_task_status(
    path: Path,
    interval: float = DEFAULT_WATCH_INTERVAL,
    cancel: CancellationToken | None = None,
) -> Iterator[TaskStatus]:
    """Poll a status file and yield each new record until a terminal state.

    A missing or unreadable file is skipped silently. Records with an
    older ``updated_at`` than the last one yielded are ignored.

    Args:
        path: Status file to watch.
        interval: Seconds between reads.
        cancel: Optional token stopping the watch.
    """
    last: TaskStatus | None = None
    while cancel is None or not cancel.cancelled:
        task = read_task_status(path)
        if task is not None and (last is None or task.updated_at > last.updated_at):
            last = task
            yield task
            if task.status.is_terminal:
                return
        if cancel is not None:
            if cancel.wait(interval):
                return
        else:
            time.sleep(interval)


class TaskStatusFile:
    """Owner of one task status file.

    Usage:
        status = TaskStatusFile(path, task)
        status.start()
        uploader.upload_file(file, progress_callback=status.on_progress)
        status.complete(result.download_url)
    """

    def __init__(self, path: Path, task: TaskStatus) -> None:
        """Initialize the writer and persist the initial record.

        Args:
            path: Status file path agreed upon with observers.
            task: Initial record (normally in PENDING state).
        """
        self._path = Path(path)
        self._task = task
        self._speed = SpeedCalculator(task.file_size)
        self._save()

    @property
    def path(self) -> Path:
        return self._path

    @property
    def task(self) -> TaskStatus:
        return self._task

    @property
    def speed(self) -> SpeedCalculator:
        return self._speed

    def _save(self) -> None:
        self._task.updated_at = _now()
        write_task_status(self._path, self._task)

    def _check_mutable(self) -> None:
        if self._task.status.is_terminal:
            raise TaskStateError(
                f"Task {self._task.id} already {self._task.status.value}"
            )

    def start(self) -> None:
        """Mark the task as uploading."""
        self._check_mutable()
        self._task.status = TaskState.UPLOADING
        self._save()

    def on_progress(self, uploaded_bytes: int, total_bytes: int) -> None:
        """Progress callback: update percentage and rate, then persist."""
        self._check_mutable()
        if total_bytes > 0:
            self._task.progress = uploaded_bytes / total_bytes * 100.0
        else:
            self._task.progress = 100.0
        self._task.upload_speed = self._speed.update(uploaded_bytes)
        self._save()

    def complete(self, download_url: str) -> None:
        """Mark the task completed with its download URL."""
        self._check_mutable()
        self._task.status = TaskState.COMPLETED
        self._task.progress = 100.0
        self._task.upload_speed = self._speed.final_speed()
        self._task.download_url = download_url
        self._save()

    def fail(self, error_msg: str) -> None:
        """Mark the task failed with an error message."""
        self._check_mutable()
        self._task.status = TaskState.FAILED
        self._task.error_msg = error_msg
        self._save()
