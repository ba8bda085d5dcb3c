"""Shared types for tmpupload.

This module defines enums used by both the upload engine and the
status-file observers.
"""

from __future__ import annotations

from enum import Enum


class TaskState(str, Enum):
    """Lifecycle state of an upload task.

    Written by the upload worker into the task status file and read
    by any observer process.
    """

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Check if no further transitions are allowed."""
        return self in (TaskState.COMPLETED, TaskState.FAILED)


class FileValidity(int, Enum):
    """Validity period selector understood by the server ("model")."""

    ONE_DAY = 0
    THREE_DAYS = 1
    SEVEN_DAYS = 2
    PERMANENT = 99
