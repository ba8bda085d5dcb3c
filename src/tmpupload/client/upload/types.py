"""Shared types and dataclasses for the upload engine.

This module provides:
- UploadError and its subclasses: one per failure kind
- UploadSession: negotiated, immutable session parameters
- ResumeEstimate: one-time progress correction for resumed uploads
- UploadResult: successful outcome of an upload
- UploadEvent, UploadEventType: structured events from the upload loop
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class UploadError(Exception):
    """Base exception for upload failures.

    Attributes:
        cause: Underlying error, if any (also chained as ``__cause__``).
    """

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class LocalFileError(UploadError):
    """The source file cannot be read."""


class NegotiationError(UploadError):
    """Session setup or quick-upload probe failed."""


class ChunkUploadError(UploadError):
    """A chunk could not be sent within its attempt budget.

    Attributes:
        index: Chunk index.
        attempts: Number of attempts made.
        last_error: Error of the last attempt.
    """

    def __init__(self, index: int, attempts: int, last_error: BaseException) -> None:
        super().__init__(
            f"Chunk {index} failed after {attempts} attempts: {last_error}",
            cause=last_error,
        )
        self.index = index
        self.attempts = attempts
        self.last_error = last_error


class ChunkTransmissionError(UploadError):
    """One send attempt of a chunk failed."""

    def __init__(self, index: int, message: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Chunk {index}: {message}", cause=cause)
        self.index = index


class UnexpectedStatusError(UploadError):
    """The server answered with a status code outside the vocabulary."""

    def __init__(self, status: Any) -> None:
        super().__init__(f"Unexpected status code from upload server: {status!r}")
        self.status = status


class UploadRejectedError(UploadError):
    """The server reported a failure for this upload."""

    def __init__(self, error_code: Any) -> None:
        super().__init__(f"Upload rejected by server (error code {error_code!r})")
        self.error_code = error_code


class ProtocolError(UploadError):
    """A reply is missing a field its status requires."""


class PollLimitExceededError(UploadError):
    """The server never converged within the poll budget."""

    def __init__(self, iterations: int) -> None:
        super().__init__(f"Upload did not finish after {iterations} polls")
        self.iterations = iterations


class TransportFailureLimitError(UploadError):
    """Too many consecutive transport failures while polling."""

    def __init__(self, failures: int, cause: BaseException | None = None) -> None:
        super().__init__(
            f"Giving up after {failures} consecutive transport failures: {cause}",
            cause=cause,
        )
        self.failures = failures


class UploadCancelledError(UploadError):
    """The upload was cancelled or ran past its deadline."""


@dataclass(frozen=True)
class UploadSession:
    """Parameters of one negotiated upload.

    ``upload_token`` is derived from (fingerprint, file_name, file_size,
    chunk_size) and is identical across process restarts.
    """

    fingerprint: str
    file_name: str
    file_size: int
    chunk_size: int
    credential: str
    upload_token: str
    server: str


@dataclass(frozen=True)
class ResumeEstimate:
    """Progress already held by the server when a session is resumed."""

    total_chunks: int
    completed_chunks: int
    chunk_size: int
    file_size: int

    @property
    def uploaded_bytes(self) -> int:
        return min(self.completed_chunks * self.chunk_size, self.file_size)


@dataclass
class UploadResult:
    """Result of a successful upload.

    Attributes:
        download_url: Public URL of the uploaded file.
        handle: Server-issued file identifier.
        file_name: Base name of the uploaded file.
        file_size: Size in bytes.
        fingerprint: SHA-1 of the content.
        quick_upload: True when the server already had the content.
        server: Upload server used (None for quick uploads).
    """

    download_url: str
    handle: str
    file_name: str
    file_size: int
    fingerprint: str
    quick_upload: bool = False
    server: str | None = None


class UploadEventType(str, Enum):
    """Kinds of structured events emitted by the upload loop."""

    RESUMED = "resumed"
    CHUNK_SENT = "chunk_sent"
    CHUNK_RETRY = "chunk_retry"
    WAITING = "waiting"
    MERGING = "merging"
    TRANSPORT_RETRY = "transport_retry"
    COMPLETED = "completed"


@dataclass
class UploadEvent:
    """Structured event from the upload loop."""

    type: UploadEventType
    details: dict[str, Any] = field(default_factory=dict)


# Type alias for progress callback: (bytes_uploaded, total_bytes)
ProgressCallback = Callable[[int, int], None]

# Type alias for event sink
EventCallback = Callable[[UploadEvent], None]
