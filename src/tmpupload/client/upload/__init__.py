"""Upload engine - resumable, content-addressed chunked uploads."""

from tmpupload.client.upload.cancellation import CancellationToken
from tmpupload.client.upload.negotiator import QuickUploadProbe, SessionNegotiator
from tmpupload.client.upload.progress import ProgressTracker, SpeedCalculator
from tmpupload.client.upload.retry import retry_with_backoff
from tmpupload.client.upload.state_machine import ChunkUploadStateMachine
from tmpupload.client.upload.transmitter import ChunkTransmitter
from tmpupload.client.upload.types import (
    ChunkTransmissionError,
    ChunkUploadError,
    EventCallback,
    LocalFileError,
    NegotiationError,
    PollLimitExceededError,
    ProgressCallback,
    ProtocolError,
    ResumeEstimate,
    TransportFailureLimitError,
    UnexpectedStatusError,
    UploadCancelledError,
    UploadError,
    UploadEvent,
    UploadEventType,
    UploadRejectedError,
    UploadResult,
    UploadSession,
)
from tmpupload.client.upload.uploader import FileUploader, begin_upload

__all__ = [
    # Entry points
    "FileUploader",
    "begin_upload",
    # Components
    "CancellationToken",
    "ChunkTransmitter",
    "ChunkUploadStateMachine",
    "ProgressTracker",
    "QuickUploadProbe",
    "SessionNegotiator",
    "SpeedCalculator",
    "retry_with_backoff",
    # Types
    "EventCallback",
    "ProgressCallback",
    "ResumeEstimate",
    "UploadEvent",
    "UploadEventType",
    "UploadResult",
    "UploadSession",
    # Errors
    "ChunkTransmissionError",
    "ChunkUploadError",
    "LocalFileError",
    "NegotiationError",
    "PollLimitExceededError",
    "ProtocolError",
    "TransportFailureLimitError",
    "UnexpectedStatusError",
    "UploadCancelledError",
    "UploadError",
    "UploadRejectedError",
]
