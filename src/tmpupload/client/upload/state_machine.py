"""Polling state machine driving a negotiated upload to completion.

The upload server is the only source of truth about missing chunks.
Each iteration asks it what should happen next and reacts:

    complete / duplicate   -> return the file handle
    merged                 -> return the handle (data, then debug field)
    merging                -> sleep merge_wait_interval, poll again
    wait                   -> sleep chunk_wait_interval, poll again
    next chunk             -> read and send that chunk, poll again
    failed                 -> UploadRejectedError
    unknown status         -> UnexpectedStatusError

Three independent caps bound the loop: total polls, consecutive
transport failures while polling, and send attempts per chunk.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from tmpupload.client.api import TransportError
from tmpupload.client.protocol import (
    DecodeError,
    DuplicateFound,
    MergeComplete,
    Merging,
    NextChunk,
    PollResponse,
    UnknownStatusError,
    UploadComplete,
    UploadFailed,
    WaitForChunks,
    decode_poll_response,
)
from tmpupload.client.upload.retry import retry_with_backoff
from tmpupload.client.upload.types import (
    ChunkTransmissionError,
    ChunkUploadError,
    EventCallback,
    LocalFileError,
    PollLimitExceededError,
    ProtocolError,
    ResumeEstimate,
    TransportFailureLimitError,
    UnexpectedStatusError,
    UploadEvent,
    UploadEventType,
    UploadRejectedError,
)

if TYPE_CHECKING:
    from tmpupload.client.api import HTTPClient
    from tmpupload.client.upload.cancellation import CancellationToken
    from tmpupload.client.upload.progress import ProgressTracker
    from tmpupload.client.upload.transmitter import ChunkTransmitter
    from tmpupload.client.upload.types import UploadSession
    from tmpupload.core.chunking import ChunkReader
    from tmpupload.core.config import UploadConfig

logger = logging.getLogger(__name__)


class ChunkUploadStateMachine:
    """Sequential poll/upload loop for one session.

    Usage:
        machine = ChunkUploadStateMachine(
            client, session, config, reader, transmitter, progress, cancel
        )
        handle = machine.run()
    """

    def __init__(
        self,
        client: HTTPClient,
        session: UploadSession,
        config: UploadConfig,
        reader: ChunkReader,
        transmitter: ChunkTransmitter,
        progress: ProgressTracker,
        cancel: CancellationToken,
        on_event: EventCallback | None = None,
    ) -> None:
        """Initialize the state machine.

        Args:
            client: HTTP client used for polling.
            session: Negotiated session.
            config: Upload settings (caps, intervals, backoff).
            reader: Reader for chunk bytes.
            transmitter: Sender for single chunks.
            progress: Progress tracker of this session.
            cancel: Cancellation token checked at every suspension point.
            on_event: Optional sink for structured events.
        """
        self._client = client
        self._session = session
        self._config = config
        self._reader = reader
        self._transmitter = transmitter
        self._progress = progress
        self._cancel = cancel
        self._on_event = on_event

        self._resume: ResumeEstimate | None = None
        self._iterations = 0
        self._chunks_sent = 0

    @property
    def resume_estimate(self) -> ResumeEstimate | None:
        """Estimate computed the first time the server reported progress."""
        return self._resume

    @property
    def iterations(self) -> int:
        return self._iterations

    @property
    def chunks_sent(self) -> int:
        return self._chunks_sent

    def _emit(self, event_type: UploadEventType, **details: Any) -> None:
        if self._on_event:
            self._on_event(UploadEvent(type=event_type, details=details))

    def _request_timeout(self) -> float | None:
        if self._cancel.remaining() is None:
            return None
        return self._cancel.request_timeout(self._client.timeout)

    def run(self) -> str:
        """Drive the upload until the server reports a file handle.

        Returns:
            File handle issued by the server.

        Raises:
            UploadError: One of its subclasses on any terminal failure.
        """
        session = self._session
        failures = 0

        while True:
            self._cancel.raise_if_cancelled()

            if self._iterations >= self._config.max_poll_iterations:
                logger.error(
                    f"{session.file_name}: no result after {self._iterations} polls"
                )
                raise PollLimitExceededError(self._iterations)
            self._iterations += 1

            try:
                payload = self._client.poll_upload(
                    session.server,
                    upload_token=session.upload_token,
                    credential=session.credential,
                    fingerprint=session.fingerprint,
                    file_name=session.file_name,
                    file_size=session.file_size,
                    chunk_size=session.chunk_size,
                    mr_id=self._config.mr_id,
                    model=self._config.model,
                    timeout=self._request_timeout(),
                )
            except TransportError as e:
                failures += 1
                if failures >= self._config.max_transport_failures:
                    logger.error(f"Polling failed {failures} times in a row: {e}")
                    raise TransportFailureLimitError(failures, e) from e
                logger.warning(
                    f"Poll failed ({failures}/{self._config.max_transport_failures}): {e}. "
                    f"Retrying in {self._config.transport_retry_delay:.1f}s..."
                )
                self._emit(UploadEventType.TRANSPORT_RETRY, failures=failures, error=str(e))
                self._cancel.sleep(self._config.transport_retry_delay)
                continue

            failures = 0
            response = self._decode(payload)
            handle = self._react(response)
            if handle is not None:
                self._progress.complete()
                self._emit(
                    UploadEventType.COMPLETED,
                    handle=handle,
                    polls=self._iterations,
                    chunks_sent=self._chunks_sent,
                )
                logger.info(
                    f"Upload of {session.file_name} finished: {handle} "
                    f"({self._chunks_sent} chunks sent, {self._iterations} polls)"
                )
                return handle

    def _decode(self, payload: dict[str, Any]) -> PollResponse:
        try:
            return decode_poll_response(payload)
        except UnknownStatusError as e:
            logger.error(f"Unknown status from upload server: {e.status!r}")
            raise UnexpectedStatusError(e.status) from e
        except DecodeError as e:
            raise ProtocolError(f"Malformed poll reply: {e}", cause=e) from e

    def _react(self, response: PollResponse) -> str | None:
        """Act on one poll reply, returning the handle when finished."""
        if isinstance(response, (UploadComplete, DuplicateFound)):
            return response.handle

        if isinstance(response, MergeComplete):
            if response.handle is None:
                raise ProtocolError("Merge finished but no file handle was returned")
            return response.handle

        if isinstance(response, Merging):
            logger.debug("Server is merging chunks")
            self._emit(UploadEventType.MERGING)
            self._cancel.sleep(self._config.merge_wait_interval)
            return None

        if isinstance(response, WaitForChunks):
            logger.debug("No chunk assignable, waiting for chunks in flight")
            self._emit(UploadEventType.WAITING)
            self._cancel.sleep(self._config.chunk_wait_interval)
            return None

        if isinstance(response, NextChunk):
            total_chunks = self._reader.total_chunks
            if response.index >= total_chunks:
                raise ProtocolError(
                    f"Server assigned chunk {response.index} outside the local file "
                    f"(0..{total_chunks - 1})"
                )
            self._note_resume(response)
            self._send_chunk(response.index)
            return None

        if isinstance(response, UploadFailed):
            logger.error(f"Upload rejected by server: {response.error_code!r}")
            raise UploadRejectedError(response.error_code)

        raise UnexpectedStatusError(response)

    def _note_resume(self, response: NextChunk) -> None:
        """Compute the resume estimate once, before this session sent any chunk."""
        if self._resume is not None or self._chunks_sent > 0 or response.completed <= 0:
            return
        self._resume = ResumeEstimate(
            total_chunks=response.total,
            completed_chunks=response.completed,
            chunk_size=self._session.chunk_size,
            file_size=self._session.file_size,
        )
        logger.info(
            f"Server already holds {response.completed}/{response.total} chunks "
            f"of {self._session.file_name}"
        )
        self._emit(
            UploadEventType.RESUMED,
            completed=response.completed,
            total=response.total,
            uploaded_bytes=self._resume.uploaded_bytes,
        )
        self._progress.report(self._resume.uploaded_bytes)

    def _send_chunk(self, index: int) -> None:
        try:
            data = self._reader.read(index)
        except OSError as e:
            raise LocalFileError(f"Cannot read chunk {index}: {e}", cause=e) from e

        def on_retry(attempt: int, error: Exception, delay: float) -> None:
            self._emit(
                UploadEventType.CHUNK_RETRY,
                index=index,
                attempt=attempt,
                error=str(error),
                delay=delay,
            )

        attempts = self._config.max_chunk_attempts
        try:
            retry_with_backoff(
                lambda: self._transmitter.send(index, data, timeout=self._request_timeout()),
                cancel=self._cancel,
                max_attempts=attempts,
                initial_backoff=self._config.chunk_initial_backoff,
                max_backoff=self._config.chunk_max_backoff,
                backoff_multiplier=self._config.chunk_backoff_multiplier,
                retryable_exceptions=(ChunkTransmissionError,),
                on_retry=on_retry,
            )
        except ChunkTransmissionError as e:
            raise ChunkUploadError(index, attempts, e) from e

        self._chunks_sent += 1
        self._emit(UploadEventType.CHUNK_SENT, index=index, size=len(data))
        self._progress.advance(len(data))
