"""File upload orchestration.

This module provides:
- FileUploader: fingerprint, quick-upload probe, negotiation, upload loop
- begin_upload: one-call entry point creating its own HTTP client

Resuming needs no local state: the derived upload token identifies the
same server-side upload after a restart, and the server names the chunks
it is still missing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from tmpupload.client.api import HTTPClient
from tmpupload.client.upload.cancellation import CancellationToken
from tmpupload.client.upload.negotiator import QuickUploadProbe, SessionNegotiator
from tmpupload.client.upload.progress import ProgressTracker
from tmpupload.client.upload.state_machine import ChunkUploadStateMachine
from tmpupload.client.upload.transmitter import ChunkTransmitter
from tmpupload.client.upload.types import (
    EventCallback,
    LocalFileError,
    ProgressCallback,
    UploadResult,
)
from tmpupload.core.chunking import ChunkReader
from tmpupload.core.hashing import compute_file_hash

if TYPE_CHECKING:
    from tmpupload.core.config import ServerConfig, UploadConfig

logger = logging.getLogger(__name__)


class FileUploader:
    """Uploads single files through a shared HTTP client.

    Several uploads may run concurrently on separate threads: each call
    to ``upload_file`` builds its own session objects and only the HTTP
    connection pool is shared.
    """

    def __init__(
        self,
        client: HTTPClient,
        config: UploadConfig,
        on_event: EventCallback | None = None,
    ) -> None:
        """Initialize the uploader.

        Args:
            client: HTTP client for the API and upload servers.
            config: Upload settings, fixed for every upload of this uploader.
            on_event: Optional sink for structured upload events.
        """
        self._client = client
        self._config = config
        self._on_event = on_event

    def upload_file(
        self,
        local_path: Path,
        progress_callback: ProgressCallback | None = None,
        cancel: CancellationToken | None = None,
    ) -> UploadResult:
        """Upload a file, resuming any earlier attempt on the server.

        Args:
            local_path: Path to the local file.
            progress_callback: Called with (bytes_uploaded, total_bytes).
            cancel: Optional cancellation token (abort or deadline).

        Returns:
            UploadResult with the download URL.

        Raises:
            UploadError: One of its subclasses on failure.
        """
        cancel = cancel or CancellationToken()
        local_path = Path(local_path)
        file_name = local_path.name

        try:
            file_size = local_path.stat().st_size
            logger.info(f"Hashing {local_path} ({file_size} bytes)")
            fingerprint = compute_file_hash(local_path)
        except OSError as e:
            raise LocalFileError(f"Cannot read {local_path}: {e}", cause=e) from e
        logger.debug(f"{file_name}: sha1={fingerprint}")

        progress = ProgressTracker(file_size, progress_callback)
        cancel.raise_if_cancelled()

        probe = QuickUploadProbe(self._client, self._config)
        handle = probe.check(fingerprint, file_name, file_size)
        if handle is not None:
            progress.complete()
            return UploadResult(
                download_url=self._config.download_url(handle),
                handle=handle,
                file_name=file_name,
                file_size=file_size,
                fingerprint=fingerprint,
                quick_upload=True,
            )

        cancel.raise_if_cancelled()
        session = SessionNegotiator(self._client, self._config).negotiate(
            fingerprint, file_name, file_size
        )
        logger.info(f"Uploading {file_name} to {session.server}")

        machine = ChunkUploadStateMachine(
            client=self._client,
            session=session,
            config=self._config,
            reader=ChunkReader(local_path, session.chunk_size, file_size),
            transmitter=ChunkTransmitter(self._client, session),
            progress=progress,
            cancel=cancel,
            on_event=self._on_event,
        )
        handle = machine.run()

        return UploadResult(
            download_url=self._config.download_url(handle),
            handle=handle,
            file_name=file_name,
            file_size=file_size,
            fingerprint=fingerprint,
            server=session.server,
        )


def begin_upload(
    file_path: Path,
    server_config: ServerConfig,
    upload_config: UploadConfig,
    on_progress: ProgressCallback | None = None,
    cancel: CancellationToken | None = None,
    on_event: EventCallback | None = None,
) -> UploadResult:
    """Upload one file with a dedicated HTTP client.

    Args:
        file_path: Path to the local file.
        server_config: API endpoint and token.
        upload_config: Upload settings.
        on_progress: Called with (bytes_uploaded, total_bytes) on the calling thread.
        cancel: Optional cancellation token.
        on_event: Optional sink for structured upload events.

    Returns:
        UploadResult with the download URL.

    Raises:
        UploadError: One of its subclasses on failure.
    """
    with HTTPClient(server_config) as client:
        uploader = FileUploader(client, upload_config, on_event=on_event)
        return uploader.upload_file(Path(file_path), on_progress, cancel)
