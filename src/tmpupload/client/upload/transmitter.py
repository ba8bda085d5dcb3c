"""Single-chunk transmission.

This module provides:
- ChunkTransmitter: sends one chunk and validates its acknowledgement

One call is one attempt. Retries are driven by the upload loop.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tmpupload.client.api import APIError
from tmpupload.client.protocol import chunk_accepted
from tmpupload.client.upload.types import ChunkTransmissionError

if TYPE_CHECKING:
    from tmpupload.client.api import HTTPClient
    from tmpupload.client.upload.types import UploadSession

logger = logging.getLogger(__name__)


class ChunkTransmitter:
    """Sends chunks of one session to its upload server."""

    def __init__(self, client: HTTPClient, session: UploadSession) -> None:
        self._client = client
        self._session = session

    def send(self, index: int, data: bytes, timeout: float | None = None) -> int:
        """Send chunk ``index``.

        Args:
            index: Chunk index assigned by the server.
            data: Chunk bytes.
            timeout: Optional request timeout override.

        Returns:
            The accepted acknowledgement status.

        Raises:
            ChunkTransmissionError: On transport failure or a status
                outside the accepted set.
        """
        try:
            payload = self._client.upload_chunk(
                self._session.server,
                upload_token=self._session.upload_token,
                file_name=self._session.file_name,
                index=index,
                data=data,
                timeout=timeout,
            )
        except APIError as e:
            raise ChunkTransmissionError(index, str(e), cause=e) from e

        if not chunk_accepted(payload):
            raise ChunkTransmissionError(
                index, f"rejected with status {payload.get('status')!r}"
            )

        logger.debug(f"Chunk {index} acknowledged ({len(data)} bytes)")
        return int(payload["status"])
