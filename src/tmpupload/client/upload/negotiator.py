"""Upload session setup.

This module provides:
- QuickUploadProbe: asks the API whether the content already exists
- SessionNegotiator: obtains a session credential and a target server

Neither call is retried: a failure here is reported to the caller, who
may restart the whole upload.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from tmpupload.client.api import APIError
from tmpupload.client.protocol import DecodeError, decode_probe_result, decode_session_grant
from tmpupload.client.upload.types import NegotiationError, UploadSession
from tmpupload.core.hashing import derive_upload_token

if TYPE_CHECKING:
    from tmpupload.client.api import HTTPClient
    from tmpupload.core.config import UploadConfig

logger = logging.getLogger(__name__)


class QuickUploadProbe:
    """Server-side deduplication check."""

    def __init__(self, client: HTTPClient, config: UploadConfig) -> None:
        self._client = client
        self._config = config

    def check(self, fingerprint: str, file_name: str, file_size: int) -> str | None:
        """Ask whether the file is already stored.

        No request is sent when quick upload is disabled.

        Returns:
            File handle if the server already has the content, None if
            the file must be uploaded.

        Raises:
            NegotiationError: On transport failure or an unexpected reply.
        """
        if not self._config.quick_upload:
            logger.debug("Quick upload disabled, skipping probe")
            return None

        try:
            payload = self._client.probe_quick_upload(
                fingerprint=fingerprint,
                file_name=file_name,
                file_size=file_size,
                model=self._config.model,
                mr_id=self._config.mr_id,
            )
            result = decode_probe_result(payload)
        except (APIError, DecodeError) as e:
            raise NegotiationError(f"Quick-upload check failed: {e}", cause=e) from e

        if result.is_duplicate:
            logger.info(f"Quick upload hit for {file_name}: {result.handle}")
        else:
            logger.debug(f"No duplicate for {file_name}, upload required")
        return result.handle


class SessionNegotiator:
    """Obtains the session credential and picks the target server."""

    def __init__(self, client: HTTPClient, config: UploadConfig) -> None:
        self._client = client
        self._config = config

    def negotiate(self, fingerprint: str, file_name: str, file_size: int) -> UploadSession:
        """Negotiate an upload session.

        The first candidate server is used unless ``upload_server`` is
        forced in the config.

        Raises:
            NegotiationError: On transport failure, refusal, malformed
                reply or when no server is available.
        """
        try:
            payload = self._client.request_upload_session(
                fingerprint=fingerprint,
                file_name=file_name,
                file_size=file_size,
                model=self._config.model,
            )
            grant = decode_session_grant(payload)
        except (APIError, DecodeError) as e:
            raise NegotiationError(f"Session negotiation failed: {e}", cause=e) from e

        if self._config.upload_server:
            server = self._config.upload_server
            logger.debug(f"Using forced upload server {server}")
        elif grant.servers:
            server = grant.servers[0].url
            logger.debug(f"Using upload server {grant.servers[0].title or server}")
        else:
            raise NegotiationError("No upload server available")

        chunk_size = self._config.chunk_size
        return UploadSession(
            fingerprint=fingerprint,
            file_name=file_name,
            file_size=file_size,
            chunk_size=chunk_size,
            credential=grant.credential,
            upload_token=derive_upload_token(fingerprint, file_name, file_size, chunk_size),
            server=server,
        )
