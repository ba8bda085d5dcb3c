"""HTTP client for the TmpLink API and upload servers.

This module provides:
- HTTPClient: HTTP client for communicating with the API and upload servers
- Token validation, upload session negotiation, quick-upload probe
- Upload polling and chunk transmission requests

All requests are form-encoded POSTs answered with a JSON envelope
``{"status": int, "data": ..., "debug": ...}``. The client returns the
decoded JSON object and leaves status interpretation to
``tmpupload.client.protocol``.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from tmpupload.core.config import ServerConfig

logger = logging.getLogger(__name__)

# Path of the chunk endpoint on an upload server
UPLOAD_SLICE_PATH = "/app/upload_slice"


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(APIError):
    """Authentication failed."""


class TransportError(APIError):
    """Request failed below the application protocol.

    Covers connection failures, timeouts, non-2xx HTTP responses and
    bodies that are not a JSON object.
    """


class HTTPClient:
    """HTTP client for the TmpLink API.

    One instance shares a connection pool between the API server and
    every upload server it talks to.
    """

    def __init__(self, config: ServerConfig) -> None:
        """Initialize the HTTP client.

        Args:
            config: Server configuration with URL, token, and settings.
        """
        self._config = config
        self._server_url = config.server_url
        self._token = config.token
        self._timeout = config.timeout
        self._client = httpx.Client(
            timeout=config.timeout,
            verify=config.verify_ssl,
        )

    @property
    def token(self) -> str:
        return self._token

    @property
    def server_url(self) -> str:
        return self._server_url

    @property
    def timeout(self) -> float:
        return self._timeout

    def close(self) -> None:
        """Close the HTTP client."""
        self._client.close()

    def __enter__(self) -> HTTPClient:
        """Context manager entry."""
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.close()

    def _post(
        self,
        url: str,
        data: dict[str, str],
        files: dict[str, Any] | None = None,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """POST a form and decode the JSON envelope.

        Raises:
            TransportError: On network failure, non-2xx status or invalid JSON.
        """
        action = data.get("action", "?")
        logger.debug(f"POST {url} action={action}")
        try:
            response = self._client.post(
                url,
                data=data,
                files=files,
                timeout=timeout if timeout is not None else self._timeout,
            )
        except httpx.RequestError as e:
            raise TransportError(f"Request to {url} failed: {e}") from e

        if not response.is_success:
            raise TransportError(
                f"{url} returned HTTP {response.status_code}",
                response.status_code,
            )

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise TransportError(
                f"Invalid JSON from {url}: {response.text[:100]!r}",
                response.status_code,
            ) from e

        if not isinstance(payload, dict):
            raise TransportError(
                f"Unexpected JSON from {url}: {type(payload).__name__}",
                response.status_code,
            )
        logger.debug(f"Response action={action} status={payload.get('status')}")
        return payload

    # === Account ===

    def validate_token(self) -> str:
        """Check the token and return the user id.

        Returns:
            User id as a string.

        Raises:
            AuthenticationError: If the server rejects the token.
            TransportError: If the server cannot be reached.
        """
        payload = self._post(
            f"{self._server_url}/user",
            data={"action": "get_detail", "token": self._token},
        )
        if payload.get("status") != 1:
            raise AuthenticationError(
                f"Token rejected (status {payload.get('status')})"
            )
        data = payload.get("data")
        if not isinstance(data, dict) or "uid" not in data:
            raise AuthenticationError("Token check returned no user id")
        return str(data["uid"])

    # === Session setup ===

    def request_upload_session(
        self,
        fingerprint: str,
        file_name: str,
        file_size: int,
        model: int,
    ) -> dict[str, Any]:
        """Ask the API for a session credential and candidate servers."""
        return self._post(
            f"{self._server_url}/file",
            data={
                "action": "upload_request_select2",
                "sha1": fingerprint,
                "filename": file_name,
                "filesize": str(file_size),
                "model": str(model),
                "token": self._token,
            },
        )

    def probe_quick_upload(
        self,
        fingerprint: str,
        file_name: str,
        file_size: int,
        model: int,
        mr_id: str,
    ) -> dict[str, Any]:
        """Ask the API whether the file content is already stored."""
        return self._post(
            f"{self._server_url}/file",
            data={
                "action": "prepare_v4",
                "sha1": fingerprint,
                "filename": file_name,
                "filesize": str(file_size),
                "model": str(model),
                "mr_id": mr_id,
                "skip_upload": "1",
                "token": self._token,
            },
        )

    # === Upload server ===

    def poll_upload(
        self,
        server: str,
        *,
        upload_token: str,
        credential: str,
        fingerprint: str,
        file_name: str,
        file_size: int,
        chunk_size: int,
        mr_id: str,
        model: int,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Ask an upload server what should happen next."""
        return self._post(
            f"{server.rstrip('/')}{UPLOAD_SLICE_PATH}",
            data={
                "action": "prepare",
                "token": self._token,
                "uptoken": upload_token,
                "sha1": fingerprint,
                "filename": file_name,
                "filesize": str(file_size),
                "slice_size": str(chunk_size),
                "utoken": credential,
                "mr_id": mr_id,
                "model": str(model),
            },
            timeout=timeout,
        )

    def upload_chunk(
        self,
        server: str,
        *,
        upload_token: str,
        file_name: str,
        index: int,
        data: bytes,
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Send one chunk as multipart form data."""
        return self._post(
            f"{server.rstrip('/')}{UPLOAD_SLICE_PATH}",
            data={
                "action": "upload_slice",
                "token": self._token,
                "uptoken": upload_token,
                "filename": file_name,
                "index": str(index),
            },
            files={"filedata": ("slice", data, "application/octet-stream")},
            timeout=timeout,
        )
