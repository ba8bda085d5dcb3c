"""Shared configuration classes for tmpupload.

This module defines configuration classes used by the HTTP client,
the upload engine, and the CLI.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from tmpupload.core.types import FileValidity

DEFAULT_API_URL = "https://tmplink-sec.vxtrans.com/api_v2"
DEFAULT_DOWNLOAD_BASE_URL = "https://tmp.link/f/"

DEFAULT_CHUNK_SIZE = 3 * 1024 * 1024  # 3 MB
MIN_CHUNK_SIZE_MB = 1
MAX_CHUNK_SIZE_MB = 99


@dataclass
class ServerConfig:
    """Configuration for connecting to the TmpLink API.

    Attributes:
        server_url: Base URL of the API (e.g., "https://tmplink-sec.vxtrans.com/api_v2").
        token: Authentication token of the user.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str = DEFAULT_API_URL
    token: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL."""
        self.server_url = self.server_url.rstrip("/")

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS.

        Returns:
            True if server uses HTTPS.
        """
        return self.server_url.startswith("https://")


@dataclass(frozen=True)
class UploadConfig:
    """Immutable settings for one upload.

    Read once when the upload starts and passed to every component of
    the upload engine. Use ``with_overrides`` to derive a new value.

    Attributes:
        chunk_size: Size of each chunk in bytes.
        model: Validity period selector sent to the server.
        mr_id: Destination folder id ("0" is the root folder).
        quick_upload: Ask the server for a duplicate before uploading.
        upload_server: Force a target server instead of the first candidate.
        download_base_url: Prefix joined with the server handle.
        max_poll_iterations: Hard cap on "what next" queries.
        max_transport_failures: Consecutive poll transport failures allowed.
        transport_retry_delay: Fixed delay between failed polls.
        max_chunk_attempts: Send attempts per chunk before giving up.
        chunk_initial_backoff: First delay between chunk attempts.
        chunk_max_backoff: Upper bound for the chunk backoff.
        chunk_backoff_multiplier: Backoff growth factor.
        merge_wait_interval: Delay while the server merges chunks.
        chunk_wait_interval: Delay while no chunk is assignable.
    """

    chunk_size: int = DEFAULT_CHUNK_SIZE
    model: int = FileValidity.ONE_DAY.value
    mr_id: str = "0"
    quick_upload: bool = True
    upload_server: str | None = None
    download_base_url: str = DEFAULT_DOWNLOAD_BASE_URL
    max_poll_iterations: int = 100_000
    max_transport_failures: int = 5
    transport_retry_delay: float = 3.0
    max_chunk_attempts: int = 5
    chunk_initial_backoff: float = 1.0
    chunk_max_backoff: float = 30.0
    chunk_backoff_multiplier: float = 2.0
    merge_wait_interval: float = 2.0
    chunk_wait_interval: float = 5.0

    def __post_init__(self) -> None:
        """Validate settings."""
        if self.chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        for name in ("max_poll_iterations", "max_transport_failures", "max_chunk_attempts"):
            if getattr(self, name) < 1:
                raise ValueError(f"{name} must be at least 1")
        valid_models = {v.value for v in FileValidity}
        if self.model not in valid_models:
            raise ValueError(
                f"Invalid model {self.model}, expected one of {sorted(valid_models)}"
            )

    @classmethod
    def from_megabytes(cls, chunk_size_mb: int, **kwargs: object) -> UploadConfig:
        """Create a config with the chunk size given in megabytes.

        Raises:
            ValueError: If the size is outside 1-99 MB.
        """
        if not MIN_CHUNK_SIZE_MB <= chunk_size_mb <= MAX_CHUNK_SIZE_MB:
            raise ValueError(
                f"Chunk size must be between {MIN_CHUNK_SIZE_MB} and "
                f"{MAX_CHUNK_SIZE_MB} MB, got {chunk_size_mb}"
            )
        return cls(chunk_size=chunk_size_mb * 1024 * 1024, **kwargs)  # type: ignore[arg-type]

    def with_overrides(self, **changes: object) -> UploadConfig:
        """Return a copy with some fields replaced."""
        return replace(self, **changes)  # type: ignore[arg-type]

    def download_url(self, handle: str) -> str:
        """Join the download base URL with a server handle."""
        return f"{self.download_base_url.rstrip('/')}/{handle}"
