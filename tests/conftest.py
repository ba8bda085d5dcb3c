"""Shared pytest fixtures for tmpupload tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from tmpupload.core.config import UploadConfig


@pytest.fixture
def make_file(tmp_path: Path) -> Callable[..., Path]:
    """Create a file with the given content under tmp_path."""

    def _make(content: bytes = b"0123456789", name: str = "data.bin") -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _make


@pytest.fixture
def fast_config() -> UploadConfig:
    """Upload config without sleeps, 3-byte chunks."""
    return UploadConfig(
        chunk_size=3,
        transport_retry_delay=0,
        chunk_initial_backoff=0,
        chunk_max_backoff=0,
        merge_wait_interval=0,
        chunk_wait_interval=0,
        download_base_url="https://tmp.link/f/",
    )
