"""Core module - Shared config, hashing, and chunking."""

from tmpupload.core.chunking import (
    ChunkDescriptor,
    ChunkReader,
    chunk_count,
    describe_chunk,
    iter_chunks,
)
from tmpupload.core.config import (
    DEFAULT_API_URL,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_DOWNLOAD_BASE_URL,
    ServerConfig,
    UploadConfig,
)
from tmpupload.core.hashing import compute_file_hash, derive_upload_token
from tmpupload.core.types import FileValidity, TaskState

__all__ = [
    # Chunking
    "ChunkDescriptor",
    "ChunkReader",
    "chunk_count",
    "describe_chunk",
    "iter_chunks",
    # Config
    "DEFAULT_API_URL",
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_DOWNLOAD_BASE_URL",
    "ServerConfig",
    "UploadConfig",
    # Hashing
    "compute_file_hash",
    "derive_upload_token",
    # Types
    "FileValidity",
    "TaskState",
]
