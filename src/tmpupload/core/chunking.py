"""Fixed-size chunking for tmpupload.

Chunks are addressed by index: chunk ``i`` covers the byte range
``[i * chunk_size, min((i + 1) * chunk_size, file_size))``. Nothing is
cached, any chunk can be re-read on demand.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ChunkDescriptor:
    """Position of one chunk inside a file."""

    index: int
    offset: int
    length: int

    @property
    def end(self) -> int:
        """Return the offset just past the last byte of this chunk."""
        return self.offset + self.length


def chunk_count(file_size: int, chunk_size: int) -> int:
    """Return the number of chunks for a file.

    An empty file still counts as one (empty) chunk.
    """
    if chunk_size <= 0:
        raise ValueError(f"chunk_size must be positive, got {chunk_size}")
    if file_size <= 0:
        return 1
    return (file_size + chunk_size - 1) // chunk_size


def describe_chunk(index: int, file_size: int, chunk_size: int) -> ChunkDescriptor:
    """Compute the descriptor of chunk ``index``.

    Raises:
        IndexError: If the index is outside the file.
    """
    total = chunk_count(file_size, chunk_size)
    if not 0 <= index < total:
        raise IndexError(f"Chunk index {index} out of range (0..{total - 1})")
    offset = index * chunk_size
    length = min(chunk_size, max(file_size - offset, 0))
    return ChunkDescriptor(index=index, offset=offset, length=length)


def iter_chunks(file_size: int, chunk_size: int) -> Iterator[ChunkDescriptor]:
    """Yield the descriptors of all chunks in order."""
    for index in range(chunk_count(file_size, chunk_size)):
        yield describe_chunk(index, file_size, chunk_size)


class ChunkReader:
    """Reads chunk byte ranges from a local file.

    The file is opened per read, so a reader can be kept for the whole
    upload without holding a file descriptor.
    """

    def __init__(self, path: Path, chunk_size: int, file_size: int | None = None) -> None:
        self._path = Path(path)
        self._chunk_size = chunk_size
        self._file_size = (
            file_size if file_size is not None else self._path.stat().st_size
        )

    @property
    def total_chunks(self) -> int:
        return chunk_count(self._file_size, self._chunk_size)

    def describe(self, index: int) -> ChunkDescriptor:
        return describe_chunk(index, self._file_size, self._chunk_size)

    def read(self, index: int) -> bytes:
        """Read the bytes of chunk ``index``.

        Raises:
            IndexError: If the index is outside the file.
            OSError: If the file cannot be read or is shorter than expected.
        """
        chunk = self.describe(index)
        with open(self._path, "rb") as f:
            f.seek(chunk.offset)
            data = f.read(chunk.length)
        if len(data) != chunk.length:
            raise OSError(
                f"Short read on {self._path}: chunk {index} expected "
                f"{chunk.length} bytes, got {len(data)}"
            )
        return data
