"""Decoding of TmpLink upload server responses.

This module provides:
- Status code constants for negotiation, probe, poll and chunk replies
- PollResponse variants, one per reaction of the upload loop
- decode_* functions turning a JSON envelope into a typed value

Poll status vocabulary:
    1  upload complete, ``data`` is the file handle
    6  duplicate found, ``data`` is the file handle
    8  merge finished, handle in ``data`` or in ``debug``
    9  merge in progress
    2  no chunk assignable, other chunks in flight
    3  next chunk assigned, ``data = {total, wait, next}``
    7  failure, ``data`` is the error code

Status 7 with error code 8 or 9 is treated as merged or merging. The
server reports these while a merge races with the failing request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

# Negotiation / account
STATUS_OK = 1

# Quick-upload probe
PROBE_DUPLICATE = 6
PROBE_MUST_UPLOAD = 1

# Poll
POLL_COMPLETE = 1
POLL_WAIT = 2
POLL_NEXT_CHUNK = 3
POLL_DUPLICATE = 6
POLL_FAILED = 7
POLL_MERGED = 8
POLL_MERGING = 9

# Error codes carried by POLL_FAILED that mean something else
FAILED_MEANS_MERGED = 8
FAILED_MEANS_MERGING = 9

# Chunk acknowledgements
CHUNK_STORED = 1
CHUNK_ALREADY_STORED = 2
CHUNK_STORED_MERGE_STARTED = 5
CHUNK_ACCEPTED_STATUSES = frozenset(
    {CHUNK_STORED, CHUNK_ALREADY_STORED, CHUNK_STORED_MERGE_STARTED}
)


class DecodeError(Exception):
    """A response envelope does not have the expected shape."""


class UnknownStatusError(DecodeError):
    """A response carries a status code outside the known vocabulary."""

    def __init__(self, status: Any) -> None:
        super().__init__(f"Unknown status code: {status!r}")
        self.status = status


# === Negotiation ===


@dataclass(frozen=True)
class ServerCandidate:
    """Upload server offered by the API."""

    title: str
    url: str


@dataclass(frozen=True)
class SessionGrant:
    """Successful negotiation reply."""

    credential: str
    servers: list[ServerCandidate]


def decode_session_grant(payload: dict[str, Any]) -> SessionGrant:
    """Decode the reply to ``upload_request_select2``.

    Raises:
        DecodeError: On non-success status or malformed data.
    """
    status = payload.get("status")
    if status != STATUS_OK:
        raise DecodeError(f"Session request refused (status {status!r})")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise DecodeError("Session reply has no data object")
    credential = data.get("utoken")
    if not isinstance(credential, str) or not credential:
        raise DecodeError("Session reply has no credential")

    servers: list[ServerCandidate] = []
    raw_servers = data.get("servers")
    if isinstance(raw_servers, list):
        for item in raw_servers:
            if isinstance(item, dict) and isinstance(item.get("url"), str):
                servers.append(
                    ServerCandidate(title=str(item.get("title", "")), url=item["url"])
                )
    return SessionGrant(credential=credential, servers=servers)


# === Quick upload ===


@dataclass(frozen=True)
class ProbeResult:
    """Reply to the quick-upload probe.

    ``handle`` is set when the server already has the content.
    """

    handle: str | None = None

    @property
    def is_duplicate(self) -> bool:
        return self.handle is not None


def decode_probe_result(payload: dict[str, Any]) -> ProbeResult:
    """Decode the reply to ``prepare_v4``.

    Raises:
        DecodeError: On any status other than duplicate / must-upload,
            or a duplicate without handle.
    """
    status = payload.get("status")
    if status == PROBE_MUST_UPLOAD:
        return ProbeResult()
    if status == PROBE_DUPLICATE:
        handle = _handle_from(payload.get("data"))
        if handle is None:
            raise DecodeError("Duplicate reported without file handle")
        return ProbeResult(handle=handle)
    raise DecodeError(f"Unexpected quick-upload status {status!r}")


# === Poll ===


@dataclass(frozen=True)
class UploadComplete:
    """The server holds the whole file."""

    handle: str


@dataclass(frozen=True)
class DuplicateFound:
    """The server found the content elsewhere."""

    handle: str


@dataclass(frozen=True)
class MergeComplete:
    """All chunks were merged.

    ``handle`` is None when neither ``data`` nor ``debug`` carried one.
    """

    handle: str | None


@dataclass(frozen=True)
class Merging:
    """Chunks are being merged, no handle yet."""


@dataclass(frozen=True)
class WaitForChunks:
    """No chunk assignable while other chunks are in flight."""


@dataclass(frozen=True)
class NextChunk:
    """The server assigns chunk ``index``."""

    index: int
    total: int
    remaining: int

    @property
    def completed(self) -> int:
        """Number of chunks the server already holds."""
        return max(self.total - self.remaining, 0)


@dataclass(frozen=True)
class UploadFailed:
    """The server rejected the upload."""

    error_code: Any


PollResponse = Union[
    UploadComplete,
    DuplicateFound,
    MergeComplete,
    Merging,
    WaitForChunks,
    NextChunk,
    UploadFailed,
]


def _handle_from(value: Any) -> str | None:
    """Extract a file handle from a ``data`` or ``debug`` field."""
    if isinstance(value, str) and value:
        return value
    if isinstance(value, dict):
        ukey = value.get("ukey")
        if isinstance(ukey, str) and ukey:
            return ukey
    return None


def _as_int(value: Any) -> int | None:
    """Read an int or a numeric string, None for anything else."""
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _require_int(data: dict[str, Any], key: str) -> int:
    value = _as_int(data.get(key))
    if value is None:
        raise DecodeError(f"Field {key!r} missing or not a number: {data.get(key)!r}")
    return value


def decode_poll_response(payload: dict[str, Any]) -> PollResponse:
    """Decode the reply to a ``prepare`` poll.

    Raises:
        UnknownStatusError: If the status code is not in the vocabulary.
        DecodeError: If a known status comes with a malformed payload.
    """
    status = payload.get("status")
    data = payload.get("data")

    if status == POLL_COMPLETE:
        handle = _handle_from(data)
        if handle is None:
            raise DecodeError("Upload complete without file handle")
        return UploadComplete(handle=handle)

    if status == POLL_DUPLICATE:
        handle = _handle_from(data)
        if handle is None:
            raise DecodeError("Duplicate reported without file handle")
        return DuplicateFound(handle=handle)

    if status == POLL_MERGED:
        return MergeComplete(
            handle=_handle_from(data) or _handle_from(payload.get("debug"))
        )

    if status == POLL_MERGING:
        return Merging()

    if status == POLL_WAIT:
        return WaitForChunks()

    if status == POLL_NEXT_CHUNK:
        if not isinstance(data, dict):
            raise DecodeError("Chunk assignment without data object")
        index = _require_int(data, "next")
        total = _require_int(data, "total")
        remaining = _require_int(data, "wait")
        if index < 0 or index >= max(total, 1):
            raise DecodeError(f"Assigned chunk {index} outside 0..{total - 1}")
        return NextChunk(index=index, total=total, remaining=remaining)

    if status == POLL_FAILED:
        code = data
        if isinstance(data, dict):
            code = data.get("code", data)
        numeric = _as_int(code)
        if numeric == FAILED_MEANS_MERGED:
            return MergeComplete(handle=_handle_from(payload.get("debug")))
        if numeric == FAILED_MEANS_MERGING:
            return Merging()
        return UploadFailed(error_code=code)

    raise UnknownStatusError(status)


# === Chunk acknowledgement ===


def chunk_accepted(payload: dict[str, Any]) -> bool:
    """Check whether a chunk reply is one of the accepted statuses."""
    return payload.get("status") in CHUNK_ACCEPTED_STATUSES
