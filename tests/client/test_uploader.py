"""End-to-end tests for FileUploader against a mocked TmpLink API."""

from __future__ import annotations

import hashlib
from collections.abc import Callable
from pathlib import Path
from typing import Any
from urllib.parse import parse_qs

import httpx
import pytest
from pytest_httpx import HTTPXMock

from tmpupload.client.api import HTTPClient
from tmpupload.client.upload import (
    CancellationToken,
    FileUploader,
    LocalFileError,
    NegotiationError,
    UploadCancelledError,
    begin_upload,
)
from tmpupload.core.config import ServerConfig, UploadConfig
from tmpupload.core.hashing import derive_upload_token

API_URL = "https://api.test/api_v2"
UPLOAD_SERVER = "https://up1.test"
SLICE_URL = f"{UPLOAD_SERVER}/app/upload_slice"

GRANT = {
    "status": 1,
    "data": {"utoken": "cred", "servers": [{"title": "Main", "url": UPLOAD_SERVER}]},
}


def form_of(request: httpx.Request) -> dict[str, str]:
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


def next_chunk(index: int, total: int, wait: int) -> dict[str, Any]:
    return {"status": 3, "data": {"total": total, "wait": wait, "next": index}}


@pytest.fixture
def server_config() -> ServerConfig:
    return ServerConfig(server_url=API_URL, token="tok")


class TestFileUploader:
    """Tests for FileUploader class."""

    def test_full_upload(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        """A 10-byte file in 3-byte chunks is sent in four requests."""
        path = make_file(b"0123456789")
        httpx_mock.add_response(url=f"{API_URL}/file", json={"status": 1, "data": None})
        httpx_mock.add_response(url=f"{API_URL}/file", json=GRANT)
        for index, wait in enumerate([4, 3, 2, 1]):
            httpx_mock.add_response(url=SLICE_URL, json=next_chunk(index, 4, wait))
            httpx_mock.add_response(url=SLICE_URL, json={"status": 1})
        httpx_mock.add_response(url=SLICE_URL, json={"status": 1, "data": "abc123"})

        progress: list[tuple[int, int]] = []
        with HTTPClient(server_config) as client:
            result = FileUploader(client, fast_config).upload_file(
                path, progress_callback=lambda done, total: progress.append((done, total))
            )

        assert result.download_url == "https://tmp.link/f/abc123"
        assert result.handle == "abc123"
        assert result.quick_upload is False
        assert result.server == UPLOAD_SERVER
        assert result.fingerprint == hashlib.sha1(b"0123456789").hexdigest()
        assert [done for done, _ in progress] == [3, 6, 9, 10]
        assert progress.count((10, 10)) == 1

        requests = httpx_mock.get_requests()
        assert form_of(requests[0])["action"] == "prepare_v4"
        assert form_of(requests[1])["action"] == "upload_request_select2"
        poll = form_of(requests[2])
        assert poll["action"] == "prepare"
        assert poll["utoken"] == "cred"
        assert poll["uptoken"] == derive_upload_token(
            result.fingerprint, "data.bin", 10, 3
        )
        chunk_bodies = [r.read() for r in requests[3:11:2]]
        for index, data in enumerate([b"012", b"345", b"678", b"9"]):
            assert f'name="index"\r\n\r\n{index}\r\n'.encode() in chunk_bodies[index]
            assert b"\r\n\r\n" + data + b"\r\n--" in chunk_bodies[index]

    def test_quick_upload_hit(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        """A duplicate finishes without any chunk request."""
        path = make_file(b"0123456789")
        httpx_mock.add_response(
            url=f"{API_URL}/file", json={"status": 6, "data": {"ukey": "xyz"}}
        )

        progress: list[tuple[int, int]] = []
        with HTTPClient(server_config) as client:
            result = FileUploader(client, fast_config).upload_file(
                path, progress_callback=lambda done, total: progress.append((done, total))
            )

        assert result.download_url == "https://tmp.link/f/xyz"
        assert result.quick_upload is True
        assert result.server is None
        assert progress == [(10, 10)]
        assert len(httpx_mock.get_requests()) == 1
        assert httpx_mock.get_requests(url=SLICE_URL) == []

    def test_quick_upload_disabled(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        path = make_file(b"ab")
        httpx_mock.add_response(url=f"{API_URL}/file", json=GRANT)
        httpx_mock.add_response(url=SLICE_URL, json=next_chunk(0, 1, 1))
        httpx_mock.add_response(url=SLICE_URL, json={"status": 2})
        httpx_mock.add_response(url=SLICE_URL, json={"status": 8, "debug": "m1"})

        config = fast_config.with_overrides(quick_upload=False)
        with HTTPClient(server_config) as client:
            result = FileUploader(client, config).upload_file(path)

        assert result.handle == "m1"
        actions = [form_of(r).get("action") for r in httpx_mock.get_requests()[:2]]
        assert actions == ["upload_request_select2", "prepare"]

    def test_negotiation_failure(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        path = make_file()
        httpx_mock.add_response(url=f"{API_URL}/file", json={"status": 1})
        httpx_mock.add_response(url=f"{API_URL}/file", status_code=503)

        with HTTPClient(server_config) as client, pytest.raises(NegotiationError):
            FileUploader(client, fast_config).upload_file(path)

    def test_missing_file(
        self, tmp_path: Path, server_config: ServerConfig, fast_config: UploadConfig
    ) -> None:
        with HTTPClient(server_config) as client, pytest.raises(LocalFileError):
            FileUploader(client, fast_config).upload_file(tmp_path / "missing.bin")

    def test_cancelled_before_probe(
        self,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        """A cancelled upload sends no request at all."""
        cancel = CancellationToken()
        cancel.cancel()

        with HTTPClient(server_config) as client, pytest.raises(UploadCancelledError):
            FileUploader(client, fast_config).upload_file(make_file(), cancel=cancel)

    def test_resume_after_restart(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        """A second process only sends the chunks the server still misses."""
        path = make_file(b"0123456789")
        httpx_mock.add_response(url=f"{API_URL}/file", json={"status": 1})
        httpx_mock.add_response(url=f"{API_URL}/file", json=GRANT)
        httpx_mock.add_response(url=SLICE_URL, json=next_chunk(3, 4, 1))
        httpx_mock.add_response(url=SLICE_URL, json={"status": 5})
        httpx_mock.add_response(url=SLICE_URL, json={"status": 1, "data": "abc123"})

        progress: list[int] = []
        with HTTPClient(server_config) as client:
            FileUploader(client, fast_config).upload_file(
                path, progress_callback=lambda done, total: progress.append(done)
            )

        assert progress == [9, 10]
        assert len(httpx_mock.get_requests(url=SLICE_URL)) == 3


class TestBeginUpload:
    """Tests for begin_upload function."""

    def test_uses_own_client(
        self,
        httpx_mock: HTTPXMock,
        make_file: Callable[..., Path],
        server_config: ServerConfig,
        fast_config: UploadConfig,
    ) -> None:
        httpx_mock.add_response(url=f"{API_URL}/file", json={"status": 6, "data": "xyz"})

        result = begin_upload(make_file(), server_config, fast_config)

        assert result.download_url == "https://tmp.link/f/xyz"
        assert form_of(httpx_mock.get_requests()[0])["token"] == "tok"
