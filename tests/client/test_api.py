"""Tests for the tmpupload HTTP client."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest
from pytest_httpx import HTTPXMock

from tmpupload.client.api import (
    AuthenticationError,
    HTTPClient,
    TransportError,
)
from tmpupload.core.config import ServerConfig

API_URL = "http://api.test/api_v2"
UPLOAD_URL = "http://up1.test/app/upload_slice"


def make_config(server_url: str = API_URL, token: str = "token123") -> ServerConfig:
    """Create a ServerConfig for testing."""
    return ServerConfig(server_url=server_url, token=token)


def form_of(request: httpx.Request) -> dict[str, str]:
    """Decode a url-encoded request body into single values."""
    return {k: v[0] for k, v in parse_qs(request.content.decode()).items()}


class TestHTTPClient:
    """Tests for HTTPClient class."""

    def test_validate_token(self, httpx_mock: HTTPXMock) -> None:
        """Should return the user id for a valid token."""
        httpx_mock.add_response(
            url=f"{API_URL}/user", json={"status": 1, "data": {"uid": 1234}}
        )

        with HTTPClient(make_config()) as client:
            assert client.validate_token() == "1234"

        form = form_of(httpx_mock.get_requests()[0])
        assert form == {"action": "get_detail", "token": "token123"}

    def test_validate_token_rejected(self, httpx_mock: HTTPXMock) -> None:
        """Should raise AuthenticationError on a non-success status."""
        httpx_mock.add_response(url=f"{API_URL}/user", json={"status": 0, "data": None})

        with HTTPClient(make_config()) as client, pytest.raises(AuthenticationError):
            client.validate_token()

    def test_validate_token_without_uid(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{API_URL}/user", json={"status": 1, "data": {}})

        with HTTPClient(make_config()) as client, pytest.raises(AuthenticationError):
            client.validate_token()

    def test_http_error_is_transport_error(self, httpx_mock: HTTPXMock) -> None:
        """Should map HTTP errors to TransportError with the status code."""
        httpx_mock.add_response(url=f"{API_URL}/user", status_code=502)

        with HTTPClient(make_config()) as client:
            with pytest.raises(TransportError) as exc_info:
                client.validate_token()
        assert exc_info.value.status_code == 502

    def test_redirect_is_transport_error(self, httpx_mock: HTTPXMock) -> None:
        """A 3xx reply is not followed and its body is not trusted."""
        httpx_mock.add_response(
            url=f"{API_URL}/user",
            status_code=302,
            headers={"Location": "http://elsewhere.test/"},
            json={"status": 1, "data": {"uid": 1}},
        )

        with HTTPClient(make_config()) as client:
            with pytest.raises(TransportError) as exc_info:
                client.validate_token()
        assert exc_info.value.status_code == 302

    def test_invalid_json_is_transport_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{API_URL}/user", text="<html>oops</html>")

        with HTTPClient(make_config()) as client, pytest.raises(TransportError):
            client.validate_token()

    def test_non_object_json_is_transport_error(self, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(url=f"{API_URL}/user", json=[1, 2, 3])

        with HTTPClient(make_config()) as client, pytest.raises(TransportError):
            client.validate_token()

    def test_connection_error_is_transport_error(self, httpx_mock: HTTPXMock) -> None:
        """Should wrap httpx network errors."""
        httpx_mock.add_exception(httpx.ConnectError("connection refused"))

        with HTTPClient(make_config()) as client:
            with pytest.raises(TransportError) as exc_info:
                client.validate_token()
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    def test_request_upload_session(self, httpx_mock: HTTPXMock) -> None:
        """Should send the file identity and return the raw envelope."""
        reply = {
            "status": 1,
            "data": {"utoken": "cred", "servers": [{"title": "A", "url": "http://up1.test"}]},
        }
        httpx_mock.add_response(url=f"{API_URL}/file", json=reply)

        with HTTPClient(make_config()) as client:
            payload = client.request_upload_session("sha", "a.txt", 10, 2)

        assert payload == reply
        form = form_of(httpx_mock.get_requests()[0])
        assert form["action"] == "upload_request_select2"
        assert form["sha1"] == "sha"
        assert form["filename"] == "a.txt"
        assert form["filesize"] == "10"
        assert form["model"] == "2"

    def test_probe_quick_upload(self, httpx_mock: HTTPXMock) -> None:
        """Should ask for a deduplication check without uploading."""
        httpx_mock.add_response(url=f"{API_URL}/file", json={"status": 1})

        with HTTPClient(make_config()) as client:
            client.probe_quick_upload("sha", "a.txt", 10, 0, "42")

        form = form_of(httpx_mock.get_requests()[0])
        assert form["action"] == "prepare_v4"
        assert form["skip_upload"] == "1"
        assert form["mr_id"] == "42"

    def test_poll_upload(self, httpx_mock: HTTPXMock) -> None:
        """Should post the session parameters to the upload server."""
        httpx_mock.add_response(url=UPLOAD_URL, json={"status": 2})

        with HTTPClient(make_config()) as client:
            payload = client.poll_upload(
                "http://up1.test/",
                upload_token="uptok",
                credential="cred",
                fingerprint="sha",
                file_name="a.txt",
                file_size=10,
                chunk_size=3,
                mr_id="0",
                model=1,
            )

        assert payload == {"status": 2}
        form = form_of(httpx_mock.get_requests()[0])
        assert form == {
            "action": "prepare",
            "token": "token123",
            "uptoken": "uptok",
            "sha1": "sha",
            "filename": "a.txt",
            "filesize": "10",
            "slice_size": "3",
            "utoken": "cred",
            "mr_id": "0",
            "model": "1",
        }
        assert httpx_mock.get_requests()[0].extensions["timeout"]["read"] == 30.0

    def test_poll_timeout_override(self, httpx_mock: HTTPXMock) -> None:
        """A per-call timeout replaces the configured one for that request."""
        httpx_mock.add_response(url=UPLOAD_URL, json={"status": 2})

        with HTTPClient(make_config()) as client:
            client.poll_upload(
                "http://up1.test",
                upload_token="uptok",
                credential="cred",
                fingerprint="sha",
                file_name="a.txt",
                file_size=10,
                chunk_size=3,
                mr_id="0",
                model=1,
                timeout=2.5,
            )

        timeouts = httpx_mock.get_requests()[0].extensions["timeout"]
        assert timeouts["connect"] == 2.5
        assert timeouts["read"] == 2.5

    def test_upload_chunk(self, httpx_mock: HTTPXMock) -> None:
        """Should send the chunk as a multipart file field."""
        httpx_mock.add_response(url=UPLOAD_URL, json={"status": 1})

        with HTTPClient(make_config()) as client:
            payload = client.upload_chunk(
                "http://up1.test",
                upload_token="uptok",
                file_name="a.txt",
                index=3,
                data=b"chunk-bytes",
            )

        assert payload == {"status": 1}
        request = httpx_mock.get_requests()[0]
        body = request.read()
        assert request.headers["content-type"].startswith("multipart/form-data")
        assert b'name="filedata"' in body
        assert b"chunk-bytes" in body
        assert b'name="action"' in body
        assert b"upload_slice" in body
