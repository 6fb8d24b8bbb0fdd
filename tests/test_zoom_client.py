from typing import Any, Optional

import pytest
import requests

from config import Settings
from zoom_connector.errors import AuthError, FetchError, FileTransferError, ParseError
from zoom_connector.services.zoom_client import (
    TokenProvider,
    ZoomClient,
    encode_meeting_uuid,
    with_access_token,
)


class _Response:
    def __init__(self, status_code: int = 200, payload: Any = None, content: bytes = b"",
                 text: str = "") -> None:
        self.status_code = status_code
        self._payload = payload
        self.content = content
        self.text = text
        self.closed = False

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload

    def iter_content(self, chunk_size: int = 1):
        for start in range(0, len(self.content), 4):
            yield self.content[start:start + 4]

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> "_Response":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False


class _Session:
    def __init__(self, post: Optional[_Response] = None, get: Optional[list] = None,
                 delete: Optional[_Response] = None) -> None:
        self.post_response = post
        self.get_responses = list(get or [])
        self.delete_response = delete
        self.calls: list = []

    def post(self, url, **kwargs):
        self.calls.append(("POST", url, kwargs))
        if isinstance(self.post_response, Exception):
            raise self.post_response
        return self.post_response

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        response = self.get_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def delete(self, url, **kwargs):
        self.calls.append(("DELETE", url, kwargs))
        return self.delete_response


def _settings() -> Settings:
    return Settings(zoom_account_id="acct", zoom_client_id="cid", zoom_client_secret="secret")


def _client(get: list, delete: Optional[_Response] = None) -> tuple:
    session = _Session(post=_Response(payload={"access_token": "tok-1"}), get=get, delete=delete)
    provider = TokenProvider(_settings(), session=session)
    return ZoomClient(_settings(), provider, session=session), session


def test_acquire_posts_account_credentials_with_basic_auth() -> None:
    session = _Session(post=_Response(payload={"access_token": "tok-1", "expires_in": 3600}))
    provider = TokenProvider(_settings(), session=session)

    credential = provider.acquire()

    assert credential.token == "tok-1"
    method, url, kwargs = session.calls[0]
    assert (method, url) == ("POST", "https://zoom.us/oauth/token")
    assert kwargs["data"] == {"grant_type": "account_credentials", "account_id": "acct"}
    assert kwargs["auth"].username == "cid"
    assert kwargs["auth"].password == "secret"


def test_acquire_caches_until_reset() -> None:
    session = _Session(post=_Response(payload={"access_token": "tok-1"}))
    provider = TokenProvider(_settings(), session=session)

    provider.acquire()
    assert provider.token == "tok-1"
    assert len(session.calls) == 1

    provider.reset()
    provider.acquire()
    assert len(session.calls) == 2


@pytest.mark.parametrize(
    "response",
    [
        _Response(status_code=401, payload={"reason": "Invalid client_id or client_secret"}),
        _Response(status_code=200, payload=None),
        _Response(status_code=200, payload={"token_type": "bearer"}),
        requests.ConnectionError("connection refused"),
    ],
)
def test_acquire_raises_auth_error(response) -> None:
    provider = TokenProvider(_settings(), session=_Session(post=response))

    with pytest.raises(AuthError):
        provider.acquire()


def test_encode_meeting_uuid_double_encodes_slashes() -> None:
    assert encode_meeting_uuid("abc==") == "abc%3D%3D"
    assert encode_meeting_uuid("/abc") == "%252Fabc"
    assert encode_meeting_uuid("ab//c") == "ab%252F%252Fc"


def test_with_access_token_respects_existing_query() -> None:
    assert with_access_token("https://zoom.us/rec/1", "t") == "https://zoom.us/rec/1?access_token=t"
    assert with_access_token("https://zoom.us/rec/1?x=1", "t") == "https://zoom.us/rec/1?x=1&access_token=t"


def test_list_recordings_page_sends_window_and_bearer_token() -> None:
    client, session = _client(get=[_Response(payload={
        "page_count": 1,
        "meetings": [{"uuid": "u1", "topic": "Standup", "start_time": "2024-03-01T10:00:00Z",
                      "recording_files": [{"file_type": "MP4", "file_extension": "MP4",
                                           "download_url": "https://zoom.us/rec/1"}]}],
    })])

    page = client.list_recordings_page("user-1", "2024-03-01", "2024-03-02", page_number=1)

    assert page.meetings[0].meeting_date == "2024-03-01"
    method, url, kwargs = session.calls[-1]
    assert url == "https://api.zoom.us/v2/users/user-1/recordings"
    assert kwargs["params"]["from"] == "2024-03-01"
    assert kwargs["params"]["to"] == "2024-03-02"
    assert kwargs["headers"]["Authorization"] == "Bearer tok-1"


def test_non_200_raises_fetch_error() -> None:
    client, _ = _client(get=[_Response(status_code=500, text="boom")])

    with pytest.raises(FetchError):
        client.list_users_page(1)


def test_unexpected_payload_raises_parse_error() -> None:
    client, _ = _client(get=[_Response(payload={"users": [{"email": "no-id@example.com"}]})])

    with pytest.raises(ParseError):
        client.list_users_page(1)


def test_download_to_path_streams_content(tmp_path) -> None:
    client, session = _client(get=[_Response(content=b"video-bytes-here")])
    target = tmp_path / "video.mp4"

    client.download_to_path("https://zoom.us/rec/download/1", str(target))

    assert target.read_bytes() == b"video-bytes-here"
    _, url, kwargs = session.calls[-1]
    assert url == "https://zoom.us/rec/download/1?access_token=tok-1"
    assert kwargs["allow_redirects"] is True


def test_download_failure_raises_file_transfer_error() -> None:
    client, _ = _client(get=[_Response(status_code=404)])

    with pytest.raises(FileTransferError):
        client.download_file("https://zoom.us/rec/download/1")


@pytest.mark.parametrize("status_code,expected", [(204, True), (200, True), (404, False)])
def test_delete_recording_status(status_code: int, expected: bool) -> None:
    client, session = _client(get=[], delete=_Response(status_code=status_code))

    assert client.delete_recording("/abc") is expected
    assert session.calls[-1][1] == "https://api.zoom.us/v2/meetings/%252Fabc/recordings"
