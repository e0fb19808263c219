import json

import pytest
import requests

from tbcexplorer.httpclient import DEFAULT_TIMEOUT, HttpClient, HttpError, parse_response


class FakeResponse:
    def __init__(self, status_code, content):
        self.status_code = status_code
        self.content = content


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def test_get_joins_base_url_and_path_and_returns_body():
    session = FakeSession(FakeResponse(200, b'{"a": 1}'))
    client = HttpClient("http://localhost:8000", session=session)
    body = client.get("/api/thing?x=1")
    assert body == b'{"a": 1}'
    assert session.calls[0][0] == "http://localhost:8000/api/thing?x=1"


def test_get_uses_default_timeout():
    session = FakeSession(FakeResponse(200, b""))
    HttpClient("http://localhost", session=session).get("/")
    assert session.calls[0][1]["timeout"] == DEFAULT_TIMEOUT


def test_get_custom_timeout_is_passed():
    session = FakeSession(FakeResponse(200, b""))
    HttpClient("http://localhost", timeout=2.5, session=session).get("/")
    assert session.calls[0][1]["timeout"] == 2.5


@pytest.mark.parametrize("status", [201, 404, 500])
def test_non_200_status_raises(status):
    session = FakeSession(FakeResponse(status, b"body"))
    client = HttpClient("http://localhost", session=session)
    with pytest.raises(HttpError) as info:
        client.get("/x")
    assert info.value.status_code == status
    assert str(status) in str(info.value)


def test_transport_error_raises_http_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    client = HttpClient("http://localhost", session=session)
    with pytest.raises(HttpError) as info:
        client.get("/x")
    assert info.value.status_code is None
    assert isinstance(info.value.__cause__, requests.ConnectionError)


def test_parse_response_round_trip():
    payload = {"symbol": "TBCUSDT", "values": [1, 2, 3], "nested": {"ok": True}}
    assert parse_response(json.dumps(payload).encode()) == payload


def test_parse_response_accepts_text():
    assert parse_response('[1, "two"]') == [1, "two"]


@pytest.mark.parametrize("data", [b"", b"not json", b"{", b"\xff\xfe"])
def test_parse_response_invalid_raises(data):
    with pytest.raises(HttpError):
        parse_response(data)