from __future__ import annotations

import pytest
import requests
from mclaunch.utils import http_utils
from mclaunch.utils.errors import ParseError, TransportError
from mclaunch.utils.http_utils import HTTPUtils


class _FakeResponse:
    def __init__(self, status_code: int = 200, content: bytes = b"", reason: str = ""):
        self.status_code = status_code
        self.content = content
        self.reason = reason
        self.closed = False

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def close(self) -> None:
        self.closed = True


def _patch_get(monkeypatch, responses):
    calls: list[str] = []

    def fake_get(url, timeout=None, stream=False, headers=None):
        calls.append(url)
        item = responses[min(len(calls), len(responses)) - 1]
        if isinstance(item, Exception):
            raise item
        return item

    monkeypatch.setattr(http_utils.requests, "get", fake_get)
    return calls


@pytest.mark.smoke
def test_http_status_is_classified(monkeypatch) -> None:
    _patch_get(monkeypatch, [_FakeResponse(404, reason="Not Found")])

    with pytest.raises(TransportError) as info:
        HTTPUtils.get_bytes("https://example.invalid/missing")

    assert info.value.status_code == 404
    assert info.value.is_not_found
    assert "check your internet connection" in str(info.value)


@pytest.mark.smoke
def test_connection_error_has_no_status(monkeypatch) -> None:
    _patch_get(monkeypatch, [requests.ConnectionError("refused")])

    with pytest.raises(TransportError) as info:
        HTTPUtils.get_text("https://example.invalid/")

    assert info.value.status_code is None
    assert not info.value.is_not_found


@pytest.mark.smoke
def test_get_json_parse_error(monkeypatch) -> None:
    _patch_get(monkeypatch, [_FakeResponse(200, b"{not json")])

    with pytest.raises(ParseError) as info:
        HTTPUtils.get_json("https://example.invalid/bad.json")

    assert info.value.source == "https://example.invalid/bad.json"


@pytest.mark.smoke
def test_get_json_or_none_maps_404_to_none(monkeypatch) -> None:
    _patch_get(monkeypatch, [_FakeResponse(404)])
    assert HTTPUtils.get_json_or_none("https://example.invalid/x.json") is None

    _patch_get(monkeypatch, [_FakeResponse(500, reason="Server Error")])
    with pytest.raises(TransportError):
        HTTPUtils.get_json_or_none("https://example.invalid/x.json")


@pytest.mark.smoke
def test_retry_recovers_from_transient_errors(monkeypatch) -> None:
    calls = _patch_get(monkeypatch, [_FakeResponse(503), _FakeResponse(502), _FakeResponse(200, b"[1, 2]")])

    result = HTTPUtils.with_retry(lambda: HTTPUtils.get_json("https://example.invalid/list"), attempts=3)

    assert result == [1, 2]
    assert len(calls) == 3


@pytest.mark.smoke
def test_retry_never_retries_not_found(monkeypatch) -> None:
    calls = _patch_get(monkeypatch, [_FakeResponse(404)])

    with pytest.raises(TransportError):
        HTTPUtils.with_retry(lambda: HTTPUtils.get_bytes("https://example.invalid/x"), attempts=5)

    assert len(calls) == 1


@pytest.mark.smoke
def test_retry_gives_up_after_attempts(monkeypatch) -> None:
    calls = _patch_get(monkeypatch, [_FakeResponse(500)])

    with pytest.raises(TransportError) as info:
        HTTPUtils.with_retry(lambda: HTTPUtils.get_bytes("https://example.invalid/x"), attempts=2)

    assert info.value.status_code == 500
    assert len(calls) == 3
