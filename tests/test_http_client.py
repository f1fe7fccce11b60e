from __future__ import annotations

import pytest

from chapter_archiver.errors import NetworkError
from chapter_archiver.http_client import DEFAULT_HEADERS, HttpClient, new_session

from conftest import FakeResponse, FakeSession


class FlakySession(FakeSession):
    def __init__(self, failures: list[object], body: str = "<html>ok</html>") -> None:
        super().__init__()
        self._failures = list(failures)
        self._body = body

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.calls.append(url)
        if self._failures:
            failure = self._failures.pop(0)
            if isinstance(failure, Exception):
                raise failure
            return FakeResponse(url, int(failure), "error")
        return FakeResponse(url, 200, self._body)


def test_backoff_schedule_is_linear() -> None:
    http = HttpClient(FakeSession(), max_retries=3, backoff_base_s=1.5)
    assert http.max_attempts == 4
    assert http.backoff_schedule() == [1.5, 3.0, 4.5]


def test_success_on_first_attempt_does_not_sleep(sleeps: list[float]) -> None:
    session = FakeSession({"https://a.example/x": "<p>hi</p>"})
    http = HttpClient(session)
    assert http.get_text("https://a.example/x") == "<p>hi</p>"
    assert session.calls == ["https://a.example/x"]
    assert sleeps == []


def test_retries_transport_errors_and_status_codes(
    sleeps: list[float], connection_error: Exception
) -> None:
    session = FlakySession([connection_error, 503])
    http = HttpClient(session, max_retries=3, backoff_base_s=2.0)

    result = http.get("https://a.example/x")

    assert result.status_code == 200
    assert len(session.calls) == 3
    assert sleeps == [2.0, 4.0]


def test_exhausted_retries_raise_network_error(sleeps: list[float]) -> None:
    session = FlakySession([500, 500, 500, 404])
    http = HttpClient(session, max_retries=3, backoff_base_s=1.0)

    with pytest.raises(NetworkError) as exc_info:
        http.get("https://A.example/x#frag")

    err = exc_info.value
    assert err.url == "https://a.example/x"
    assert "404" in err.message
    assert len(session.calls) == 4
    assert sleeps == [1.0, 2.0, 3.0]


def test_zero_retries_means_single_attempt(connection_error: Exception) -> None:
    session = FlakySession([connection_error])
    http = HttpClient(session, max_retries=0)
    with pytest.raises(NetworkError):
        http.get("https://a.example/x")
    assert len(session.calls) == 1


def test_new_session_sends_browser_headers() -> None:
    session = new_session()
    assert session.headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]
