import threading
from typing import List, Optional

import requests

from productwatch.fetcher import DEFAULT_HEADERS, ResilientFetcher
from productwatch.models import FetchFailure, FetchSuccess

URL = "https://shop.example.com/widget"


class DummyResponse:
    def __init__(self, status_code: int, text: str = "", encoding: Optional[str] = "utf-8"):
        self.status_code = status_code
        self.text = text
        self.encoding = encoding

    @property
    def apparent_encoding(self):
        return "utf-8"


class ScriptedSession:
    """Replays a fixed sequence of responses or exceptions."""

    def __init__(self, script: List[object]):
        self.script = list(script)
        self.headers: dict = {}
        self.calls: List[dict] = []

    def get(self, url, timeout=None):
        self.calls.append({"url": url, "timeout": timeout})
        step = self.script.pop(0)
        if isinstance(step, Exception):
            raise step
        return step


def build_fetcher(script: List[object], sleeps: List[float]) -> ResilientFetcher:
    return ResilientFetcher(session=ScriptedSession(script), sleep=sleeps.append)


def test_fetch_success_returns_html_and_sets_headers():
    sleeps: List[float] = []
    fetcher = build_fetcher([DummyResponse(200, "<h1>Widget</h1>")], sleeps)

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchSuccess)
    assert result.html == "<h1>Widget</h1>"
    assert result.attempts == 1
    assert sleeps == []
    session = fetcher.session
    assert session.calls == [{"url": URL, "timeout": 15}]
    assert session.headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]
    assert "text/html" in session.headers["Accept"]


def test_fetch_retries_retryable_status_with_exponential_backoff():
    sleeps: List[float] = []
    fetcher = build_fetcher(
        [DummyResponse(429), DummyResponse(503), DummyResponse(200, "ok")],
        sleeps,
    )

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchSuccess)
    assert result.attempts == 3
    assert sleeps == [1.0, 2.0]


def test_fetch_gives_up_after_three_forbidden_responses():
    sleeps: List[float] = []
    fetcher = build_fetcher([DummyResponse(403)] * 3, sleeps)

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchFailure)
    assert result.attempts == 3
    assert result.status_code == 403
    assert result.reason == "HTTP 403"
    assert sleeps == [1.0, 2.0]


def test_fetch_stops_immediately_on_terminal_status():
    sleeps: List[float] = []
    fetcher = build_fetcher([DummyResponse(404), DummyResponse(200, "never")], sleeps)

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchFailure)
    assert result.attempts == 1
    assert result.reason == "HTTP 404"
    assert sleeps == []
    assert len(fetcher.session.calls) == 1


def test_fetch_retries_network_errors():
    sleeps: List[float] = []
    fetcher = build_fetcher(
        [requests.Timeout("read timed out"), requests.ConnectionError("reset"), DummyResponse(200, "ok")],
        sleeps,
    )

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchSuccess)
    assert result.attempts == 3
    assert sleeps == [1.0, 2.0]


def test_fetch_reports_network_error_when_exhausted():
    sleeps: List[float] = []
    fetcher = build_fetcher([requests.ConnectionError("refused")] * 3, sleeps)

    result = fetcher.fetch(URL)

    assert isinstance(result, FetchFailure)
    assert result.status_code is None
    assert result.reason.startswith("network error")


def test_fetch_fixes_latin1_default_encoding():
    sleeps: List[float] = []
    response = DummyResponse(200, "body", encoding="ISO-8859-1")
    fetcher = build_fetcher([response], sleeps)

    fetcher.fetch(URL)

    assert response.encoding == "utf-8"


def test_each_thread_gets_its_own_session():
    created: List[ScriptedSession] = []

    def factory():
        session = ScriptedSession([DummyResponse(200, "ok")] * 2)
        created.append(session)
        return session

    fetcher = ResilientFetcher(session_factory=factory, sleep=lambda _: None)

    fetcher.fetch(URL)
    fetcher.fetch(URL)
    worker = threading.Thread(target=fetcher.fetch, args=(URL,))
    worker.start()
    worker.join()

    assert len(created) == 2
    assert len(created[0].calls) == 2
    assert len(created[1].calls) == 1
    assert created[1].headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]
