from __future__ import annotations

from pathlib import Path

import pytest
from requests import exceptions as req_exc

from chapter_archiver.crawl import CrawlConfig, Crawler
from chapter_archiver.http_client import HttpClient

STORY_URL = "https://truyen.example/my-story/"


class FakeResponse:
    def __init__(self, url: str, status_code: int, body: str) -> None:
        self.url = url
        self.status_code = status_code
        self.content = body.encode("utf-8")
        self.headers = {"Content-Type": "text/html; charset=utf-8"}
        self.encoding = "utf-8"


class FakeSession:
    """Serves canned pages keyed by URL; records every request."""

    def __init__(self, routes: dict[str, object] | None = None) -> None:
        self.routes: dict[str, object] = dict(routes or {})
        self.calls: list[str] = []

    def get(self, url: str, timeout: float | None = None) -> FakeResponse:
        self.calls.append(url)
        route = self.routes.get(url)
        if route is None:
            return FakeResponse(url, 404, "not found")
        if isinstance(route, Exception):
            raise route
        if isinstance(route, tuple):
            status, body = route
            return FakeResponse(url, int(status), str(body))
        return FakeResponse(url, 200, str(route))

    def calls_to(self, url: str) -> int:
        return self.calls.count(url)


def chapter_url(number: int) -> str:
    return f"{STORY_URL}chuong-{number}/"


def listing_html(
    links: list[tuple[str, str]], *, total_pages: int | None = None, title: str = "My Story"
) -> str:
    items = "\n".join(
        f'<li><a href="{href}" title="{text}">{text}</a></li>' for href, text in links
    )
    total = (
        f'<input id="total-page" type="hidden" value="{total_pages}">'
        if total_pages is not None
        else ""
    )
    return f"""<html><body>
<h1>{title}</h1>
{total}
<div id="list-chapter"><ul class="list-chapter">
{items}
</ul></div>
</body></html>"""


def chapter_html(title: str, body: str) -> str:
    return f"""<html><body>
<h2><a class="chapter-title" href="#">{title}</a></h2>
<div id="chapter-c">{body}<script>var ad = 1;</script>
<div class="ads">Buy now</div><iframe src="https://ads.example"></iframe></div>
</body></html>"""


def numbered_links(numbers: list[int]) -> list[tuple[str, str]]:
    return [(chapter_url(n), f"Chapter {n}") for n in numbers]


def build_site(
    pages: list[list[int]], *, extra_chapters: dict[str, str] | None = None
) -> FakeSession:
    """A story with one listing page per entry of ``pages``."""
    routes: dict[str, object] = {}
    for i, numbers in enumerate(pages, start=1):
        url = STORY_URL if i == 1 else f"{STORY_URL}trang-{i}/"
        routes[url] = listing_html(
            numbered_links(numbers),
            total_pages=len(pages) if i == 1 else None,
        )
        for n in numbers:
            routes[chapter_url(n)] = chapter_html(
                f"Chapter {n}", f"<p>Text of chapter {n}</p>"
            )
    routes.update(extra_chapters or {})
    return FakeSession(routes)


@pytest.fixture(autouse=True)
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []
    monkeypatch.setattr("time.sleep", recorded.append)
    return recorded


@pytest.fixture
def make_crawler(tmp_path: Path):
    def _make(session: FakeSession, **cfg_kwargs) -> tuple[Crawler, list]:
        events: list = []
        http = HttpClient(session, timeout_s=5, max_retries=2, backoff_base_s=0.5)
        cfg_kwargs.setdefault("delay_s", 0.25)
        config = CrawlConfig(out_dir=tmp_path / "output", **cfg_kwargs)
        return Crawler(http=http, config=config, listeners=[events.append]), events

    return _make


@pytest.fixture
def connection_error() -> Exception:
    return req_exc.ConnectionError("connection reset")
