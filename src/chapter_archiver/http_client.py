from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

import requests
from requests import exceptions as req_exc

from .errors import NetworkError
from .urls import normalize_url

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/webp,*/*;q=0.8"
    ),
    "Accept-Language": "en-US,en;q=0.5",
    "Connection": "keep-alive",
    "Upgrade-Insecure-Requests": "1",
}


def new_session() -> requests.Session:
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    return session


@dataclass(frozen=True)
class FetchResult:
    url: str
    final_url: str
    status_code: int
    fetched_at: float
    body: bytes
    encoding: str | None = None

    @property
    def text(self) -> str:
        return self.body.decode(self.encoding or "utf-8", errors="replace")


class HttpClient:
    """Sequential GET client with a fixed timeout and linear backoff.

    Every failure (transport error, timeout or non-2xx status) is retried
    up to ``max_retries`` times. Before retry ``n`` (1-based) the client
    waits ``backoff_base_s * n`` seconds.
    """

    def __init__(
        self,
        session: requests.Session,
        *,
        timeout_s: float = 30,
        max_retries: int = 3,
        backoff_base_s: float = 1.0,
    ) -> None:
        self._session = session
        self._timeout_s = timeout_s
        self._max_retries = max(0, max_retries)
        self._backoff_base_s = backoff_base_s

    @property
    def max_attempts(self) -> int:
        return self._max_retries + 1

    def backoff_schedule(self) -> list[float]:
        return [
            self._backoff_base_s * attempt
            for attempt in range(1, self._max_retries + 1)
        ]

    def get(self, url: str) -> FetchResult:
        normalized = normalize_url(url)
        waits = self.backoff_schedule()
        last_error = "no attempt made"

        for attempt in range(self.max_attempts):
            if attempt:
                logger.warning(
                    "Retrying %s (attempt %d/%d): %s",
                    normalized,
                    attempt,
                    self._max_retries,
                    last_error,
                )
                time.sleep(waits[attempt - 1])
            try:
                resp = self._session.get(normalized, timeout=self._timeout_s)
            except req_exc.RequestException as e:
                last_error = str(e) or type(e).__name__
                continue

            if not 200 <= resp.status_code < 300:
                last_error = f"HTTP error! status: {resp.status_code}"
                continue

            # requests guesses ISO-8859-1 for text/* without a charset.
            content_type = str(resp.headers.get("Content-Type") or "")
            return FetchResult(
                url=normalized,
                final_url=str(resp.url),
                status_code=int(resp.status_code),
                fetched_at=time.time(),
                body=resp.content,
                encoding=resp.encoding if "charset" in content_type.lower() else None,
            )

        raise NetworkError(normalized, last_error)

    def get_text(self, url: str) -> str:
        return self.get(url).text


def load_json(path: Path) -> dict | None:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return None
