from __future__ import annotations

import re
from urllib.parse import ParseResult, urljoin, urlparse, urlunparse

_INVALID_FILENAME_CHARS = re.compile(r"[<>:\"/\\|?*]")


def normalize_url(raw_url: str) -> str:
    """Normalize a URL before it is requested.

    - Lowercases scheme + hostname.
    - Strips fragments (listing anchors such as ``#list-chapter``).
    """

    parsed: ParseResult = urlparse(raw_url.strip())
    parsed = parsed._replace(
        scheme=(parsed.scheme or "").lower(),
        netloc=(parsed.netloc or "").lower(),
        fragment="",
    )
    return urlunparse(parsed)


def is_story_url(url: str) -> bool:
    parsed = urlparse(url or "")
    return parsed.scheme in {"http", "https"} and bool(parsed.netloc)


def story_slug(story_url: str) -> str:
    parts = [p for p in urlparse(story_url).path.split("/") if p]
    return parts[0] if parts else "unknown"


def sanitize_file_name(name: str) -> str:
    """Make a slug safe to use as a directory name."""
    cleaned = _INVALID_FILENAME_CHARS.sub("_", name)
    cleaned = re.sub(r"\s+", "_", cleaned)
    cleaned = re.sub(r"_+", "_", cleaned)
    return cleaned.strip()


def join_path_segment(root_url: str, segment: str) -> str:
    base = normalize_url(root_url).rstrip("/") + "/"
    return urljoin(base, segment)


def absolute_url(href: str, *, page_url: str) -> str:
    return normalize_url(urljoin(page_url, href.strip()))
