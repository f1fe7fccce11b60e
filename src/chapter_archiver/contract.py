"""Site-specific extraction rules.

The defaults describe the TruyenFull layout. Other sites with the same
crawl shape (paginated listing + one page per chapter) can be handled by
loading a JSON file with the same keys as ``ExtractionContract``.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any

from bs4 import BeautifulSoup, Tag

from .errors import ExtractionGap

logger = logging.getLogger(__name__)


class ExtractionPolicy(str, Enum):
    # Substitute defaults and log a warning.
    DEGRADE = "degrade"
    # Raise ExtractionGap.
    STRICT = "strict"


@dataclass(frozen=True)
class ExtractionContract:
    story_title: tuple[str, ...] = ("h1", ".title-story")
    total_pages: str = "#total-page"
    chapter_links: str = "#list-chapter ul.list-chapter li a"
    chapter_title: tuple[str, ...] = ("h2 a.chapter-title", ".chapter-title", "h2")
    chapter_content: tuple[str, ...] = ("#chapter-c", ".chapter-c")
    strip_elements: tuple[str, ...] = (
        "script",
        "style",
        ".ads",
        ".advertisement",
        "iframe",
    )
    chapter_number_pattern: str = r"chuong-(\d+)"
    page_path_template: str = "trang-{page}/"
    chapter_url_template: str = "chuong-{number}/"

    def chapter_number(self, url: str) -> int | None:
        match = re.search(self.chapter_number_pattern, url or "")
        if not match:
            return None
        return int(match.group(1))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ExtractionContract:
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown extraction contract keys: {unknown}")
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            kwargs[key] = tuple(value) if isinstance(value, list) else value
        return cls(**kwargs)

    @classmethod
    def from_json(cls, path: Path) -> ExtractionContract:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"Extraction contract must be a JSON object: {path}")
        return cls.from_dict(data)


DEFAULT_CONTRACT = ExtractionContract()


def select_first(soup: BeautifulSoup | Tag, selectors: tuple[str, ...]) -> Tag | None:
    for selector in selectors:
        node = soup.select_one(selector)
        if node is not None:
            return node
    return None


def first_text(soup: BeautifulSoup | Tag, selectors: tuple[str, ...]) -> str | None:
    """Return the first non-empty stripped text; None when nothing matched."""
    for selector in selectors:
        node = soup.select_one(selector)
        if node is None:
            continue
        text = node.get_text(" ", strip=True)
        if text:
            return text
    return None


def resolve_gap(
    value: str | None,
    *,
    field: str,
    url: str,
    default: str,
    policy: ExtractionPolicy,
) -> str:
    if value is not None:
        return value
    if policy is ExtractionPolicy.STRICT:
        raise ExtractionGap(field, url)
    logger.warning("No match for %s in %s; using %r", field, url, default)
    return default
