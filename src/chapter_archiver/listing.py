from __future__ import annotations

import logging

from bs4 import BeautifulSoup

from .contract import (
    DEFAULT_CONTRACT,
    ExtractionContract,
    ExtractionPolicy,
    first_text,
    resolve_gap,
)
from .models import ChapterReference, StoryInfo
from .urls import absolute_url, join_path_segment, normalize_url, story_slug

logger = logging.getLogger(__name__)


def _attr_text(val: object) -> str:
    if isinstance(val, list):
        return str(val[0]) if val else ""
    return str(val or "")


def listing_page_url(
    story_url: str,
    page: int,
    *,
    contract: ExtractionContract = DEFAULT_CONTRACT,
) -> str:
    """Page 1 is the story root; later pages append a page path segment."""
    if page <= 1:
        return normalize_url(story_url)
    return join_path_segment(story_url, contract.page_path_template.format(page=page))


def _parse_total_pages(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return max(1, int(raw.strip()))
    except ValueError:
        return None


def parse_story_info(
    html: str,
    *,
    story_url: str,
    contract: ExtractionContract = DEFAULT_CONTRACT,
    policy: ExtractionPolicy = ExtractionPolicy.DEGRADE,
) -> StoryInfo:
    soup = BeautifulSoup(html, "html.parser")
    title = resolve_gap(
        first_text(soup, contract.story_title),
        field="story title",
        url=story_url,
        default="Unknown Story",
        policy=policy,
    )

    node = soup.select_one(contract.total_pages)
    raw_total: str | None = None
    if node is not None:
        raw_total = _attr_text(node.get("value")) or node.get_text(strip=True)
    total_pages = _parse_total_pages(raw_total)
    if total_pages is None:
        total_pages = int(
            resolve_gap(
                None,
                field="total pages",
                url=story_url,
                default="1",
                policy=policy,
            )
        )

    return StoryInfo(
        title=title,
        slug=story_slug(story_url),
        url=story_url,
        total_pages=total_pages,
    )


def parse_listing(
    html: str,
    *,
    page_url: str,
    contract: ExtractionContract = DEFAULT_CONTRACT,
) -> list[ChapterReference]:
    """Extract chapter references in page order.

    Never raises on missing data: anchors without a parseable chapter number
    get ``number=None`` and are ordered by position only.
    """

    soup = BeautifulSoup(html, "html.parser")
    refs: list[ChapterReference] = []
    for a in soup.select(contract.chapter_links):
        href = _attr_text(a.get("href")).strip()
        if not href:
            continue
        title = _attr_text(a.get("title")).strip() or a.get_text(" ", strip=True)
        refs.append(
            ChapterReference(
                number=contract.chapter_number(href),
                title=title,
                url=absolute_url(href, page_url=page_url),
                order=len(refs),
            )
        )

    if not refs:
        logger.warning("No chapter links found on %s", page_url)
    return refs
