"""Typed events published by the crawler.

Listeners are plain callables taking one event. The CLI subscribes a
progress reporter; tests subscribe a list's ``append``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Union

from .models import Chapter, ChapterReference, CrawlSummary, StoryInfo


@dataclass(frozen=True)
class StoryInfoLoaded:
    story_info: StoryInfo


@dataclass(frozen=True)
class ListingPageParsed:
    page: int
    total_pages: int
    references: int


@dataclass(frozen=True)
class ChaptersResumed:
    """Numbered references dropped because their files already exist."""

    references: tuple[ChapterReference, ...]


@dataclass(frozen=True)
class ChapterStarted:
    index: int
    total: int
    reference: ChapterReference


@dataclass(frozen=True)
class ChapterSaved:
    index: int
    total: int
    chapter: Chapter


@dataclass(frozen=True)
class ChapterSkipped:
    index: int
    total: int
    chapter: Chapter


@dataclass(frozen=True)
class ChapterFailed:
    index: int
    total: int
    reference: ChapterReference
    error: str


@dataclass(frozen=True)
class CrawlFinished:
    summary: CrawlSummary


CrawlEvent = Union[
    StoryInfoLoaded,
    ListingPageParsed,
    ChaptersResumed,
    ChapterStarted,
    ChapterSaved,
    ChapterSkipped,
    ChapterFailed,
    CrawlFinished,
]

Listener = Callable[[CrawlEvent], None]
