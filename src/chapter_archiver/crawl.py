from __future__ import annotations

import logging
import time
from collections import Counter
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .content import parse_chapter
from .contract import DEFAULT_CONTRACT, ExtractionContract, ExtractionPolicy
from .errors import ExtractionGap, FileKeyCollision, NetworkError
from .events import (
    ChapterFailed,
    ChaptersResumed,
    ChapterSaved,
    ChapterSkipped,
    ChapterStarted,
    CrawlEvent,
    CrawlFinished,
    ListingPageParsed,
    Listener,
    StoryInfoLoaded,
)
from .http_client import HttpClient
from .listing import listing_page_url, parse_listing, parse_story_info
from .models import (
    Chapter,
    ChapterMeta,
    ChapterReference,
    CrawlSummary,
    StoryInfo,
    chapter_sort_key,
)
from .state import error_record
from .store import ChapterFormat, StoryStore

logger = logging.getLogger(__name__)


@dataclass
class CrawlConfig:
    out_dir: Path
    delay_s: float = 1.0
    start: int | None = None
    end: int | None = None
    fmt: ChapterFormat = ChapterFormat.JSON
    resume: bool = True
    force: bool = False
    contract: ExtractionContract = DEFAULT_CONTRACT
    policy: ExtractionPolicy = ExtractionPolicy.DEGRADE

    def __post_init__(self) -> None:
        if self.force:
            self.resume = False


def merge_references(pages: Iterable[list[ChapterReference]]) -> list[ChapterReference]:
    """Concatenate listing pages and sort them.

    ``order`` is rewritten to the position in the merged listing so that
    numberless references keep their relative placement across pages.
    """

    merged: list[ChapterReference] = []
    for refs in pages:
        offset = len(merged)
        for ref in sorted(refs, key=lambda r: r.order):
            merged.append(
                ChapterReference(
                    number=ref.number,
                    title=ref.title,
                    url=ref.url,
                    order=offset + ref.order,
                )
            )
    return sorted(merged, key=chapter_sort_key)


def filter_range(
    refs: list[ChapterReference], start: int | None, end: int | None
) -> list[ChapterReference]:
    out: list[ChapterReference] = []
    for ref in refs:
        if ref.number is not None:
            if start is not None and ref.number < start:
                continue
            if end is not None and ref.number > end:
                continue
        out.append(ref)
    return out


def split_resumed(
    refs: list[ChapterReference], existing: set[int]
) -> tuple[list[ChapterReference], list[ChapterReference]]:
    """Return (to_fetch, resumed). Numberless references are never resumed."""
    to_fetch: list[ChapterReference] = []
    resumed: list[ChapterReference] = []
    for ref in refs:
        if ref.number is not None and ref.number in existing:
            resumed.append(ref)
        else:
            to_fetch.append(ref)
    return to_fetch, resumed


class Crawler:
    def __init__(
        self,
        *,
        http: HttpClient,
        config: CrawlConfig,
        listeners: Iterable[Listener] = (),
    ) -> None:
        self.http = http
        self.cfg = config
        self._listeners: list[Listener] = list(listeners)
        self._stats: Counter[str] = Counter()

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def _emit(self, event: CrawlEvent) -> None:
        for listener in self._listeners:
            listener(event)

    def _pause(self) -> None:
        if self.cfg.delay_s > 0:
            time.sleep(self.cfg.delay_s)

    def fetch_story_info(self, story_url: str) -> StoryInfo:
        html = self.http.get_text(story_url)
        return parse_story_info(
            html,
            story_url=story_url,
            contract=self.cfg.contract,
            policy=self.cfg.policy,
        )

    def fetch_references(self, info: StoryInfo) -> list[ChapterReference]:
        pages: list[list[ChapterReference]] = []
        for page in range(1, info.total_pages + 1):
            url = listing_page_url(info.url, page, contract=self.cfg.contract)
            logger.info("Fetching chapters from page %d/%d", page, info.total_pages)
            refs = parse_listing(
                self.http.get_text(url), page_url=url, contract=self.cfg.contract
            )
            pages.append(refs)
            self._emit(ListingPageParsed(page, info.total_pages, len(refs)))
            if page < info.total_pages:
                self._pause()
        return merge_references(pages)

    def fetch_chapter_at(self, url: str) -> Chapter:
        return parse_chapter(
            self.http.get_text(url),
            source_url=url,
            contract=self.cfg.contract,
            policy=self.cfg.policy,
        )

    def fetch_chapter(self, ref: ChapterReference) -> Chapter:
        return self.fetch_chapter_at(ref.url).with_reference(ref)

    def crawl_story(self, story_url: str) -> CrawlSummary:
        """Crawl one story into ``out_dir/<slug>``.

        Listing failures propagate. A chapter that cannot be fetched or
        parsed, or whose file name is held by another chapter, is written to
        the story's error log and the run continues.
        Storage failures raise ``PersistenceError``.
        """

        self._stats = Counter()

        info = self.fetch_story_info(story_url)
        logger.info("Story: %s (%d listing pages)", info.title, info.total_pages)
        store = StoryStore(self.cfg.out_dir, info.slug, fmt=self.cfg.fmt)
        store.write_story_info(info)
        self._emit(StoryInfoLoaded(info))

        listed = self.fetch_references(info)
        claimed = {ref.number for ref in listed if ref.number is not None}
        refs = filter_range(listed, self.cfg.start, self.cfg.end)

        if not self.cfg.force:
            existing = store.existing_numbers()
            if existing and not self.cfg.resume:
                logger.info(
                    "Found %d existing chapters; use --force to re-crawl them",
                    len(existing),
                )
            refs, resumed = split_resumed(refs, existing)
            if resumed:
                self._stats["skipped"] += len(resumed)
                logger.info("Skipping %d already downloaded chapters", len(resumed))
                self._emit(ChaptersResumed(tuple(resumed)))

        known: dict[tuple[str, int], ChapterMeta] = {
            meta.key: meta for meta in store.load_chapter_metas()
        }
        store.write_manifest(info, known.values())

        total = len(refs)
        logger.info("Total chapters to crawl: %d", total)
        for index, ref in enumerate(refs, start=1):
            self._emit(ChapterStarted(index, total, ref))
            try:
                if ref.number is None and ref.order in claimed:
                    raise FileKeyCollision(
                        store.chapter_path(ref.order), f"chapter {ref.order}"
                    )
                chapter = self.fetch_chapter(ref)
                written = store.write_chapter(chapter, force=self.cfg.force)
            except (NetworkError, ExtractionGap, FileKeyCollision) as e:
                self._stats["failed"] += 1
                logger.warning("Error crawling chapter %s: %s", ref.number, e)
                store.errors.record(error_record(ref, str(e)))
                self._emit(ChapterFailed(index, total, ref, str(e)))
            else:
                meta = chapter.meta()
                if written:
                    self._stats["saved"] += 1
                    known[meta.key] = meta
                    store.write_manifest(info, known.values())
                    self._emit(ChapterSaved(index, total, chapter))
                else:
                    self._stats["skipped"] += 1
                    known.setdefault(meta.key, meta)
                    store.write_manifest(info, known.values())
                    self._emit(ChapterSkipped(index, total, chapter))

            if index < total:
                self._pause()

        summary = CrawlSummary(
            story_info=info,
            saved=self._stats["saved"],
            skipped=self._stats["skipped"],
            failed=self._stats["failed"],
        )
        self._emit(CrawlFinished(summary))
        return summary
