from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from pathlib import Path

from .contract import DEFAULT_CONTRACT, ExtractionContract, ExtractionPolicy
from .crawl import CrawlConfig, Crawler
from .errors import ExtractionGap, FileKeyCollision, NetworkError, ReportError
from .http_client import HttpClient
from .manifest import utc_iso
from .missing import MissingReport, load_report, save_report
from .models import ChapterMeta, StoryInfo
from .state import ErrorLog
from .store import ChapterFormat, StoryStore
from .urls import join_path_segment

logger = logging.getLogger(__name__)


def chapter_url(
    story_url: str, number: int, *, contract: ExtractionContract = DEFAULT_CONTRACT
) -> str:
    return join_path_segment(story_url, contract.chapter_url_template.format(number=number))


@dataclass(frozen=True)
class RetryResult:
    story: str
    success: int = 0
    failed: int = 0

    @property
    def complete(self) -> bool:
        return self.failed == 0 and self.success > 0


class RetryRunner:
    """Re-fetch chapters listed in the missing-chapters report."""

    def __init__(
        self,
        *,
        http: HttpClient,
        output_dir: Path,
        delay_s: float = 1.0,
        story_delay_s: float = 2.0,
        contract: ExtractionContract = DEFAULT_CONTRACT,
        policy: ExtractionPolicy = ExtractionPolicy.DEGRADE,
        fmt: ChapterFormat = ChapterFormat.JSON,
    ) -> None:
        self.output_dir = output_dir
        self.delay_s = delay_s
        self.story_delay_s = story_delay_s
        self.contract = contract
        self.fmt = fmt
        self.crawler = Crawler(
            http=http,
            config=CrawlConfig(
                out_dir=output_dir,
                delay_s=delay_s,
                fmt=fmt,
                contract=contract,
                policy=policy,
            ),
        )

    def _store(self, story: str) -> StoryStore:
        return StoryStore(self.output_dir, story, fmt=self.fmt)

    def story_url(self, story: str) -> str | None:
        info, _ = self._store(story).manifest.read()
        if info is None or not info.url:
            return None
        return info.url

    def retry_story(
        self, story: str, missing: list[ChapterMeta], story_url: str
    ) -> RetryResult:
        logger.info("Retrying %s: %d missing chapters", story, len(missing))
        store = self._store(story)
        retry_log = ErrorLog(store.story_dir / "retry_errors.log")

        recovered: list[int] = []
        failed = 0
        for i, meta in enumerate(missing):
            if meta.number is None:
                url = meta.url
            else:
                url = meta.url or chapter_url(
                    story_url, meta.number, contract=self.contract
                )
            try:
                chapter = self.crawler.fetch_chapter_at(url)
                if chapter.number is None:
                    chapter = replace(chapter, number=meta.number, order=meta.order)
                store.write_chapter(chapter, force=True)
            except (NetworkError, ExtractionGap, FileKeyCollision) as e:
                failed += 1
                logger.warning("Chapter %s failed: %s", meta.number, e)
                retry_log.append_line(
                    f"[{utc_iso()}] Chapter {meta.number} - {meta.title} ({url}): {e}"
                )
            else:
                if chapter.number is not None:
                    recovered.append(chapter.number)
                logger.info("Saved chapter %s", chapter.number)

            if i < len(missing) - 1 and self.delay_s > 0:
                time.sleep(self.delay_s)

        if recovered:
            info, _ = store.manifest.read()
            if info is None:
                info = StoryInfo(title=story, slug=story, url=story_url)
            store.rebuild_manifest(info)
            store.errors.clear_chapters(recovered)

        result = RetryResult(story=story, success=len(recovered), failed=failed)
        if result.complete:
            retry_log.remove()
        logger.info("%s: success=%d failed=%d", story, result.success, result.failed)
        return result

    def _finish(self, report: MissingReport, result: RetryResult) -> None:
        if result.complete:
            report.pop(result.story, None)
            save_report(self.output_dir, report)

    def retry_all(self) -> list[RetryResult]:
        report = load_report(self.output_dir)
        results: list[RetryResult] = []
        stories = list(report)
        for i, story in enumerate(stories):
            url = self.story_url(story)
            if url is None:
                logger.error("Could not find URL for %s in story.json, skipping", story)
                continue
            result = self.retry_story(story, report[story], url)
            results.append(result)
            self._finish(report, result)
            if i < len(stories) - 1 and self.story_delay_s > 0:
                time.sleep(self.story_delay_s)
        return results

    def retry_one(self, story: str, story_url: str | None = None) -> RetryResult:
        report = load_report(self.output_dir)
        if story not in report:
            raise ReportError(f'Story "{story}" not found in missing chapters report')
        url = story_url or self.story_url(story)
        if not url:
            raise ReportError(
                f"Could not find URL for {story} in story.json; pass it explicitly"
            )
        result = self.retry_story(story, report[story], url)
        self._finish(report, result)
        return result
