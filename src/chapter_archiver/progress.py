from __future__ import annotations

from tqdm import tqdm

from .events import (
    ChapterFailed,
    ChaptersResumed,
    ChapterSaved,
    ChapterSkipped,
    ChapterStarted,
    CrawlEvent,
    CrawlFinished,
    StoryInfoLoaded,
)

_SHOW_RESUMED = 10


class ProgressReporter:
    """Render crawl events as a tqdm bar plus one line per notable event."""

    def __init__(self, *, disable: bool = False) -> None:
        self._disable = disable
        self._bar: tqdm | None = None

    def __call__(self, event: CrawlEvent) -> None:
        if isinstance(event, StoryInfoLoaded):
            info = event.story_info
            tqdm.write(f"Story: {info.title} ({info.total_pages} listing pages)")
        elif isinstance(event, ChaptersResumed):
            refs = event.references
            tqdm.write(f"Skipping {len(refs)} already downloaded chapters")
            for ref in refs[:_SHOW_RESUMED]:
                tqdm.write(f"  - Chapter {ref.number}: {ref.title}")
            if len(refs) > _SHOW_RESUMED:
                tqdm.write(f"  ... and {len(refs) - _SHOW_RESUMED} more")
        elif isinstance(event, ChapterStarted):
            if self._bar is None:
                self._bar = tqdm(
                    total=event.total,
                    desc="Chapters",
                    unit="ch",
                    disable=self._disable,
                )
            self._bar.set_postfix_str(event.reference.title[:40])
        elif isinstance(event, ChapterSaved):
            self._advance()
        elif isinstance(event, ChapterSkipped):
            tqdm.write(
                f"Skipped (already exists): Chapter {event.chapter.number} "
                f"- {event.chapter.title}"
            )
            self._advance()
        elif isinstance(event, ChapterFailed):
            number = event.reference.number
            if number is None:
                number = "N/A"
            tqdm.write(f"Error crawling chapter {number}: {event.error}")
            self._advance()
        elif isinstance(event, CrawlFinished):
            self.close()

    def _advance(self) -> None:
        if self._bar is not None:
            self._bar.update(1)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None
