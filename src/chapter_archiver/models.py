from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True)
class StoryInfo:
    title: str
    slug: str
    url: str
    total_pages: int = 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "slug": self.slug,
            "url": self.url,
            "totalPages": self.total_pages,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StoryInfo:
        return cls(
            title=str(data.get("title") or ""),
            slug=str(data.get("slug") or ""),
            url=str(data.get("url") or ""),
            total_pages=int(data.get("totalPages") or 1),
        )


@dataclass(frozen=True)
class ChapterReference:
    number: int | None
    title: str
    url: str
    order: int


@dataclass(frozen=True)
class ChapterMeta:
    """Chapter metadata as listed in the manifest (no body)."""

    number: int | None
    title: str
    url: str
    order: int = 0

    @property
    def key(self) -> tuple[str, int]:
        if self.number is None:
            return ("order", self.order)
        return ("number", self.number)

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "order": self.order,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChapterMeta:
        number = data.get("number")
        return cls(
            number=int(number) if number is not None else None,
            title=str(data.get("title") or ""),
            url=str(data.get("url") or ""),
            order=int(data.get("order") or 0),
        )


@dataclass(frozen=True)
class ChapterContent:
    text: str = ""
    html: str = ""


@dataclass(frozen=True)
class Chapter:
    number: int | None
    title: str
    url: str
    content: ChapterContent = field(default_factory=ChapterContent)
    order: int = 0

    @property
    def file_key(self) -> int:
        return self.number if self.number is not None else self.order

    def meta(self) -> ChapterMeta:
        return ChapterMeta(
            number=self.number, title=self.title, url=self.url, order=self.order
        )

    def with_reference(self, ref: ChapterReference) -> Chapter:
        """Attach listing position; fall back to the listing number."""
        number = self.number if self.number is not None else ref.number
        return replace(self, number=number, order=ref.order)

    def to_dict(self) -> dict[str, Any]:
        return {
            "number": self.number,
            "title": self.title,
            "url": self.url,
            "order": self.order,
            "content": {"text": self.content.text, "html": self.content.html},
        }


def chapter_sort_key(item: ChapterReference | ChapterMeta) -> tuple[int, int, int]:
    """Numbered chapters first, by number; then numberless ones by position."""
    if item.number is None:
        return (1, item.order, 0)
    return (0, item.number, item.order)


@dataclass(frozen=True)
class ErrorRecord:
    number: int | None
    title: str
    message: str
    timestamp: str
    url: str = ""

    def to_line(self) -> str:
        number = self.number if self.number is not None else "N/A"
        return f"[{self.timestamp}] Chapter {number} - {self.title}: {self.message}"


@dataclass(frozen=True)
class CrawlSummary:
    story_info: StoryInfo
    saved: int = 0
    skipped: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.saved + self.skipped + self.failed
