from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from .errors import PersistenceError
from .http_client import load_json
from .models import StoryInfo
from .store import StoryStore


@dataclass(frozen=True)
class ChapterFileStatus:
    number: int
    title: str
    file: str
    size_bytes: int

    @property
    def size_kb(self) -> float:
        return self.size_bytes / 1024


@dataclass(frozen=True)
class StoryStatus:
    slug: str
    story_dir: Path
    info: StoryInfo | None = None
    chapters: list[ChapterFileStatus] = field(default_factory=list)

    @property
    def first(self) -> int | None:
        return self.chapters[0].number if self.chapters else None

    @property
    def last(self) -> int | None:
        return self.chapters[-1].number if self.chapters else None

    @property
    def gaps(self) -> list[int]:
        """Numbers between the first and last file that have no file."""
        if not self.chapters:
            return []
        present = {c.number for c in self.chapters}
        first, last = self.chapters[0].number, self.chapters[-1].number
        return [n for n in range(first, last + 1) if n not in present]


def check_story(store: StoryStore) -> StoryStatus | None:
    """Summarize the chapter files of one story in the store's format.

    Returns None when the story directory does not exist.
    """

    if not store.story_dir.is_dir():
        return None

    info = None
    data = load_json(store.info_path)
    if isinstance(data, dict):
        info = StoryInfo.from_dict(data)

    chapters: list[ChapterFileStatus] = []
    for key, path in store.chapter_files():
        try:
            size = path.stat().st_size
        except OSError as e:
            raise PersistenceError(path, str(e)) from e
        try:
            title = store.read_meta(key, path).title
        except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError):
            title = ""
        chapters.append(
            ChapterFileStatus(
                number=key,
                title=title or f"Chapter {key}",
                file=path.name,
                size_bytes=size,
            )
        )
    chapters.sort(key=lambda c: c.number)
    return StoryStatus(
        slug=store.slug, story_dir=store.story_dir, info=info, chapters=chapters
    )
