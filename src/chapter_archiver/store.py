from __future__ import annotations

import json
import logging
import re
from enum import Enum
from pathlib import Path
from typing import Iterable

from .errors import FileKeyCollision, PersistenceError
from .http_client import load_json
from .manifest import ManifestWriter, dump_json, write_text_atomic
from .models import Chapter, ChapterMeta, StoryInfo
from .state import ErrorLog
from .urls import sanitize_file_name

logger = logging.getLogger(__name__)

_CHAPTER_FILE_RE = re.compile(r"^chapter-(\d+)\.(json|txt)$")


class ChapterFormat(str, Enum):
    JSON = "json"
    TXT = "txt"

    @property
    def suffix(self) -> str:
        return "." + self.value


def chapter_file_name(key: int, fmt: ChapterFormat) -> str:
    return f"chapter-{key:05d}{fmt.suffix}"


class StoryStore:
    """On-disk archive of one story.

    Layout::

        <output_dir>/<slug>/info.json
        <output_dir>/<slug>/story.json        (manifest)
        <output_dir>/<slug>/chapters/chapter-00001.json
        <output_dir>/<slug>/errors.log
    """

    def __init__(
        self,
        output_dir: Path,
        slug: str,
        *,
        fmt: ChapterFormat = ChapterFormat.JSON,
    ) -> None:
        self.slug = sanitize_file_name(slug)
        self.fmt = fmt
        self.story_dir = output_dir / self.slug
        self.chapters_dir = self.story_dir / "chapters"
        self.info_path = self.story_dir / "info.json"
        self.manifest = ManifestWriter(self.story_dir)
        self.errors = ErrorLog(self.story_dir / "errors.log")

    def chapter_path(self, key: int) -> Path:
        return self.chapters_dir / chapter_file_name(key, self.fmt)

    def write_story_info(self, info: StoryInfo) -> None:
        write_text_atomic(self.info_path, dump_json(info.to_dict()))

    def write_chapter(self, chapter: Chapter, *, force: bool = False) -> bool:
        """Write one chapter file.

        Returns False, without opening the file for writing, when it already
        exists and ``force`` is off. Raises ``FileKeyCollision`` when the
        existing file belongs to another chapter, with or without ``force``.
        """

        path = self.chapter_path(chapter.file_key)
        if path.exists():
            owner = self.file_owner(path)
            if owner is not None and not _same_chapter(owner, chapter):
                raise FileKeyCollision(path, _describe(owner))
            if not force:
                return False
        if self.fmt is ChapterFormat.JSON:
            text = dump_json(chapter.to_dict(), compact=True)
        else:
            text = f"{chapter.title}\n\n{chapter.content.text}"
        write_text_atomic(path, text)
        return True

    def write_manifest(self, info: StoryInfo, metas: Iterable[ChapterMeta]) -> int:
        return self.manifest.write(info, metas)

    def file_owner(self, path: Path) -> ChapterMeta | None:
        """Metadata recorded in an existing JSON chapter file.

        TXT files carry no number or URL, and unreadable files are treated
        as unowned.
        """

        if self.fmt is not ChapterFormat.JSON:
            return None
        data = load_json(path)
        if not isinstance(data, dict):
            return None
        try:
            return ChapterMeta.from_dict(data)
        except (TypeError, ValueError):
            return None

    def chapter_files(self) -> list[tuple[int, Path]]:
        if not self.chapters_dir.is_dir():
            return []
        found: list[tuple[int, Path]] = []
        try:
            entries = sorted(self.chapters_dir.iterdir())
        except OSError as e:
            raise PersistenceError(self.chapters_dir, str(e)) from e
        for path in entries:
            m = _CHAPTER_FILE_RE.match(path.name)
            if m and m.group(2) == self.fmt.value:
                found.append((int(m.group(1)), path))
        return found

    def existing_numbers(self) -> set[int]:
        """Chapter numbers already present on disk (the resume set)."""
        return {key for key, _ in self.chapter_files()}

    def load_chapter_metas(self) -> list[ChapterMeta]:
        metas: list[ChapterMeta] = []
        for key, path in self.chapter_files():
            try:
                meta = self.read_meta(key, path)
            except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValueError) as e:
                logger.warning("Could not load %s, skipping: %s", path.name, e)
                continue
            metas.append(meta)
        return metas

    def read_meta(self, key: int, path: Path) -> ChapterMeta:
        text = path.read_text(encoding="utf-8")
        if self.fmt is ChapterFormat.TXT:
            title = text.split("\n", 1)[0].strip()
            return ChapterMeta(number=key, title=title, url="", order=key)
        data = json.loads(text)
        if not isinstance(data, dict):
            raise ValueError("chapter record is not a JSON object")
        return ChapterMeta.from_dict(data)

    def rebuild_manifest(self, info: StoryInfo) -> int:
        """Rewrite the manifest from whatever chapter files are on disk."""
        _, listed = self.manifest.read()
        return self.write_manifest(info, [*listed, *self.load_chapter_metas()])


def _same_chapter(owner: ChapterMeta, chapter: Chapter) -> bool:
    if owner.number is not None or chapter.number is not None:
        return owner.number == chapter.number
    return not owner.url or not chapter.url or owner.url == chapter.url


def _describe(meta: ChapterMeta) -> str:
    if meta.number is not None:
        return f"chapter {meta.number}"
    return f"{meta.title!r}"
