from __future__ import annotations

import json
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

from .errors import PersistenceError
from .http_client import load_json
from .models import ChapterMeta, StoryInfo, chapter_sort_key


def utc_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())


def dump_json(data: Any, *, compact: bool = False) -> str:
    if compact:
        return json.dumps(data, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def write_text_atomic(path: Path, text: str) -> None:
    """Replace ``path`` in one step so readers never see a partial file."""
    tmp_path = path.with_name(path.name + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path.write_text(text, encoding="utf-8", newline="\n")
        os.replace(tmp_path, path)
    except OSError as e:
        raise PersistenceError(path, str(e)) from e


def merge_metas(metas: Iterable[ChapterMeta]) -> list[ChapterMeta]:
    """De-duplicate (later entries win) and sort for the manifest."""
    by_key: dict[tuple[str, int], ChapterMeta] = {}
    for meta in metas:
        by_key[meta.key] = meta
    return sorted(by_key.values(), key=chapter_sort_key)


@dataclass
class ManifestWriter:
    story_dir: Path

    def __post_init__(self) -> None:
        self.json_path = self.story_dir / "story.json"

    def write(self, story_info: StoryInfo, metas: Iterable[ChapterMeta]) -> int:
        chapters = merge_metas(metas)
        data = {
            "storyInfo": story_info.to_dict(),
            "chapters": [m.to_dict() for m in chapters],
        }
        write_text_atomic(self.json_path, dump_json(data, compact=True))
        return len(chapters)

    def read(self) -> tuple[StoryInfo | None, list[ChapterMeta]]:
        data = load_json(self.json_path)
        if not isinstance(data, dict):
            return None, []
        info_raw = data.get("storyInfo")
        info = StoryInfo.from_dict(info_raw) if isinstance(info_raw, dict) else None
        metas = [
            ChapterMeta.from_dict(ch)
            for ch in data.get("chapters") or []
            if isinstance(ch, dict)
        ]
        return info, metas
