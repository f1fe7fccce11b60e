from __future__ import annotations

import json
import logging
from pathlib import Path

from .errors import PersistenceError, ReportError
from .manifest import dump_json, write_text_atomic
from .models import ChapterMeta
from .store import ChapterFormat, StoryStore

logger = logging.getLogger(__name__)

REPORT_NAME = "missing_chapters_report.json"

MissingReport = dict[str, list[ChapterMeta]]


def report_path(output_dir: Path) -> Path:
    return output_dir / REPORT_NAME


def find_missing(store: StoryStore) -> list[ChapterMeta] | None:
    """Gaps in ``1..max(listed number)`` plus logged failures not on disk.

    Returns None when the story has no manifest, chapters directory or
    listed chapters.
    """

    info, listed = store.manifest.read()
    if info is None:
        logger.warning("%s: No story.json found, skipping", store.slug)
        return None
    if not store.chapters_dir.is_dir():
        logger.warning("%s: No chapters directory found, skipping", store.slug)
        return None
    if not listed:
        logger.warning("%s: No chapters listed in story.json, skipping", store.slug)
        return None

    existing = store.existing_numbers()
    by_number = {m.number: m for m in listed if m.number is not None}
    logged = {
        rec.number: rec.title for rec in store.errors.read() if rec.number is not None
    }
    max_number = max(by_number, default=0)

    candidates = set(range(1, max_number + 1)) | set(logged)
    missing: list[ChapterMeta] = []
    for number in sorted(candidates - existing):
        missing.append(
            by_number.get(number)
            or ChapterMeta(number=number, title=logged.get(number, "Unknown"), url="")
        )
    return missing


def detect_missing(
    output_dir: Path, *, fmt: ChapterFormat = ChapterFormat.JSON
) -> MissingReport:
    report: MissingReport = {}
    if not output_dir.is_dir():
        return report
    for story_dir in sorted(p for p in output_dir.iterdir() if p.is_dir()):
        store = StoryStore(output_dir, story_dir.name, fmt=fmt)
        missing = find_missing(store)
        if missing is None:
            continue
        if missing:
            logger.info("%s: Missing %d chapters", story_dir.name, len(missing))
            report[story_dir.name] = missing
        else:
            logger.info("%s: All chapters present", story_dir.name)
    return report


def load_report(output_dir: Path) -> MissingReport:
    path = report_path(output_dir)
    if not path.exists():
        raise ReportError(f"No {REPORT_NAME} found in {output_dir}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ReportError(f"Could not read {path}: {e}") from e
    if not isinstance(data, dict):
        raise ReportError(f"Malformed report: {path}")
    return {
        str(story): [ChapterMeta.from_dict(ch) for ch in chapters if isinstance(ch, dict)]
        for story, chapters in data.items()
        if isinstance(chapters, list)
    }


def save_report(output_dir: Path, report: MissingReport) -> Path | None:
    """Write the report; remove the file instead when nothing is missing."""
    path = report_path(output_dir)
    if not report:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(path, str(e)) from e
        return None
    data = {
        story: [m.to_dict() for m in chapters] for story, chapters in report.items()
    }
    write_text_atomic(path, dump_json(data))
    return path
