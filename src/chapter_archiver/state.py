from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from .errors import PersistenceError
from .manifest import utc_iso, write_text_atomic
from .models import ChapterReference, ErrorRecord

_LINE_RE = re.compile(
    r"^\[(?P<at>[^\]]*)\] Chapter (?P<number>\d+|N/A) - (?P<rest>.*)$"
)


def error_record(ref: ChapterReference, message: str) -> ErrorRecord:
    return ErrorRecord(
        number=ref.number,
        title=ref.title,
        message=message,
        timestamp=utc_iso(),
        url=ref.url,
    )


def parse_error_line(line: str) -> ErrorRecord | None:
    m = _LINE_RE.match(line.strip())
    if not m:
        return None
    title, _, message = m.group("rest").partition(": ")
    number = m.group("number")
    return ErrorRecord(
        number=int(number) if number.isdigit() else None,
        title=title,
        message=message,
        timestamp=m.group("at"),
    )


@dataclass
class ErrorLog:
    """Append-only failure log for one story."""

    path: Path

    def record(self, rec: ErrorRecord) -> None:
        self.append_line(rec.to_line())

    def append_line(self, line: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8", newline="\n") as f:
                f.write(line + "\n")
        except OSError as e:
            raise PersistenceError(self.path, str(e)) from e

    def lines(self) -> list[str]:
        if not self.path.exists():
            return []
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistenceError(self.path, str(e)) from e
        return [line for line in text.splitlines() if line.strip()]

    def remove(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceError(self.path, str(e)) from e

    def read(self) -> list[ErrorRecord]:
        records = []
        for line in self.lines():
            rec = parse_error_line(line)
            if rec is not None:
                records.append(rec)
        return records

    def clear_chapters(self, numbers: Iterable[int]) -> int:
        """Drop lines for recovered chapters; remove the log once empty."""
        recovered = set(numbers)
        lines = self.lines()
        kept: list[str] = []
        for line in lines:
            rec = parse_error_line(line)
            if rec is not None and rec.number in recovered:
                continue
            kept.append(line)

        removed = len(lines) - len(kept)
        if not kept:
            self.remove()
        elif removed:
            write_text_atomic(self.path, "\n".join(kept) + "\n")
        return removed
