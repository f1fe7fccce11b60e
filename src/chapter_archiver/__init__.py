"""chapter-archiver core library.

Crawls a serialized story (paginated chapter listing + one page per
chapter) into a resumable local archive: one file per chapter, a
``story.json`` manifest and an append-only ``errors.log``.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
