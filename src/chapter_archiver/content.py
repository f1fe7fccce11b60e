from __future__ import annotations

from bs4 import BeautifulSoup

from .contract import (
    DEFAULT_CONTRACT,
    ExtractionContract,
    ExtractionPolicy,
    first_text,
    resolve_gap,
    select_first,
)
from .models import Chapter, ChapterContent


def html_to_text(html: str) -> str:
    soup = BeautifulSoup(html, "html.parser")
    text = soup.get_text("\n")
    lines = [ln.strip() for ln in text.splitlines()]
    out: list[str] = []
    blank_run = 0
    for ln in lines:
        if not ln:
            blank_run += 1
            if blank_run <= 1:
                out.append("")
            continue
        blank_run = 0
        out.append(ln)
    return "\n".join(out).strip()


def clean_content_html(inner_html: str, *, strip: tuple[str, ...]) -> str:
    """Second parse pass over the content container: drop non-content nodes."""
    soup = BeautifulSoup(inner_html, "html.parser")
    for selector in strip:
        for node in soup.select(selector):
            node.decompose()
    return soup.decode().strip()


def parse_chapter(
    html: str,
    *,
    source_url: str,
    contract: ExtractionContract = DEFAULT_CONTRACT,
    policy: ExtractionPolicy = ExtractionPolicy.DEGRADE,
) -> Chapter:
    soup = BeautifulSoup(html, "html.parser")

    title = resolve_gap(
        first_text(soup, contract.chapter_title),
        field="chapter title",
        url=source_url,
        default="Unknown Chapter",
        policy=policy,
    )

    container = select_first(soup, contract.chapter_content)
    inner_html = resolve_gap(
        container.decode_contents() if container is not None else None,
        field="chapter content",
        url=source_url,
        default="",
        policy=policy,
    )
    cleaned = clean_content_html(inner_html, strip=contract.strip_elements)

    return Chapter(
        number=contract.chapter_number(source_url),
        title=title,
        url=source_url,
        content=ChapterContent(text=html_to_text(cleaned), html=cleaned),
    )
