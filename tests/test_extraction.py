from __future__ import annotations

import json
from pathlib import Path

import pytest

from chapter_archiver.content import parse_chapter
from chapter_archiver.contract import ExtractionContract, ExtractionPolicy
from chapter_archiver.errors import ExtractionGap
from chapter_archiver.listing import listing_page_url, parse_listing, parse_story_info

from conftest import STORY_URL, chapter_html, chapter_url, listing_html


def test_listing_page_url_pagination() -> None:
    assert listing_page_url(STORY_URL, 1) == STORY_URL
    assert listing_page_url(STORY_URL, 3) == f"{STORY_URL}trang-3/"
    assert (
        listing_page_url("https://truyen.example/my-story", 2)
        == "https://truyen.example/my-story/trang-2/"
    )


def test_parse_story_info() -> None:
    html = listing_html([], total_pages=7, title="Pham Nhan Tu Tien")
    info = parse_story_info(html, story_url=STORY_URL)
    assert info.title == "Pham Nhan Tu Tien"
    assert info.slug == "my-story"
    assert info.url == STORY_URL
    assert info.total_pages == 7


def test_parse_story_info_degrades_to_defaults() -> None:
    info = parse_story_info("<html><body></body></html>", story_url=STORY_URL)
    assert info.title == "Unknown Story"
    assert info.total_pages == 1


def test_parse_story_info_strict_raises() -> None:
    with pytest.raises(ExtractionGap) as exc_info:
        parse_story_info(
            "<html><body></body></html>",
            story_url=STORY_URL,
            policy=ExtractionPolicy.STRICT,
        )
    assert exc_info.value.field == "story title"


def test_parse_listing_numbers_titles_and_order() -> None:
    html = listing_html(
        [
            (chapter_url(12), "Chapter 12"),
            ("/my-story/chuong-13/", "Chapter 13"),
            ("/my-story/ngoai-truyen/", "Side story"),
        ]
    )
    refs = parse_listing(html, page_url=STORY_URL)

    assert [r.number for r in refs] == [12, 13, None]
    assert [r.order for r in refs] == [0, 1, 2]
    assert refs[1].url == chapter_url(13)
    assert refs[2].url == "https://truyen.example/my-story/ngoai-truyen/"
    assert refs[2].title == "Side story"


def test_parse_listing_falls_back_to_link_text_and_skips_missing_href() -> None:
    html = """<div id="list-chapter"><ul class="list-chapter">
    <li><a href="/s/chuong-1/">  First  </a></li>
    <li><a>No link</a></li>
    </ul></div>"""
    refs = parse_listing(html, page_url=STORY_URL)
    assert len(refs) == 1
    assert refs[0].title == "First"
    assert refs[0].number == 1


def test_parse_listing_without_matches_returns_empty() -> None:
    assert parse_listing("<html></html>", page_url=STORY_URL) == []


def test_parse_chapter_strips_non_content() -> None:
    html = chapter_html("Chapter 5: Dawn", "First line<br/>Second line")
    chapter = parse_chapter(html, source_url=chapter_url(5))

    assert chapter.number == 5
    assert chapter.title == "Chapter 5: Dawn"
    assert chapter.url == chapter_url(5)
    assert chapter.content.text == "First line\nSecond line"
    assert "<script" not in chapter.content.html
    assert "Buy now" not in chapter.content.html
    assert "<iframe" not in chapter.content.html
    assert "First line<br/>Second line" in chapter.content.html


def test_parse_chapter_number_comes_from_source_url() -> None:
    chapter = parse_chapter(chapter_html("x", "y"), source_url=f"{STORY_URL}loi-noi-dau/")
    assert chapter.number is None


def test_parse_chapter_degrades_when_content_missing() -> None:
    chapter = parse_chapter("<html><h2>Only a title</h2></html>", source_url=chapter_url(2))
    assert chapter.title == "Only a title"
    assert chapter.content.text == ""
    assert chapter.content.html == ""


def test_parse_chapter_strict_raises_on_missing_content() -> None:
    with pytest.raises(ExtractionGap) as exc_info:
        parse_chapter(
            "<html><h2>Only a title</h2></html>",
            source_url=chapter_url(2),
            policy=ExtractionPolicy.STRICT,
        )
    assert exc_info.value.field == "chapter content"


def test_contract_loads_from_json(tmp_path: Path) -> None:
    path = tmp_path / "contract.json"
    path.write_text(
        json.dumps(
            {
                "chapter_links": "ol.toc a",
                "chapter_content": ["div.reader"],
                "chapter_number_pattern": r"chapter-(\d+)",
            }
        ),
        encoding="utf-8",
    )
    contract = ExtractionContract.from_json(path)

    assert contract.chapter_content == ("div.reader",)
    refs = parse_listing(
        '<ol class="toc"><a href="/b/chapter-9">Nine</a></ol>',
        page_url="https://books.example/b/",
        contract=contract,
    )
    assert [(r.number, r.title) for r in refs] == [(9, "Nine")]


def test_contract_rejects_unknown_keys() -> None:
    with pytest.raises(ValueError):
        ExtractionContract.from_dict({"no_such_selector": "a"})
