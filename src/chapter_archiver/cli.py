from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from .contract import DEFAULT_CONTRACT, ExtractionContract, ExtractionPolicy
from .crawl import CrawlConfig, Crawler
from .errors import ExtractionGap, NetworkError, PersistenceError, ReportError
from .http_client import HttpClient, new_session
from .missing import detect_missing, report_path, save_report
from .progress import ProgressReporter
from .retry import RetryRunner
from .status import StoryStatus, check_story
from .store import ChapterFormat, StoryStore
from .urls import is_story_url


def _add_common_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--output-dir", type=Path, default=Path("output"))
    p.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
    )


def _add_format_arg(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--format",
        dest="fmt",
        choices=[f.value for f in ChapterFormat],
        default=ChapterFormat.JSON.value,
    )


def _add_fetch_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--delay",
        type=int,
        default=1000,
        help="Delay between requests in milliseconds (default: 1000)",
    )
    p.add_argument("--timeout", type=float, default=30.0)
    p.add_argument("--retries", type=int, default=3)
    _add_format_arg(p)
    p.add_argument(
        "--contract",
        type=Path,
        default=None,
        help="JSON file overriding the site extraction selectors",
    )
    p.add_argument(
        "--strict-extraction",
        action="store_true",
        help="Treat selectors that match nothing as chapter failures",
    )


def _http_client(args: argparse.Namespace) -> HttpClient:
    return HttpClient(
        new_session(),
        timeout_s=float(args.timeout),
        max_retries=int(args.retries),
        backoff_base_s=max(0, int(args.delay)) / 1000,
    )


def _load_contract(path: Path | None) -> ExtractionContract:
    if path is None:
        return DEFAULT_CONTRACT
    return ExtractionContract.from_json(path)


def _print_status(status: StoryStatus, fmt: ChapterFormat, *, shown: int = 5) -> None:
    if status.info is not None:
        print(f"check: title={status.info.title} pages={status.info.total_pages}")
    if not status.chapters:
        print(f"check: story={status.slug} chapters=0 format={fmt.value}")
        return

    gaps = status.gaps
    print(
        f"check: story={status.slug} chapters={len(status.chapters)} "
        f"first={status.first} last={status.last} missing={len(gaps)}"
    )
    if gaps:
        listed = ", ".join(str(n) for n in gaps[:20])
        more = f" (and {len(gaps) - 20} more)" if len(gaps) > 20 else ""
        print(f"check: missing chapters: {listed}{more}")

    chapters = status.chapters
    if len(chapters) > shown * 2:
        head, tail = chapters[:shown], chapters[-shown:]
    else:
        head, tail = chapters, []
    for ch in head:
        print(f"  {ch.number:05d}: {ch.title} ({ch.size_kb:.2f} KB)")
    if tail:
        print(f"  ... ({len(chapters) - shown * 2} more chapters) ...")
        for ch in tail:
            print(f"  {ch.number:05d}: {ch.title} ({ch.size_kb:.2f} KB)")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="chapter-archiver")
    sub = parser.add_subparsers(dest="cmd", required=True)

    crawl_p = sub.add_parser("crawl", help="Crawl a story into a local archive")
    crawl_p.add_argument("story_url")
    _add_common_args(crawl_p)
    _add_fetch_args(crawl_p)
    crawl_p.add_argument("--start", type=int, default=None)
    crawl_p.add_argument("--end", type=int, default=None)
    crawl_p.add_argument(
        "--resume",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Skip chapters already on disk (default: on); --force re-crawls them",
    )
    crawl_p.add_argument(
        "--force",
        action="store_true",
        help="Re-crawl and overwrite chapters that already exist",
    )
    crawl_p.add_argument("--no-progress", action="store_true")

    detect_p = sub.add_parser(
        "detect-missing",
        help="Scan archived stories for gaps and write missing_chapters_report.json",
    )
    _add_common_args(detect_p)
    _add_format_arg(detect_p)
    detect_p.add_argument("--json", action="store_true")

    check_p = sub.add_parser("check", help="Show the chapter files of one story")
    check_p.add_argument("slug")
    _add_common_args(check_p)
    _add_format_arg(check_p)

    retry_p = sub.add_parser(
        "retry",
        help="Re-fetch chapters listed in missing_chapters_report.json",
    )
    retry_p.add_argument("target", help='"all" or a story name')
    retry_p.add_argument("story_url", nargs="?", default=None)
    _add_common_args(retry_p)
    _add_fetch_args(retry_p)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )

    contract = DEFAULT_CONTRACT
    policy = ExtractionPolicy.DEGRADE
    if args.cmd in {"crawl", "retry"}:
        try:
            contract = _load_contract(args.contract)
        except (OSError, ValueError, TypeError) as e:
            print(f"Invalid extraction contract: {e}", file=sys.stderr)
            return 1
        if bool(args.strict_extraction):
            policy = ExtractionPolicy.STRICT

    if args.cmd == "crawl":
        if not is_story_url(args.story_url):
            print("Error: Please provide a valid story URL", file=sys.stderr)
            return 1

        crawl_cfg = CrawlConfig(
            out_dir=args.output_dir,
            delay_s=max(0, int(args.delay)) / 1000,
            start=args.start,
            end=args.end,
            fmt=ChapterFormat(args.fmt),
            resume=bool(args.resume),
            force=bool(args.force),
            contract=contract,
            policy=policy,
        )
        reporter = ProgressReporter(disable=bool(args.no_progress))
        crawler = Crawler(
            http=_http_client(args), config=crawl_cfg, listeners=[reporter]
        )
        try:
            summary = crawler.crawl_story(args.story_url)
        except (NetworkError, ExtractionGap) as e:
            reporter.close()
            print(f"Error: {e}", file=sys.stderr)
            return 1
        except PersistenceError as e:
            reporter.close()
            print(f"Error: {e}", file=sys.stderr)
            return 2

        print(
            "crawl: "
            f"saved={summary.saved} skipped={summary.skipped} "
            f"failed={summary.failed}"
        )
        return 0

    if args.cmd == "detect-missing":
        try:
            report = detect_missing(args.output_dir, fmt=ChapterFormat(args.fmt))
            saved_to = save_report(args.output_dir, report)
        except PersistenceError as e:
            print(str(e), file=sys.stderr)
            return 2

        total = sum(len(chapters) for chapters in report.values())
        if bool(args.json):
            print(
                json.dumps(
                    {
                        story: [m.to_dict() for m in chapters]
                        for story, chapters in report.items()
                    },
                    indent=2,
                    ensure_ascii=False,
                )
            )
        else:
            print(f"detect-missing: stories={len(report)} missing={total}")
            if saved_to is not None:
                print(f"detect-missing: report={saved_to}")
        return 0

    if args.cmd == "check":
        fmt = ChapterFormat(args.fmt)
        try:
            status = check_story(StoryStore(args.output_dir, args.slug, fmt=fmt))
        except PersistenceError as e:
            print(str(e), file=sys.stderr)
            return 2
        if status is None:
            print(
                f"Story directory not found: {args.output_dir / args.slug}",
                file=sys.stderr,
            )
            return 1
        _print_status(status, fmt)
        return 0

    if args.cmd == "retry":
        runner = RetryRunner(
            http=_http_client(args),
            output_dir=args.output_dir,
            delay_s=max(0, int(args.delay)) / 1000,
            contract=contract,
            policy=policy,
            fmt=ChapterFormat(args.fmt),
        )
        try:
            if args.target.lower() == "all" and args.story_url is None:
                results = runner.retry_all()
            else:
                results = [runner.retry_one(args.target, args.story_url)]
        except ReportError as e:
            print(str(e), file=sys.stderr)
            print(
                f"Run 'chapter-archiver detect-missing' first; report: "
                f"{report_path(args.output_dir)}",
                file=sys.stderr,
            )
            return 1
        except PersistenceError as e:
            print(str(e), file=sys.stderr)
            return 2

        success = sum(r.success for r in results)
        failed = sum(r.failed for r in results)
        print(f"retry: stories={len(results)} success={success} failed={failed}")
        return 0

    return 2
