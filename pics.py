#!/usr/bin/env python3
"""
pics: organise photos and videos into date directories, and back them up to S3.

Usage:
    pics parse /Volumes/SD1 ~/Pictures/Library
    pics rename "~/Pictures/Library/2023 06 June 15" "Vacation in Rome"
    pics backup ~/Pictures/Library my-photo-bucket
    pics restore my-photo-bucket ~/Pictures/Restored --from 06/2023 --to 2023
"""

import argparse
import logging
import os
import queue
import sys
import threading
from contextlib import ExitStack
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from backup import BackupEngine, BackupOutcome
from compressor import JpegCompressor
from date_extractor import DateExtractor
from directory_renamer import DirectoryRenamer
from errors import PicsError
from exif_reader import ExifReadMetadataReader, ExifToolMetadataReader, ExifToolSession
from exif_writer import OriginalNameWriter
from media_parser import MediaParser
from models import (
    DEFAULT_JPEG_QUALITY,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_MAX_CONCURRENT,
    ParseOptions,
    ProgressEvent,
    RestoreFilter,
    Stage,
)
from object_store import S3ObjectStore
from organiser import FileOrganiser
from renamer import FileRenamer
from scanner import count_media_files
from stats import count_files, validate_directories, validate_directory, verify_file_counts

log = logging.getLogger("pics")

PROGRESS_QUEUE_SIZE = 1000


# ── Progress helpers ──────────────────────────────────────────────────────────

class _NoOpBar:
    """Minimal tqdm-compatible no-op for --no-progress mode."""
    def __init__(self, *args, **kwargs):
        pass

    def update(self, n=1):
        pass

    def set_postfix_str(self, s=""):
        pass

    def close(self):
        pass


def _make_bar(total: int, desc: str, use_progress: bool):
    if use_progress:
        return tqdm(total=total, unit="file", desc=desc, ncols=80)
    return _NoOpBar()


class ProgressDisplay:
    """
    Single consumer of the progress queue. Keeps one bar per stage; a stage
    whose total changes (e.g. renaming the next directory) gets a fresh bar.
    """

    def __init__(self, use_progress: bool, maxsize: int = PROGRESS_QUEUE_SIZE) -> None:
        self.queue: "queue.Queue[Optional[ProgressEvent]]" = queue.Queue(maxsize=maxsize)
        self._use_progress = use_progress
        self._bars: Dict[Stage, Tuple[object, int, int]] = {}
        self._thread = threading.Thread(target=self._run, name="pics-progress", daemon=True)

    def _run(self) -> None:
        while True:
            event = self.queue.get()
            if event is None:
                break
            self.show(event)
        for bar, _, _ in self._bars.values():
            bar.close()
        self._bars.clear()

    def show(self, event: ProgressEvent) -> None:
        bar, total, position = self._bars.get(event.stage, (None, -1, 0))
        if bar is None or total != event.total:
            if bar is not None:
                bar.close()
            bar = _make_bar(event.total, event.stage.value.capitalize(), self._use_progress)
            total, position = event.total, 0
        if event.current > position:
            bar.update(event.current - position)
            position = event.current
        if event.file:
            bar.set_postfix_str(Path(event.file).name)
        self._bars[event.stage] = (bar, total, position)

    def __enter__(self) -> "ProgressDisplay":
        self._thread.start()
        return self

    def __exit__(self, *args) -> None:
        self.queue.put(None)
        self._thread.join()


# ── Wiring ────────────────────────────────────────────────────────────────────

def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose or os.environ.get("DEBUG") else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _resolve(raw: str) -> Path:
    return Path(raw).expanduser().resolve()


def _needs_session(args: argparse.Namespace) -> bool:
    if args.metadata == "exiftool":
        return True
    return args.command == "parse" and not args.no_original_names


def _date_extractor(args: argparse.Namespace, session: Optional[ExifToolSession]) -> DateExtractor:
    if args.metadata == "exiftool":
        reader = ExifToolMetadataReader(session)
    else:
        reader = ExifReadMetadataReader()
    return DateExtractor.with_metadata(reader)


def run_parse(args: argparse.Namespace, stack: ExitStack) -> None:
    source_dir, target_dir = _resolve(args.source), _resolve(args.target)
    validate_directories(source_dir, target_dir)

    session = stack.enter_context(ExifToolSession(args.exiftool)) if _needs_session(args) else None
    organiser = FileOrganiser(_date_extractor(args, session))
    name_writer = None if args.no_original_names else OriginalNameWriter(session)
    parser = MediaParser(organiser, JpegCompressor(args.jpegoptim), name_writer)

    expected = count_media_files(source_dir)
    target_before = count_files(target_dir)

    with ProgressDisplay(not args.no_progress) as display:
        parser.parse(source_dir, target_dir, ParseOptions(
            compress_jpegs=not args.no_compress,
            jpeg_quality=args.rate,
            max_concurrency=args.max_concurrency,
            progress=display.queue,
        ))

    verify_file_counts(expected, target_before, count_files(target_dir))
    log.info("Processing completed successfully: %d files, source and target counts match", expected)


def run_rename(args: argparse.Namespace, stack: ExitStack) -> None:
    session = stack.enter_context(ExifToolSession(args.exiftool)) if _needs_session(args) else None
    renamer = DirectoryRenamer(FileRenamer(_date_extractor(args, session)))
    new_path = renamer.rename_directory(_resolve(args.directory), args.name)
    print(f"Renamed to: {new_path}")


def run_backup(args: argparse.Namespace, stack: ExitStack) -> None:
    source_dir = validate_directory(_resolve(args.source), "SOURCE_DIR")
    engine = BackupEngine(S3ObjectStore())
    with ProgressDisplay(not args.no_progress) as display:
        outcomes = engine.backup_directories(
            source_dir, args.bucket, args.max_concurrent, progress=display.queue
        )
    print_backup_summary(outcomes, args.bucket)


def run_restore(args: argparse.Namespace, stack: ExitStack) -> None:
    from_year, from_month = args.from_date or (0, 0)
    to_year, to_month = args.to_date or (0, 0)
    restore_filter = RestoreFilter(from_year, from_month, to_year, to_month)

    engine = BackupEngine(S3ObjectStore())
    with ProgressDisplay(not args.no_progress) as display:
        restored = engine.restore_directories(
            args.bucket, _resolve(args.target), restore_filter,
            args.max_concurrent, progress=display.queue,
        )
    print(f"\nRestored {len(restored)} directories")
    for path in restored:
        print(f"  {path}")


COMMANDS = {
    "parse": run_parse,
    "rename": run_rename,
    "backup": run_backup,
    "restore": run_restore,
}


# ── Output ────────────────────────────────────────────────────────────────────

def print_backup_summary(outcomes: Dict[str, BackupOutcome], bucket: str) -> None:
    uploaded = sorted(k for k, v in outcomes.items() if v is BackupOutcome.UPLOADED)
    skipped = sorted(k for k, v in outcomes.items() if v is BackupOutcome.SKIPPED)

    print("\n" + "=" * 44)
    print("  Backup Summary")
    print("=" * 44)
    print(f"Bucket   : {bucket}")
    print(f"  Uploaded : {len(uploaded):>6,} archives")
    print(f"  Skipped  : {len(skipped):>6,} archives (unchanged)")
    for key in uploaded:
        print(f"    + {key}")
    print()


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_year_month(value: str) -> Tuple[int, int]:
    """
    "2023" -> (2023, 0), "06/2023" -> (2023, 6). A zero month is filled in
    by RestoreFilter depending on which end of the range it bounds.
    """
    month_part, sep, year_part = value.strip().rpartition("/")
    try:
        year = int(year_part)
        month = int(month_part) if sep else 0
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected YYYY or MM/YYYY, got {value!r}")
    if not 1000 <= year <= 9999:
        raise argparse.ArgumentTypeError(f"invalid year: {year_part}")
    if sep and not 1 <= month <= 12:
        raise argparse.ArgumentTypeError(f"invalid month: {month_part}")
    return year, month


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        action="store_true",
        help="Log every file operation (also enabled by the DEBUG environment variable).",
    )
    common.add_argument(
        "--no-progress",
        action="store_true",
        help="Disable progress bars (useful when piping output to log files).",
    )

    metadata = argparse.ArgumentParser(add_help=False)
    metadata.add_argument(
        "--metadata",
        choices=["exiftool", "exifread"],
        default="exiftool",
        help="Backend used to read capture dates (default: exiftool).",
    )
    metadata.add_argument(
        "--exiftool",
        metavar="PATH",
        default=None,
        help="Path to the exiftool binary (default: found on PATH).",
    )

    parser = argparse.ArgumentParser(
        prog="pics",
        description=(
            "Organise photos and videos into 'YYYY MM Month DD' directories "
            "and back them up to S3 as one archive per directory."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  pics parse /Volumes/SD1 ~/Pictures/Library --rate 70\n"
            "  pics rename '~/Pictures/Library/2023 06 June 15' 'Vacation in Rome'\n"
            "  pics backup ~/Pictures/Library my-photo-bucket\n"
            "  pics restore my-photo-bucket ~/Pictures/Restored --from 2022 --to 06/2023\n"
        ),
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    p = sub.add_parser(
        "parse", parents=[common, metadata],
        help="Copy, compress and organise media from SOURCE into TARGET.",
    )
    p.add_argument("source", metavar="SOURCE", help="Directory to import from (scanned recursively).")
    p.add_argument("target", metavar="TARGET", help="Library root receiving the date directories.")
    p.add_argument(
        "--no-compress",
        action="store_true",
        help="Copy JPEGs as they are instead of recompressing them.",
    )
    p.add_argument(
        "--rate",
        type=int,
        default=DEFAULT_JPEG_QUALITY,
        metavar="QUALITY",
        help=f"Maximum JPEG quality, 0-100 (default: {DEFAULT_JPEG_QUALITY}).",
    )
    p.add_argument(
        "--max-concurrency",
        type=int,
        default=DEFAULT_MAX_CONCURRENCY,
        metavar="N",
        help=f"Files processed in parallel (default: {DEFAULT_MAX_CONCURRENCY}).",
    )
    p.add_argument(
        "--jpegoptim",
        metavar="PATH",
        default=None,
        help="Path to the jpegoptim binary (default: found on PATH).",
    )
    p.add_argument(
        "--no-original-names",
        action="store_true",
        help="Do not record each image's original file name in its metadata.",
    )

    p = sub.add_parser(
        "rename", parents=[common, metadata],
        help="Change a date directory's name suffix and renumber its files.",
    )
    p.add_argument("directory", metavar="DIRECTORY", help="Date directory, e.g. '2023 06 June 15'.")
    p.add_argument("name", metavar="NAME", help="New suffix; empty to keep only the date.")

    p = sub.add_parser(
        "backup", parents=[common],
        help="Upload every date directory under SOURCE to BUCKET.",
    )
    p.add_argument("source", metavar="SOURCE", help="Library root holding the date directories.")
    p.add_argument("bucket", metavar="BUCKET", help="Destination S3 bucket.")
    p.add_argument(
        "--max-concurrent",
        type=int,
        default=DEFAULT_MAX_CONCURRENT,
        metavar="N",
        help=f"Directories uploaded in parallel (default: {DEFAULT_MAX_CONCURRENT}).",
    )

    p = sub.add_parser(
        "restore", parents=[common],
        help="Download archives from BUCKET into TARGET.",
    )
    p.add_argument("bucket", metavar="BUCKET", help="S3 bucket holding the archives.")
    p.add_argument("target", metavar="TARGET", help="Directory to restore into.")
    p.add_argument(
        "--max-concurrent",
        type=int,
        default=DEFAULT_MAX_CONCURRENT,
        metavar="N",
        help=f"Archives downloaded in parallel (default: {DEFAULT_MAX_CONCURRENT}).",
    )
    p.add_argument(
        "--from",
        dest="from_date",
        type=parse_year_month,
        default=None,
        metavar="[MM/]YYYY",
        help="Only restore archives from this month on (inclusive).",
    )
    p.add_argument(
        "--to",
        dest="to_date",
        type=parse_year_month,
        default=None,
        metavar="[MM/]YYYY",
        help="Only restore archives up to this month (inclusive).",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)

    with ExitStack() as stack:
        if not args.no_progress:
            stack.enter_context(logging_redirect_tqdm())
        try:
            COMMANDS[args.command](args, stack)
        except (PicsError, OSError) as e:
            log.error("%s failed: %s", args.command, e)
            return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
