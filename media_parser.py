"""
Ingestion pipeline: source tree -> staging area -> date directories.

  discover   walk the source (dot-entries pruned) and map each media file to a
             flattened name in a private staging directory
  process    N workers copy each file (keeping its mtime), record its original
             name, and compress JPEGs in place
  finalize   if every file made it and nothing in the target would be
             overwritten, organise the staging area into the target by date,
             then move videos and rename images

The staging directory is removed whatever the outcome.
"""
import logging
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Optional

from compressor import JpegCompressor
from copier import copy_preserving_mtime
from errors import ProcessingError
from exif_writer import OriginalNameWriter
from models import ParseOptions, Stage
from organiser import FileOrganiser
from progress import emit_progress
from scanner import StagedFile, count_media_files, discover_files
from worker_pool import failures, run_pool

STAGING_PREFIX = "pics-"


class _Counter:
    def __init__(self) -> None:
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class MediaParser:
    def __init__(
        self,
        organiser: FileOrganiser,
        compressor: Optional[JpegCompressor] = None,
        name_writer: Optional[OriginalNameWriter] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._organiser = organiser
        self._compressor = compressor or JpegCompressor()
        self._name_writer = name_writer
        self._log = logger or logging.getLogger(__name__)

    def parse(self, source_dir: Path, target_dir: Path, options: Optional[ParseOptions] = None) -> None:
        options = options or ParseOptions()
        source_dir, target_dir = Path(source_dir), Path(target_dir)

        staging_dir = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX))
        self._log.info("Created staging directory %s", staging_dir)
        try:
            start = time.monotonic()
            self._copy_and_compress(source_dir, staging_dir, options)
            self._log.info("Processing completed in %.1fs", time.monotonic() - start)

            self._organiser.check_conflicts(staging_dir, target_dir)
            self._organiser.organise_by_date(staging_dir, target_dir, options.progress)
            self._log.info("Organising videos and renaming images")
            self._organiser.organise_videos_and_rename_images(target_dir, options.progress)
        finally:
            self._remove_staging(staging_dir)
        self._log.info("Processing complete")

    def _remove_staging(self, staging_dir: Path) -> None:
        self._log.debug("Removing staging directory %s", staging_dir)
        try:
            shutil.rmtree(staging_dir)
        except OSError as e:
            self._log.error("Failed to remove staging directory %s: %s", staging_dir, e)

    def _copy_and_compress(self, source_dir: Path, staging_dir: Path, options: ParseOptions) -> None:
        self._log.info("Counting files in %s", source_dir)
        try:
            total = count_media_files(source_dir)
        except OSError as e:
            raise ProcessingError(f"failed to count files in {source_dir}: {e}") from e
        self._log.info("Processing %d media files with %d workers", total, options.worker_count())

        counter = _Counter()

        def process(staged: StagedFile) -> None:
            self._process_file(staged, options, counter, total)

        try:
            results = run_pool(discover_files(source_dir, staging_dir), process, options.worker_count())
        except OSError as e:
            raise ProcessingError(f"failed to discover files in {source_dir}: {e}") from e

        failed = failures(results)
        if failed:
            if len(failed) > 1:
                self._log.error("%d errors occurred during processing", len(failed))
                for i, result in enumerate(failed, start=1):
                    self._log.error("Processing error %d: %s", i, result.error)
            first = failed[0].error
            raise ProcessingError(f"failed to process media files: {first}") from first

    def _process_file(self, staged: StagedFile, options: ParseOptions, counter: _Counter, total: int) -> None:
        current = counter.increment()
        self._emit(options, Stage.COPYING, current, total, "Copying", str(staged.source))
        self._log.debug("Copying %s -> %s", staged.source, staged.destination)
        copy_preserving_mtime(staged.source, staged.destination)

        if self._name_writer is not None:
            self._name_writer.write_if_missing(staged.destination, staged.source.name)

        if staged.is_jpeg and options.compress_jpegs:
            self._emit(options, Stage.COMPRESSING, counter.value, total, "Compressing", str(staged.destination))
            self._log.debug("Compressing %s at quality %d", staged.destination, options.jpeg_quality)
            self._compressor.compress(staged.destination, options.jpeg_quality)

    def _emit(self, options: ParseOptions, stage: Stage, current: int, total: int, verb: str, file: str) -> None:
        emit_progress(
            options.progress, stage, current, total,
            f"{verb} file {current} of {total}", file, logger=self._log,
        )
