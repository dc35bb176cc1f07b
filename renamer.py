import logging
import os
import uuid
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from date_extractor import DateExtractor
from errors import DateExtractionError, RenameConflictError, RenameError
from extensions import classify_file
from models import ZERO_TIME, MediaFile, Stage
from naming import sequence_file_name
from progress import ProgressSink, emit_progress

FileFilter = Callable[[Path], bool]


def _same_file(a: Path, b: Path) -> bool:
    try:
        return os.path.samefile(a, b)
    except OSError:
        return False


class FileRenamer:
    """
    Renames the files of one directory into a numbered sequence:
    {base_name}_00001.ext, {base_name}_00002.ext, ...

    Files are ordered by capture date (oldest first), ties broken by path, so
    the same directory always produces the same numbering. Extensions are
    lowercased. A file whose date cannot be resolved sorts first.
    """

    def __init__(self, date_extractor: DateExtractor, logger: Optional[logging.Logger] = None) -> None:
        self._dates = date_extractor
        self._log = logger or logging.getLogger(__name__)

    def rename_in_place(
        self,
        directory: Path,
        base_name: str,
        file_filter: FileFilter,
        progress: ProgressSink = None,
    ) -> int:
        """Rename matching files in directory. Returns the number renamed."""
        return self._rename(Path(directory), Path(directory), base_name, file_filter, progress)

    def move_and_rename(
        self,
        source_dir: Path,
        target_dir: Path,
        base_name: str,
        file_filter: FileFilter,
        progress: ProgressSink = None,
    ) -> int:
        """
        Move matching files from source_dir into target_dir under sequential
        names. target_dir is only created when there is something to move.
        """
        return self._rename(Path(source_dir), Path(target_dir), base_name, file_filter, progress)

    def collect(self, source_dir: Path, file_filter: FileFilter) -> List[MediaFile]:
        """
        Matching files directly in source_dir. A file whose date cannot be
        resolved gets the zero time.
        """
        try:
            entries = sorted(source_dir.iterdir())
        except OSError as e:
            raise OSError(f"failed to read directory {source_dir}: {e}") from e

        files: List[MediaFile] = []
        for entry in entries:
            if entry.is_dir() or not file_filter(entry):
                continue
            media = MediaFile(path=entry, kind=classify_file(entry))
            try:
                media.resolve_date(self._dates)
            except DateExtractionError as e:
                self._log.warning("Failed to extract date for %s, using zero time: %s", entry, e)
                media.set_date(ZERO_TIME)
            files.append(media)

        return files

    def plan(self, files: List[MediaFile], target_dir: Path, base_name: str) -> List[Tuple[Path, Path]]:
        """Pair each file, in (date, path) order, with its sequential name in target_dir."""
        files = sorted(files, key=lambda m: (m.resolve_date(self._dates), str(m.path)))
        return [
            (m.path, target_dir / sequence_file_name(base_name, i, m.path.suffix))
            for i, m in enumerate(files, start=1)
        ]

    @staticmethod
    def check_conflicts(plan: List[Tuple[Path, Path]]) -> None:
        """Raise RenameConflictError if a destination is held by a file outside the batch."""
        sources = {src for src, _ in plan}
        for src, dst in plan:
            if dst != src and dst not in sources and dst.exists() and not _same_file(src, dst):
                raise RenameConflictError(src, dst)

    def _move(self, src: Path, dst: Path) -> None:
        try:
            os.rename(src, dst)
        except OSError as e:
            raise RenameError(src, dst, str(e)) from e

    def _stage_collisions(self, plan: List[Tuple[Path, Path]]) -> List[Tuple[Path, Path]]:
        """
        When a destination is currently occupied by another file of the same
        batch, park every moving file under a unique dot-name first. The
        extension is kept so an interrupted run is picked up again.
        """
        sources = {src for src, _ in plan}
        if not any(dst != src and dst in sources for src, dst in plan):
            return plan

        token = uuid.uuid4().hex[:8]
        staged = []
        for src, dst in plan:
            if src == dst:
                staged.append((src, dst))
                continue
            parked = src.with_name(f".{token}-{src.name}")
            self._move(src, parked)
            staged.append((parked, dst))
        return staged

    def _rename(
        self,
        source_dir: Path,
        target_dir: Path,
        base_name: str,
        file_filter: FileFilter,
        progress: ProgressSink,
    ) -> int:
        files = self.collect(source_dir, file_filter)
        if not files:
            return 0

        plan = self.plan(files, target_dir, base_name)
        self.check_conflicts(plan)

        if target_dir != source_dir:
            try:
                target_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise OSError(f"failed to create target directory {target_dir}: {e}") from e

        plan = self._stage_collisions(plan)

        total = len(plan)
        for i, (src, dst) in enumerate(plan, start=1):
            emit_progress(
                progress, Stage.RENAMING, i, total,
                f"Renaming file {i} of {total}", str(src), logger=self._log,
            )
            if src == dst:
                continue
            self._log.debug("Renaming %s -> %s", src.name, dst)
            self._move(src, dst)

        return total
