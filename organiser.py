import logging
from pathlib import Path
from typing import Dict, List, Optional

from copier import move_into
from date_extractor import DateExtractor
from errors import ConflictError, ValidationError
from extensions import is_image, is_video
from models import MediaFile, MediaKind, Stage
from naming import DATE_TOKEN_COUNT, file_base_name, format_date_directory
from progress import ProgressSink, emit_progress
from renamer import FileRenamer

VIDEOS_DIR = "videos"


class FileOrganiser:
    def __init__(
        self,
        date_extractor: DateExtractor,
        renamer: Optional[FileRenamer] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._dates = date_extractor
        self._log = logger or logging.getLogger(__name__)
        self._renamer = renamer or FileRenamer(date_extractor, logger=self._log)

    def organise_by_date(self, source_dir: Path, target_dir: Path, progress: ProgressSink = None) -> int:
        """
        Move every file directly under source_dir into
        target_dir/"YYYY MM MonthName DD". Subdirectories are left alone.
        Returns the number of files moved.
        """
        source_dir, target_dir = Path(source_dir), Path(target_dir)
        self._log.info("Organising files by date: %s -> %s", source_dir, target_dir)

        files = sorted(p for p in source_dir.iterdir() if not p.is_dir())
        total = len(files)
        for current, file_path in enumerate(files, start=1):
            emit_progress(
                progress, Stage.ORGANISING, current, total,
                f"Organising file {current} of {total}", str(file_path), logger=self._log,
            )
            # An unresolvable date is fatal here, unlike in the renamer
            date = self._dates.resolve(file_path)
            dest_dir = target_dir / format_date_directory(date)
            self._log.debug("%s -> %s", file_path.name, dest_dir.name)
            move_into(file_path, dest_dir)
        return total

    def check_conflicts(self, source_dir: Path, target_dir: Path) -> None:
        """
        Fail before anything moves if organising source_dir into target_dir
        would collide with files already in the target: a file of the same
        name in its date directory, or a video whose sequential name is
        already taken in videos/.
        """
        source_dir, target_dir = Path(source_dir), Path(target_dir)
        incoming: Dict[Path, List[MediaFile]] = {}
        for file_path in sorted(p for p in source_dir.iterdir() if not p.is_dir()):
            date = self._dates.resolve(file_path)
            dest_dir = target_dir / format_date_directory(date)
            dest_path = dest_dir / file_path.name
            if dest_path.exists():
                raise ConflictError(f"refusing to move {file_path}: {dest_path} already exists")
            if is_video(file_path):
                media = MediaFile(path=dest_path, kind=MediaKind.VIDEO)
                media.set_date(date)
                incoming.setdefault(dest_dir, []).append(media)

        for dest_dir, videos in sorted(incoming.items()):
            if dest_dir.is_dir():
                videos = videos + self._renamer.collect(dest_dir, is_video)
            plan = self._renamer.plan(videos, dest_dir / VIDEOS_DIR, file_base_name(dest_dir.name))
            self._renamer.check_conflicts(plan)

    def organise_videos_and_rename_images(self, target_dir: Path, progress: ProgressSink = None) -> None:
        """
        For each date directory under target_dir, move its videos into
        videos/ and rename its images, both as "YYYY_MM_MonthName_DD_NNNNN".

        A directory whose name is not exactly four date tokens aborts the
        whole run.
        """
        target_dir = Path(target_dir)
        directories = sorted(
            p for p in target_dir.iterdir()
            if p.is_dir() and not p.name.startswith(".")
        )
        total = len(directories)
        for current, dir_path in enumerate(directories, start=1):
            emit_progress(
                progress, Stage.ORGANISING, current, total,
                f"Organising directory {current} of {total}", str(dir_path), logger=self._log,
            )
            base_name = self._base_name(dir_path.name)
            videos = self._renamer.move_and_rename(
                dir_path, dir_path / VIDEOS_DIR, base_name, is_video, progress
            )
            images = self._renamer.rename_in_place(dir_path, base_name, is_image, progress)
            self._log.debug("%s: %d images, %d videos", dir_path.name, images, videos)

    @staticmethod
    def _base_name(dir_name: str) -> str:
        if len(dir_name.split()) != DATE_TOKEN_COUNT:
            raise ValidationError(f"unexpected directory name format: {dir_name}")
        return file_base_name(dir_name)
