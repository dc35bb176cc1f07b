import logging
from pathlib import Path
from typing import Optional

from errors import DirectoryExistsError, ValidationError
from extensions import is_image, is_video
from naming import build_directory_name, file_base_name, validate_date_directory
from organiser import VIDEOS_DIR
from renamer import FileRenamer


class DirectoryRenamer:
    """
    Changes the free-text suffix of a date directory ("2023 06 June 15 old" ->
    "2023 06 June 15 new") and renumbers its images and videos to match.
    """

    def __init__(self, renamer: FileRenamer, logger: Optional[logging.Logger] = None) -> None:
        self._renamer = renamer
        self._log = logger or logging.getLogger(__name__)

    def rename_directory(self, directory: Path, new_suffix: str) -> Path:
        """Returns the directory's path after the rename."""
        directory = Path(directory)
        if not directory.exists():
            raise ValidationError(f"directory does not exist: {directory}")
        if not directory.is_dir():
            raise ValidationError(f"{directory} is not a directory")

        abs_dir = directory.resolve()
        validate_date_directory(abs_dir.name)

        new_dir_name = build_directory_name(abs_dir.name, new_suffix)
        new_dir_path = abs_dir.parent / new_dir_name
        self._log.debug("Rename paths: original=%s new=%s", abs_dir, new_dir_path)

        if new_dir_path == abs_dir:
            self._log.info("Directory name unchanged, updating file names only")
        elif new_dir_path.exists():
            raise DirectoryExistsError(new_dir_path)
        else:
            self._log.info("Renaming directory %s -> %s", abs_dir.name, new_dir_name)

        # Files first, while they are still reachable under the old path
        base_name = file_base_name(new_dir_name)
        self._rename_images(abs_dir, base_name)
        self._rename_videos(abs_dir, base_name)

        if new_dir_path != abs_dir:
            try:
                abs_dir.rename(new_dir_path)
            except OSError as e:
                raise OSError(f"failed to rename directory {abs_dir}: {e}") from e
            self._log.info("Directory renamed to %s", new_dir_path)
        return new_dir_path

    def _rename_images(self, abs_dir: Path, base_name: str) -> None:
        count = self._renamer.rename_in_place(abs_dir, base_name, is_image)
        if count:
            self._log.info("Renamed %d images to %s_NNNNN", count, base_name)

    def _rename_videos(self, abs_dir: Path, base_name: str) -> None:
        videos_dir = abs_dir / VIDEOS_DIR
        if not videos_dir.is_dir():
            return
        count = self._renamer.move_and_rename(videos_dir, videos_dir, base_name, is_video)
        if count:
            self._log.info("Renamed %d videos to %s_NNNNN", count, base_name)
