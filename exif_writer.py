import logging
from pathlib import Path
from typing import Optional

from exif_reader import ExifToolSession, find_field
from extensions import is_image

ORIGINAL_FILE_NAME_TAG = "OriginalFileName"

# Don't leave *_original backups behind, and keep the file's mtime
WRITE_PARAMS = ("-overwrite_original", "-P")


class OriginalNameWriter:
    """
    Records a file's pre-rename name in its metadata so the sequential names
    produced later can be traced back. Existing values are never replaced,
    which keeps the first-seen name across repeated imports.
    """

    def __init__(self, session: ExifToolSession, logger: Optional[logging.Logger] = None) -> None:
        self._session = session
        self._log = logger or logging.getLogger(__name__)

    def write_if_missing(self, file_path: Path, original_name: str) -> bool:
        """Return True if the tag was written, False if skipped."""
        # Video containers don't carry the field reliably
        if not is_image(file_path):
            self._log.debug("Skipping metadata write for non-image file %s", file_path.name)
            return False

        tags = self._session.get_tags(file_path, [ORIGINAL_FILE_NAME_TAG])
        if find_field(tags, ORIGINAL_FILE_NAME_TAG) is not None:
            self._log.debug("%s already set on %s", ORIGINAL_FILE_NAME_TAG, file_path.name)
            return False

        self._session.set_tags(file_path, {ORIGINAL_FILE_NAME_TAG: original_name}, WRITE_PARAMS)
        self._log.debug("Wrote %s=%s to %s", ORIGINAL_FILE_NAME_TAG, original_name, file_path)
        return True
