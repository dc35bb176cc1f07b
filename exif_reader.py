"""
Embedded-metadata readers.

Two backends answer the same question, "what is the value of field X in this
file?":

  ExifToolMetadataReader  one long-lived ExifTool process (pyexiftool).
                          Understands QuickTime/HEIC/MP4 containers and uses
                          ExifTool's own tag names (CreationDate, CreateDate).
  ExifReadMetadataReader  pure Python (exifread). Only reads EXIF blocks, so
                          ExifTool field names are mapped onto EXIF tags.

Readers return None when the field is absent and raise MetadataReadError when
the file cannot be read at all.
"""
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import exifread
import exiftool
from exiftool.exceptions import ExifToolException

from errors import MetadataReadError

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"

# ExifTool field name -> exifread tags, checked in order
EXIFREAD_FIELD_TAGS: Dict[str, List[str]] = {
    "CreationDate": ["EXIF DateTimeOriginal"],
    "CreateDate": ["EXIF DateTimeDigitized", "Image DateTime"],
    "OriginalFileName": [],
}


def parse_exif_date(raw_value: str) -> Optional[datetime]:
    """
    Parse "YYYY:MM:DD hh:mm:ss", returning None if invalid or zeroed.

    QuickTime dates may carry a timezone or sub-second tail
    ("2023:06:15 10:30:00+02:00"); only the first 19 characters are used.
    """
    try:
        return datetime.strptime(raw_value.strip()[:19], EXIF_DATE_FORMAT)
    except (ValueError, AttributeError):
        # Cameras write "0000:00:00 00:00:00" when the clock was never set
        return None


class ExifToolSession:
    """
    A lazily started ExifTool process shared by readers and writers.

    ExifTool speaks a request/response protocol over one pipe, so calls are
    serialised with a lock; worker threads may share a session safely.
    """

    def __init__(self, executable: Optional[str] = None) -> None:
        self._executable = executable
        self._helper: Optional[exiftool.ExifToolHelper] = None
        self._lock = threading.Lock()

    def _ensure_running(self) -> exiftool.ExifToolHelper:
        if self._helper is None:
            kwargs = {"executable": self._executable} if self._executable else {}
            helper = exiftool.ExifToolHelper(**kwargs)
            helper.run()
            self._helper = helper
        return self._helper

    def get_tags(self, path: Path, tags: Sequence[str]) -> Dict[str, Any]:
        with self._lock:
            try:
                result = self._ensure_running().get_tags([str(path)], tags=list(tags))
            except (ExifToolException, OSError) as e:
                raise MetadataReadError(f"exiftool could not read {path}: {e}") from e
        return result[0] if result else {}

    def set_tags(self, path: Path, tags: Dict[str, str], params: Sequence[str]) -> None:
        with self._lock:
            try:
                self._ensure_running().set_tags([str(path)], tags=tags, params=list(params))
            except (ExifToolException, OSError) as e:
                raise MetadataReadError(f"exiftool could not write {path}: {e}") from e

    def close(self) -> None:
        with self._lock:
            if self._helper is not None and self._helper.running:
                self._helper.terminate()
            self._helper = None

    def __enter__(self) -> "ExifToolSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()


def find_field(tags: Dict[str, Any], field_name: str) -> Optional[str]:
    """ExifTool prefixes keys with their group ("QuickTime:CreationDate")."""
    for key, value in tags.items():
        if key == field_name or key.endswith(":" + field_name):
            return str(value)
    return None


class ExifToolMetadataReader:
    def __init__(self, session: ExifToolSession) -> None:
        self._session = session

    def get(self, file_path: Path, field_name: str) -> Optional[str]:
        tags = self._session.get_tags(file_path, [field_name])
        return find_field(tags, field_name)


class ExifReadMetadataReader:
    def get(self, file_path: Path, field_name: str) -> Optional[str]:
        tag_names = EXIFREAD_FIELD_TAGS.get(field_name, [field_name])
        if not tag_names:
            return None
        try:
            with open(file_path, "rb") as f:
                tags = exifread.process_file(f, details=False)
        except OSError as e:
            raise MetadataReadError(f"Cannot read {file_path}: {e}") from e
        except Exception as e:
            # exifread raises assorted errors on truncated or odd containers
            raise MetadataReadError(f"exifread failed on {file_path}: {e}") from e

        for tag_name in tag_names:
            if tag_name in tags:
                return str(tags[tag_name])
        return None
