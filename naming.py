"""
Names that are persisted on disk or in the bucket.

A date directory is called "YYYY MM MonthName DD", optionally followed by a
free-text suffix. The same name, with spaces turned into underscores, is the
base of every renamed file inside it. Archive keys append the media counts:
"2023 06 June 15 vacation (2 images, 1 videos).tar.gz".
"""
import re
from datetime import datetime
from typing import List, Optional, Tuple

from errors import ValidationError

DATE_TOKEN_COUNT = 4
ARCHIVE_SUFFIX = ".tar.gz"

# English names regardless of the process locale (strftime's %B is not)
MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)

_COUNTS_RE = re.compile(r" \(\d+ images?, \d+ videos?\)$")


def format_date_directory(date: datetime) -> str:
    """2023-06-15 -> "2023 06 June 15"."""
    return f"{date.year:04d} {date.month:02d} {MONTH_NAMES[date.month - 1]} {date.day:02d}"


def date_tokens(dir_name: str) -> List[str]:
    """Return the four date tokens of a directory name without its suffix."""
    tokens = dir_name.split()
    if len(tokens) < DATE_TOKEN_COUNT:
        raise ValidationError(
            f"directory name does not match expected format "
            f"(YYYY MM Month DD [name]): {dir_name}"
        )
    return tokens[:DATE_TOKEN_COUNT]


def validate_date_directory(dir_name: str) -> Tuple[int, int]:
    """
    Strict check used before renaming: the first token must be a year in
    1000-9999 and the second a month in 1-12. Returns (year, month).
    """
    tokens = date_tokens(dir_name)
    try:
        year = int(tokens[0])
    except ValueError:
        year = 0
    if not 1000 <= year <= 9999:
        raise ValidationError(f"invalid year in directory name: {tokens[0]}")
    try:
        month = int(tokens[1])
    except ValueError:
        month = 0
    if not 1 <= month <= 12:
        raise ValidationError(f"invalid month in directory name: {tokens[1]}")
    return year, month


def build_directory_name(dir_name: str, suffix: str) -> str:
    """Keep the date part of dir_name and replace whatever follows with suffix."""
    name = " ".join(date_tokens(dir_name))
    suffix = suffix.strip()
    if suffix:
        name = f"{name} {suffix}"
    return name


def file_base_name(dir_name: str) -> str:
    return "_".join(dir_name.split())


def sequence_file_name(base_name: str, index: int, ext: str) -> str:
    """("2023_06_June_15", 3, ".JPG") -> "2023_06_June_15_00003.jpg"."""
    return f"{base_name}_{index:05d}{ext.lower()}"


def build_archive_key(dir_name: str, image_count: int, video_count: int) -> str:
    return f"{dir_name} ({image_count} images, {video_count} videos){ARCHIVE_SUFFIX}"


def is_archive_key(key: str) -> bool:
    return key.endswith(ARCHIVE_SUFFIX)


def directory_name_from_key(key: str) -> str:
    """Recover the directory name an archive key was built from."""
    name = key[: -len(ARCHIVE_SUFFIX)] if key.endswith(ARCHIVE_SUFFIX) else key
    stripped = _COUNTS_RE.sub("", name)
    if stripped != name:
        return stripped
    # Not our count suffix: drop any trailing parenthetical
    if name.endswith(")"):
        idx = name.rfind(" (")
        if idx != -1:
            return name[:idx]
    return name


def key_year_month(key: str) -> Optional[Tuple[int, int]]:
    """Parse (year, month) from the first two tokens of a key, or None."""
    tokens = key.split()
    if len(tokens) < 2:
        return None
    try:
        year = int(tokens[0])
        month = int(tokens[1])
    except ValueError:
        return None
    if year <= 0 or month <= 0:
        return None
    return year, month
