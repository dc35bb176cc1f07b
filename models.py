import queue
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Tuple

if TYPE_CHECKING:
    from date_extractor import DateExtractor

DEFAULT_JPEG_QUALITY = 50
DEFAULT_MAX_CONCURRENCY = 100  # media copy/compress workers
DEFAULT_MAX_CONCURRENT = 5     # backup/restore workers

# Sort key for files whose capture date could not be resolved
ZERO_TIME = datetime.min


class MediaKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    UNSUPPORTED = "unsupported"


class Stage(str, Enum):
    COPYING = "copying"
    COMPRESSING = "compressing"
    ORGANISING = "organising"
    RENAMING = "renaming"
    BACKING_UP = "backing up"
    RESTORING = "restoring"


@dataclass(frozen=True)
class ProgressEvent:
    stage: Stage
    current: int
    total: int
    message: str
    file: str = ""

    @property
    def percent(self) -> float:
        if self.total <= 0:
            return 0.0
        return 100.0 * self.current / self.total


@dataclass
class MediaFile:
    """
    A file taking part in one organising or renaming run.

    The capture date is resolved on first use and cached on the instance, so a
    single run never asks the metadata backend twice for the same file.
    """
    path: Path
    kind: MediaKind
    _date: Optional[datetime] = field(default=None, repr=False, compare=False)

    def resolve_date(self, extractor: "DateExtractor") -> datetime:
        if self._date is None:
            self._date = extractor.resolve(self.path)
        return self._date

    def set_date(self, value: datetime) -> None:
        self._date = value


@dataclass(frozen=True)
class RestoreFilter:
    """
    Inclusive (year, month) range applied to archive keys on restore.

    Zero means unbounded. A bound with a year but no month widens to January
    (lower bound) or December (upper bound).
    """
    from_year: int = 0
    from_month: int = 0
    to_year: int = 0
    to_month: int = 0

    def lower(self) -> Optional[Tuple[int, int]]:
        if self.from_year <= 0:
            return None
        return self.from_year, self.from_month or 1

    def upper(self) -> Optional[Tuple[int, int]]:
        if self.to_year <= 0:
            return None
        return self.to_year, self.to_month or 12

    def matches(self, year: int, month: int) -> bool:
        lower = self.lower()
        if lower is not None and (year, month) < lower:
            return False
        upper = self.upper()
        if upper is not None and (year, month) > upper:
            return False
        return True


@dataclass
class ParseOptions:
    compress_jpegs: bool = True
    jpeg_quality: int = DEFAULT_JPEG_QUALITY
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    progress: Optional["queue.Queue[ProgressEvent]"] = None

    def worker_count(self) -> int:
        if self.max_concurrency <= 0:
            return DEFAULT_MAX_CONCURRENCY
        return self.max_concurrency
