"""
Capture-date resolution as an ordered chain of strategies.

Default order:

  1. CreationDate  edited iPhone videos keep the original capture time here.
  2. CreateDate    when the image/video was created.
  3. mtime         filesystem modification time, always available.

Each strategy maps a path to a datetime or raises DateStrategyError; the
first one to succeed wins.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from errors import DateExtractionError, MetadataReadError, PicsError
from exif_reader import parse_exif_date

METADATA_DATE_FIELDS = ("CreationDate", "CreateDate")


class DateStrategyError(PicsError):
    pass


@dataclass(frozen=True)
class DateStrategy:
    name: str
    resolve: Callable[[Path], datetime]


def metadata_field_strategy(reader, field_name: str) -> DateStrategy:
    """Read field_name through a MetadataReader and parse it as an EXIF date."""

    def resolve(file_path: Path) -> datetime:
        try:
            raw = reader.get(file_path, field_name)
        except MetadataReadError as e:
            raise DateStrategyError(str(e)) from e
        if raw is None:
            raise DateStrategyError(f"no {field_name} field")
        parsed = parse_exif_date(raw)
        if parsed is None:
            raise DateStrategyError(f"unparseable {field_name} value {raw!r}")
        return parsed

    return DateStrategy(name=field_name, resolve=resolve)


def _modification_time(file_path: Path) -> datetime:
    mtime = file_path.stat().st_mtime
    if mtime <= 0:
        raise DateStrategyError("modification time is zero")
    return datetime.fromtimestamp(mtime)


MODIFICATION_TIME = DateStrategy(name="ModTime", resolve=_modification_time)


class DateExtractor:
    def __init__(
        self,
        strategies: Sequence[DateStrategy],
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self._strategies = list(strategies)
        self._log = logger or logging.getLogger(__name__)

    @classmethod
    def with_metadata(cls, reader, logger: Optional[logging.Logger] = None) -> "DateExtractor":
        strategies = [metadata_field_strategy(reader, f) for f in METADATA_DATE_FIELDS]
        strategies.append(MODIFICATION_TIME)
        return cls(strategies, logger=logger)

    @property
    def strategy_names(self) -> List[str]:
        return [s.name for s in self._strategies]

    def resolve(self, file_path: Path) -> datetime:
        file_path = Path(file_path)
        failures: List[Tuple[str, str]] = []
        for strategy in self._strategies:
            try:
                date = strategy.resolve(file_path)
            except (DateStrategyError, OSError) as e:
                self._log.debug(
                    "Date strategy %s failed for %s, trying next: %s",
                    strategy.name, file_path.name, e,
                )
                failures.append((strategy.name, str(e)))
                continue
            self._log.debug("Using %s date for %s: %s", strategy.name, file_path.name, date)
            return date
        raise DateExtractionError(file_path, failures)
