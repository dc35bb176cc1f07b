import os
from dataclasses import dataclass
from pathlib import Path
from typing import Generator

from copier import staging_destination
from extensions import is_jpeg, is_supported


@dataclass(frozen=True)
class StagedFile:
    source: Path
    destination: Path
    is_jpeg: bool


def _is_hidden(name: str) -> bool:
    return name.startswith(".")


def _raise(error: OSError) -> None:
    raise error


def walk_media_files(source_path: Path) -> Generator[Path, None, None]:
    """
    Walk source_path recursively, yielding every supported media file.

    Dot-files are skipped and dot-directories are pruned without being
    descended into. Traversal order is sorted so runs are reproducible.
    """
    for dirpath, dirnames, filenames in os.walk(source_path, onerror=_raise):
        dirnames[:] = sorted(d for d in dirnames if not _is_hidden(d))
        for name in sorted(filenames):
            if _is_hidden(name):
                continue
            file_path = Path(dirpath) / name
            if is_supported(file_path):
                yield file_path


def discover_files(source_path: Path, staging_dir: Path) -> Generator[StagedFile, None, None]:
    """Yield a StagedFile (source -> flattened staging name) per media file."""
    for file_path in walk_media_files(source_path):
        yield StagedFile(
            source=file_path,
            destination=staging_destination(source_path, file_path, staging_dir),
            is_jpeg=is_jpeg(file_path),
        )


def count_media_files(source_path: Path) -> int:
    """Count media files with the discovery rules, for progress totals."""
    total = 0
    for _ in walk_media_files(source_path):
        total += 1
    return total
