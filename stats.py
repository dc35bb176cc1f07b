"""Directory checks run by the CLI around a parse."""
import os
from pathlib import Path

from errors import ProcessingError, ValidationError


def validate_directory(path: Path, label: str) -> Path:
    path = Path(path)
    if not path.is_dir():
        raise ValidationError(f"{label} is not a valid directory: {path}")
    return path


def validate_directories(source_dir: Path, target_dir: Path) -> None:
    validate_directory(source_dir, "SOURCE_DIR")
    validate_directory(target_dir, "TARGET_DIR")


def count_files(dir_path: Path) -> int:
    """Count regular files under dir_path recursively, skipping dot-entries."""

    def _raise(error: OSError) -> None:
        raise error

    count = 0
    for root, dirs, files in os.walk(dir_path, onerror=_raise):
        dirs[:] = [d for d in dirs if not d.startswith(".")]
        count += sum(1 for f in files if not f.startswith("."))
    return count


def verify_file_counts(expected: int, target_before: int, target_after: int) -> None:
    """
    After a parse the target must have grown by exactly the number of media
    files found in the source.
    """
    added = target_after - target_before
    if added != expected:
        raise ProcessingError(
            f"file count mismatch: {expected} media files in source, "
            f"{added} files added to target (difference {added - expected})"
        )
