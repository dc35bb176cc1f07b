"""
Exception hierarchy.

Validation errors abort the enclosing call. Conflict errors abort a single
job and are never resolved automatically: someone has to look at the files
or the bucket. Batch errors are raised only after every job of a worker pool
has run, and carry the individual failures.
"""
from pathlib import Path
from typing import List, Sequence, Tuple


class PicsError(Exception):
    """Base class for all errors raised by this package."""


class ValidationError(PicsError):
    pass


class MetadataReadError(PicsError):
    pass


class DateExtractionError(PicsError):
    def __init__(self, path: Path, failures: Sequence[Tuple[str, str]]) -> None:
        self.path = path
        self.failures = list(failures)
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.failures)
        super().__init__(f"all date strategies failed for {path} ({detail})")


class CompressionError(PicsError):
    pass


class RenameError(PicsError):
    def __init__(self, src: Path, dst: Path, reason: str) -> None:
        self.src = src
        self.dst = dst
        super().__init__(f"failed to rename {src} to {dst}: {reason}")


class ProcessingError(PicsError):
    pass


class ObjectNotFoundError(PicsError):
    def __init__(self, bucket: str, key: str) -> None:
        self.bucket = bucket
        self.key = key
        super().__init__(f"NotFound: s3://{bucket}/{key}")


class ConflictError(PicsError):
    """Raised when continuing would overwrite data. Needs manual intervention."""


class HashMismatchError(ConflictError):
    def __init__(self, key: str, local_hash: str, remote_hash: str) -> None:
        self.key = key
        self.local_hash = local_hash
        self.remote_hash = remote_hash
        super().__init__(
            f"hash mismatch for '{key}': object exists with different content "
            f"(local: {local_hash}, remote: {remote_hash}). Manual intervention required"
        )


class DirectoryExistsError(ConflictError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"directory already exists: {path}")


class RenameConflictError(ConflictError):
    def __init__(self, src: Path, dst: Path) -> None:
        self.src = src
        self.dst = dst
        super().__init__(f"refusing to rename {src}: {dst} already exists")


class BatchError(PicsError):
    """Aggregate of the per-job failures of one worker-pool run."""

    def __init__(self, action: str, noun: str, errors: List[BaseException]) -> None:
        self.errors = errors
        super().__init__(f"{action} failed for {len(errors)} {noun}")
