"""
Shared fixtures and fakes for the pics test suite.
"""
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import pytest

from date_extractor import MODIFICATION_TIME, DateExtractor
from errors import CompressionError, ObjectNotFoundError
from object_store import ObjectInfo


# ── File-creation helpers ─────────────────────────────────────────────────────

def make_file(path: Path, content: bytes = b"dummy content") -> Path:
    """Create a file with the given content; create parent dirs as needed."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)
    return path


def set_mtime(path: Path, when: datetime) -> Path:
    ts = when.timestamp()
    os.utime(path, (ts, ts))
    return path


def make_media(path: Path, when: Optional[datetime] = None, content: bytes = b"fake media data") -> Path:
    """Create a media file whose mtime (the date fallback) is `when`."""
    make_file(path, content)
    if when is not None:
        set_mtime(path, when)
    return path


def mtime_extractor() -> DateExtractor:
    """A DateExtractor that only looks at modification times."""
    return DateExtractor([MODIFICATION_TIME])


# ── Fakes ─────────────────────────────────────────────────────────────────────

class StaticMetadataReader:
    """MetadataReader answering from a {(file name, field): value} table."""

    def __init__(self, values: Optional[Dict[Tuple[str, str], str]] = None, error: Exception = None):
        self.values = values or {}
        self.error = error
        self.calls: List[Tuple[str, str]] = []
        self._lock = threading.Lock()

    def get(self, file_path: Path, field_name: str) -> Optional[str]:
        with self._lock:
            self.calls.append((Path(file_path).name, field_name))
        if self.error is not None:
            raise self.error
        return self.values.get((Path(file_path).name, field_name))


class RecordingCompressor:
    """Compressor double that records calls and optionally fails by file name."""

    def __init__(self, fail_on: Tuple[str, ...] = ()):
        self.fail_on = fail_on
        self.calls: List[Tuple[Path, int]] = []
        self._lock = threading.Lock()

    def compress(self, file_path: Path, quality: int) -> None:
        with self._lock:
            self.calls.append((Path(file_path), quality))
        if any(name in Path(file_path).name for name in self.fail_on):
            raise CompressionError(f"simulated failure for {file_path}")


class InMemoryObjectStore:
    """
    Thread-safe ObjectStore double. list_keys pages through keys page_size at
    a time, like list_objects_v2.
    """

    def __init__(self, page_size: int = 1000):
        self.page_size = page_size
        self.objects: Dict[Tuple[str, str], bytes] = {}
        self.hashes: Dict[Tuple[str, str], str] = {}
        self.puts: List[str] = []
        self.pages_listed = 0
        self.head_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def add_object(self, bucket: str, key: str, data: bytes, content_hash: str = "") -> None:
        with self._lock:
            self.objects[(bucket, key)] = data
            self.hashes[(bucket, key)] = content_hash

    def head(self, bucket: str, key: str) -> ObjectInfo:
        if self.head_error is not None:
            raise self.head_error
        with self._lock:
            if (bucket, key) not in self.objects:
                raise ObjectNotFoundError(bucket, key)
            data = self.objects[(bucket, key)]
            return ObjectInfo(key=key, size=len(data), content_hash=self.hashes[(bucket, key)])

    def get(self, bucket: str, key: str, dest: Path) -> None:
        with self._lock:
            if (bucket, key) not in self.objects:
                raise ObjectNotFoundError(bucket, key)
            data = self.objects[(bucket, key)]
        Path(dest).write_bytes(data)

    def put(self, bucket: str, key: str, src: Path, content_hash: str) -> None:
        data = Path(src).read_bytes()
        with self._lock:
            self.objects[(bucket, key)] = data
            self.hashes[(bucket, key)] = content_hash
            self.puts.append(key)

    def list_keys(self, bucket: str) -> Iterator[str]:
        with self._lock:
            keys = sorted(k for b, k in self.objects if b == bucket)
        for start in range(0, len(keys), self.page_size):
            with self._lock:
                self.pages_listed += 1
            yield from keys[start:start + self.page_size]

    def object_count(self, bucket: str) -> int:
        with self._lock:
            return sum(1 for b, _ in self.objects if b == bucket)


# ── Fixtures ──────────────────────────────────────────────────────────────────

@pytest.fixture
def src(tmp_path: Path) -> Path:
    """Empty source directory."""
    d = tmp_path / "source"
    d.mkdir()
    return d


@pytest.fixture
def tgt(tmp_path: Path) -> Path:
    """Empty target directory."""
    d = tmp_path / "target"
    d.mkdir()
    return d


@pytest.fixture
def fixed_date() -> datetime:
    return datetime(2023, 6, 15, 10, 30, 0)


@pytest.fixture
def store() -> InMemoryObjectStore:
    return InMemoryObjectStore()
