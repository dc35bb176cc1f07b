"""
Backup of date directories to an object store, and restore back to disk.

Each date directory becomes one gzip-compressed tar archive stored under
"{DirectoryName} ({n} images, {m} videos).tar.gz". Archives are built
reproducibly, so backing up an unchanged directory produces the same bytes and
the same MD5, and the upload is skipped. An existing object with a different
hash is a conflict and is never overwritten.

Restore is additive: it never writes into a directory that already exists.
"""
import gzip
import logging
import os
import shutil
import tarfile
import tempfile
import threading
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from errors import BatchError, DirectoryExistsError, HashMismatchError, ValidationError
from extensions import is_image, is_video
from hasher import file_digest
from models import DEFAULT_MAX_CONCURRENT, RestoreFilter, Stage
from naming import build_archive_key, directory_name_from_key, is_archive_key, key_year_month
from object_store import ObjectStore, is_not_found_error
from organiser import VIDEOS_DIR
from progress import ProgressSink, emit_progress
from worker_pool import JobResult, failures, resolve_workers, run_pool

ARCHIVE_FILE_NAME = "archive.tar.gz"


class BackupOutcome(str, Enum):
    UPLOADED = "uploaded"
    SKIPPED = "skipped"


def count_media(dir_path: Path) -> Tuple[int, int]:
    """
    Images directly inside dir_path and videos inside dir_path/videos.
    Returns (images, videos).
    """
    dir_path = Path(dir_path)
    images = sum(1 for p in dir_path.iterdir() if not p.is_dir() and is_image(p))

    videos = 0
    videos_dir = dir_path / VIDEOS_DIR
    if videos_dir.is_dir():
        videos = sum(1 for p in videos_dir.iterdir() if not p.is_dir() and is_video(p))
    return images, videos


def create_archive(dir_path: Path, archive_path: Path) -> None:
    """
    Write dir_path as a tar.gz whose entries are rooted at dir_path's basename.

    The gzip header carries no file name and a zero timestamp, tarfile adds
    directory entries in sorted order and entry headers are normalised, so
    the output depends only on file names, modes, mtimes and contents.
    """
    dir_path = Path(dir_path)
    try:
        with open(archive_path, "wb") as f:
            with gzip.GzipFile(filename="", mode="wb", fileobj=f, mtime=0) as gz:
                with tarfile.open(fileobj=gz, mode="w", format=tarfile.PAX_FORMAT) as tar:
                    tar.add(str(dir_path), arcname=dir_path.name, filter=_normalise_entry)
    except OSError as e:
        raise OSError(f"failed to create archive of {dir_path}: {e}") from e


def _normalise_entry(info: tarfile.TarInfo) -> tarfile.TarInfo:
    # Ownership and directory mtimes are not restored and utime rounds
    # sub-second mtimes; a restored directory must archive to the same bytes.
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    info.mtime = 0 if info.isdir() else int(info.mtime)
    return info


def _within(root: Path, path: Path) -> bool:
    return path == root or root in path.parents


def extract_archive(archive_path: Path, target_dir: Path) -> List[Path]:
    """
    Extract a tar.gz into target_dir. Directories get their permission bits
    back and regular files their permission bits and mtime. Other entry types
    are skipped. Returns the extracted file paths.
    """
    root = Path(target_dir).resolve()
    extracted: List[Path] = []
    directories: List[Tuple[Path, int]] = []
    with tarfile.open(archive_path, mode="r:gz") as tar:
        for member in tar:
            dest = (root / member.name).resolve()
            if not _within(root, dest):
                raise ValidationError(f"archive entry escapes target directory: {member.name}")

            if member.isdir():
                dest.mkdir(parents=True, exist_ok=True)
                directories.append((dest, member.mode & 0o7777))
            elif member.isfile():
                dest.parent.mkdir(parents=True, exist_ok=True)
                src = tar.extractfile(member)
                with src, open(dest, "wb") as out:
                    shutil.copyfileobj(src, out)
                os.chmod(dest, member.mode & 0o7777)
                os.utime(dest, (member.mtime, member.mtime))
                extracted.append(dest)
    # Modes last, deepest first, so a read-only directory can still be filled
    for dest, mode in reversed(directories):
        os.chmod(dest, mode)
    return extracted


class _Progress:
    """Numbers job starts across workers for the progress sink."""

    def __init__(self, sink: ProgressSink, stage: Stage, total: int, logger: logging.Logger) -> None:
        self._sink = sink
        self._stage = stage
        self._total = total
        self._log = logger
        self._started = 0
        self._lock = threading.Lock()

    def started(self, message: str, file: str) -> None:
        with self._lock:
            self._started += 1
            current = self._started
        emit_progress(self._sink, self._stage, current, self._total, message, file, logger=self._log)


class BackupEngine:
    def __init__(self, store: ObjectStore, logger: Optional[logging.Logger] = None) -> None:
        self._store = store
        self._log = logger or logging.getLogger(__name__)

    # ── Backup ────────────────────────────────────────────────────────────────

    def backup_directories(
        self,
        source_dir: Path,
        bucket: str,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        progress: ProgressSink = None,
    ) -> Dict[str, BackupOutcome]:
        """
        Archive and upload every immediate subdirectory of source_dir.

        Every directory is attempted. Returns the outcome per archive key, or
        raises BatchError carrying the per-directory failures.
        """
        source_dir = Path(source_dir)
        try:
            dir_names = sorted(
                p.name for p in source_dir.iterdir()
                if p.is_dir() and not p.name.startswith(".")
            )
        except OSError as e:
            raise OSError(f"failed to read source directory {source_dir}: {e}") from e

        if not dir_names:
            self._log.info("No directories to back up in %s", source_dir)
            return {}

        workers = resolve_workers(max_concurrent, DEFAULT_MAX_CONCURRENT)
        self._log.info("Backing up %d directories to %s with %d workers", len(dir_names), bucket, workers)
        tracker = _Progress(progress, Stage.BACKING_UP, len(dir_names), self._log)

        def work(dir_name: str) -> Tuple[str, BackupOutcome]:
            tracker.started(f"Backing up {dir_name}", dir_name)
            return self._backup_directory(source_dir / dir_name, bucket)

        results = run_pool(dir_names, work, workers, thread_name_prefix="pics-backup")
        self._raise_failures(results, "backup", "directories")
        return dict(r.value for r in results)

    def _backup_directory(self, dir_path: Path, bucket: str) -> Tuple[str, BackupOutcome]:
        images, videos = count_media(dir_path)
        key = build_archive_key(dir_path.name, images, videos)

        tmp_dir = Path(tempfile.mkdtemp(prefix="pics-backup-"))
        try:
            archive = tmp_dir / ARCHIVE_FILE_NAME
            self._log.debug("Archiving %s -> %s", dir_path, archive)
            create_archive(dir_path, archive)
            local_hash = file_digest(archive)

            try:
                existing = self._store.head(bucket, key)
            except Exception as e:
                if not is_not_found_error(e):
                    raise
                self._log.info("Uploading %s (md5 %s)", key, local_hash)
                self._store.put(bucket, key, archive, local_hash)
                return key, BackupOutcome.UPLOADED

            remote_hash = existing.stored_hash()
            if remote_hash == local_hash:
                self._log.info("Skipping %s: already backed up with the same content", key)
                return key, BackupOutcome.SKIPPED
            raise HashMismatchError(key, local_hash, remote_hash)
        finally:
            self._remove_temp(tmp_dir)

    # ── Restore ───────────────────────────────────────────────────────────────

    def select_keys(self, bucket: str, restore_filter: Optional[RestoreFilter] = None) -> List[str]:
        """Archive keys in bucket whose (year, month) prefix passes the filter."""
        restore_filter = restore_filter or RestoreFilter()
        selected = []
        for key in self._store.list_keys(bucket):
            if not is_archive_key(key):
                self._log.debug("Ignoring non-archive object %s", key)
                continue
            year_month = key_year_month(key)
            if year_month is None:
                self._log.debug("Ignoring %s: no year/month prefix", key)
                continue
            if restore_filter.matches(*year_month):
                selected.append(key)
        return sorted(selected)

    def restore_directories(
        self,
        bucket: str,
        target_dir: Path,
        restore_filter: Optional[RestoreFilter] = None,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        progress: ProgressSink = None,
    ) -> List[Path]:
        """
        Download and extract every selected archive into target_dir.

        A key whose directory already exists under target_dir fails without
        touching it. Returns the restored directories, or raises BatchError
        once every key has been attempted.
        """
        target_dir = Path(target_dir)
        keys = self.select_keys(bucket, restore_filter)
        if not keys:
            self._log.info("No archives in %s match the restore filter", bucket)
            return []

        target_dir.mkdir(parents=True, exist_ok=True)
        workers = resolve_workers(max_concurrent, DEFAULT_MAX_CONCURRENT)
        self._log.info("Restoring %d archives from %s with %d workers", len(keys), bucket, workers)
        tracker = _Progress(progress, Stage.RESTORING, len(keys), self._log)

        claimed: Set[str] = set()
        claim_lock = threading.Lock()

        def work(key: str) -> Path:
            tracker.started(f"Restoring {key}", key)
            dir_name = directory_name_from_key(key)
            dest = target_dir / dir_name
            with claim_lock:
                if dir_name in claimed or dest.exists():
                    raise DirectoryExistsError(dest)
                claimed.add(dir_name)
            self._restore_key(bucket, key, target_dir)
            return dest

        results = run_pool(keys, work, workers, thread_name_prefix="pics-restore")
        self._raise_failures(results, "restore", "objects")
        return sorted(r.value for r in results)

    def _restore_key(self, bucket: str, key: str, target_dir: Path) -> None:
        tmp_dir = Path(tempfile.mkdtemp(prefix="pics-restore-"))
        try:
            archive = tmp_dir / ARCHIVE_FILE_NAME
            self._log.info("Downloading %s", key)
            self._store.get(bucket, key, archive)
            files = extract_archive(archive, target_dir)
            self._log.info("Restored %s (%d files)", key, len(files))
        finally:
            self._remove_temp(tmp_dir)

    # ── Shared ────────────────────────────────────────────────────────────────

    def _remove_temp(self, tmp_dir: Path) -> None:
        try:
            shutil.rmtree(tmp_dir)
        except OSError as e:
            self._log.error("Failed to remove temporary directory %s: %s", tmp_dir, e)

    def _raise_failures(self, results: List[JobResult], action: str, noun: str) -> None:
        failed = failures(results)
        if not failed:
            return
        for result in failed:
            self._log.error("%s failed for %s: %s", action.capitalize(), result.job, result.error)
        raise BatchError(action, noun, [r.error for r in failed])
