import hashlib
from pathlib import Path

CHUNK_SIZE = 1024 * 1024  # 1 MB; archives are large


def file_digest(file_path: Path) -> str:
    """
    Stream-read file_path and return its MD5 hex digest. MD5 matches the ETag
    S3 computes for single-part uploads.
    """
    h = hashlib.md5()
    try:
        with open(file_path, "rb") as f:
            while chunk := f.read(CHUNK_SIZE):
                h.update(chunk)
    except OSError as e:
        raise OSError(f"Cannot read {file_path}: {e}") from e
    return h.hexdigest()
