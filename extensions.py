from pathlib import Path
from typing import Union

from models import MediaKind

IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".heic", ".png"})

VIDEO_EXTENSIONS = frozenset({
    ".mov",   # QuickTime
    ".mp4",   # MPEG-4
    ".avi",
    ".mkv",   # Matroska
    ".webm",
    ".flv",   # Flash
    ".wmv",   # Windows Media
    ".m4v",   # MPEG-4 (Apple)
    ".3gp",   # 3GPP (mobile)
    ".m2ts",  # MPEG-2 transport stream
    ".mts",
    ".ogv",   # Ogg Theora
    ".ts",
})

JPEG_EXTENSIONS = frozenset({".jpg", ".jpeg"})

PathLike = Union[str, Path]


def _ext(file_path: PathLike) -> str:
    return Path(file_path).suffix.lower()


def classify_file(file_path: PathLike) -> MediaKind:
    """Return the media kind of a file based on its (case-insensitive) extension."""
    ext = _ext(file_path)
    if ext in IMAGE_EXTENSIONS:
        return MediaKind.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaKind.VIDEO
    return MediaKind.UNSUPPORTED


def is_image(file_path: PathLike) -> bool:
    return _ext(file_path) in IMAGE_EXTENSIONS


def is_video(file_path: PathLike) -> bool:
    return _ext(file_path) in VIDEO_EXTENSIONS


def is_supported(file_path: PathLike) -> bool:
    return classify_file(file_path) is not MediaKind.UNSUPPORTED


def is_jpeg(file_path: PathLike) -> bool:
    return _ext(file_path) in JPEG_EXTENSIONS
