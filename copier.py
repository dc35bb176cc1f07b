import shutil
from pathlib import Path

from errors import ConflictError

ROOT_PREFIX = "root"


def staging_destination(source_root: Path, file_path: Path, staging_dir: Path) -> Path:
    """
    Construct: staging_dir / "<relative dir with '-' separators>-<file name>"
    Example: source/2024/trip/IMG_1.jpg -> staging/2024-trip-IMG_1.jpg
             source/IMG_2.jpg           -> staging/root-IMG_2.jpg
    """
    rel_dir = file_path.parent.relative_to(source_root)
    prefix = "-".join(rel_dir.parts) or ROOT_PREFIX
    return staging_dir / f"{prefix}-{file_path.name}"


def copy_preserving_mtime(source_path: Path, dest_path: Path) -> Path:
    """
    Copy source to dest as an independent file (not a link), keeping the
    modification time so the date fallback still works on the copy.

    Two source paths can flatten to the same staging name (a-b/x.jpg and
    a/b/x.jpg), so an existing dest is a conflict rather than overwritten.
    """
    try:
        with open(source_path, "rb") as src, open(dest_path, "xb") as dst:
            shutil.copyfileobj(src, dst)
        shutil.copystat(source_path, dest_path)
    except FileExistsError as e:
        raise ConflictError(f"refusing to copy {source_path}: {dest_path} already exists") from e
    except OSError as e:
        raise OSError(f"failed to copy {source_path} to {dest_path}: {e}") from e
    return dest_path


def move_into(file_path: Path, dest_dir: Path) -> Path:
    """Move file_path into dest_dir (creating it), refusing to overwrite."""
    dest_dir.mkdir(parents=True, exist_ok=True)
    dest_path = dest_dir / file_path.name
    if dest_path.exists():
        raise ConflictError(f"refusing to move {file_path}: {dest_path} already exists")
    # shutil.move falls back to copy+delete across filesystems
    shutil.move(str(file_path), str(dest_path))
    return dest_path
