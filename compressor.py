import subprocess
from pathlib import Path
from typing import Optional

from errors import CompressionError

JPEGOPTIM = "jpegoptim"


class JpegCompressor:
    """
    Lossy in-place JPEG compression through jpegoptim.

    jpegoptim keeps EXIF by default; -p keeps the modification time, which the
    date fallback relies on later in the pipeline.
    """

    def __init__(self, executable: Optional[str] = None) -> None:
        self.executable = executable or JPEGOPTIM

    def build_command(self, file_path: Path, quality: int) -> list:
        return [self.executable, f"-m{quality}", "-p", str(file_path)]

    def compress(self, file_path: Path, quality: int) -> None:
        if not file_path.exists():
            raise CompressionError(f"file does not exist: {file_path}")
        try:
            result = subprocess.run(
                self.build_command(file_path, quality),
                capture_output=True,
                text=True,
            )
        except OSError as e:
            raise CompressionError(f"could not run {self.executable}: {e}") from e
        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip()
            raise CompressionError(
                f"{self.executable} failed for {file_path} "
                f"(exit {result.returncode}): {output}"
            )
