"""
ZIP bundling of finished downloads.
"""

import asyncio
import os
import tempfile
import zipfile
from datetime import date
from pathlib import Path
from typing import Any, AsyncIterator, List, Optional

import aiofiles

from ..config import settings
from ..config.logging_config import get_logger
from ..utils.exceptions import ArchiveError, NotFoundError, ValidationError
from .download_executor import is_safe_filename

logger = get_logger(__name__)


class ArchiveBuilder:
    """Builds a ZIP of files from the downloads directory and streams it back."""

    def __init__(
        self,
        downloads_dir: Path,
        name_prefix: str = "OfflineTube_Downloads",
        compression_level: int = 9,
        chunk_size: int = 1024 * 1024
    ):
        self.downloads_dir = Path(downloads_dir)
        self.name_prefix = name_prefix
        self.compression_level = compression_level
        self.chunk_size = chunk_size

    @classmethod
    def from_settings(cls, app_settings=None) -> "ArchiveBuilder":
        app_settings = app_settings or settings
        return cls(
            downloads_dir=app_settings.DOWNLOADS_DIR,
            name_prefix=app_settings.ARCHIVE_NAME_PREFIX,
            compression_level=app_settings.ZIP_COMPRESSION_LEVEL,
            chunk_size=app_settings.ARCHIVE_CHUNK_SIZE,
        )

    def archive_name(self, on: Optional[date] = None) -> str:
        on = on or date.today()
        return f"{self.name_prefix}_{on.isoformat()}.zip"

    def select_files(self, filenames: Any) -> List[Path]:
        """
        Resolve requested names to existing files.

        Names that are not strings or that contain ``..``, ``/`` or ``\\`` are
        skipped, as are names missing on disk.

        Raises:
            ValidationError: if no acceptable name was given
            NotFoundError: if none of the acceptable names exists
        """
        if not isinstance(filenames, (list, tuple)) or not filenames:
            raise ValidationError("No filenames provided.", field="filenames")

        valid_names = []
        for name in filenames:
            if not is_safe_filename(name):
                logger.warning(f"Invalid or potentially malicious filename skipped: {name!r}")
                continue
            valid_names.append(name)

        if not valid_names:
            raise ValidationError("No valid filenames provided.", field="filenames")

        paths = []
        for name in valid_names:
            path = self.downloads_dir / name
            if path.is_file():
                paths.append(path)
            else:
                logger.warning(f"File not found, skipped: {name}", extra={"file_name": name})

        if not paths:
            raise NotFoundError("No valid files found to zip.", resource="downloads")
        return paths

    def _write_zip(self, paths: List[Path], target: Path) -> None:
        with zipfile.ZipFile(
            target, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=self.compression_level
        ) as archive:
            for path in paths:
                archive.write(path, arcname=path.name)

    async def build(self, filenames: Any) -> Path:
        """Write the archive to a temporary file and return its path."""
        paths = self.select_files(filenames)

        fd, tmp_name = tempfile.mkstemp(prefix="offlinetube_", suffix=".zip")
        os.close(fd)
        target = Path(tmp_name)

        logger.info(f"Building archive with {len(paths)} file(s)", extra={"file_count": len(paths)})
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._write_zip, paths, target)
        except (OSError, zipfile.BadZipFile) as e:
            target.unlink(missing_ok=True)
            logger.error(f"Failed to build archive: {e}", exc_info=True)
            raise ArchiveError(
                "Failed to create ZIP file.",
                filenames=[path.name for path in paths],
                cause=e
            )
        return target

    async def stream(self, archive_path: Path) -> AsyncIterator[bytes]:
        """Yield the archive in chunks, deleting it once fully read or abandoned."""
        try:
            async with aiofiles.open(archive_path, "rb") as f:
                while True:
                    chunk = await f.read(self.chunk_size)
                    if not chunk:
                        break
                    yield chunk
        finally:
            Path(archive_path).unlink(missing_ok=True)
