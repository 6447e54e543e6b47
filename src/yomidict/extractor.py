"""Archive extraction into the import cache directory."""

from __future__ import annotations

import logging
import shutil
import uuid
import zipfile
from pathlib import Path

from yomidict.exceptions import ExtractionError
from yomidict.metadata import find_index_name

logger = logging.getLogger(__name__)

# zipfile raises RuntimeError for encrypted members and NotImplementedError
# for unsupported compression methods.
_ZIP_ERRORS = (
    zipfile.BadZipFile,
    zipfile.LargeZipFile,
    OSError,
    RuntimeError,
    NotImplementedError,
)


def read_index(archive_path: str | Path) -> bytes:
    """Read the metadata document straight from the archive.

    Nothing is written to disk, so this is safe to call before deciding
    whether the archive should be imported at all.
    """
    archive_path = Path(archive_path)
    try:
        with zipfile.ZipFile(archive_path) as zf:
            name = find_index_name(
                info.filename for info in zf.infolist() if not info.is_dir()
            )
            return zf.read(name)
    except _ZIP_ERRORS as e:
        raise ExtractionError(f"Cannot read archive {archive_path}: {e}") from e


def extract_to_cache(archive_path: str | Path, cache_dir: str | Path) -> Path:
    """Unpack *archive_path* into a fresh subdirectory of *cache_dir*.

    The subdirectory is named after the archive plus a random suffix so
    concurrent imports never share a directory.
    """
    archive_path = Path(archive_path)
    destination = Path(cache_dir) / f"{archive_path.name}-{uuid.uuid4().hex}"
    try:
        with zipfile.ZipFile(archive_path) as zf:
            destination.mkdir(parents=True)
            zf.extractall(destination)
    except _ZIP_ERRORS as e:
        shutil.rmtree(destination, ignore_errors=True)
        raise ExtractionError(f"Cannot extract {archive_path}: {e}") from e
    logger.info(f"Extracted {archive_path.name} to {destination}")
    return destination


def discard_extraction(directory: str | Path) -> None:
    """Remove one extracted archive from the cache."""
    shutil.rmtree(directory, ignore_errors=True)
    logger.debug(f"Removed extracted files in {directory}")


def clear_cache(cache_dir: str | Path) -> int:
    """Remove everything inside *cache_dir*. Returns the number of entries."""
    cache_dir = Path(cache_dir)
    if not cache_dir.exists():
        cache_dir.mkdir(parents=True)
        return 0

    entries = list(cache_dir.iterdir())
    if not entries:
        logger.debug("No items to remove from cache")
        return 0
    for entry in entries:
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
    logger.info(f"Removed {len(entries)} item(s) from cache {cache_dir}")
    return len(entries)
