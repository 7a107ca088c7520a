"""
File Operations for the AutoUpdatePlugins Update Subsystem

This module provides the file helpers used by the pipeline: atomic writes for
the version cache, content hashing for duplicate detection, archive integrity
checks and the atomic install of a staged download.
"""

import errno
import hashlib
import json
import os
import shutil
import tempfile
import zipfile
import zlib
from typing import Any, Callable, Optional

from autoupdateplugins.exceptions import InstallError
from autoupdateplugins.log_utils import logger


def _atomic_write(
    file_path: str, writer_func: Callable[[Any], None], suffix: str = ".tmp"
) -> bool:
    """
    Write data to a file atomically by writing to a temporary file and replacing the target on success.

    Parameters:
        file_path (str): Destination file path to be written.
        writer_func (Callable[[Any], None]): Callable that receives an open text file-like object and writes the desired content to it.
        suffix (str): Suffix to use for the temporary file name (default ".tmp").

    Returns:
        bool: `True` if the temporary write and atomic replace succeeded, `False` on any error.
    """
    directory = os.path.dirname(file_path) or "."
    try:
        os.makedirs(directory, exist_ok=True)
        temp_fd, temp_path = tempfile.mkstemp(dir=directory, prefix="tmp-", suffix=suffix)
    except OSError as e:
        logger.error(f"Could not create temporary file for {file_path}: {e}")
        return False

    try:
        with os.fdopen(temp_fd, "w", encoding="utf-8") as temp_f:
            writer_func(temp_f)
        os.replace(temp_path, file_path)
    except (UnicodeEncodeError, OSError, TypeError, ValueError) as e:
        logger.error(f"Could not write to {file_path}: {e}")
        return False
    finally:
        if os.path.exists(temp_path):
            try:
                os.remove(temp_path)
            except OSError:
                pass
    return True


def _atomic_write_json(file_path: str, data: dict) -> bool:
    """
    Atomically write the given dictionary to the target file as pretty-printed JSON.

    Returns:
        bool: `True` if the file was written and moved into place successfully, `False` on error.
    """
    return _atomic_write(
        file_path, lambda f: json.dump(data, f, indent=2, sort_keys=True), suffix=".json"
    )


def ensure_directory_exists(directory: str) -> bool:
    """
    Ensure a directory path exists by creating any missing parent directories.

    Returns:
        bool: `True` if the directory exists or was created successfully, `False` otherwise.
    """
    if not directory:
        return True
    try:
        os.makedirs(directory, exist_ok=True)
        return True
    except OSError as e:
        logger.error(f"Could not create directory {directory}: {e}")
        return False


def calculate_sha256(file_path: str) -> Optional[str]:
    """
    Compute the SHA-256 hex digest of a file, streaming it in blocks.

    Returns:
        Optional[str]: The digest, or `None` if the file is missing or unreadable.
    """
    if not os.path.isfile(file_path):
        return None
    try:
        sha256_hash = hashlib.sha256()
        with open(file_path, "rb") as f:
            for chunk in iter(lambda: f.read(65536), b""):
                sha256_hash.update(chunk)
        return sha256_hash.hexdigest()
    except OSError as e:
        logger.debug(f"Error calculating SHA-256 for {file_path}: {e}")
        return None


def get_file_size(file_path: str) -> Optional[int]:
    """Return the size of a file in bytes, or `None` if it cannot be accessed."""
    try:
        return os.path.getsize(file_path)
    except OSError:
        return None


def is_archive_intact(file_path: str) -> bool:
    """
    Check that a ZIP/JAR archive opens and that every member passes its CRC check.

    Nothing is extracted to disk.

    Returns:
        bool: `True` if the archive is structurally valid, `False` otherwise.
    """
    try:
        with zipfile.ZipFile(file_path, "r") as zf:
            return zf.testzip() is None
    except (
        OSError,
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        EOFError,
        ValueError,
        zlib.error,
        NotImplementedError,
    ):
        # Corrupt deflate data raises zlib.error; unknown compression methods raise NotImplementedError
        return False


def cleanup_file(file_path: str) -> bool:
    """
    Delete the file at the given path if present.

    Returns:
        bool: `True` if the file is gone afterwards, `False` if removal failed.
    """
    try:
        if os.path.exists(file_path):
            os.remove(file_path)
        return True
    except OSError as e:
        logger.error(f"Error cleaning up file {file_path}: {e}")
        return False


def install_file(staged_path: str, destination: str) -> None:
    """
    Move a staged file over the destination, replacing any existing file.

    Uses os.replace, which is atomic on the same filesystem; a staging directory
    on another device falls back to shutil.move.

    Raises:
        InstallError: If the file could not be moved. The staged file is left in place.
    """
    ensure_directory_exists(os.path.dirname(destination))
    try:
        os.replace(staged_path, destination)
        return
    except OSError as e:
        if e.errno != errno.EXDEV:
            raise InstallError(
                "Could not install file",
                source=staged_path,
                destination=destination,
                details=str(e),
            ) from e

    try:
        shutil.move(staged_path, destination)
    except (OSError, shutil.Error) as e:
        raise InstallError(
            "Could not install file",
            source=staged_path,
            destination=destination,
            details=str(e),
        ) from e
