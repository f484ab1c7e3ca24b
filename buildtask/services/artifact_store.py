# buildtask/services/artifact_store.py
import os
import re
import uuid
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Union
import logging

from buildtask.exceptions import NotFoundError, StorageError

logger = logging.getLogger(__name__)

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9\-]*$")
EXTENSION_PATTERN = re.compile(r"^[A-Za-z0-9]+$")


class ArtifactStore:
    """Durable, uniquely named storage for report artifacts under a storage root"""

    def __init__(self, storage_root: Union[str, Path]):
        self.storage_root = Path(storage_root).resolve()
        self.storage_root.mkdir(parents=True, exist_ok=True)

    def unique_file_name(self, report_type_slug: str, extension: str) -> str:
        """
        Generate a file name that does not collide with concurrent calls

        Args:
            report_type_slug: Directory slug of the report type
            extension: File extension without the leading dot

        Returns:
            <slug>_<UTC timestamp>_<random hex>.<extension>
        """
        self._check_slug(report_type_slug)
        extension = extension.lstrip(".")
        if not EXTENSION_PATTERN.match(extension):
            raise StorageError(f"Invalid file extension: {extension!r}")

        timestamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
        return f"{report_type_slug}_{timestamp}_{uuid.uuid4().hex}.{extension}"

    def resolve_path(self, report_type_slug: str, file_name: str) -> Path:
        """
        Join the storage root, type slug and file name; creates the type directory

        Raises:
            StorageError: If the result would leave the type directory
        """
        self._check_slug(report_type_slug)
        type_dir = self.storage_root / report_type_slug
        path = (type_dir / file_name).resolve()

        # Only a plain file name directly inside the type directory is accepted
        if path.parent != type_dir:
            raise StorageError(f"File name escapes the report directory: {file_name!r}")

        try:
            type_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create report directory {type_dir}: {e}") from e
        return path

    def write(self, path: Union[str, Path], data: bytes) -> Path:
        """
        Write bytes to path atomically

        The payload goes to a temporary file in the same directory which is
        flushed, fsynced and renamed onto the target. On failure the temporary
        file is removed and nothing is left at path.
        """
        path = Path(path)
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".", suffix=".tmp")
            with os.fdopen(fd, "wb") as tmp_file:
                tmp_file.write(data)
                tmp_file.flush()
                os.fsync(tmp_file.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            logger.error(f"Error writing report artifact {path}: {str(e)}")
            raise StorageError(f"Failed to write report file {path.name}: {str(e)}") from e

        logger.info(f"Report artifact written: {path} ({len(data)} bytes)")
        return path

    def read(self, path: Union[str, Path]) -> bytes:
        """
        Read an artifact

        Raises:
            NotFoundError: If the file is missing or unreadable
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                return f.read()
        except (FileNotFoundError, IsADirectoryError, PermissionError) as e:
            raise NotFoundError(f"Report file not found or not readable: {path.name}") from e
        except OSError as e:
            raise NotFoundError(f"Cannot read report file {path.name}: {str(e)}") from e

    def delete(self, path: Union[str, Path]) -> bool:
        """Remove an artifact; returns False if it was already gone"""
        path = Path(path)
        try:
            path.unlink()
            logger.info(f"Report artifact deleted: {path}")
            return True
        except FileNotFoundError:
            return False

    def contains(self, path: Union[str, Path]) -> bool:
        """Check that path lies under the storage root"""
        try:
            Path(path).resolve().relative_to(self.storage_root)
            return True
        except ValueError:
            return False

    def _check_slug(self, report_type_slug: str) -> None:
        if not SLUG_PATTERN.match(report_type_slug or ""):
            raise StorageError(f"Invalid report type slug: {report_type_slug!r}")
