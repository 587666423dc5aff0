"""
File storage for claim evidence.

Attachments are held in a staging area while the wizard is open and only
uploaded to blob storage by the submission pipeline. Blob paths are
randomized per owner, so nothing is ever overwritten.
"""
import mimetypes
import os
import random
import shutil
import string
import time
from abc import ABC, abstractmethod
from typing import Optional

from claimportal.core.config import settings
from claimportal.core.exceptions import StorageError
from claimportal.core.logging import logger


_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def random_suffix(length: int = 9) -> str:
    return "".join(random.choices(_SUFFIX_ALPHABET, k=length))


def file_extension(content_type: Optional[str], filename: Optional[str] = None) -> str:
    """Extension from the original name, else from the MIME type."""
    if filename:
        ext = os.path.splitext(filename)[1].lstrip(".").lower()
        if ext:
            return ext
    guessed = mimetypes.guess_extension(content_type or "") or ""
    return guessed.lstrip(".") or "bin"


class FileStorage(ABC):
    """Blob storage the submission pipeline uploads evidence to."""

    @abstractmethod
    async def upload(
        self,
        owner_id: str,
        content: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> str:
        """
        Store one file and return its stable path.

        Raises:
            StorageError: the file could not be written
        """
        pass


class LocalFileStorage(FileStorage):
    """Stores blobs on the local filesystem under UPLOAD_DIR."""

    def __init__(self, root: str):
        self.root = root

    async def upload(
        self,
        owner_id: str,
        content: bytes,
        content_type: str,
        filename: Optional[str] = None,
    ) -> str:
        relative_path = (
            f"{owner_id}/{int(time.time() * 1000)}-{random_suffix()}."
            f"{file_extension(content_type, filename)}"
        )
        full_path = os.path.join(self.root, relative_path)
        try:
            os.makedirs(os.path.dirname(full_path), exist_ok=True)
            with open(full_path, "wb") as f:
                f.write(content)
        except OSError as exc:
            logger.error(f"Blob upload failed for owner {owner_id}: {exc}")
            raise StorageError(f"Could not store {filename or 'file'}", {"path": relative_path})

        logger.debug(f"Stored blob {relative_path} ({len(content)} bytes)")
        return relative_path


class StagingArea:
    """Holds attachment bytes between upload in the wizard and submission."""

    def __init__(self, root: str):
        self.root = root

    def stage(self, session_id: str, attachment_id: str, content: bytes) -> str:
        directory = os.path.join(self.root, session_id)
        path = os.path.join(directory, attachment_id)
        try:
            os.makedirs(directory, exist_ok=True)
            with open(path, "wb") as f:
                f.write(content)
        except OSError as exc:
            logger.error(f"Staging failed for session {session_id}: {exc}")
            raise StorageError("Could not hold the uploaded file", {"session_id": session_id})
        return path

    def read(self, staged_path: str) -> bytes:
        try:
            with open(staged_path, "rb") as f:
                return f.read()
        except OSError as exc:
            raise StorageError(f"Staged file is no longer available: {exc}")

    def discard(self, staged_path: str) -> None:
        try:
            os.remove(staged_path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Could not remove staged file {staged_path}: {exc}")

    def discard_session(self, session_id: str) -> None:
        shutil.rmtree(os.path.join(self.root, session_id), ignore_errors=True)


_file_storage: Optional[FileStorage] = None
_staging_area: Optional[StagingArea] = None


def get_file_storage() -> FileStorage:
    """Get or create the blob storage singleton."""
    global _file_storage
    if _file_storage is None:
        _file_storage = LocalFileStorage(settings.UPLOAD_DIR)
    return _file_storage


def get_staging_area() -> StagingArea:
    """Get or create the staging area singleton."""
    global _staging_area
    if _staging_area is None:
        _staging_area = StagingArea(settings.STAGING_DIR)
    return _staging_area
