"""
Cover image handling.

BlobStore is the storage contract for files attached to entries.
CoverImageService downloads a remote image and hands it to the blob store.
Failures never propagate: they are logged and reported as False.
"""

import logging
import shutil
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

import requests

from event_importer.ingestion.errors import SideEffectError
from event_importer.schemas.entry import CoverImage

logger = logging.getLogger(__name__)

COVER_IMAGE_FIELD = "cover_image"


class BlobStore(ABC):
    """Files attached to an entry under a field tag."""

    @abstractmethod
    def store(self, data: bytes, filename: str, entry_id: int, field: str) -> bool:
        """Store bytes and associate them with the entry."""

    @abstractmethod
    def exists(self, entry_id: int, field: str) -> bool:
        """Whether the entry has a file under this field."""

    @abstractmethod
    def delete(self, entry_id: int, field: str) -> bool:
        """Remove the entry's file(s) under this field; True if anything was removed."""


class LocalBlobStore(BlobStore):
    """
    BlobStore on the local filesystem.

    Layout: <root>/<entry_id>/<field>/<filename>. The directory itself is the
    association record, so deleting it removes both metadata and data.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def _field_dir(self, entry_id: int, field: str) -> Path:
        return self.root / str(entry_id) / field

    def store(self, data: bytes, filename: str, entry_id: int, field: str) -> bool:
        target_dir = self._field_dir(entry_id, field)
        target_dir.mkdir(parents=True, exist_ok=True)
        safe_name = Path(filename).name or "upload.bin"
        (target_dir / safe_name).write_bytes(data)
        logger.debug(f"Stored {safe_name} for entry {entry_id} ({field})")
        return True

    def exists(self, entry_id: int, field: str) -> bool:
        target_dir = self._field_dir(entry_id, field)
        return target_dir.is_dir() and any(target_dir.iterdir())

    def delete(self, entry_id: int, field: str) -> bool:
        target_dir = self._field_dir(entry_id, field)
        if not target_dir.exists():
            return False
        shutil.rmtree(target_dir)
        return True


class CoverImageService:
    """
    Downloads cover images and attaches them to entries.
    """

    def __init__(
        self,
        blob_store: BlobStore,
        session: Optional[requests.Session] = None,
        timeout: int = 30,
        field: str = COVER_IMAGE_FIELD,
    ):
        self.blob_store = blob_store
        self.timeout = timeout
        self.field = field
        self._session = session

    def _get_session(self) -> requests.Session:
        """Get or create HTTP session."""
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update({"Accept": "image/*"})
        return self._session

    def has_cover(self, entry_id: int) -> bool:
        return self.blob_store.exists(entry_id, self.field)

    def download(self, image: CoverImage) -> bytes:
        """
        Fetch image bytes.

        Raises:
            SideEffectError: On transport errors, non-2xx status or empty body
        """
        try:
            response = self._get_session().get(
                image.url,
                timeout=self.timeout,
                headers={"Accept": "image/*"},
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise SideEffectError(f"Image download failed for {image.url}: {e}") from e
        if not response.content:
            raise SideEffectError(f"Empty image body from {image.url}")
        return response.content

    def attach(
        self,
        entry_id: int,
        image: Optional[CoverImage],
        skip_if_present: bool = False,
    ) -> bool:
        """
        Attach a cover image to an entry.

        Args:
            entry_id: Owning entry
            image: Image candidate; None is a no-op
            skip_if_present: Leave an existing cover image alone

        Returns:
            True if a new image was stored
        """
        if image is None:
            return False
        try:
            if skip_if_present and self.has_cover(entry_id):
                return False
            data = self.download(image)
            return self.blob_store.store(data, image.filename, entry_id, self.field)
        except (SideEffectError, OSError) as e:
            logger.warning(f"Cover image not attached to entry {entry_id}: {e}")
            return False

    def replace(self, entry_id: int, image: Optional[CoverImage]) -> bool:
        """Delete any existing cover image, then attach `image`."""
        try:
            self.blob_store.delete(entry_id, self.field)
        except OSError as e:
            logger.warning(f"Could not delete cover image of entry {entry_id}: {e}")
        return self.attach(entry_id, image)
