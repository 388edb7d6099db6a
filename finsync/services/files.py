"""
Managed storage for scanned document images.

A scanned image is copied into a directory the app owns, so the record
stays valid after the camera or picker cleans up its temporary file.
Deleting a document deletes this copy too.
"""

import shutil
import time
from pathlib import Path
from typing import Optional

from finsync.config import get_settings


class ImageFileError(Exception):
    """Could not copy or remove a managed image."""
    pass


class LocalImageStore:
    """Copies images into, and removes them from, the documents directory."""

    def __init__(self, documents_dir: Optional[str] = None):
        self._dir = Path(documents_dir or get_settings().local.documents_dir)

    @property
    def directory(self) -> Path:
        return self._dir

    def save_copy(self, source_path: str) -> str:
        """
        Copy an image into the managed directory.

        Returns:
            Path of the managed copy, named document_{epoch_ms}{suffix}

        Raises:
            ImageFileError: If the source is missing or the copy fails
        """
        source = Path(source_path)
        if not source.is_file():
            raise ImageFileError(f"Image not found: {source_path}")

        try:
            self._dir.mkdir(parents=True, exist_ok=True)
            suffix = source.suffix or ".jpg"
            destination = self._dir / f"document_{int(time.time() * 1000)}{suffix}"
            counter = 1
            while destination.exists():
                destination = self._dir / f"document_{int(time.time() * 1000)}_{counter}{suffix}"
                counter += 1
            shutil.copyfile(source, destination)
        except OSError as e:
            raise ImageFileError(f"Failed to store image {source_path}: {e}")
        return str(destination)

    def delete(self, image_path: str) -> bool:
        """
        Remove an image. Missing files are ignored.

        Returns:
            True if a file was removed
        """
        path = Path(image_path)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise ImageFileError(f"Failed to delete image {image_path}: {e}")
