"""
Local disk upload backend.

Files land in <root>/<folder>/<basename>-<ms timestamp>-<random>.<ext> and
are served back by the gateway's /uploads static route.
"""

import logging
import os
import random
import time
from typing import Any, Dict, Optional

from werkzeug.datastructures import FileStorage

from gatherguru.uploads.base import (
    EVENT_BANNERS,
    PROFILE_IMAGES,
    UploadAdapter,
    UploadResult,
    folder_for,
    read_validated,
    split_name,
)

logger = logging.getLogger(__name__)

THIRTY_DAYS = 30 * 24 * 60 * 60


class LocalUploadAdapter(UploadAdapter):
    name = "local"

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _resolve(self, key: str) -> Optional[str]:
        """Map a stored key to an absolute path, refusing anything outside root."""
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root or path == self.root:
            return None
        return path

    def store(self, file: FileStorage, category: str) -> UploadResult:
        data = read_validated(file)

        folder = folder_for(category)
        directory = os.path.join(self.root, folder)
        os.makedirs(directory, exist_ok=True)

        base, ext = split_name(file.filename)
        unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
        filename = f"{base}-{unique_suffix}{ext}"

        with open(os.path.join(directory, filename), "wb") as fh:
            fh.write(data)

        key = f"{folder}/{filename}"
        logger.info(f"Stored upload {key} ({len(data)} bytes)")
        return UploadResult(url=f"/uploads/{key}", key=key, original_name=file.filename)

    def delete(self, key: str) -> bool:
        """
        Remove a stored file.

        Returns:
            bool: True if a file was removed, False if it did not exist or
                could not be removed. Never raises.
        """
        path = self._resolve(key or "")
        if path is None or not os.path.isfile(path):
            return False
        try:
            os.remove(path)
        except OSError:
            logger.exception(f"Error deleting local file {key}")
            return False
        return True

    def file_size(self, key: str) -> int:
        path = self._resolve(key or "")
        if path is None:
            return 0
        try:
            return os.path.getsize(path)
        except OSError:
            return 0

    def directory_size(self) -> int:
        total = 0
        for dirpath, _, filenames in os.walk(self.root):
            for name in filenames:
                try:
                    total += os.path.getsize(os.path.join(dirpath, name))
                except OSError:
                    continue
        return total

    def cleanup_old_files(self, max_age_seconds: int = THIRTY_DAYS) -> int:
        """Delete files older than max_age_seconds. Returns how many were removed."""
        cutoff = time.time() - max_age_seconds
        removed = 0
        for dirpath, _, filenames in os.walk(self.root):
            for name in filenames:
                path = os.path.join(dirpath, name)
                try:
                    if os.path.getmtime(path) < cutoff:
                        os.remove(path)
                        removed += 1
                        logger.info(f"Deleted old file: {path}")
                except OSError:
                    logger.exception(f"Error cleaning up {path}")
        return removed

    def describe(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "uploadsDir": self.root,
            "eventBannersDir": os.path.join(self.root, EVENT_BANNERS),
            "profileImagesDir": os.path.join(self.root, PROFILE_IMAGES),
        }
