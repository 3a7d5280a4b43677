"""
Upload adapter interface and the validation both backends share.
"""

import os
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from typing import Any, Dict

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from gatherguru.config import MAX_UPLOAD_BYTES
from gatherguru.errors import ValidationError

UPLOAD_ADAPTER_KEY = "gatherguru.uploads"

EVENT_BANNERS = "event-banners"
PROFILE_IMAGES = "profile-images"
GENERAL = "general"

CATEGORY_FOLDERS = (EVENT_BANNERS, PROFILE_IMAGES)


@dataclass(frozen=True)
class UploadResult:
    url: str
    key: str
    original_name: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def folder_for(category: str) -> str:
    return category if category in CATEGORY_FOLDERS else GENERAL


def split_name(original_name: str):
    """Return a filesystem-safe (basename, ext) pair for an uploaded name."""
    base, ext = os.path.splitext(secure_filename(original_name or ""))
    if not ext:
        # Non-ASCII stems are stripped together with the dot ("日本.png" -> "png")
        raw_ext = secure_filename(os.path.splitext(original_name or "")[1])
        if raw_ext:
            if base == raw_ext:
                base = ""
            ext = "." + raw_ext
    return base or "upload", ext.lower()


def read_validated(file: FileStorage, max_bytes: int = MAX_UPLOAD_BYTES) -> bytes:
    """
    Read an uploaded file into memory after checking type and size.

    Raises:
        ValidationError: No file, non-image MIME type, or more than max_bytes.
    """
    if file is None or not file.filename:
        raise ValidationError("No file uploaded")

    mimetype = (file.mimetype or "").lower()
    if not mimetype.startswith("image/"):
        raise ValidationError("Only image files are allowed")

    data = file.stream.read(max_bytes + 1)
    if len(data) > max_bytes:
        raise ValidationError(f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB")
    if not data:
        raise ValidationError("Uploaded file is empty")

    return data


class UploadAdapter(ABC):
    """Store an image and hand back a URL; backends are interchangeable."""

    name = "base"

    @abstractmethod
    def store(self, file: FileStorage, category: str) -> UploadResult:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    def describe(self) -> Dict[str, Any]:
        """Storage details reported by the health check."""
        return {"backend": self.name}


def get_upload_adapter() -> UploadAdapter:
    return current_app.extensions[UPLOAD_ADAPTER_KEY]
