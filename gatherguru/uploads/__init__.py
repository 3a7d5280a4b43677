"""
Image uploads over local disk or S3, chosen once at startup.
"""

import boto3
from botocore.config import Config

from gatherguru.config import Settings
from gatherguru.uploads.base import (
    EVENT_BANNERS,
    PROFILE_IMAGES,
    UploadAdapter,
    UploadResult,
    get_upload_adapter,
)
from gatherguru.uploads.local import LocalUploadAdapter
from gatherguru.uploads.s3 import S3UploadAdapter

__all__ = [
    "EVENT_BANNERS",
    "PROFILE_IMAGES",
    "LocalUploadAdapter",
    "S3UploadAdapter",
    "UploadAdapter",
    "UploadResult",
    "create_upload_adapter",
    "get_upload_adapter",
]


def create_upload_adapter(settings: Settings) -> UploadAdapter:
    """Build the storage backend named by STORAGE_BACKEND."""
    if settings.storage_backend == "s3":
        client = boto3.client(
            "s3",
            region_name=settings.aws_region,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
            config=Config(
                connect_timeout=settings.storage_timeout_seconds,
                read_timeout=settings.storage_timeout_seconds,
                retries={"mode": "standard", "max_attempts": 1},
            ),
        )
        return S3UploadAdapter(
            client,
            bucket=settings.s3_bucket_name,
            region=settings.aws_region,
            cloudfront_id=settings.cloudfront_distribution_id,
        )

    if settings.storage_backend != "local":
        raise RuntimeError(f"Unknown STORAGE_BACKEND '{settings.storage_backend}'. Use 'local' or 's3'.")

    return LocalUploadAdapter(settings.upload_dir)
