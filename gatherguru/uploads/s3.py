"""
S3-compatible object storage backend.
"""

import logging
import time
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError
from werkzeug.datastructures import FileStorage

from gatherguru.errors import DeleteError, UploadError
from gatherguru.uploads.base import UploadAdapter, UploadResult, folder_for, read_validated, split_name

logger = logging.getLogger(__name__)


class S3UploadAdapter(UploadAdapter):
    """
    Buffers uploads in memory and writes them to a bucket.

    Args:
        client: A boto3 S3 client.
        bucket (str): Target bucket name.
        region (str): Bucket region, used to build object URLs.
        cloudfront_id (str, optional): CloudFront distribution id; when set,
            URLs point at the CDN instead of the bucket.
    """

    name = "s3"

    def __init__(self, client: Any, bucket: str, region: str = "us-east-1",
                 cloudfront_id: Optional[str] = None):
        self.client = client
        self.bucket = bucket
        self.region = region
        self.cloudfront_id = cloudfront_id

    def url_for(self, key: str) -> str:
        if self.cloudfront_id:
            return f"https://{self.cloudfront_id}.cloudfront.net/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"

    def store(self, file: FileStorage, category: str) -> UploadResult:
        data = read_validated(file)

        base, ext = split_name(file.filename)
        original_name = base + ext
        key = f"{folder_for(category)}/{int(time.time() * 1000)}-{original_name}"

        try:
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=file.mimetype,
                ACL="public-read",
                Metadata={"originalName": original_name},
            )
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"S3 upload error for {key}: {exc}")
            raise UploadError("Failed to upload file to S3") from exc

        return UploadResult(url=self.url_for(key), key=key, original_name=file.filename)

    def delete(self, key: str) -> bool:
        """
        Delete an object. S3 treats deleting a missing key as success.

        Raises:
            DeleteError: If the storage call fails.
        """
        try:
            self.client.delete_object(Bucket=self.bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            logger.error(f"S3 delete error for {key}: {exc}")
            raise DeleteError("Failed to delete file from S3") from exc
        return True

    def describe(self) -> Dict[str, Any]:
        return {
            "backend": self.name,
            "bucket": self.bucket,
            "region": self.region,
            "cdn": bool(self.cloudfront_id),
        }
