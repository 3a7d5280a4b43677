import io
import os
import re
import time

import pytest
from botocore.exceptions import ClientError
from werkzeug.datastructures import FileStorage

from gatherguru.config import MAX_UPLOAD_BYTES, Settings
from gatherguru.errors import DeleteError, UploadError, ValidationError
from gatherguru.uploads import (
    EVENT_BANNERS,
    PROFILE_IMAGES,
    LocalUploadAdapter,
    S3UploadAdapter,
    create_upload_adapter,
)


def image(name="banner.png", data=b"\x89PNG\r\n\x1a\nimage-bytes", mimetype="image/png"):
    return FileStorage(stream=io.BytesIO(data), filename=name, content_type=mimetype)


@pytest.fixture
def local(tmp_path):
    return LocalUploadAdapter(str(tmp_path / "uploads"))


@pytest.fixture
def s3_client(mocker):
    return mocker.Mock()


# --- LOCAL BACKEND ---
def test_local_store_writes_file(local, tmp_path):
    result = local.store(image("My Banner.png"), EVENT_BANNERS)

    assert re.fullmatch(r"/uploads/event-banners/My_Banner-\d+-\d+\.png", result.url)
    assert result.key == result.url[len("/uploads/"):]
    assert result.original_name == "My Banner.png"
    assert (tmp_path / "uploads" / result.key).read_bytes().startswith(b"\x89PNG")


def test_local_store_keeps_extension_of_non_ascii_name(local):
    result = local.store(image("日本.png"), PROFILE_IMAGES)
    assert re.fullmatch(r"/uploads/profile-images/upload-\d+-\d+\.png", result.url)


def test_local_store_unknown_category_goes_to_general(local):
    result = local.store(image(), "avatars")
    assert result.key.startswith("general/")


def test_local_store_rejects_non_image(local, tmp_path):
    with pytest.raises(ValidationError, match="Only image files are allowed"):
        local.store(image("notes.txt", b"plain text", "text/plain"), PROFILE_IMAGES)

    assert not (tmp_path / "uploads").exists()


def test_local_store_rejects_oversized(local, tmp_path):
    big = b"\0" * (MAX_UPLOAD_BYTES + 1)

    with pytest.raises(ValidationError, match="File too large"):
        local.store(image(data=big), EVENT_BANNERS)

    assert not (tmp_path / "uploads").exists()


def test_local_store_accepts_exact_limit(local):
    result = local.store(image(data=b"\0" * MAX_UPLOAD_BYTES), EVENT_BANNERS)
    assert local.file_size(result.key) == MAX_UPLOAD_BYTES


def test_local_store_requires_file(local):
    with pytest.raises(ValidationError, match="No file uploaded"):
        local.store(None, EVENT_BANNERS)


def test_local_delete_is_idempotent(local):
    result = local.store(image(), EVENT_BANNERS)

    assert local.delete(result.key) is True
    assert local.delete(result.key) is False


def test_local_delete_refuses_paths_outside_root(local, tmp_path):
    outside = tmp_path / "secret.txt"
    outside.write_text("keep me")

    assert local.delete("../secret.txt") is False
    assert outside.exists()


def test_local_cleanup_old_files(local, tmp_path):
    old = local.store(image("old.png"), EVENT_BANNERS)
    fresh = local.store(image("fresh.png"), EVENT_BANNERS)
    old_path = tmp_path / "uploads" / old.key
    past = time.time() - 60 * 24 * 60 * 60
    os.utime(old_path, (past, past))

    assert local.cleanup_old_files() == 1
    assert not old_path.exists()
    assert (tmp_path / "uploads" / fresh.key).exists()
    assert local.directory_size() == local.file_size(fresh.key)


# --- S3 BACKEND ---
def test_s3_store_puts_object(s3_client):
    adapter = S3UploadAdapter(s3_client, bucket="bucket", region="eu-west-1")

    result = adapter.store(image("poster.png"), EVENT_BANNERS)

    assert re.fullmatch(r"event-banners/\d+-poster\.png", result.key)
    assert result.url == f"https://bucket.s3.eu-west-1.amazonaws.com/{result.key}"
    kwargs = s3_client.put_object.call_args.kwargs
    assert kwargs["Bucket"] == "bucket"
    assert kwargs["Key"] == result.key
    assert kwargs["ContentType"] == "image/png"
    assert kwargs["ACL"] == "public-read"
    assert kwargs["Metadata"] == {"originalName": "poster.png"}


def test_s3_key_keeps_extension_of_non_ascii_name(s3_client):
    adapter = S3UploadAdapter(s3_client, bucket="bucket")
    result = adapter.store(image("日本.png"), EVENT_BANNERS)
    assert re.fullmatch(r"event-banners/\d+-upload\.png", result.key)


def test_s3_url_uses_cloudfront_when_configured(s3_client):
    adapter = S3UploadAdapter(s3_client, bucket="bucket", cloudfront_id="d123")
    result = adapter.store(image(), PROFILE_IMAGES)
    assert result.url == f"https://d123.cloudfront.net/{result.key}"


def test_s3_rejects_like_local(s3_client):
    adapter = S3UploadAdapter(s3_client, bucket="bucket")

    with pytest.raises(ValidationError):
        adapter.store(image("notes.txt", b"text", "text/plain"), EVENT_BANNERS)
    with pytest.raises(ValidationError):
        adapter.store(image(data=b"\0" * (MAX_UPLOAD_BYTES + 1)), EVENT_BANNERS)

    s3_client.put_object.assert_not_called()


def test_s3_upload_failure(s3_client):
    s3_client.put_object.side_effect = ClientError({"Error": {"Code": "500"}}, "PutObject")
    adapter = S3UploadAdapter(s3_client, bucket="bucket")

    with pytest.raises(UploadError):
        adapter.store(image(), EVENT_BANNERS)


def test_s3_delete(s3_client):
    adapter = S3UploadAdapter(s3_client, bucket="bucket")

    assert adapter.delete("event-banners/1-a.png") is True
    assert adapter.delete("event-banners/1-a.png") is True
    s3_client.delete_object.assert_called_with(Bucket="bucket", Key="event-banners/1-a.png")


def test_s3_delete_failure(s3_client):
    s3_client.delete_object.side_effect = ClientError({"Error": {"Code": "AccessDenied"}}, "DeleteObject")
    adapter = S3UploadAdapter(s3_client, bucket="bucket")

    with pytest.raises(DeleteError):
        adapter.delete("event-banners/1-a.png")


# --- BACKEND SELECTION ---
def test_create_upload_adapter_local(tmp_path):
    adapter = create_upload_adapter(Settings(jwt_secret="x", upload_dir=str(tmp_path)))
    assert isinstance(adapter, LocalUploadAdapter)


def test_create_upload_adapter_s3(mocker):
    boto_client = mocker.patch("gatherguru.uploads.boto3.client")
    settings = Settings(jwt_secret="x", storage_backend="s3", s3_bucket_name="media", aws_region="us-west-2")

    adapter = create_upload_adapter(settings)

    assert isinstance(adapter, S3UploadAdapter)
    assert adapter.bucket == "media"
    assert boto_client.call_args.args == ("s3",)
    assert boto_client.call_args.kwargs["region_name"] == "us-west-2"


def test_create_upload_adapter_unknown():
    with pytest.raises(RuntimeError):
        create_upload_adapter(Settings(jwt_secret="x", storage_backend="ftp"))
