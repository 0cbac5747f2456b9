"""
Blob storage tests: validation rules, the local backend and the S3 backend
(boto3 client mocked).
"""

import io
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError
from werkzeug.datastructures import FileStorage

from warisin.core.exceptions import ValidationError
from warisin.services import storage_service
from warisin.services.storage_service import (
    LocalBlobStorage,
    S3BlobStorage,
    StorageError,
)


def _file(data=b"%PDF-1.4", filename="cv.pdf", mimetype="application/pdf"):
    return FileStorage(stream=io.BytesIO(data), filename=filename, content_type=mimetype)


class TestValidation:
    def test_accepts_pdf_document(self):
        storage_service.validate_file("application/pdf", 1024, "document")

    def test_rejects_image_as_document(self):
        with pytest.raises(ValidationError, match="Unsupported file type"):
            storage_service.validate_file("image/png", 1024, "document")

    def test_rejects_oversized_image(self):
        with pytest.raises(ValidationError, match="too large"):
            storage_service.validate_file("image/png", 6 * storage_service.MB, "image")

    def test_rejects_empty(self):
        with pytest.raises(ValidationError, match="empty"):
            storage_service.validate_file("image/png", 0, "image")

    def test_media_accepts_video(self):
        storage_service.validate_file("video/mp4", 20 * storage_service.MB, "media")

    def test_format_file_size(self):
        assert storage_service.format_file_size(512) == "512 B"
        assert storage_service.format_file_size(2048) == "2.0 KB"
        assert storage_service.format_file_size(5 * storage_service.MB) == "5.0 MB"

    def test_extension_for(self):
        assert storage_service.extension_for("image/jpeg") == "jpg"
        assert storage_service.extension_for("application/x-foo", "notes.TXT") == "txt"
        assert storage_service.extension_for("application/x-foo") == "bin"


class TestLocalBackend:
    def test_upload_and_delete(self, tmp_path):
        storage = LocalBlobStorage(str(tmp_path))
        result = storage.upload(b"hello", "users/u1/profile.png", "image/png")
        assert result == {
            "url": "/uploads/users/u1/profile.png",
            "path": "users/u1/profile.png",
            "size": 5,
            "file_name": "profile.png",
        }
        assert (tmp_path / "users" / "u1" / "profile.png").read_bytes() == b"hello"
        assert storage.delete("users/u1/profile.png") is True
        assert storage.delete("users/u1/profile.png") is False

    def test_path_cannot_escape_root(self, tmp_path):
        storage = LocalBlobStorage(str(tmp_path / "root"))
        with pytest.raises(StorageError):
            storage.upload(b"x", "../outside.txt", "text/plain")

    def test_upload_file_fixed_name(self, tmp_path):
        storage = LocalBlobStorage(str(tmp_path))
        with patch.object(storage_service, "get_storage", return_value=storage):
            result = storage_service.upload_file(_file(), "document", "applications/a1", name="cv")
        assert result["path"] == "applications/a1/cv.pdf"

    def test_upload_file_hashed_name(self, tmp_path):
        storage = LocalBlobStorage(str(tmp_path))
        with patch.object(storage_service, "get_storage", return_value=storage):
            result = storage_service.upload_file(
                _file(b"img", "Foto Karya.png", "image/png"), "image", "artisans/u1/works",
            )
        assert result["path"].startswith("artisans/u1/works/Foto_Karya-")
        assert result["path"].endswith(".png")

    def test_upload_file_requires_file(self):
        with pytest.raises(ValidationError):
            storage_service.upload_file(None, "image", "users/u1")

    def test_delete_file_swallows_backend_errors(self):
        broken = MagicMock()
        broken.delete.side_effect = StorageError("boom")
        with patch.object(storage_service, "get_storage", return_value=broken):
            assert storage_service.delete_file("users/u1/profile.png") is False
        assert storage_service.delete_file(None) is False

    def test_served_from_uploads_route(self, app, client):
        storage = storage_service.get_storage()
        storage.upload(b"served", "tests/hello.txt", "text/plain")
        res = client.get("/uploads/tests/hello.txt")
        assert res.status_code == 200
        assert res.data == b"served"
        storage.delete("tests/hello.txt")


class TestS3Backend:
    def test_upload(self):
        storage = S3BlobStorage("warisin-media", region="ap-southeast-1")
        client = MagicMock()
        storage._client = client
        result = storage.upload(b"abc", "programs/p1/cover.jpg", "image/jpeg")
        client.put_object.assert_called_once_with(
            Bucket="warisin-media", Key="programs/p1/cover.jpg",
            Body=b"abc", ContentType="image/jpeg",
        )
        assert result["url"] == (
            "https://warisin-media.s3.ap-southeast-1.amazonaws.com/programs/p1/cover.jpg"
        )

    def test_public_base_url(self):
        storage = S3BlobStorage("bucket", public_base_url="https://cdn.example.com/")
        storage._client = MagicMock()
        result = storage.upload(b"abc", "a/b.png", "image/png")
        assert result["url"] == "https://cdn.example.com/a/b.png"

    def test_upload_failure(self):
        storage = S3BlobStorage("bucket")
        storage._client = MagicMock()
        storage._client.put_object.side_effect = ClientError(
            {"Error": {"Code": "AccessDenied", "Message": "denied"}}, "PutObject",
        )
        with pytest.raises(StorageError):
            storage.upload(b"abc", "a/b.png", "image/png")

    def test_delete_missing(self):
        storage = S3BlobStorage("bucket")
        storage._client = MagicMock()
        storage._client.head_object.side_effect = ClientError(
            {"Error": {"Code": "404", "Message": "Not Found"}}, "HeadObject",
        )
        assert storage.delete("a/b.png") is False
        storage._client.delete_object.assert_not_called()

    def test_delete_existing(self):
        storage = S3BlobStorage("bucket")
        storage._client = MagicMock()
        assert storage.delete("a/b.png") is True
        storage._client.delete_object.assert_called_once_with(Bucket="bucket", Key="a/b.png")
