"""
Storage Service — blob uploads for CVs, images and program media.

Two backends behind one interface:
    - LocalBlobStorage  files under <instance>/uploads, served at /uploads/<path>
    - S3BlobStorage     Amazon S3 via boto3 (STORAGE_BACKEND=s3)

Usage:
    from warisin.services.storage_service import get_storage, upload_file
    result = upload_file(request.files["file"], "image", f"users/{uid}/profile")
    # → {"url": ..., "path": ..., "size": ..., "file_name": ...}
"""

import hashlib
import logging
import os
from abc import ABC, abstractmethod

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from flask import current_app
from werkzeug.utils import secure_filename

from warisin.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

MB = 1024 * 1024

_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp", "image/gif"]

FILE_TYPE_CONFIGS = {
    "image": {
        "allowed_types": _IMAGE_TYPES,
        "max_size": 5 * MB,
    },
    "document": {
        "allowed_types": [
            "application/pdf",
            "application/msword",
            "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        ],
        "max_size": 10 * MB,
    },
    "media": {
        "allowed_types": _IMAGE_TYPES + [
            "video/mp4", "video/webm", "video/quicktime",
            "audio/mpeg", "audio/wav",
        ],
        "max_size": 50 * MB,
    },
}

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
    "audio/mpeg": "mp3",
    "audio/wav": "wav",
}


class StorageError(Exception):
    """Raised when the storage backend cannot store or remove a blob."""


# ── Backends ──────────────────────────────────────────────────────────────────

class BlobStorage(ABC):
    """Abstract interface for blob storage backends."""

    @abstractmethod
    def upload(self, data: bytes, path: str, mime_type: str) -> dict:
        """
        Store ``data`` under ``path``.

        Returns:
            dict with keys: url, path, size, file_name
        """
        ...

    @abstractmethod
    def delete(self, path: str) -> bool:
        """Remove the blob at ``path``. Returns False if it did not exist."""
        ...


class LocalBlobStorage(BlobStorage):
    """Filesystem storage under the Flask instance folder (dev / single-node)."""

    def __init__(self, root: str, base_url: str = "/uploads"):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if not full.startswith(os.path.abspath(self.root) + os.sep):
            raise StorageError(f"Path escapes storage root: {path}")
        return full

    def upload(self, data: bytes, path: str, mime_type: str) -> dict:
        full = self._full_path(path)
        os.makedirs(os.path.dirname(full), exist_ok=True)
        try:
            with open(full, "wb") as fh:
                fh.write(data)
        except OSError as e:
            logger.error("Local upload failed path=%s: %s", path, e)
            raise StorageError(f"Failed to store file: {e}") from e
        return {
            "url": f"{self.base_url}/{path}",
            "path": path,
            "size": len(data),
            "file_name": os.path.basename(path),
        }

    def delete(self, path: str) -> bool:
        full = self._full_path(path)
        if not os.path.exists(full):
            return False
        try:
            os.remove(full)
        except OSError as e:
            raise StorageError(f"Failed to delete file: {e}") from e
        return True


class S3BlobStorage(BlobStorage):
    """Amazon S3 storage (production)."""

    def __init__(self, bucket: str, region: str | None = None, public_base_url: str | None = None):
        self.bucket = bucket
        self.region = region or "us-east-1"
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{self.region}.amazonaws.com"
        ).rstrip("/")
        self._client = None

    def _get_client(self):
        if self._client is None:
            self._client = boto3.client(
                "s3",
                aws_access_key_id=os.getenv("AWS_ACCESS_KEY_ID"),
                aws_secret_access_key=os.getenv("AWS_SECRET_ACCESS_KEY"),
                region_name=self.region,
            )
        return self._client

    def upload(self, data: bytes, path: str, mime_type: str) -> dict:
        try:
            self._get_client().put_object(
                Bucket=self.bucket, Key=path, Body=data, ContentType=mime_type,
            )
        except (ClientError, BotoCoreError) as e:
            logger.error("S3 upload failed bucket=%s key=%s: %s", self.bucket, path, e)
            raise StorageError(f"Failed to store file: {e}") from e
        return {
            "url": f"{self.public_base_url}/{path}",
            "path": path,
            "size": len(data),
            "file_name": path.rsplit("/", 1)[-1],
        }

    def delete(self, path: str) -> bool:
        client = self._get_client()
        try:
            client.head_object(Bucket=self.bucket, Key=path)
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code in ("404", "NoSuchKey", "NotFound"):
                return False
            raise StorageError(f"Failed to inspect file: {e}") from e
        try:
            client.delete_object(Bucket=self.bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise StorageError(f"Failed to delete file: {e}") from e
        return True


def get_storage() -> BlobStorage:
    """Return the storage backend configured for the current app (one per app)."""
    storage = current_app.extensions.get("warisin_storage")
    if storage is None:
        backend = current_app.config.get("STORAGE_BACKEND", "local")
        if backend == "s3":
            bucket = current_app.config.get("S3_BUCKET")
            if not bucket:
                raise StorageError("S3_BUCKET is not configured")
            storage = S3BlobStorage(
                bucket,
                region=current_app.config.get("S3_REGION"),
                public_base_url=current_app.config.get("S3_PUBLIC_BASE_URL"),
            )
        else:
            root = current_app.config.get("UPLOAD_FOLDER") or os.path.join(
                current_app.instance_path, "uploads"
            )
            storage = LocalBlobStorage(root)
        current_app.extensions["warisin_storage"] = storage
        logger.info("Blob storage initialised: %s", type(storage).__name__)
    return storage


# ── Validation & helpers ──────────────────────────────────────────────────────

def validate_file(mime_type: str | None, size: int, file_type: str) -> None:
    """Raise ValidationError when the upload does not match the file-type rules."""
    cfg = FILE_TYPE_CONFIGS[file_type]
    if not size:
        raise ValidationError("File is empty", details={"file": "empty"})
    if mime_type not in cfg["allowed_types"]:
        raise ValidationError(
            f"Unsupported file type: {mime_type or 'unknown'}",
            details={"file": f"allowed: {', '.join(cfg['allowed_types'])}"},
        )
    if size > cfg["max_size"]:
        raise ValidationError(
            f"File too large ({format_file_size(size)}); "
            f"maximum is {format_file_size(cfg['max_size'])}",
            details={"file": "too large"},
        )


def format_file_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < MB:
        return f"{size / 1024:.1f} KB"
    return f"{size / MB:.1f} MB"


def extension_for(mime_type: str, filename: str | None = None) -> str:
    ext = _EXTENSIONS.get(mime_type)
    if ext:
        return ext
    if filename and "." in filename:
        return filename.rsplit(".", 1)[-1].lower()[:8]
    return "bin"


def upload_file(file_storage, file_type: str, path_prefix: str, name: str | None = None) -> dict:
    """
    Validate and store an uploaded werkzeug FileStorage.

    Args:
        file_storage: request.files[...] entry.
        file_type: "image", "document" or "media".
        path_prefix: storage directory, e.g. "programs/<id>/gallery".
        name: fixed base name (e.g. "cv", "profile"); defaults to the
              sanitised original filename plus a content hash.
    """
    if file_storage is None:
        raise ValidationError("No file provided", details={"file": "required"})
    data = file_storage.read()
    mime_type = (file_storage.mimetype or "").lower()
    validate_file(mime_type, len(data), file_type)

    ext = extension_for(mime_type, file_storage.filename)
    if name:
        file_name = f"{name}.{ext}"
    else:
        base = secure_filename(file_storage.filename or "") or "upload"
        stem = base.rsplit(".", 1)[0]
        digest = hashlib.sha256(data).hexdigest()[:12]
        file_name = f"{stem}-{digest}.{ext}"
    path = f"{path_prefix.strip('/')}/{file_name}"
    result = get_storage().upload(data, path, mime_type)
    logger.info("Stored %s upload path=%s size=%d", file_type, path, result["size"])
    return result


def delete_file(path: str | None) -> bool:
    """Best-effort removal used after the owning row is gone."""
    if not path:
        return False
    try:
        return get_storage().delete(path)
    except StorageError as e:
        logger.warning("Could not delete blob %s: %s", path, e)
        return False


# ── Path conventions ──────────────────────────────────────────────────────────

def user_profile_prefix(user_id: str) -> str:
    return f"users/{user_id}"


def artisan_works_prefix(user_id: str) -> str:
    return f"artisans/{user_id}/works"


def program_prefix(program_id: str) -> str:
    return f"programs/{program_id}"


def program_gallery_prefix(program_id: str) -> str:
    return f"programs/{program_id}/gallery"


def application_prefix(application_id: str) -> str:
    return f"applications/{application_id}"
