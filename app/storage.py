"""
storage.py — Object storage: upload(bucket, path, bytes) → public URL

Two backends behind one interface:
  - LocalStorage: files under settings.storage_dir/<bucket>/<path>, served
    from settings.storage_public_url (dev, tests)
  - S3Storage: any S3-compatible bucket (MinIO, AWS) through boto3

Buckets in use: property-images, land-documents, plan-files.

Business Rules:
- upload never overwrites an existing object (StorageError instead)
- remove() is best-effort: missing objects are ignored, errors are logged
- Callers that insert a DB row after upload must remove() the object when
  that insert fails (no orphaned files, no orphaned rows)

Called by: services/property_service.py, services/land_service.py,
           services/plan_service.py, routers (via get_storage dependency)
Depends on: config.py, boto3 (S3 backend)
"""

import logging
from functools import lru_cache
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from .config import settings

log = logging.getLogger(__name__)

PROPERTY_IMAGES = "property-images"
LAND_DOCUMENTS = "land-documents"
PLAN_FILES = "plan-files"


class StorageError(Exception):
    pass


class LocalStorage:
    def __init__(self, root: str | Path, public_url: str):
        self.root = Path(root)
        self.public_base = public_url.rstrip("/")

    def _path(self, bucket: str, path: str) -> Path:
        target = (self.root / bucket / path).resolve()
        if self.root.resolve() not in target.parents:
            raise StorageError(f"Invalid object path: {path}")
        return target

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._path(bucket, path)
        if target.exists():
            raise StorageError(f"Object already exists: {bucket}/{path}")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError(f"Upload failed for {bucket}/{path}: {e}") from e
        return self.public_url(bucket, path)

    def remove(self, bucket: str, paths: list[str]) -> None:
        for path in paths:
            try:
                self._path(bucket, path).unlink(missing_ok=True)
            except (OSError, StorageError) as e:
                log.warning("Storage remove failed for %s/%s: %s", bucket, path, e)

    def exists(self, bucket: str, path: str) -> bool:
        return self._path(bucket, path).exists()

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base}/{bucket}/{path}"


class S3Storage:
    def __init__(self, endpoint_url: str, access_key: str, secret_key: str,
                 region: str, public_url: str):
        self.client = boto3.client(
            "s3",
            endpoint_url=endpoint_url or None,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=Config(signature_version="s3v4", s3={"addressing_style": "path"}),
        )
        self.public_base = public_url.rstrip("/")

    def upload(self, bucket: str, path: str, data: bytes, content_type: str | None = None) -> str:
        if self.exists(bucket, path):
            raise StorageError(f"Object already exists: {bucket}/{path}")
        extra = {"CacheControl": "max-age=3600"}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self.client.put_object(Bucket=bucket, Key=path, Body=data, **extra)
        except (BotoCoreError, ClientError) as e:
            raise StorageError(f"Upload failed for {bucket}/{path}: {e}") from e
        return self.public_url(bucket, path)

    def remove(self, bucket: str, paths: list[str]) -> None:
        if not paths:
            return
        try:
            self.client.delete_objects(
                Bucket=bucket, Delete={"Objects": [{"Key": p} for p in paths], "Quiet": True}
            )
        except (BotoCoreError, ClientError) as e:
            log.warning("Storage remove failed for %s (%d objects): %s", bucket, len(paths), e)

    def exists(self, bucket: str, path: str) -> bool:
        try:
            self.client.head_object(Bucket=bucket, Key=path)
            return True
        except ClientError:
            return False

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self.public_base}/{bucket}/{path}"


@lru_cache
def get_storage():
    """FastAPI dependency / singleton accessor for the configured backend."""
    if settings.storage_backend == "s3":
        log.info("Object storage: S3 at %s", settings.s3_endpoint_url or "AWS")
        return S3Storage(
            settings.s3_endpoint_url,
            settings.s3_access_key,
            settings.s3_secret_key,
            settings.s3_region,
            settings.storage_public_url,
        )
    return LocalStorage(settings.storage_dir, settings.storage_public_url)


class UploadedFile:
    """Bytes + metadata of one uploaded file, decoupled from the web framework."""

    __slots__ = ("filename", "content", "content_type")

    def __init__(self, filename: str, content: bytes, content_type: str | None = None):
        self.filename = filename
        self.content = content
        self.content_type = content_type

    @property
    def size(self) -> int:
        return len(self.content)


async def read_uploads(files) -> list[UploadedFile]:
    """Read web-framework uploads (anything with filename/content_type/read()) into memory."""
    return [
        UploadedFile(f.filename or "upload", await f.read(), f.content_type)
        for f in files
    ]
