import io
import logging
from abc import ABC, abstractmethod
from datetime import timedelta

from minio import Minio
from minio.error import S3Error
from starlette.concurrency import run_in_threadpool

from .config import settings
from .errors import StorageError

logger = logging.getLogger("linksecure")

_MISSING_CODES = {"NoSuchKey", "NoSuchObject", "NotFound", "ResourceNotFound"}

# presigned URLs are single-method, so each permission letter maps to one verb
_PERMISSION_METHODS = {"r": "GET", "w": "PUT", "d": "DELETE"}


def clean_blob_path(path: str) -> str:
    return path[1:] if path.startswith("/") else path


class BlobStore(ABC):
    """Byte storage keyed by path that can mint time-limited signed URLs."""

    @abstractmethod
    async def exists(self, path: str) -> bool:
        ...

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str) -> str:
        ...

    @abstractmethod
    async def get(self, path: str) -> bytes:
        ...

    @abstractmethod
    async def delete(self, path: str) -> None:
        ...

    @abstractmethod
    async def signed_url(self, path: str, ttl: timedelta, permissions: str = "r") -> str:
        ...

    @abstractmethod
    async def ping(self) -> None:
        ...


class MinioBlobStore(BlobStore):
    def __init__(self, client: Minio, bucket: str, require_https: bool = True):
        self.client = client
        self.bucket = bucket
        self.require_https = require_https

    @classmethod
    def from_settings(cls) -> "MinioBlobStore":
        client = Minio(
            endpoint=settings.MINIO_ENDPOINT,
            access_key=settings.MINIO_ACCESS_KEY,
            secret_key=settings.MINIO_SECRET_KEY,
            secure=settings.MINIO_SECURE,
            region=settings.MINIO_REGION,
        )
        return cls(client, settings.MINIO_BUCKET, require_https=settings.MINIO_SECURE)

    def initialize_bucket(self) -> None:
        try:
            if not self.client.bucket_exists(bucket_name=self.bucket):
                self.client.make_bucket(bucket_name=self.bucket)
                logger.info(f"Bucket '{self.bucket}' created successfully")
            else:
                logger.info(f"Bucket '{self.bucket}' already exists")
        except S3Error as e:
            logger.error(f"MinIO error: {e}")
            raise RuntimeError(f"Failed to initialize MinIO bucket: {e}")

    async def exists(self, path: str) -> bool:
        try:
            await run_in_threadpool(
                self.client.stat_object, bucket_name=self.bucket, object_name=clean_blob_path(path)
            )
        except S3Error as e:
            if e.code in _MISSING_CODES:
                return False
            raise StorageError(f"stat_object failed for {path}: {e.code}") from e
        return True

    async def put(self, path: str, data: bytes, content_type: str) -> str:
        name = clean_blob_path(path)
        try:
            await run_in_threadpool(
                self.client.put_object,
                bucket_name=self.bucket,
                object_name=name,
                data=io.BytesIO(data),
                length=len(data),
                content_type=content_type,
            )
        except S3Error as e:
            raise StorageError(f"put_object failed for {name}: {e.code}") from e
        return name

    async def get(self, path: str) -> bytes:
        name = clean_blob_path(path)
        try:
            response = await run_in_threadpool(
                self.client.get_object, bucket_name=self.bucket, object_name=name
            )
        except S3Error as e:
            raise StorageError(f"get_object failed for {name}: {e.code}") from e
        try:
            return await run_in_threadpool(response.read)
        finally:
            response.close()
            response.release_conn()

    async def delete(self, path: str) -> None:
        name = clean_blob_path(path)
        try:
            await run_in_threadpool(self.client.remove_object, bucket_name=self.bucket, object_name=name)
        except S3Error as e:
            raise StorageError(f"remove_object failed for {name}: {e.code}") from e

    async def signed_url(self, path: str, ttl: timedelta, permissions: str = "r") -> str:
        method = _PERMISSION_METHODS.get(permissions[:1])
        if method is None:
            raise ValueError(f"Unsupported permissions: {permissions!r}")
        name = clean_blob_path(path)
        try:
            url = await run_in_threadpool(
                self.client.presigned_url,
                method=method,
                bucket_name=self.bucket,
                object_name=name,
                expires=ttl,
            )
        except S3Error as e:
            raise StorageError(f"presign failed for {name}: {e.code}") from e
        if self.require_https and not url.startswith("https://"):
            raise StorageError("Refusing to hand out a signed URL over plain http")
        return url

    async def ping(self) -> None:
        await run_in_threadpool(self.client.bucket_exists, bucket_name=self.bucket)
