from __future__ import annotations
import io
import uuid
from functools import lru_cache
from typing import Protocol
from minio import Minio
from minio.error import S3Error
import structlog
from questboard.config import settings
from questboard.services.media import ext_for_mime

log = structlog.get_logger()


class ObjectStorage(Protocol):
    def upload(self, data: bytes, mime_type: str) -> str: ...
    def delete(self, url: str) -> None: ...


def _parse_endpoint(ep: str) -> tuple[str, bool]:
    # Return (host:port, secure)
    secure = ep.startswith("https://")
    host = ep.replace("http://", "").replace("https://", "")
    return host, secure


class MinioStorage:
    """Submission files in an S3 bucket, addressed by stable public URLs."""

    def __init__(self, endpoint: str, access_key: str, secret_key: str, bucket: str, public_base_url: str):
        host, secure = _parse_endpoint(endpoint)
        self._client = Minio(host, access_key=access_key, secret_key=secret_key, secure=secure)
        self._bucket = bucket
        self._base = f"{public_base_url.rstrip('/')}/{bucket}/"
        self._bucket_ready = False

    def _ensure_bucket(self) -> None:
        if self._bucket_ready:
            return
        try:
            if not self._client.bucket_exists(self._bucket):
                self._client.make_bucket(self._bucket)
        except S3Error as e:
            # Concurrent creation by another worker
            if e.code not in ("BucketAlreadyOwnedByYou", "BucketAlreadyExists"):
                raise
        self._bucket_ready = True

    def upload(self, data: bytes, mime_type: str) -> str:
        self._ensure_bucket()
        key = f"submissions/{uuid.uuid4().hex}.{ext_for_mime(mime_type)}"
        self._client.put_object(self._bucket, key, io.BytesIO(data), length=len(data), content_type=mime_type)
        return self._base + key

    def delete(self, url: str) -> None:
        if not url.startswith(self._base):
            raise ValueError(f"URL is not managed by this storage: {url}")
        self._client.remove_object(self._bucket, url[len(self._base):])


@lru_cache(maxsize=1)
def get_storage() -> ObjectStorage:
    return MinioStorage(
        settings.s3_endpoint,
        settings.s3_access_key,
        settings.s3_secret_key,
        settings.s3_bucket_uploads,
        settings.s3_public_base_url,
    )


def delete_quietly(storage: ObjectStorage, urls: list[str]) -> None:
    """Best-effort cleanup; failures are logged, never raised."""
    for url in urls:
        try:
            storage.delete(url)
        except Exception:
            log.warning("storage_delete_failed", url=url, exc_info=True)
