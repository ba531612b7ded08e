"""Helpers for deleting transfer payloads from S3-compatible storage (R2, MinIO)."""

from __future__ import annotations

import logging
from typing import Optional, Protocol

from minio import Minio
from minio.error import S3Error

from core.settings import ObjectStoreSettings, load_object_store_settings

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

NOT_FOUND_CODES = frozenset({"NoSuchKey", "NoSuchObject"})


class ObjectStoreNotConfigured(RuntimeError):
    """Raised when no object storage binding is available."""


class ObjectStore(Protocol):
    """Blob store contract used by the reaper: delete-if-exists by key."""

    def delete(self, key: str) -> None:
        ...


class MinioClientProtocol(Protocol):
    """Subset of MinIO client methods used within the project."""

    def remove_object(self, bucket_name: str, object_name: str) -> None:
        ...


class MinioObjectStore:
    def __init__(self, client: MinioClientProtocol, bucket: str) -> None:
        self._client = client
        self.bucket = bucket

    def delete(self, key: str) -> None:
        """Remove ``key``; a missing object counts as already deleted."""
        try:
            self._client.remove_object(bucket_name=self.bucket, object_name=key)
        except S3Error as exc:
            if getattr(exc, "code", None) in NOT_FOUND_CODES:
                logger.info("Object %s already absent from bucket '%s'.", key, self.bucket)
                return
            raise


_store: Optional[MinioObjectStore] = None


def _init_store(settings: ObjectStoreSettings) -> Optional[MinioObjectStore]:
    if not settings.is_configured:
        return None
    client = Minio(
        endpoint=settings.endpoint,
        access_key=settings.access_key,
        secret_key=settings.secret_key,
        secure=settings.secure,
        region=settings.region,
    )
    logger.info("Object store client initialised for %s (bucket '%s').", settings.endpoint, settings.bucket)
    return MinioObjectStore(client, settings.bucket)


def get_object_store(settings: Optional[ObjectStoreSettings] = None) -> Optional[MinioObjectStore]:
    """Return the process-wide store, or ``None`` when storage env vars are missing."""
    global _store
    if settings is not None:
        return _init_store(settings)
    if _store is None:
        _store = _init_store(load_object_store_settings())
    return _store


def require_object_store() -> MinioObjectStore:
    store = get_object_store()
    if store is None:
        raise ObjectStoreNotConfigured(
            "Object storage is not configured. Set OBJECT_STORE_ENDPOINT (or R2_ACCOUNT_ID), "
            "OBJECT_STORE_ACCESS_KEY, OBJECT_STORE_SECRET_KEY and OBJECT_STORE_BUCKET."
        )
    return store


__all__ = [
    "MinioObjectStore",
    "ObjectStore",
    "ObjectStoreNotConfigured",
    "get_object_store",
    "require_object_store",
]
