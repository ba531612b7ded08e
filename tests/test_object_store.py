from __future__ import annotations

from typing import List, Tuple

import pytest
from minio.error import S3Error

from core.settings import ObjectStoreSettings
from services import object_store


class _NoSuchKey(S3Error):
    code = "NoSuchKey"

    def __init__(self) -> None:  # pylint: disable=super-init-not-called
        Exception.__init__(self, "The specified key does not exist.")


class _AccessDenied(S3Error):
    code = "AccessDenied"

    def __init__(self) -> None:  # pylint: disable=super-init-not-called
        Exception.__init__(self, "Access Denied")


class _RecordingClient:
    def __init__(self, error: Exception | None = None) -> None:
        self.error = error
        self.removed: List[Tuple[str, str]] = []

    def remove_object(self, bucket_name: str, object_name: str) -> None:
        self.removed.append((bucket_name, object_name))
        if self.error is not None:
            raise self.error


def test_delete_removes_object_from_bucket():
    client = _RecordingClient()
    store = object_store.MinioObjectStore(client, "transfers")

    store.delete("abc/file.zip")

    assert client.removed == [("transfers", "abc/file.zip")]


def test_missing_object_counts_as_deleted():
    store = object_store.MinioObjectStore(_RecordingClient(_NoSuchKey()), "transfers")

    store.delete("gone")


def test_other_storage_errors_propagate():
    store = object_store.MinioObjectStore(_RecordingClient(_AccessDenied()), "transfers")

    with pytest.raises(S3Error):
        store.delete("locked")


def test_unconfigured_settings_yield_no_store():
    settings = ObjectStoreSettings(endpoint=None, access_key="key", secret_key="secret", bucket="b")

    assert object_store.get_object_store(settings) is None


def test_configured_settings_build_minio_store():
    settings = ObjectStoreSettings(
        endpoint="acct.r2.cloudflarestorage.com",
        access_key="key",
        secret_key="secret",
        bucket="transfers",
        region="auto",
    )

    store = object_store.get_object_store(settings)

    assert isinstance(store, object_store.MinioObjectStore)
    assert store.bucket == "transfers"


def test_require_object_store_raises_when_unconfigured(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setattr(object_store, "_store", None)
    for key in (
        "OBJECT_STORE_ENDPOINT",
        "R2_ACCOUNT_ID",
        "OBJECT_STORE_ACCESS_KEY",
        "R2_ACCESS_KEY",
        "OBJECT_STORE_SECRET_KEY",
        "R2_SECRET_KEY",
        "OBJECT_STORE_BUCKET",
        "R2_BUCKET_NAME",
    ):
        monkeypatch.delenv(key, raising=False)

    with pytest.raises(object_store.ObjectStoreNotConfigured):
        object_store.require_object_store()
