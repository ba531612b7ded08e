"""Runtime settings for the expired-transfer reaper."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from core.env import env_bool, env_first, env_int, env_str


@dataclass(frozen=True)
class ObjectStoreSettings:
    endpoint: Optional[str]
    access_key: Optional[str]
    secret_key: Optional[str]
    bucket: Optional[str]
    secure: bool = True
    region: Optional[str] = None

    @property
    def is_configured(self) -> bool:
        return bool(self.endpoint and self.access_key and self.secret_key and self.bucket)


@dataclass(frozen=True)
class ReaperSettings:
    batch_limit: int = 0
    delete_concurrency: int = 1
    block_on_blob_failure: bool = False


def _r2_endpoint() -> Optional[str]:
    account_id = env_str("R2_ACCOUNT_ID")
    if not account_id:
        return None
    return f"{account_id}.r2.cloudflarestorage.com"


def load_object_store_settings() -> ObjectStoreSettings:
    return ObjectStoreSettings(
        endpoint=env_str("OBJECT_STORE_ENDPOINT") or _r2_endpoint(),
        access_key=env_first(["OBJECT_STORE_ACCESS_KEY", "R2_ACCESS_KEY"]),
        secret_key=env_first(["OBJECT_STORE_SECRET_KEY", "R2_SECRET_KEY"]),
        bucket=env_first(["OBJECT_STORE_BUCKET", "R2_BUCKET_NAME"]),
        secure=env_bool("OBJECT_STORE_SECURE", True),
        # R2 ignores the region but the S3 signer still needs one.
        region=env_first(["OBJECT_STORE_REGION", "R2_REGION"], "auto"),
    )


def load_reaper_settings() -> ReaperSettings:
    return ReaperSettings(
        batch_limit=env_int("REAPER_BATCH_LIMIT", 0, minimum=0),
        delete_concurrency=env_int("REAPER_DELETE_CONCURRENCY", 1, minimum=1),
        block_on_blob_failure=env_bool("REAPER_BLOCK_ON_BLOB_FAILURE", False),
    )


__all__ = [
    "ObjectStoreSettings",
    "ReaperSettings",
    "load_object_store_settings",
    "load_reaper_settings",
]
