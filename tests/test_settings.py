from __future__ import annotations

import pytest

from core.env import env_bool, env_first, env_int
from core.settings import load_object_store_settings, load_reaper_settings


def test_reaper_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    for key in ("REAPER_BATCH_LIMIT", "REAPER_DELETE_CONCURRENCY", "REAPER_BLOCK_ON_BLOB_FAILURE"):
        monkeypatch.delenv(key, raising=False)

    settings = load_reaper_settings()

    assert settings.batch_limit == 0
    assert settings.delete_concurrency == 1
    assert settings.block_on_blob_failure is False


def test_reaper_settings_from_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("REAPER_BATCH_LIMIT", "50")
    monkeypatch.setenv("REAPER_DELETE_CONCURRENCY", "8")
    monkeypatch.setenv("REAPER_BLOCK_ON_BLOB_FAILURE", "yes")

    settings = load_reaper_settings()

    assert settings.batch_limit == 50
    assert settings.delete_concurrency == 8
    assert settings.block_on_blob_failure is True


def test_invalid_values_fall_back(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("REAPER_DELETE_CONCURRENCY", "0")
    monkeypatch.setenv("SOME_FLAG", "maybe")
    monkeypatch.setenv("SOME_NUMBER", "ten")

    assert load_reaper_settings().delete_concurrency == 1
    assert env_bool("SOME_FLAG", True) is True
    assert env_int("SOME_NUMBER", 10) == 10


def test_env_first_skips_blank_values(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("PRIMARY_KEY_X", "   ")
    monkeypatch.setenv("LEGACY_KEY_X", "value")

    assert env_first(["PRIMARY_KEY_X", "LEGACY_KEY_X"]) == "value"
    assert env_first(["MISSING_KEY_X"], "fallback") == "fallback"


def test_r2_account_id_builds_endpoint(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("OBJECT_STORE_ENDPOINT", raising=False)
    monkeypatch.setenv("R2_ACCOUNT_ID", "abc123")
    monkeypatch.setenv("R2_ACCESS_KEY", "key")
    monkeypatch.setenv("R2_SECRET_KEY", "secret")
    monkeypatch.setenv("R2_BUCKET_NAME", "transfers")
    for key in ("OBJECT_STORE_ACCESS_KEY", "OBJECT_STORE_SECRET_KEY", "OBJECT_STORE_BUCKET", "OBJECT_STORE_REGION"):
        monkeypatch.delenv(key, raising=False)

    settings = load_object_store_settings()

    assert settings.endpoint == "abc123.r2.cloudflarestorage.com"
    assert settings.bucket == "transfers"
    assert settings.region == "auto"
    assert settings.is_configured
