"""Environment variable helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from core.logging import get_logger

logger = get_logger(__name__)

_TRUTHY = {"1", "true", "yes", "y", "on"}
_FALSY = {"0", "false", "no", "n", "off"}


def load_env_file(path: Optional[Path] = None) -> bool:
    """Load variables from ``ENV_FILE`` (or ``.env``) without overriding the process env."""
    env_path = path or Path(os.getenv("ENV_FILE") or ".env")
    if not env_path.exists():
        logger.debug("No env file at %s; relying on process environment.", env_path)
        return False
    load_dotenv(dotenv_path=env_path, override=False)
    logger.debug("Loaded environment variables from %s", env_path)
    return True


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value is None or not value.strip():
        return default
    return value.strip()


def env_first(keys: Sequence[str], default: Optional[str] = None) -> Optional[str]:
    """Return the first non-empty value among ``keys`` (used for legacy aliases)."""
    for key in keys:
        value = env_str(key)
        if value is not None:
            return value
    return default


def env_int(key: str, default: int, *, minimum: Optional[int] = None) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = int(raw)
        if minimum is not None and value < minimum:
            raise ValueError
        return value
    except ValueError:
        logger.warning("Invalid %s value '%s'. Falling back to %d.", key, raw, default)
        return default


def env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUTHY:
        return True
    if normalized in _FALSY:
        return False
    logger.warning("Invalid boolean env %s='%s'. Using default=%s.", key, raw, default)
    return default


__all__ = ["env_bool", "env_first", "env_int", "env_str", "load_env_file"]
