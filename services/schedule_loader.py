"""Celery beat schedule for the reaper, read from YAML shipped with the package."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Tuple

import yaml
from celery.schedules import crontab

from core.env import env_str
from core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SCHEDULE_FILE = Path(__file__).resolve().parent / "schedules" / "cleanup.yml"
CLEANUP_TASK = "reaper.cleanup_expired_transfers"
KNOWN_TASKS: FrozenSet[str] = frozenset({CLEANUP_TASK})

ScheduleEntries = Dict[str, Dict[str, Any]]


def schedule_file_from_env() -> Path:
    override = env_str("CLEANUP_SCHEDULE_FILE")
    return Path(override) if override else DEFAULT_SCHEDULE_FILE


def cron_from_string(expr: str) -> crontab:
    """Convert a 5-field cron expression into a Celery ``crontab`` object."""
    fields = str(expr or "").split()
    if len(fields) != 5:
        raise ValueError(f"Invalid cron expression '{expr}'. Expected 5 fields.")
    minute, hour, day_of_month, month, day_of_week = fields
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month,
        day_of_week=day_of_week,
    )


def _parse_entry(name: str, payload: Any) -> Optional[Dict[str, Any]]:
    if not isinstance(payload, dict):
        logger.warning("Schedule entry '%s' is not a mapping; skipping.", name)
        return None
    task = str(payload.get("task") or CLEANUP_TASK)
    if task not in KNOWN_TASKS:
        logger.warning("Schedule entry '%s' names unknown task '%s'; skipping.", name, task)
        return None
    cron = payload.get("cron")
    if not cron:
        logger.warning("Schedule entry '%s' has no cron expression; skipping.", name)
        return None
    # Fail at load time rather than when beat first evaluates the entry.
    cron_from_string(str(cron))

    kwargs = dict(payload.get("kwargs") or {})
    limit = kwargs.get("limit")
    if limit is not None and (not isinstance(limit, int) or limit < 0):
        raise ValueError(f"Schedule entry '{name}': limit must be a non-negative integer, got {limit!r}.")
    return {
        "task": task,
        "cron": str(cron),
        "kwargs": kwargs,
        "options": dict(payload.get("options") or {}),
    }


def load_schedule_config(path: Optional[Path] = None) -> Tuple[Optional[str], ScheduleEntries, Path]:
    """Return timezone + validated reaper entries from the YAML definition.

    The task name defaults to the cleanup task; entries naming any other task,
    or lacking a cron expression, are skipped with a warning.
    """
    schedule_path = path or schedule_file_from_env()
    if not schedule_path.exists():
        logger.warning("Schedule file %s not found; beat will not trigger the reaper.", schedule_path)
        return None, {}, schedule_path

    try:
        raw = yaml.safe_load(schedule_path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Failed to parse Celery schedule file: {schedule_path}") from exc

    entries: ScheduleEntries = {}
    for name, payload in (raw.get("entries") or {}).items():
        entry = _parse_entry(str(name), payload)
        if entry is not None:
            entries[str(name)] = entry
    if not entries:
        logger.warning("Schedule file %s defines no reaper entries.", schedule_path)
    return raw.get("timezone"), entries, schedule_path


def as_celery_schedule(entries: ScheduleEntries) -> Dict[str, Dict[str, Any]]:
    schedule: Dict[str, Dict[str, Any]] = {}
    for name, entry in entries.items():
        beat_entry: Dict[str, Any] = {
            "task": entry["task"],
            "schedule": cron_from_string(entry["cron"]),
            "kwargs": entry["kwargs"],
        }
        if entry["options"]:
            beat_entry["options"] = entry["options"]
        schedule[name] = beat_entry
    return schedule


__all__ = [
    "CLEANUP_TASK",
    "DEFAULT_SCHEDULE_FILE",
    "KNOWN_TASKS",
    "as_celery_schedule",
    "cron_from_string",
    "load_schedule_config",
    "schedule_file_from_env",
]
