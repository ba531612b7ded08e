"""Celery tasks for periodic transfer maintenance."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from celery import shared_task

from services.maintenance.transfer_reaper import reap_expired_transfers

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


@shared_task(name="reaper.cleanup_expired_transfers")
def cleanup_expired_transfers(limit: Optional[int] = None, dry_run: bool = False) -> Dict[str, Any]:
    """Run one reaper pass and return its summary as a JSON-serialisable dict.

    The next beat tick retries whatever this pass left behind, so the task
    itself never retries.
    """
    summary = reap_expired_transfers(limit=limit, dry_run=dry_run)
    if not summary.ok:
        logger.error("Expired transfer cleanup aborted: %s", summary.error)
    return summary.as_dict()
