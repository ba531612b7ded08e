"""Garbage collection for expired file transfers.

Each run selects transfers whose ``expires_at`` has passed and that are not yet
soft-deleted, removes their payloads from object storage and flags the transfer
and its file rows as deleted. Every transfer is handled in its own transaction
and every blob deletion is captured as an outcome, so one bad transfer or key
never aborts the batch. Nothing here guards against overlapping runs: all
statements are idempotent (unconditional ``SET``, delete-if-exists).
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from core.logging import get_logger
from core.settings import ReaperSettings, load_reaper_settings
from models.transfer import Transfer, TransferFile
from services.object_store import ObjectStore, require_object_store

logger = get_logger(__name__)

STATUS_CLEANED = "cleaned"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"
STATUS_DRY_RUN = "dry_run"

SessionFactory = Callable[[], Session]


@dataclass(frozen=True)
class BlobOutcome:
    key: str
    deleted: bool
    error: Optional[str] = None


@dataclass
class TransferOutcome:
    transfer_id: uuid.UUID
    status: str
    keys: List[str] = field(default_factory=list)
    blobs: List[BlobOutcome] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def blob_failures(self) -> List[BlobOutcome]:
        return [blob for blob in self.blobs if not blob.deleted]


@dataclass
class ReapSummary:
    started_at: datetime
    reference_time: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    selected: int = 0
    dry_run: bool = False
    outcomes: List[TransferOutcome] = field(default_factory=list)
    error: Optional[str] = None

    def _count(self, status: str) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def cleaned(self) -> int:
        return self._count(STATUS_CLEANED)

    @property
    def failed(self) -> int:
        return self._count(STATUS_FAILED)

    @property
    def skipped(self) -> int:
        return self._count(STATUS_SKIPPED)

    @property
    def blobs_deleted(self) -> int:
        return sum(1 for outcome in self.outcomes for blob in outcome.blobs if blob.deleted)

    @property
    def blob_failures(self) -> int:
        return sum(len(outcome.blob_failures) for outcome in self.outcomes)

    def outcome_for(self, transfer_id: uuid.UUID) -> Optional[TransferOutcome]:
        for outcome in self.outcomes:
            if outcome.transfer_id == transfer_id:
                return outcome
        return None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "reference_time": self.reference_time.isoformat() if self.reference_time else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "dry_run": self.dry_run,
            "selected": self.selected,
            "cleaned": self.cleaned,
            "failed": self.failed,
            "skipped": self.skipped,
            "blobs_deleted": self.blobs_deleted,
            "blob_failures": self.blob_failures,
            "error": self.error,
            "transfers": [
                {
                    "id": str(outcome.transfer_id),
                    "status": outcome.status,
                    "keys": list(outcome.keys),
                    "failed_keys": [blob.key for blob in outcome.blob_failures],
                    "error": outcome.error,
                }
                for outcome in self.outcomes
            ],
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _describe(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


def _default_session_factory() -> SessionFactory:
    from database import SessionLocal

    return SessionLocal


def _select_expired_ids(session: Session, now: datetime, limit: Optional[int]) -> List[uuid.UUID]:
    stmt = (
        select(Transfer.id)
        .where(Transfer.expires_at <= now, Transfer.deleted.is_(False))
        .order_by(Transfer.expires_at, Transfer.id)
    )
    if limit:
        stmt = stmt.limit(limit)
    return list(session.scalars(stmt))


def _fetch_file_keys(session: Session, transfer_id: uuid.UUID) -> List[str]:
    stmt = (
        select(TransferFile.path)
        .where(TransferFile.transfer_id == transfer_id, TransferFile.deleted.is_(False))
        .order_by(TransferFile.index, TransferFile.id)
    )
    return list(session.scalars(stmt))


def _delete_blob(store: ObjectStore, key: str) -> BlobOutcome:
    try:
        store.delete(key)
    except Exception as exc:
        logger.error("Failed to delete object %s: %s", key, exc, exc_info=True)
        return BlobOutcome(key=key, deleted=False, error=_describe(exc))
    logger.info("Deleted object: %s", key)
    return BlobOutcome(key=key, deleted=True)


def _delete_blobs(store: ObjectStore, keys: Sequence[str], concurrency: int) -> List[BlobOutcome]:
    if concurrency <= 1 or len(keys) <= 1:
        return [_delete_blob(store, key) for key in keys]
    # map() keeps outcomes in key order regardless of completion order.
    with ThreadPoolExecutor(max_workers=min(concurrency, len(keys))) as pool:
        return list(pool.map(partial(_delete_blob, store), keys))


def _mark_deleted(session: Session, transfer_id: uuid.UUID, now: datetime) -> None:
    session.execute(
        update(Transfer)
        .where(Transfer.id == transfer_id)
        .values(deleted=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )
    session.execute(
        update(TransferFile)
        .where(TransferFile.transfer_id == transfer_id)
        .values(deleted=True, updated_at=now)
        .execution_options(synchronize_session=False)
    )


def _reap_transfer(
    session: Session,
    store: Optional[ObjectStore],
    transfer_id: uuid.UUID,
    now: datetime,
    *,
    settings: ReaperSettings,
    dry_run: bool,
) -> TransferOutcome:
    outcome = TransferOutcome(transfer_id=transfer_id, status=STATUS_FAILED)
    try:
        outcome.keys = _fetch_file_keys(session, transfer_id)
        if dry_run or store is None:
            session.rollback()
            outcome.status = STATUS_DRY_RUN
            logger.info("[dry-run] Transfer %s would remove %d objects.", transfer_id, len(outcome.keys))
            return outcome

        outcome.blobs = _delete_blobs(store, outcome.keys, settings.delete_concurrency)
        failures = outcome.blob_failures
        if failures and settings.block_on_blob_failure:
            session.rollback()
            outcome.status = STATUS_SKIPPED
            logger.warning(
                "Transfer %s left pending: %d of %d objects could not be deleted.",
                transfer_id,
                len(failures),
                len(outcome.keys),
            )
            return outcome

        _mark_deleted(session, transfer_id, now)
        session.commit()
    except Exception as exc:
        session.rollback()
        outcome.status = STATUS_FAILED
        outcome.error = _describe(exc)
        logger.error("Error cleaning transfer %s: %s", transfer_id, exc, exc_info=True)
        return outcome

    outcome.status = STATUS_CLEANED
    if outcome.blob_failures:
        logger.warning(
            "Transfer %s cleaned with %d orphaned objects.", transfer_id, len(outcome.blob_failures)
        )
    else:
        logger.info("Transfer %s cleaned (%d objects).", transfer_id, len(outcome.keys))
    return outcome


def reap_expired_transfers(
    *,
    session_factory: Optional[SessionFactory] = None,
    object_store: Optional[ObjectStore] = None,
    now: Optional[datetime] = None,
    limit: Optional[int] = None,
    dry_run: bool = False,
    block_on_blob_failure: Optional[bool] = None,
    settings: Optional[ReaperSettings] = None,
) -> ReapSummary:
    """Soft-delete every expired transfer and remove its objects from storage.

    Failures never propagate: a failed initial query is reported through
    ``ReapSummary.error`` with nothing mutated, and per-transfer or per-object
    failures are recorded on the matching outcome.
    """
    base = settings or load_reaper_settings()
    if block_on_blob_failure is not None:
        base = ReaperSettings(
            batch_limit=base.batch_limit,
            delete_concurrency=base.delete_concurrency,
            block_on_blob_failure=block_on_blob_failure,
        )
    batch_limit = max(base.batch_limit if limit is None else limit, 0)
    store = object_store
    if store is None and not dry_run:
        store = require_object_store()
    factory = session_factory or _default_session_factory()

    snapshot = now or _utcnow()
    summary = ReapSummary(started_at=_utcnow(), reference_time=snapshot, dry_run=dry_run)
    logger.info("[Cron] Cleanup job started (now=%s, dry_run=%s).", snapshot.isoformat(), dry_run)

    session = factory()
    try:
        try:
            transfer_ids = _select_expired_ids(session, snapshot, batch_limit)
        except Exception as exc:
            session.rollback()
            summary.error = _describe(exc)
            logger.error("Failed to select expired transfers; aborting run: %s", exc, exc_info=True)
            transfer_ids = []

        summary.selected = len(transfer_ids)
        if summary.ok and not transfer_ids:
            logger.info("[Cron] No expired transfers found.")
        elif transfer_ids:
            logger.info("[Cron] Found %d expired transfers.", len(transfer_ids))

        for transfer_id in transfer_ids:
            summary.outcomes.append(
                _reap_transfer(session, store, transfer_id, snapshot, settings=base, dry_run=dry_run)
            )
    finally:
        session.close()

    summary.finished_at = _utcnow()
    logger.info(
        "[Cron] Cleanup job finished: selected=%d cleaned=%d failed=%d skipped=%d "
        "blobs_deleted=%d blob_failures=%d",
        summary.selected,
        summary.cleaned,
        summary.failed,
        summary.skipped,
        summary.blobs_deleted,
        summary.blob_failures,
    )
    return summary


def run(**kwargs: Any) -> ReapSummary:
    """Entry point used by schedulers; see :func:`reap_expired_transfers`."""
    return reap_expired_transfers(**kwargs)


__all__ = [
    "BlobOutcome",
    "ReapSummary",
    "STATUS_CLEANED",
    "STATUS_DRY_RUN",
    "STATUS_FAILED",
    "STATUS_SKIPPED",
    "TransferOutcome",
    "reap_expired_transfers",
    "run",
]
