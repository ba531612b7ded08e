"""Run one expired-transfer cleanup pass outside of Celery beat."""

from __future__ import annotations

import argparse
import json
import sys
from typing import List, Optional

from core.logging import setup_logging
from services.maintenance.transfer_reaper import reap_expired_transfers
from services.object_store import ObjectStoreNotConfigured


def _non_negative_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"expected an integer, got '{raw}'") from exc
    if value < 0:
        raise argparse.ArgumentTypeError(f"must be >= 0, got {value}")
    return value


def parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete objects of expired transfers and mark them deleted.")
    parser.add_argument("--dry-run", action="store_true", help="Only report what would be removed.")
    parser.add_argument(
        "--limit",
        type=_non_negative_int,
        default=None,
        help="Maximum number of expired transfers to process (default: REAPER_BATCH_LIMIT, 0 = all).",
    )
    parser.add_argument(
        "--block-on-blob-failure",
        action="store_true",
        default=None,
        help="Leave a transfer pending when any of its objects cannot be deleted.",
    )
    parser.add_argument("--json", action="store_true", help="Print the full summary as JSON.")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging()
    try:
        summary = reap_expired_transfers(
            limit=args.limit,
            dry_run=args.dry_run,
            block_on_blob_failure=args.block_on_blob_failure,
        )
    except ObjectStoreNotConfigured as exc:
        print(f"cleanup failed: {exc}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(summary.as_dict(), indent=2))
    else:
        print(
            f"cleanup {'dry-run' if summary.dry_run else 'done'}, selected={summary.selected}, "
            f"cleaned={summary.cleaned}, failed={summary.failed}, skipped={summary.skipped}, "
            f"blobs_deleted={summary.blobs_deleted}, blob_failures={summary.blob_failures}"
        )
    if not summary.ok:
        print(f"cleanup aborted: {summary.error}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":
    sys.exit(main())
