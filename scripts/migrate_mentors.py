"""
Migrate flat mentor documents to the core + profile sub-document schema.

Mentors that already have ``profile/details`` are skipped, so the script is
safe to run more than once. ``--backfill-submissions`` also fills the
domain/sector/legalStatus defaults on legacy applications.
"""

from __future__ import annotations

import argparse
import json
import logging

from innonexus.dependencies import get_store
from innonexus.migration import backfill_submission_fields, migrate_mentors

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Migrate mentors to the profile sub-collection schema"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be migrated without writing anything",
    )
    parser.add_argument(
        "--backfill-submissions",
        action="store_true",
        help="Also backfill domain/sector/legalStatus on legacy submissions",
    )
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(message)s")

    store = get_store()
    summary = migrate_mentors(store, dry_run=args.dry_run)
    print(json.dumps(summary.as_dict(), indent=2))

    if args.backfill_submissions:
        updated = backfill_submission_fields(store, dry_run=args.dry_run)
        logger.info("Submissions backfilled: %d", updated)

    if args.dry_run:
        logger.info("Dry run: no documents were written")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
