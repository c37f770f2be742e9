"""
Data migrations.

``migrate_mentors`` moves flat mentor documents to the split schema: a reduced
core document plus a ``profile/details`` sub-document. Mentors that already
have a profile are skipped, so the migration can run repeatedly against a
live database.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional

from innonexus.constants import (
    CONTACT_SUBMISSIONS_COLLECTION,
    MENTOR_PROFILE_DOC_ID,
    MENTORS_COLLECTION,
    OFF_CAMPUS_APPLICATIONS_COLLECTION,
    PROFILE_VERSION,
    mentor_profile_collection,
)
from innonexus.store import DocumentStore, Write

logger = logging.getLogger(__name__)

PROFILE_FIELDS = (
    "designation",
    "expertise",
    "description",
    "profilePictureUrl",
    "linkedinUrl",
)

SUBMISSION_FIELD_DEFAULTS = {
    "domain": "Technology",
    "sector": "Technology",
    "legalStatus": "Not registered",
}


@dataclass
class MentorMigrationResult:
    name: str
    status: str
    reason: Optional[str] = None

    def as_dict(self) -> dict:
        data = {"name": self.name, "status": self.status}
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class MigrationSummary:
    migrated_count: int = 0
    skipped_count: int = 0
    results: list[MentorMigrationResult] = field(default_factory=list)

    @property
    def total_processed(self) -> int:
        return self.migrated_count + self.skipped_count

    def as_dict(self) -> dict:
        return {
            "migratedCount": self.migrated_count,
            "skippedCount": self.skipped_count,
            "totalProcessed": self.total_processed,
            "results": [r.as_dict() for r in self.results],
        }


def build_mentor_documents(
    mentor_id: str, legacy: dict, now: datetime
) -> tuple[dict, dict]:
    """Return ``(core, profile)`` documents for a flat mentor document."""
    created_at = legacy.get("createdAt") or now
    profile = {
        "name": legacy.get("name") or "",
        "email": legacy.get("email") or "",
        **{name: legacy.get(name) or "" for name in PROFILE_FIELDS},
        "createdAt": created_at,
        "updatedAt": now,
        "lastModified": now.isoformat(),
        "profileVersion": PROFILE_VERSION,
        "isActive": True,
    }
    core = {
        "uid": legacy.get("uid") or mentor_id,
        "name": legacy.get("name") or "",
        "email": legacy.get("email") or "",
        "role": "mentor",
        "status": "active",
        "createdAt": created_at,
        "updatedAt": now,
    }
    return core, profile


def migrate_mentors(store: DocumentStore, *, dry_run: bool = False) -> MigrationSummary:
    summary = MigrationSummary()
    for mentor_id, legacy in store.list(MENTORS_COLLECTION):
        name = legacy.get("name") or mentor_id
        profile_collection = mentor_profile_collection(mentor_id)

        if store.get(profile_collection, MENTOR_PROFILE_DOC_ID) is not None:
            logger.info("Skipping %s - profile sub-document already exists", name)
            summary.skipped_count += 1
            summary.results.append(
                MentorMigrationResult(name, "skipped", "profile already exists")
            )
            continue

        core, profile = build_mentor_documents(
            mentor_id, legacy, datetime.now(timezone.utc)
        )
        if not dry_run:
            store.commit_batch(
                [
                    Write(profile_collection, MENTOR_PROFILE_DOC_ID, profile),
                    Write(MENTORS_COLLECTION, mentor_id, core),
                ]
            )
        logger.info("Migrated %s%s", name, " (dry run)" if dry_run else "")
        summary.migrated_count += 1
        summary.results.append(MentorMigrationResult(name, "migrated"))

    logger.info(
        "Mentor migration finished: migrated=%d skipped=%d",
        summary.migrated_count,
        summary.skipped_count,
    )
    return summary


def backfill_submission_fields(store: DocumentStore, *, dry_run: bool = False) -> int:
    """
    Give legacy submissions the domain/sector/legalStatus fields added to the
    intake form later. Existing values are left alone. Returns the number of
    documents touched.
    """
    updated = 0
    for collection in (CONTACT_SUBMISSIONS_COLLECTION, OFF_CAMPUS_APPLICATIONS_COLLECTION):
        for doc_id, data in store.list(collection):
            missing = {
                key: default
                for key, default in SUBMISSION_FIELD_DEFAULTS.items()
                if not data.get(key)
            }
            if not missing:
                continue
            if not dry_run:
                store.update(collection, doc_id, missing)
            updated += 1
    logger.info("Backfilled submission fields on %d documents", updated)
    return updated
