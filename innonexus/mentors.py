"""
Mentor accounts and profiles.

Mentors exist in two shapes: legacy flat documents, and a core document with
a ``profile/details`` sub-document. Reads merge both so callers see one
``Mentor`` regardless of schema.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional
from urllib.parse import quote

from innonexus.constants import (
    MENTOR_PROFILE_DOC_ID,
    MENTORS_COLLECTION,
    PROFILE_VERSION,
    USERS_COLLECTION,
    mentor_profile_collection,
)
from innonexus.errors import NotFoundError
from innonexus.identity import IdentityProvider
from innonexus.migration import build_mentor_documents
from innonexus.records import Mentor, MentorProfile, Role
from innonexus.schemas import MentorCreatePayload, MentorProfileUpdate
from innonexus.store import DocumentStore, Write

logger = logging.getLogger(__name__)


def placeholder_avatar(name: str) -> str:
    return f"https://placehold.co/100x100/7DF9FF/121212.png?text={quote(name[:2])}"


def merge_mentor(mentor_id: str, core: dict, profile: Optional[dict]) -> Mentor:
    source = profile if profile is not None else core
    return Mentor(
        id=mentor_id,
        uid=core.get("uid") or mentor_id,
        name=core.get("name") or source.get("name") or "",
        email=core.get("email") or source.get("email") or "",
        role=core.get("role") or Role.MENTOR.value,
        status=core.get("status") or "active",
        profile=MentorProfile(
            name=source.get("name") or core.get("name") or "",
            email=source.get("email") or core.get("email") or "",
            designation=source.get("designation") or "",
            expertise=source.get("expertise") or "",
            description=source.get("description") or "",
            profile_picture_url=source.get("profilePictureUrl") or "",
            linkedin_url=source.get("linkedinUrl") or "",
        ),
        created_at=core.get("createdAt"),
        updated_at=core.get("updatedAt"),
    )


def get_mentor(store: DocumentStore, mentor_id: str) -> Mentor:
    core = store.get(MENTORS_COLLECTION, mentor_id)
    if core is None:
        raise NotFoundError("Mentor not found")
    profile = store.get(mentor_profile_collection(mentor_id), MENTOR_PROFILE_DOC_ID)
    return merge_mentor(mentor_id, core, profile)


def list_mentors(store: DocumentStore) -> list[Mentor]:
    mentors = []
    for mentor_id, core in store.list(MENTORS_COLLECTION):
        profile = store.get(mentor_profile_collection(mentor_id), MENTOR_PROFILE_DOC_ID)
        mentors.append(merge_mentor(mentor_id, core, profile))
    mentors.sort(key=lambda m: m.name.lower())
    return mentors


def create_mentor(
    store: DocumentStore, identity: IdentityProvider, payload: MentorCreatePayload
) -> Mentor:
    """Create the auth account, then the core, profile and role documents together."""
    user = identity.create_user(payload.email, payload.password, display_name=payload.name)
    now = datetime.now(timezone.utc)

    core = {
        "uid": user.uid,
        "name": payload.name,
        "email": payload.email,
        "role": Role.MENTOR.value,
        "status": "active",
        "createdAt": now,
        "updatedAt": now,
    }
    profile = {
        "name": payload.name,
        "email": payload.email,
        "designation": payload.designation,
        "expertise": payload.expertise,
        "description": payload.description,
        "profilePictureUrl": payload.profile_picture_url or placeholder_avatar(payload.name),
        "linkedinUrl": payload.linkedin_url or "",
        "createdAt": now,
        "updatedAt": now,
        "lastModified": now.isoformat(),
        "profileVersion": PROFILE_VERSION,
        "isActive": True,
    }
    user_doc = {
        "uid": user.uid,
        "email": payload.email,
        "name": payload.name,
        "role": Role.MENTOR.value,
        "status": "active",
        "createdAt": now,
        "updatedAt": now,
    }
    store.commit_batch(
        [
            Write(MENTORS_COLLECTION, user.uid, core),
            Write(mentor_profile_collection(user.uid), MENTOR_PROFILE_DOC_ID, profile),
            Write(USERS_COLLECTION, user.uid, user_doc),
        ]
    )
    logger.info("Created mentor %s (%s)", user.uid, payload.email)
    return merge_mentor(user.uid, core, profile)


def update_mentor_profile(
    store: DocumentStore, mentor_id: str, payload: MentorProfileUpdate
) -> Mentor:
    """
    Apply profile edits. A legacy flat mentor is migrated in the same batch,
    so the core is reduced and the profile gets its full set of fields.
    """
    core = store.get(MENTORS_COLLECTION, mentor_id)
    if core is None:
        raise NotFoundError("Mentor not found")
    profile_collection = mentor_profile_collection(mentor_id)
    existing = store.get(profile_collection, MENTOR_PROFILE_DOC_ID)
    changes = {
        k: v if v is not None else ""
        for k, v in payload.model_dump(exclude_unset=True, by_alias=True).items()
    }
    now = datetime.now(timezone.utc)

    if existing is None:
        logger.info("Migrating legacy mentor %s on profile update", mentor_id)
        new_core, profile = build_mentor_documents(mentor_id, core, now)
        profile.update(changes)
        if changes.get("name"):
            new_core["name"] = changes["name"]
        store.commit_batch(
            [
                Write(profile_collection, MENTOR_PROFILE_DOC_ID, profile),
                Write(MENTORS_COLLECTION, mentor_id, new_core),
            ]
        )
        return merge_mentor(mentor_id, new_core, profile)

    profile = {
        **changes,
        "updatedAt": now,
        "lastModified": now.isoformat(),
        "profileVersion": PROFILE_VERSION,
        "isActive": True,
    }
    if "createdAt" not in existing:
        profile["createdAt"] = core.get("createdAt") or now
    core_changes = {"updatedAt": now}
    if changes.get("name"):
        core_changes["name"] = changes["name"]
    store.commit_batch(
        [
            Write(profile_collection, MENTOR_PROFILE_DOC_ID, profile, merge=True),
            Write(MENTORS_COLLECTION, mentor_id, core_changes, merge=True),
        ]
    )
    return get_mentor(store, mentor_id)
