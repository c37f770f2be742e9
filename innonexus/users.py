"""
User documents, roles and account administration.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from innonexus.constants import USERS_COLLECTION
from innonexus.errors import NotFoundError, ValidationError
from innonexus.identity import IdentityProvider
from innonexus.records import Role, UserProfile
from innonexus.schemas import (
    AdminCredentialsPayload,
    NotificationPreferencesPayload,
    UserProfileUpdate,
)
from innonexus.store import DocumentStore

logger = logging.getLogger(__name__)


def _load(store: DocumentStore, uid: str) -> dict:
    if not uid:
        raise ValidationError("User ID is required.", field="uid")
    data = store.get(USERS_COLLECTION, uid)
    if data is None:
        raise NotFoundError("User not found.")
    return data


def get_user(store: DocumentStore, uid: str) -> UserProfile:
    return UserProfile.from_document(uid, _load(store, uid))


def resolve_role(store: DocumentStore, uid: str, claims: Optional[dict] = None) -> Role:
    """
    Role from the ``users`` document; an ``admin`` custom claim on the ID
    token also grants admin. Unknown values fall back to ``user``.
    """
    if claims and claims.get("admin") is True:
        return Role.ADMIN
    data = store.get(USERS_COLLECTION, uid) or {}
    try:
        return Role(data.get("role") or Role.USER.value)
    except ValueError:
        logger.warning("User %s has unknown role %r", uid, data.get("role"))
        return Role.USER


def update_user_profile(
    store: DocumentStore, uid: str, payload: UserProfileUpdate
) -> UserProfile:
    data = _load(store, uid)
    now = datetime.now(timezone.utc)
    progress = dict(data.get("onboardingProgress") or {})
    progress.update(profileCompleted=True, profileCompletedAt=now)
    store.update(
        USERS_COLLECTION,
        uid,
        {
            "firstName": payload.first_name,
            "lastName": payload.last_name,
            "phone": payload.phone or "",
            "bio": payload.bio or "",
            "linkedin": payload.linkedin or "",
            "name": f"{payload.first_name} {payload.last_name}",
            "onboardingProgress": progress,
            "updatedAt": now,
        },
    )
    return get_user(store, uid)


def update_notification_preferences(
    store: DocumentStore, uid: str, payload: NotificationPreferencesPayload
) -> UserProfile:
    data = _load(store, uid)
    now = datetime.now(timezone.utc)
    preferences = dict(data.get("notificationPreferences") or {})
    preferences.update(emailNotifications=payload.email_notifications, updatedAt=now)
    progress = dict(data.get("onboardingProgress") or {})
    progress.update(notificationsConfigured=True, notificationsConfiguredAt=now)
    store.update(
        USERS_COLLECTION,
        uid,
        {
            "notificationPreferences": preferences,
            "onboardingProgress": progress,
            "updatedAt": now,
        },
    )
    return get_user(store, uid)


def delete_auth_user(identity: IdentityProvider, uid: Optional[str]) -> None:
    if not uid:
        raise ValidationError("UID is required", field="uid")
    identity.delete_user(uid)


def update_admin_credentials(
    store: DocumentStore,
    identity: IdentityProvider,
    admin_uid: str,
    payload: AdminCredentialsPayload,
) -> None:
    identity.update_user(admin_uid, email=payload.new_email, password=payload.new_password)
    store.set(
        USERS_COLLECTION,
        admin_uid,
        {"email": payload.new_email, "updatedAt": datetime.now(timezone.utc)},
        merge=True,
    )
    logger.info("Updated credentials for admin %s", admin_uid)
