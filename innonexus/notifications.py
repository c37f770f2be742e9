"""
Per-user notification documents created as side effects of request
transitions.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from innonexus.constants import NOTIFICATIONS_COLLECTION
from innonexus.errors import NotFoundError, PermissionDeniedError
from innonexus.records import Notification, NotificationType
from innonexus.store import DocumentStore, Filter

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def create_notification(
    store: DocumentStore,
    *,
    user_id: str,
    type: NotificationType,
    title: str,
    message: str,
    request_id: str,
    mentor_id: Optional[str] = None,
    mentor_name: Optional[str] = None,
) -> Notification:
    notification = Notification(
        id="",
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        request_id=request_id,
        mentor_id=mentor_id,
        mentor_name=mentor_name,
        read=False,
        created_at=datetime.now(timezone.utc),
    )
    notification.id = store.add(NOTIFICATIONS_COLLECTION, notification.as_document())
    return notification


def list_notifications(store: DocumentStore, user_id: str) -> list[Notification]:
    """Newest first. Sorted here so no composite index is needed."""
    docs = store.query(NOTIFICATIONS_COLLECTION, [Filter("userId", "==", user_id)])
    notifications = [Notification.from_document(doc_id, data) for doc_id, data in docs]
    notifications.sort(key=lambda n: n.created_at or _EPOCH, reverse=True)
    return notifications


def unread_count(store: DocumentStore, user_id: str) -> int:
    return sum(1 for n in list_notifications(store, user_id) if not n.read)


def mark_read(store: DocumentStore, notification_id: str, user_id: str) -> None:
    data = store.get(NOTIFICATIONS_COLLECTION, notification_id)
    if data is None:
        raise NotFoundError("Notification not found")
    if data.get("userId") != user_id:
        raise PermissionDeniedError("You can only update your own notifications.")
    store.update(NOTIFICATIONS_COLLECTION, notification_id, {"read": True})


def mark_all_read(store: DocumentStore, user_id: str) -> int:
    updated = 0
    for notification in list_notifications(store, user_id):
        if notification.read:
            continue
        store.update(NOTIFICATIONS_COLLECTION, notification.id, {"read": True})
        updated += 1
    return updated
