"""
Incubator events.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from innonexus.constants import EVENTS_COLLECTION
from innonexus.errors import NotFoundError
from innonexus.records import Event, EventStatus
from innonexus.schemas import EventPayload, EventUpdatePayload
from innonexus.store import DocumentStore

logger = logging.getLogger(__name__)


def _to_document(payload) -> dict:
    data = payload.model_dump(exclude_unset=True, by_alias=True)
    if data.get("date") is not None:
        data["date"] = data["date"].strftime("%Y-%m-%d")
    if data.get("status") is not None:
        data["status"] = EventStatus(data["status"]).value
    return data


def create_event(store: DocumentStore, payload: EventPayload) -> Event:
    now = datetime.now(timezone.utc)
    data = _to_document(payload)
    data.setdefault("registrationLink", None)
    data.setdefault("imageUrl", None)
    data.setdefault("status", EventStatus.APPROVED.value)
    data.update(createdAt=now, updatedAt=now)
    event_id = store.add(EVENTS_COLLECTION, data)
    logger.info("Created event %s", event_id)
    return Event.from_document(event_id, data)


def get_event(store: DocumentStore, event_id: str) -> Event:
    data = store.get(EVENTS_COLLECTION, event_id)
    if data is None:
        raise NotFoundError("Event not found")
    return Event.from_document(event_id, data)


def update_event(store: DocumentStore, event_id: str, payload: EventUpdatePayload) -> Event:
    updates = _to_document(payload)
    updates["updatedAt"] = datetime.now(timezone.utc)
    if not store.update(EVENTS_COLLECTION, event_id, updates):
        raise NotFoundError("Event not found")
    return get_event(store, event_id)


def delete_event(store: DocumentStore, event_id: str) -> None:
    if store.get(EVENTS_COLLECTION, event_id) is None:
        raise NotFoundError("Event not found")
    store.delete(EVENTS_COLLECTION, event_id)
    logger.info("Deleted event %s", event_id)


def list_events(store: DocumentStore, *, public_only: bool = False) -> list[Event]:
    """
    Events ordered by date. The public listing shows approved events and
    legacy events that predate moderation (no status).
    """
    events = [Event.from_document(doc_id, data) for doc_id, data in store.list(EVENTS_COLLECTION)]
    if public_only:
        events = [e for e in events if e.status in (None, EventStatus.APPROVED)]
    events.sort(key=lambda e: (e.date or "", e.time or ""))
    return events
