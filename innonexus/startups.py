"""
Incubated startups shown on the public site.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from urllib.parse import quote

from innonexus.constants import STARTUPS_COLLECTION
from innonexus.errors import NotFoundError
from innonexus.records import Startup
from innonexus.schemas import StartupPayload
from innonexus.store import DocumentStore

logger = logging.getLogger(__name__)


def placeholder_logo(name: str) -> str:
    return f"https://placehold.co/300x150/1A1A1A/FFFFFF.png?text={quote(name[:3])}"


def _to_document(payload: StartupPayload) -> dict:
    data = payload.model_dump(by_alias=True)
    data["logoUrl"] = payload.logo_url or placeholder_logo(payload.name)
    data["websiteUrl"] = payload.website_url or ""
    return data


def create_startup(store: DocumentStore, payload: StartupPayload) -> Startup:
    now = datetime.now(timezone.utc)
    data = {**_to_document(payload), "createdAt": now, "updatedAt": now}
    startup_id = store.add(STARTUPS_COLLECTION, data)
    logger.info("Created startup %s", startup_id)
    return Startup.from_document(startup_id, data)


def update_startup(store: DocumentStore, startup_id: str, payload: StartupPayload) -> Startup:
    data = {**_to_document(payload), "updatedAt": datetime.now(timezone.utc)}
    if not store.update(STARTUPS_COLLECTION, startup_id, data):
        raise NotFoundError("Startup not found")
    return Startup.from_document(startup_id, store.get(STARTUPS_COLLECTION, startup_id))


def delete_startup(store: DocumentStore, startup_id: str) -> None:
    if store.get(STARTUPS_COLLECTION, startup_id) is None:
        raise NotFoundError("Startup not found")
    store.delete(STARTUPS_COLLECTION, startup_id)
    logger.info("Deleted startup %s", startup_id)


def list_startups(store: DocumentStore) -> list[Startup]:
    startups = [
        Startup.from_document(doc_id, data)
        for doc_id, data in store.list(STARTUPS_COLLECTION)
    ]
    startups.sort(key=lambda s: s.name.lower())
    return startups
