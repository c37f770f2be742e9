"""
Document store abstraction for Firestore and an in-memory test implementation.

Collections are addressed by slash-separated paths, so sub-collections such
as ``mentors/{id}/profile`` work the same way as top-level collections.
"""

from __future__ import annotations

import copy
import threading
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence

from firebase_admin import firestore
from google.api_core import exceptions
from google.cloud.firestore_v1.base_query import FieldFilter

FIRESTORE_BATCH_LIMIT = 500

SUPPORTED_OPERATORS = ("==", "in", "<")


@dataclass(frozen=True)
class Filter:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in SUPPORTED_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: dict) -> bool:
        if self.field not in data:
            return False
        current = data[self.field]
        if self.op == "==":
            return current == self.value
        if self.op == "in":
            return current in self.value
        try:
            return current < self.value
        except TypeError:
            return False


@dataclass(frozen=True)
class Write:
    """A single ``set`` inside an all-or-nothing batch."""

    collection: str
    doc_id: str
    data: dict
    merge: bool = False


@dataclass(frozen=True)
class CasResult:
    """Outcome of ``compare_and_set``."""

    applied: bool
    exists: bool
    previous: Any = None


class DocumentStore(Protocol):
    """Interface for document database access."""

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        ...

    def add(self, collection: str, data: dict) -> str:
        ...

    def create(self, collection: str, doc_id: str, data: dict) -> bool:
        """Write ``data`` only if ``doc_id`` does not exist yet."""
        ...

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        ...

    def update(self, collection: str, doc_id: str, data: dict) -> bool:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...

    def delete_many(self, collection: str, doc_ids: Iterable[str]) -> int:
        ...

    def list(self, collection: str) -> list[tuple[str, dict]]:
        ...

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        ...

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Any,
        updates: dict,
    ) -> CasResult:
        ...

    def commit_batch(self, writes: Sequence[Write]) -> None:
        ...


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()

    def _docs(self, collection: str) -> Dict[str, dict]:
        return self.collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        with self._lock:
            data = self._docs(collection).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def add(self, collection: str, data: dict) -> str:
        doc_id = uuid.uuid4().hex[:20]
        with self._lock:
            self._docs(collection)[doc_id] = copy.deepcopy(data)
        return doc_id

    def create(self, collection: str, doc_id: str, data: dict) -> bool:
        with self._lock:
            docs = self._docs(collection)
            if doc_id in docs:
                return False
            docs[doc_id] = copy.deepcopy(data)
            return True

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        with self._lock:
            self._set_locked(collection, doc_id, data, merge)

    def _set_locked(self, collection: str, doc_id: str, data: dict, merge: bool):
        docs = self._docs(collection)
        if merge and doc_id in docs:
            docs[doc_id].update(copy.deepcopy(data))
        else:
            docs[doc_id] = copy.deepcopy(data)

    def update(self, collection: str, doc_id: str, data: dict) -> bool:
        with self._lock:
            docs = self._docs(collection)
            if doc_id not in docs:
                return False
            docs[doc_id].update(copy.deepcopy(data))
            return True

    def delete(self, collection: str, doc_id: str) -> None:
        with self._lock:
            self._docs(collection).pop(doc_id, None)

    def delete_many(self, collection: str, doc_ids: Iterable[str]) -> int:
        deleted = 0
        with self._lock:
            docs = self._docs(collection)
            for doc_id in doc_ids:
                if docs.pop(doc_id, None) is not None:
                    deleted += 1
        return deleted

    def list(self, collection: str) -> list[tuple[str, dict]]:
        with self._lock:
            return [
                (doc_id, copy.deepcopy(data))
                for doc_id, data in self._docs(collection).items()
            ]

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        items = [
            (doc_id, data)
            for doc_id, data in self.list(collection)
            if all(f.matches(data) for f in filters)
        ]
        if order_by:
            # Firestore drops documents that lack the ordering field.
            items = [item for item in items if item[1].get(order_by) is not None]
            items.sort(key=lambda item: item[1][order_by], reverse=descending)
        if limit is not None:
            items = items[:limit]
        return items

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Any,
        updates: dict,
    ) -> CasResult:
        with self._lock:
            data = self._docs(collection).get(doc_id)
            if data is None:
                return CasResult(applied=False, exists=False)
            current = data.get(field)
            if current != expected:
                return CasResult(applied=False, exists=True, previous=current)
            data.update(copy.deepcopy(updates))
            return CasResult(applied=True, exists=True, previous=current)

    def commit_batch(self, writes: Sequence[Write]) -> None:
        with self._lock:
            staged = copy.deepcopy(self.collections)
            try:
                for write in writes:
                    self._set_locked(write.collection, write.doc_id, write.data, write.merge)
            except Exception:
                self.collections = staged
                raise

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.collections.clear()


class FirestoreDocumentStore:
    """
    Firestore-backed implementation using the firebase_admin client.
    """

    def __init__(self, client):
        self.client = client

    def _doc_ref(self, collection: str, doc_id: str):
        return self.client.collection(collection).document(doc_id)

    @staticmethod
    def _items(snapshots) -> list[tuple[str, dict]]:
        return [(snap.id, snap.to_dict() or {}) for snap in snapshots]

    def get(self, collection: str, doc_id: str) -> Optional[dict]:
        snap = self._doc_ref(collection, doc_id).get()
        if not snap.exists:
            return None
        return snap.to_dict()

    def add(self, collection: str, data: dict) -> str:
        _, doc_ref = self.client.collection(collection).add(data)
        return doc_ref.id

    def create(self, collection: str, doc_id: str, data: dict) -> bool:
        try:
            self._doc_ref(collection, doc_id).create(data)
        except exceptions.Conflict:
            return False
        return True

    def set(
        self, collection: str, doc_id: str, data: dict, *, merge: bool = False
    ) -> None:
        self._doc_ref(collection, doc_id).set(data, merge=merge)

    def update(self, collection: str, doc_id: str, data: dict) -> bool:
        try:
            self._doc_ref(collection, doc_id).update(data)
        except exceptions.NotFound:
            return False
        return True

    def delete(self, collection: str, doc_id: str) -> None:
        self._doc_ref(collection, doc_id).delete()

    def delete_many(self, collection: str, doc_ids: Iterable[str]) -> int:
        ids = list(doc_ids)
        for start in range(0, len(ids), FIRESTORE_BATCH_LIMIT):
            batch = self.client.batch()
            for doc_id in ids[start : start + FIRESTORE_BATCH_LIMIT]:
                batch.delete(self._doc_ref(collection, doc_id))
            batch.commit()
        return len(ids)

    def list(self, collection: str) -> list[tuple[str, dict]]:
        return self._items(self.client.collection(collection).stream())

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> list[tuple[str, dict]]:
        query = self.client.collection(collection)
        for f in filters:
            query = query.where(filter=FieldFilter(f.field, f.op, f.value))
        if order_by:
            direction = (
                firestore.Query.DESCENDING if descending else firestore.Query.ASCENDING
            )
            query = query.order_by(order_by, direction=direction)
        if limit is not None:
            query = query.limit(limit)
        return self._items(query.stream())

    def compare_and_set(
        self,
        collection: str,
        doc_id: str,
        field: str,
        expected: Any,
        updates: dict,
    ) -> CasResult:
        transaction = self.client.transaction()
        doc_ref = self._doc_ref(collection, doc_id)

        @firestore.transactional
        def _cas_transaction(transaction, doc_ref):
            snap = doc_ref.get(transaction=transaction)
            if not snap.exists:
                return CasResult(applied=False, exists=False)
            current = (snap.to_dict() or {}).get(field)
            if current != expected:
                return CasResult(applied=False, exists=True, previous=current)
            transaction.update(doc_ref, updates)
            return CasResult(applied=True, exists=True, previous=current)

        return _cas_transaction(transaction, doc_ref)

    def commit_batch(self, writes: Sequence[Write]) -> None:
        if len(writes) > FIRESTORE_BATCH_LIMIT:
            raise ValueError(
                f"A batch holds at most {FIRESTORE_BATCH_LIMIT} writes, got {len(writes)}"
            )
        batch = self.client.batch()
        for write in writes:
            batch.set(
                self._doc_ref(write.collection, write.doc_id), write.data, merge=write.merge
            )
        batch.commit()
