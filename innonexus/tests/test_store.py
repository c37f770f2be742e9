import threading
import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from firebase_admin import firestore
from google.api_core import exceptions

from innonexus.store import (
    CasResult,
    Filter,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    Write,
)


class InMemoryDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_reads_return_copies(self):
        doc_id = self.store.add("things", {"tags": ["a"]})
        data = self.store.get("things", doc_id)
        data["tags"].append("b")
        self.assertEqual(self.store.get("things", doc_id), {"tags": ["a"]})

    def test_query_filters_and_ordering(self):
        now = datetime.now(timezone.utc)
        self.store.set("reqs", "old", {"userId": "u1", "status": "pending", "createdAt": now - timedelta(days=1)})
        self.store.set("reqs", "new", {"userId": "u1", "status": "admin_approved", "createdAt": now})
        self.store.set("reqs", "done", {"userId": "u1", "status": "mentor_approved", "createdAt": now})
        self.store.set("reqs", "undated", {"userId": "u1", "status": "pending"})
        self.store.set("reqs", "other", {"userId": "u2", "status": "pending", "createdAt": now})

        results = self.store.query(
            "reqs",
            [Filter("userId", "==", "u1"), Filter("status", "in", ["pending", "admin_approved"])],
            order_by="createdAt",
            descending=True,
        )
        self.assertEqual([doc_id for doc_id, _ in results], ["new", "old"])

    def test_less_than_filter_skips_missing_field(self):
        now = datetime.now(timezone.utc)
        self.store.set("tokens", "expired", {"expiresAt": now - timedelta(seconds=1)})
        self.store.set("tokens", "live", {"expiresAt": now + timedelta(days=1)})
        self.store.set("tokens", "broken", {})
        results = self.store.query("tokens", [Filter("expiresAt", "<", now)])
        self.assertEqual([doc_id for doc_id, _ in results], ["expired"])

    def test_unsupported_operator(self):
        with self.assertRaises(ValueError):
            Filter("a", ">=", 1)

    def test_create_only_when_absent(self):
        self.assertTrue(self.store.create("slots", "u1_m1", {"requestId": "r1"}))
        self.assertFalse(self.store.create("slots", "u1_m1", {"requestId": "r2"}))
        self.assertEqual(self.store.get("slots", "u1_m1"), {"requestId": "r1"})

    def test_update_missing_document(self):
        self.assertFalse(self.store.update("things", "nope", {"a": 1}))

    def test_compare_and_set(self):
        self.store.set("reqs", "r1", {"status": "pending"})
        first = self.store.compare_and_set("reqs", "r1", "status", "pending", {"status": "admin_approved"})
        second = self.store.compare_and_set("reqs", "r1", "status", "pending", {"status": "admin_rejected"})
        missing = self.store.compare_and_set("reqs", "r2", "status", "pending", {"status": "x"})

        self.assertTrue(first.applied)
        self.assertFalse(second.applied)
        self.assertEqual(second.previous, "admin_approved")
        self.assertFalse(missing.exists)
        self.assertEqual(self.store.get("reqs", "r1")["status"], "admin_approved")

    def test_compare_and_set_under_contention(self):
        self.store.set("reqs", "r1", {"status": "pending"})
        outcomes = []
        barrier = threading.Barrier(8)

        def attempt(n):
            barrier.wait()
            result = self.store.compare_and_set(
                "reqs", "r1", "status", "pending", {"status": f"winner-{n}"}
            )
            outcomes.append(result.applied)

        threads = [threading.Thread(target=attempt, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        self.assertEqual(outcomes.count(True), 1)

    def test_commit_batch_is_all_or_nothing(self):
        self.store.set("mentors", "m1", {"name": "Ada"})
        writes = [
            Write("mentors/m1/profile", "details", {"name": "Ada"}),
            # Locks cannot be copied, so this write fails mid-batch.
            Write("mentors", "m1", {"lock": threading.Lock()}),
        ]
        with self.assertRaises(TypeError):
            self.store.commit_batch(writes)
        self.assertIsNone(self.store.get("mentors/m1/profile", "details"))
        self.assertEqual(self.store.get("mentors", "m1"), {"name": "Ada"})

    def test_set_merge(self):
        self.store.set("users", "u1", {"email": "a@x.io", "role": "admin"})
        self.store.set("users", "u1", {"email": "b@x.io"}, merge=True)
        self.assertEqual(self.store.get("users", "u1"), {"email": "b@x.io", "role": "admin"})

    def test_delete_many_counts_existing(self):
        self.store.set("tokens", "a", {})
        self.store.set("tokens", "b", {})
        self.assertEqual(self.store.delete_many("tokens", ["a", "b", "c"]), 2)
        self.assertEqual(self.store.list("tokens"), [])


class FirestoreDocumentStoreTests(unittest.TestCase):
    def setUp(self):
        self.client = MagicMock()
        self.store = FirestoreDocumentStore(self.client)

    def doc_ref(self):
        return self.client.collection.return_value.document.return_value

    def snapshot(self, doc_id="r1", data=None, exists=True):
        snap = MagicMock()
        snap.id = doc_id
        snap.exists = exists
        snap.to_dict.return_value = data
        return snap

    def test_create_reports_existing_document(self):
        self.assertTrue(self.store.create("slots", "u1_m1", {"requestId": "r1"}))
        self.doc_ref().create.assert_called_once_with({"requestId": "r1"})

        self.doc_ref().create.side_effect = exceptions.AlreadyExists("taken")
        self.assertFalse(self.store.create("slots", "u1_m1", {"requestId": "r2"}))

    def test_query_chains_filters_order_and_limit(self):
        collection = self.client.collection.return_value
        ordered = collection.where.return_value.where.return_value.order_by.return_value
        ordered.limit.return_value.stream.return_value = [
            self.snapshot("r2", {"status": "pending"}),
            self.snapshot("r1", None),
        ]

        results = self.store.query(
            "mentorRequests",
            [Filter("userId", "==", "u1"), Filter("status", "in", ["pending"])],
            order_by="createdAt",
            descending=True,
            limit=5,
        )

        self.assertEqual(results, [("r2", {"status": "pending"}), ("r1", {})])
        self.client.collection.assert_called_once_with("mentorRequests")
        first = collection.where.call_args.kwargs["filter"]
        self.assertEqual(
            (first.field_path, first.op_string, first.value), ("userId", "==", "u1")
        )
        second = collection.where.return_value.where.call_args.kwargs["filter"]
        self.assertEqual(second.op_string, "in")
        collection.where.return_value.where.return_value.order_by.assert_called_once_with(
            "createdAt", direction=firestore.Query.DESCENDING
        )
        ordered.limit.assert_called_once_with(5)

    def test_query_without_options_streams_collection(self):
        collection = self.client.collection.return_value
        collection.stream.return_value = [self.snapshot("e1", {"title": "Demo"})]
        self.assertEqual(self.store.query("events"), [("e1", {"title": "Demo"})])
        collection.where.assert_not_called()
        collection.order_by.assert_not_called()
        collection.limit.assert_not_called()

    @patch("innonexus.store.firestore.transactional", side_effect=lambda fn: fn)
    def test_compare_and_set_applies_in_transaction(self, transactional):
        transaction = self.client.transaction.return_value
        self.doc_ref().get.return_value = self.snapshot(data={"status": "pending"})

        result = self.store.compare_and_set(
            "mentorRequests", "r1", "status", "pending", {"status": "admin_approved"}
        )

        self.assertEqual(result, CasResult(applied=True, exists=True, previous="pending"))
        transactional.assert_called_once()
        self.doc_ref().get.assert_called_once_with(transaction=transaction)
        transaction.update.assert_called_once_with(
            self.doc_ref(), {"status": "admin_approved"}
        )

    @patch("innonexus.store.firestore.transactional", side_effect=lambda fn: fn)
    def test_compare_and_set_mismatch_writes_nothing(self, _):
        transaction = self.client.transaction.return_value
        self.doc_ref().get.return_value = self.snapshot(data={"status": "admin_rejected"})

        result = self.store.compare_and_set(
            "mentorRequests", "r1", "status", "pending", {"status": "admin_approved"}
        )

        self.assertEqual(
            result, CasResult(applied=False, exists=True, previous="admin_rejected")
        )
        transaction.update.assert_not_called()

    @patch("innonexus.store.firestore.transactional", side_effect=lambda fn: fn)
    def test_compare_and_set_missing_document(self, _):
        transaction = self.client.transaction.return_value
        self.doc_ref().get.return_value = self.snapshot(exists=False)

        result = self.store.compare_and_set(
            "mentorRequests", "gone", "status", "pending", {"status": "admin_approved"}
        )

        self.assertEqual(result, CasResult(applied=False, exists=False))
        transaction.update.assert_not_called()

    def test_update_missing_document_returns_false(self):
        doc_ref = self.client.collection.return_value.document.return_value
        doc_ref.update.side_effect = exceptions.NotFound("gone")
        self.assertFalse(self.store.update("events", "e1", {"title": "x"}))

    def test_delete_many_chunks_batches(self):
        ids = [f"t{i}" for i in range(1201)]
        deleted = self.store.delete_many("emailTokens", ids)
        self.assertEqual(deleted, 1201)
        self.assertEqual(self.client.batch.call_count, 3)
        self.assertEqual(self.client.batch.return_value.commit.call_count, 3)

    def test_commit_batch_uses_one_write_batch(self):
        self.store.commit_batch(
            [
                Write("mentors/m1/profile", "details", {"name": "Ada"}),
                Write("mentors", "m1", {"name": "Ada"}),
            ]
        )
        batch = self.client.batch.return_value
        self.assertEqual(batch.set.call_count, 2)
        batch.commit.assert_called_once()

    def test_commit_batch_rejects_oversized_batches(self):
        writes = [Write("c", str(i), {}) for i in range(501)]
        with self.assertRaises(ValueError):
            self.store.commit_batch(writes)
        self.client.batch.assert_not_called()

    def test_get_missing_document(self):
        snap = self.client.collection.return_value.document.return_value.get.return_value
        snap.exists = False
        self.assertIsNone(self.store.get("events", "missing"))


if __name__ == "__main__":
    unittest.main()
