import unittest
from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import patch

from fastapi.testclient import TestClient

from innonexus.activity import InMemoryActivityStore
from innonexus.app import create_app
from innonexus.constants import (
    EMAIL_TOKENS_COLLECTION,
    EVENTS_COLLECTION,
    MENTORS_COLLECTION,
    USERS_COLLECTION,
    mentor_profile_collection,
)
from innonexus.dependencies import get_identity_provider, get_mailer, get_store
from innonexus.identity import InMemoryIdentityProvider
from innonexus.mailer import InMemoryMailer
from innonexus.store import InMemoryDocumentStore
from innonexus.tokens import EmailTokenService

SUBMISSION = {
    "fullName": "Ada Lovelace",
    "natureOfInquiry": "Incubation",
    "companyName": "Analytical Engines",
    "companyEmail": "ada@engines.io",
    "founderNames": "Ada Lovelace",
    "founderBio": "Mathematician",
    "startupIdea": "General purpose computing",
    "uniqueness": "First of its kind",
    "domain": "SaaS",
    "sector": "Technology",
}

EVENT = {
    "title": "Demo Day",
    "description": "Startups pitch to investors.",
    "date": "2024-09-14",
    "time": "10:30",
    "venue": "Main Auditorium",
    "applyLink": "https://forms.test/demo-day",
}

STARTUP = {
    "name": "Analytical Engines",
    "description": "General purpose computing machines.",
    "badgeText": "Cohort 1",
    "funnelSource": "Campus",
    "session": "2024-25",
    "monthYearOfIncubation": "June 2024",
    "status": "Active",
    "legalStatus": "LLP",
    "rknecEmailId": "ada@rknec.edu",
    "emailId": "ada@engines.io",
    "mobileNumber": "9876543210",
}


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()
        self.mailer = InMemoryMailer()
        self.identity = InMemoryIdentityProvider()
        app = create_app()
        app.dependency_overrides[get_store] = lambda: self.store
        app.dependency_overrides[get_mailer] = lambda: self.mailer
        app.dependency_overrides[get_identity_provider] = lambda: self.identity
        self.client = TestClient(app)

    def sign_in(self, email, role="user", name=None):
        user = self.identity.create_user(email, "password123", display_name=name)
        self.store.set(
            USERS_COLLECTION,
            user.uid,
            {"uid": user.uid, "email": email, "name": name or email, "role": role},
        )
        token = self.identity.issue_token(user.uid)
        return user, {"Authorization": f"Bearer {token}"}


class PublicEndpointTests(ApiTestCase):
    def test_contact_submission(self):
        response = self.client.post("/api/contact-submissions", json=SUBMISSION)
        self.assertEqual(response.status_code, 201)
        payload = response.json()
        self.assertEqual(payload["message"], "Application submitted successfully")
        self.assertTrue(payload["id"])

    def test_contact_submission_validation_envelope(self):
        response = self.client.post(
            "/api/contact-submissions", json={**SUBMISSION, "domain": "Space"}
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"message": "Invalid domain value."})

    def test_contact_submission_unexpected_error(self):
        with patch(
            "innonexus.submissions.create_submission", side_effect=RuntimeError("down")
        ):
            response = self.client.post("/api/contact-submissions", json=SUBMISSION)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(
            response.json(), {"message": "Internal server error", "details": "down"}
        )

    def test_public_events_hide_unapproved(self):
        self.store.add(
            EVENTS_COLLECTION, {"title": "Pending", "date": "2024-01-02", "status": "pending"}
        )
        self.store.add(EVENTS_COLLECTION, {"title": "Legacy", "date": "2024-01-01"})
        self.store.add(
            EVENTS_COLLECTION, {"title": "Live", "date": "2024-01-03", "status": "approved"}
        )

        response = self.client.get("/api/events")
        self.assertEqual([e["title"] for e in response.json()], ["Legacy", "Live"])

    def test_mentor_listing_merges_profiles(self):
        self.store.set(MENTORS_COLLECTION, "legacy", {"name": "Linus", "expertise": "Kernels"})
        self.store.set(MENTORS_COLLECTION, "new", {"name": "Grace", "email": "g@x.io"})
        self.store.set(mentor_profile_collection("new"), "details", {"expertise": "Compilers"})

        mentors = self.client.get("/api/mentors").json()
        self.assertEqual([m["name"] for m in mentors], ["Grace", "Linus"])
        self.assertEqual(mentors[0]["profile"]["expertise"], "Compilers")
        self.assertEqual(mentors[1]["profile"]["expertise"], "Kernels")
        self.assertEqual(self.client.get("/api/mentors/missing").status_code, 404)

    def test_requires_bearer_token(self):
        response = self.client.get("/api/users/me")
        self.assertEqual(response.status_code, 401)
        self.assertEqual(
            response.json(), {"success": False, "message": "Missing bearer token"}
        )
        response = self.client.get(
            "/api/users/me", headers={"Authorization": "Bearer nope"}
        )
        self.assertEqual(response.status_code, 401)


class ActivityTrackingTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.activity = InMemoryActivityStore()
        patcher = patch("innonexus.dependencies._activity_store", self.activity)
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_unverified_bearer_is_not_recorded(self):
        response = self.client.get(
            "/api/events", headers={"Authorization": "Bearer forged"}
        )
        self.assertEqual(response.status_code, 200)
        response = self.client.get(
            "/api/users/me", headers={"Authorization": "Bearer forged"}
        )
        self.assertEqual(response.status_code, 401)
        self.assertEqual(self.activity.values, {})

    def test_verified_request_records_that_user_only(self):
        ada, ada_headers = self.sign_in("ada@engines.io")
        grace, _ = self.sign_in("grace@navy.mil")

        response = self.client.get("/api/users/me", headers=ada_headers)
        self.assertEqual(response.status_code, 200)

        self.assertIsNotNone(self.activity.last_activity(ada.uid))
        self.assertIsNone(self.activity.last_activity(grace.uid))

    def test_failed_request_is_not_recorded(self):
        _, headers = self.sign_in("ada@engines.io")
        response = self.client.post(
            "/api/admin/mentor-requests/missing/action",
            json={"action": "approve"},
            headers=headers,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(self.activity.values, {})

    def test_store_errors_do_not_fail_the_request(self):
        _, headers = self.sign_in("ada@engines.io")
        with patch.object(self.activity, "touch", side_effect=RuntimeError("down")):
            with self.assertLogs("innonexus.session", level="ERROR"):
                response = self.client.get("/api/users/me", headers=headers)
        self.assertEqual(response.status_code, 200)


class CleanupTokensTests(ApiTestCase):
    def settings(self, **overrides):
        values = {"cleanup_api_key": "s3cret", "cron_secret": None}
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_rejects_missing_or_wrong_secret(self):
        with patch("innonexus.routes.get_settings", return_value=self.settings()):
            for headers in ({}, {"Authorization": "Bearer wrong"}):
                response = self.client.post("/api/cleanup-tokens", headers=headers)
                self.assertEqual(response.status_code, 401)
                self.assertEqual(response.json(), {"error": "Unauthorized"})

    def test_unconfigured_secret_rejects_everything(self):
        settings = self.settings(cleanup_api_key=None)
        with patch("innonexus.routes.get_settings", return_value=settings):
            response = self.client.get(
                "/api/cleanup-tokens", headers={"Authorization": "Bearer "}
            )
        self.assertEqual(response.status_code, 401)

    def test_deletes_expired_tokens(self):
        EmailTokenService(self.store, ttl=timedelta(seconds=-1)).issue("r1", "m@x.io")
        EmailTokenService(self.store).issue("r2", "m@x.io")

        settings = self.settings(cleanup_api_key=None, cron_secret="cron")
        with patch("innonexus.routes.get_settings", return_value=settings):
            response = self.client.get(
                "/api/cleanup-tokens", headers={"Authorization": "Bearer cron"}
            )
            self.assertEqual(response.status_code, 200)
            self.assertEqual(
                response.json(),
                {"message": "Successfully cleaned up 1 expired tokens", "count": 1},
            )
            again = self.client.post(
                "/api/cleanup-tokens", headers={"Authorization": "Bearer cron"}
            )
        self.assertEqual(again.json(), {"message": "No expired tokens to clean up", "count": 0})
        self.assertEqual(len(self.store.list(EMAIL_TOKENS_COLLECTION)), 1)


class MentorRequestFlowTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin, self.admin_headers = self.sign_in("admin@tbi.io", role="admin")
        self.mentor, self.mentor_headers = self.sign_in(
            "grace@mentors.io", role="mentor", name="Grace Hopper"
        )
        self.store.set(
            MENTORS_COLLECTION,
            self.mentor.uid,
            {"name": "Grace Hopper", "email": "grace@mentors.io"},
        )
        self.user, self.user_headers = self.sign_in("ada@founders.io", name="Ada")

    def submit(self):
        response = self.client.post(
            "/api/mentor-requests",
            json={"mentorId": self.mentor.uid, "requestMessage": "Help with fundraising please"},
            headers=self.user_headers,
        )
        self.assertEqual(response.status_code, 201)
        return response.json()["requestId"]

    def admin_approve(self, request_id):
        return self.client.post(
            f"/api/admin/mentor-requests/{request_id}/action",
            json={"action": "approve"},
            headers=self.admin_headers,
        )

    def token_for(self, request_id, action):
        for doc_id, data in self.store.list(EMAIL_TOKENS_COLLECTION):
            if data["requestId"] == request_id and data.get("action") == action:
                return doc_id
        self.fail("token not issued")

    def test_duplicate_request_rejected(self):
        self.submit()
        response = self.client.post(
            "/api/mentor-requests",
            json={"mentorId": self.mentor.uid, "requestMessage": "Help with fundraising please"},
            headers=self.user_headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(
            response.json()["message"], "You already have a pending request for this mentor"
        )

    def test_admin_endpoints_require_admin(self):
        request_id = self.submit()
        response = self.client.post(
            f"/api/admin/mentor-requests/{request_id}/action",
            json={"action": "approve"},
            headers=self.user_headers,
        )
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()["message"], "Admin access required")

    def test_invalid_action_is_bad_request(self):
        request_id = self.submit()
        response = self.client.post(
            f"/api/admin/mentor-requests/{request_id}/action",
            json={"action": "maybe"},
            headers=self.admin_headers,
        )
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()["message"].startswith("Invalid input data: action"))

    def test_full_flow_through_portal(self):
        request_id = self.submit()
        response = self.admin_approve(request_id)
        self.assertEqual(
            response.json(),
            {"success": True, "message": "Request approved and mentor has been notified."},
        )
        self.assertEqual(self.admin_approve(request_id).status_code, 409)

        details = self.client.get(
            f"/api/mentor/requests/{request_id}", headers=self.mentor_headers
        ).json()
        self.assertEqual(details["request"]["status"], "admin_approved")
        self.assertEqual(details["userDetails"]["name"], "Ada")

        response = self.client.post(
            f"/api/mentor/requests/{request_id}/decision",
            json={"action": "approve", "notes": "Let's talk Friday"},
            headers=self.mentor_headers,
        )
        self.assertEqual(response.status_code, 200)

        mentees = self.client.get("/api/mentor/mentees", headers=self.mentor_headers).json()
        self.assertEqual([m["userId"] for m in mentees["mentees"]], [self.user.uid])
        mentee = self.client.get(
            f"/api/mentor/mentees/{self.user.uid}", headers=self.mentor_headers
        )
        self.assertEqual(mentee.json()["data"]["email"], "ada@founders.io")

        count = self.client.get("/api/notifications/unread-count", headers=self.user_headers)
        self.assertEqual(count.json(), {"count": 2})
        requests = self.client.get("/api/mentor-requests", headers=self.user_headers).json()
        self.assertEqual(requests[0]["status"], "mentor_approved")

    def test_other_mentor_cannot_decide(self):
        request_id = self.submit()
        self.admin_approve(request_id)
        _, other_headers = self.sign_in("other@mentors.io", role="mentor")
        response = self.client.post(
            f"/api/mentor/requests/{request_id}/decision",
            json={"action": "approve"},
            headers=other_headers,
        )
        self.assertEqual(response.status_code, 403)

    def test_email_action_links(self):
        request_id = self.submit()
        self.admin_approve(request_id)
        reject_token = self.token_for(request_id, "reject")

        preview = self.client.get(f"/api/email-actions/{reject_token}")
        self.assertEqual(preview.status_code, 200)
        self.assertEqual(preview.json()["action"], "reject")
        self.assertEqual(preview.json()["request"]["status"], "admin_approved")

        mismatch = self.client.post(
            f"/api/email-actions/{reject_token}", json={"action": "approve"}
        )
        self.assertEqual(mismatch.status_code, 400)

        response = self.client.post(f"/api/email-actions/{reject_token}")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["status"], "mentor_rejected")

        reused = self.client.post(f"/api/email-actions/{reject_token}")
        self.assertEqual(reused.status_code, 409)
        self.assertEqual(reused.json()["message"], "Token has already been used")
        self.assertEqual(self.client.get("/api/email-actions/unknown").status_code, 404)

    def test_notifications_mark_read(self):
        request_id = self.submit()
        self.client.post(
            f"/api/admin/mentor-requests/{request_id}/action",
            json={"action": "reject", "notes": "Mentor is at capacity"},
            headers=self.admin_headers,
        )
        notifications = self.client.get("/api/notifications", headers=self.user_headers).json()
        self.assertEqual(len(notifications), 1)
        notification_id = notifications[0]["id"]

        forbidden = self.client.post(
            f"/api/notifications/{notification_id}/read", headers=self.mentor_headers
        )
        self.assertEqual(forbidden.status_code, 403)
        response = self.client.post(
            f"/api/notifications/{notification_id}/read", headers=self.user_headers
        )
        self.assertTrue(response.json()["success"])
        self.assertEqual(
            self.client.post("/api/notifications/read-all", headers=self.user_headers).json(),
            {"success": True, "count": 0},
        )


class AdminConsoleTests(ApiTestCase):
    def setUp(self):
        super().setUp()
        self.admin, self.headers = self.sign_in("admin@tbi.io", role="admin")

    def test_process_submission(self):
        submission_id = self.client.post("/api/contact-submissions", json=SUBMISSION).json()["id"]

        listed = self.client.get("/api/admin/submissions", headers=self.headers).json()
        self.assertEqual([s["id"] for s in listed], [submission_id])

        response = self.client.post(
            f"/api/admin/submissions/{submission_id}/process",
            json={"action": "accept"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["email"]["to"], "ada@engines.io")
        self.assertEqual(len(payload["temporaryPassword"]), 10)
        self.assertEqual(len(self.mailer.outbox), 1)

        again = self.client.post(
            f"/api/admin/submissions/{submission_id}/process",
            json={"action": "reject"},
            headers=self.headers,
        )
        self.assertEqual(again.status_code, 409)

    def test_event_crud(self):
        response = self.client.post("/api/admin/events", json=EVENT, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        event_id = response.json()["eventId"]

        public = self.client.get("/api/events").json()
        self.assertEqual(public[0]["registrationLink"], "https://forms.test/demo-day")
        self.assertEqual(public[0]["status"], "approved")

        updated = self.client.put(
            f"/api/admin/events/{event_id}",
            json={"status": "pending", "venue": "Hall B"},
            headers=self.headers,
        ).json()
        self.assertEqual(updated["venue"], "Hall B")
        self.assertEqual(updated["title"], "Demo Day")
        self.assertEqual(self.client.get("/api/events").json(), [])

        deleted = self.client.delete(f"/api/admin/events/{event_id}", headers=self.headers)
        self.assertTrue(deleted.json()["success"])
        missing = self.client.delete(f"/api/admin/events/{event_id}", headers=self.headers)
        self.assertEqual(missing.status_code, 404)

    def test_event_validation(self):
        response = self.client.post(
            "/api/admin/events", json={**EVENT, "time": "25:00"}, headers=self.headers
        )
        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.json()["success"])

    def test_create_mentor(self):
        response = self.client.post(
            "/api/admin/mentors",
            json={
                "name": "Grace Hopper",
                "designation": "Rear Admiral",
                "expertise": "Compilers",
                "description": "Invented the first compiler.",
                "email": "grace@mentors.io",
                "password": "hopper1",
            },
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 201)
        mentor_id = response.json()["mentorId"]
        self.assertEqual(self.store.get(USERS_COLLECTION, mentor_id)["role"], "mentor")
        profile = self.store.get(mentor_profile_collection(mentor_id), "details")
        self.assertTrue(profile["profilePictureUrl"].startswith("https://placehold.co/"))

        duplicate = self.client.post(
            "/api/admin/mentors",
            json={
                "name": "Grace Again",
                "designation": "Rear Admiral",
                "expertise": "Compilers",
                "description": "Invented the first compiler.",
                "email": "grace@mentors.io",
                "password": "hopper1",
            },
            headers=self.headers,
        )
        self.assertEqual(duplicate.status_code, 400)

    def test_startup_crud(self):
        response = self.client.post("/api/admin/startups", json=STARTUP, headers=self.headers)
        self.assertEqual(response.status_code, 201)
        startup_id = response.json()["startupId"]

        listed = self.client.get("/api/startups").json()
        self.assertTrue(listed[0]["logoUrl"].startswith("https://placehold.co/"))

        updated = self.client.put(
            f"/api/admin/startups/{startup_id}",
            json={**STARTUP, "status": "Graduated"},
            headers=self.headers,
        ).json()
        self.assertEqual(updated["status"], "Graduated")
        self.assertEqual(
            self.client.delete(f"/api/admin/startups/{startup_id}", headers=self.headers).status_code,
            200,
        )

    def test_delete_auth_user(self):
        target, _ = self.sign_in("leaving@x.io")
        missing = self.client.request(
            "DELETE", "/api/admin/delete-auth-user", json={}, headers=self.headers
        )
        self.assertEqual(missing.status_code, 400)
        self.assertEqual(missing.json()["message"], "UID is required")

        response = self.client.request(
            "DELETE",
            "/api/admin/delete-auth-user",
            json={"uid": target.uid},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertNotIn(target.uid, self.identity.users)

    def test_migrate_mentors(self):
        self.store.set(MENTORS_COLLECTION, "m1", {"name": "Grace", "expertise": "Compilers"})
        info = self.client.get("/api/admin/migrate-mentors")
        self.assertEqual(info.json()["message"], "Mentor Migration API")

        response = self.client.post("/api/admin/migrate-mentors", headers=self.headers)
        payload = response.json()
        self.assertEqual(payload["message"], "Migration completed successfully!")
        self.assertEqual(payload["migratedCount"], 1)
        again = self.client.post("/api/admin/migrate-mentors", headers=self.headers).json()
        self.assertEqual((again["migratedCount"], again["skippedCount"]), (0, 1))

    def test_update_credentials(self):
        response = self.client.put(
            "/api/admin/settings/credentials",
            json={"newEmail": "boss@tbi.io", "newPassword": "longenough"},
            headers=self.headers,
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.identity.users[self.admin.uid].email, "boss@tbi.io")
        self.assertEqual(self.identity.passwords[self.admin.uid], "longenough")

    def test_user_profile_updates(self):
        user, headers = self.sign_in("ada@founders.io")
        response = self.client.put(
            "/api/users/me/profile",
            json={"firstName": "Ada", "lastName": "Lovelace"},
            headers=headers,
        )
        self.assertEqual(response.json()["data"]["name"], "Ada Lovelace")
        self.client.put(
            "/api/users/me/notification-preferences",
            json={"emailNotifications": False},
            headers=headers,
        )
        me = self.client.get("/api/users/me", headers=headers).json()
        self.assertFalse(me["notificationPreferences"]["emailNotifications"])


if __name__ == "__main__":
    unittest.main()
