import unittest
from unittest.mock import patch

from firebase_admin import auth

from innonexus.constants import USERS_COLLECTION
from innonexus.errors import AuthenticationError, NotFoundError, ValidationError
from innonexus.identity import FirebaseIdentityProvider, InMemoryIdentityProvider
from innonexus.records import Role
from innonexus.store import InMemoryDocumentStore
from innonexus.users import delete_auth_user, get_user, resolve_role


class RoleTests(unittest.TestCase):
    def setUp(self):
        self.store = InMemoryDocumentStore()

    def test_role_from_user_document(self):
        self.store.set(USERS_COLLECTION, "m1", {"role": "mentor"})
        self.assertEqual(resolve_role(self.store, "m1"), Role.MENTOR)

    def test_admin_claim_wins(self):
        self.store.set(USERS_COLLECTION, "u1", {"role": "user"})
        self.assertEqual(resolve_role(self.store, "u1", {"admin": True}), Role.ADMIN)

    def test_unknown_or_missing_role_is_user(self):
        self.store.set(USERS_COLLECTION, "odd", {"role": "superuser"})
        with self.assertLogs("innonexus.users", level="WARNING"):
            self.assertEqual(resolve_role(self.store, "odd"), Role.USER)
        self.assertEqual(resolve_role(self.store, "ghost"), Role.USER)

    def test_get_user(self):
        self.store.set(USERS_COLLECTION, "u1", {"email": "ada@x.io", "skills": ["python"]})
        profile = get_user(self.store, "u1")
        self.assertEqual(profile.email, "ada@x.io")
        self.assertEqual(profile.skills, ["python"])
        with self.assertRaises(NotFoundError):
            get_user(self.store, "missing")


class IdentityProviderTests(unittest.TestCase):
    def test_in_memory_tokens(self):
        identity = InMemoryIdentityProvider()
        user = identity.create_user("ada@x.io", "secret1")
        token = identity.issue_token(user.uid)

        self.assertEqual(identity.verify_id_token(token)["uid"], user.uid)
        delete_auth_user(identity, user.uid)
        with self.assertRaises(AuthenticationError):
            identity.verify_id_token(token)
        with self.assertRaises(ValidationError):
            delete_auth_user(identity, None)

    @patch("innonexus.identity.auth.delete_user")
    def test_firebase_missing_user(self, delete_user):
        delete_user.side_effect = auth.UserNotFoundError("no user")
        with self.assertRaises(NotFoundError):
            FirebaseIdentityProvider().delete_user("uid-1")

    @patch("innonexus.identity.auth.create_user")
    def test_firebase_duplicate_email(self, create_user):
        create_user.side_effect = auth.EmailAlreadyExistsError("taken", None, None)
        with self.assertRaises(ValidationError):
            FirebaseIdentityProvider().create_user("ada@x.io", "secret1")


if __name__ == "__main__":
    unittest.main()
