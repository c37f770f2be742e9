"""
Identity provider abstraction over Firebase Auth, with an in-memory double.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

from firebase_admin import auth

from innonexus.errors import (
    AuthenticationError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


@dataclass
class AuthUser:
    uid: str
    email: str
    display_name: Optional[str] = None


class IdentityProvider(Protocol):
    """Operations the API needs from the identity provider."""

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        ...

    def update_user(
        self, uid: str, *, email: Optional[str] = None, password: Optional[str] = None
    ) -> AuthUser:
        ...

    def delete_user(self, uid: str) -> None:
        ...

    def verify_id_token(self, id_token: str) -> dict:
        ...


@dataclass
class InMemoryIdentityProvider:
    """Test double; ID tokens are issued with ``issue_token``."""

    users: Dict[str, AuthUser] = field(default_factory=dict)
    passwords: Dict[str, str] = field(default_factory=dict)
    tokens: Dict[str, str] = field(default_factory=dict)

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        if any(u.email == email for u in self.users.values()):
            raise ValidationError(
                "This email is already registered. Please use a different email.",
                field="email",
            )
        user = AuthUser(uid=uuid.uuid4().hex[:28], email=email, display_name=display_name)
        self.users[user.uid] = user
        self.passwords[user.uid] = password
        return user

    def update_user(
        self, uid: str, *, email: Optional[str] = None, password: Optional[str] = None
    ) -> AuthUser:
        user = self.users.get(uid)
        if not user:
            raise NotFoundError(f"No auth user with uid {uid}")
        if email:
            user.email = email
        if password:
            self.passwords[uid] = password
        return user

    def delete_user(self, uid: str) -> None:
        if uid not in self.users:
            raise NotFoundError(f"No auth user with uid {uid}")
        del self.users[uid]
        self.passwords.pop(uid, None)

    def issue_token(self, uid: str) -> str:
        token = uuid.uuid4().hex
        self.tokens[token] = uid
        return token

    def verify_id_token(self, id_token: str) -> dict:
        uid = self.tokens.get(id_token)
        if not uid or uid not in self.users:
            raise AuthenticationError("Invalid or expired ID token")
        return {"uid": uid, "email": self.users[uid].email}

    def reset(self) -> None:
        self.users.clear()
        self.passwords.clear()
        self.tokens.clear()


class FirebaseIdentityProvider:
    """Firebase Auth through the Admin SDK."""

    def __init__(self, app=None):
        self.app = app

    @staticmethod
    def _to_auth_user(record) -> AuthUser:
        return AuthUser(
            uid=record.uid, email=record.email, display_name=record.display_name
        )

    def create_user(
        self, email: str, password: str, display_name: Optional[str] = None
    ) -> AuthUser:
        try:
            record = auth.create_user(
                email=email, password=password, display_name=display_name, app=self.app
            )
        except auth.EmailAlreadyExistsError:
            raise ValidationError(
                "This email is already registered. Please use a different email.",
                field="email",
            )
        return self._to_auth_user(record)

    def update_user(
        self, uid: str, *, email: Optional[str] = None, password: Optional[str] = None
    ) -> AuthUser:
        kwargs = {}
        if email:
            kwargs["email"] = email
        if password:
            kwargs["password"] = password
        try:
            record = auth.update_user(uid, app=self.app, **kwargs)
        except auth.UserNotFoundError:
            raise NotFoundError(f"No auth user with uid {uid}")
        return self._to_auth_user(record)

    def delete_user(self, uid: str) -> None:
        try:
            auth.delete_user(uid, app=self.app)
        except auth.UserNotFoundError:
            raise NotFoundError(f"No auth user with uid {uid}")
        logger.info("Deleted Firebase Auth user %s", uid)

    def verify_id_token(self, id_token: str) -> dict:
        try:
            return auth.verify_id_token(id_token, app=self.app)
        except (auth.InvalidIdTokenError, auth.ExpiredIdTokenError, auth.RevokedIdTokenError):
            raise AuthenticationError("Invalid or expired ID token")
