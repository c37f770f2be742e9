"""
Dependency wiring for the FastAPI app.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable, Optional

from fastapi import Depends, Header, Request
from firebase_admin import firestore

from innonexus.activity import ActivityStore, InMemoryActivityStore, RedisActivityStore
from innonexus.config import get_settings
from innonexus.errors import (
    AuthenticationError,
    PermissionDeniedError,
    ValidationError,
)
from innonexus.firebase import get_firebase_app
from innonexus.identity import (
    AuthUser,
    FirebaseIdentityProvider,
    IdentityProvider,
    InMemoryIdentityProvider,
)
from innonexus.mailer import LoggingMailer, Mailer, ResendMailer
from innonexus.mentor_requests import MentorRequestWorkflow
from innonexus.records import Role
from innonexus.session import FirebaseTokenRefresher, SessionManager, SessionUser
from innonexus.store import DocumentStore, FirestoreDocumentStore, InMemoryDocumentStore
from innonexus.tokens import EmailTokenService
from innonexus.users import resolve_role

_store: DocumentStore | None = None
_mailer: Mailer | None = None
_identity: IdentityProvider | None = None
_activity_store: ActivityStore | None = None


def _use_firebase() -> bool:
    settings = get_settings()
    return settings.firebase_configured and not settings.use_in_memory_backends


def get_store() -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _store
    if _store:
        return _store

    if _use_firebase():
        _store = FirestoreDocumentStore(firestore.client(get_firebase_app(get_settings())))
    else:
        _store = InMemoryDocumentStore()
    return _store


def get_mailer() -> Mailer:
    global _mailer
    if _mailer:
        return _mailer

    settings = get_settings()
    if settings.resend_api_key:
        _mailer = ResendMailer(
            api_key=settings.resend_api_key, from_email=settings.resend_from_email
        )
    else:
        _mailer = LoggingMailer()
    return _mailer


def get_identity_provider() -> IdentityProvider:
    global _identity
    if _identity:
        return _identity

    if _use_firebase():
        _identity = FirebaseIdentityProvider(get_firebase_app(get_settings()))
    else:
        _identity = InMemoryIdentityProvider()
    return _identity


def get_activity_store() -> ActivityStore:
    global _activity_store
    if _activity_store:
        return _activity_store

    settings = get_settings()
    if settings.redis_url:
        _activity_store = RedisActivityStore(
            url=settings.redis_url, prefix=settings.redis_activity_prefix
        )
    else:
        _activity_store = InMemoryActivityStore()
    return _activity_store


def create_session_manager(
    current_user: Optional[Callable[[], Optional[SessionUser]]] = None,
) -> SessionManager:
    """Session keeper wired to the configured refresher and activity store."""
    settings = get_settings()
    if not settings.firebase_web_api_key:
        raise ValidationError(
            "FIREBASE_WEB_API_KEY is required for token refresh",
            field="FIREBASE_WEB_API_KEY",
        )
    return SessionManager(
        FirebaseTokenRefresher(settings.firebase_web_api_key),
        get_activity_store(),
        current_user,
        refresh_interval=settings.session_refresh_interval,
        check_interval=settings.session_check_interval,
        max_inactive=settings.session_max_inactive,
        max_session=settings.session_max_age,
    )


def get_token_service(store: DocumentStore = Depends(get_store)) -> EmailTokenService:
    return EmailTokenService(store, ttl=timedelta(days=get_settings().email_token_ttl_days))


def get_workflow(
    store: DocumentStore = Depends(get_store),
    mailer: Mailer = Depends(get_mailer),
    tokens: EmailTokenService = Depends(get_token_service),
) -> MentorRequestWorkflow:
    settings = get_settings()
    return MentorRequestWorkflow(
        store, mailer, tokens, app_url=settings.app_url, api_prefix=settings.api_prefix
    )


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise AuthenticationError("Missing bearer token")
    return authorization.split(" ", 1)[1].strip()


def get_current_claims(
    request: Request,
    authorization: Optional[str] = Header(default=None),
    identity: IdentityProvider = Depends(get_identity_provider),
) -> dict:
    claims = identity.verify_id_token(_bearer_token(authorization))
    # Read by ActivityMiddleware once the response is known.
    request.state.activity_uid = claims["uid"]
    return claims


def get_current_user(claims: dict = Depends(get_current_claims)) -> AuthUser:
    return AuthUser(
        uid=claims["uid"],
        email=claims.get("email", ""),
        display_name=claims.get("name"),
    )


def get_current_role(
    claims: dict = Depends(get_current_claims),
    store: DocumentStore = Depends(get_store),
) -> Role:
    return resolve_role(store, claims["uid"], claims)


def require_admin(
    user: AuthUser = Depends(get_current_user),
    role: Role = Depends(get_current_role),
) -> AuthUser:
    if role != Role.ADMIN:
        raise PermissionDeniedError("Admin access required")
    return user


def require_mentor(
    user: AuthUser = Depends(get_current_user),
    role: Role = Depends(get_current_role),
) -> AuthUser:
    if role != Role.MENTOR:
        raise PermissionDeniedError("Mentor access required")
    return user
