"""
Single-use, time-limited email tokens that let a mentor act on a request
from a link without signing in.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from innonexus.constants import EMAIL_TOKENS_COLLECTION
from innonexus.errors import (
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenNotFoundError,
)
from innonexus.records import EmailToken, TokenAction
from innonexus.store import DocumentStore, Filter

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TTL = timedelta(days=7)
TOKEN_BYTES = 32


class TokenFailure(str, Enum):
    NOT_FOUND = "not_found"
    EXPIRED = "expired"
    ALREADY_USED = "already_used"


_FAILURE_ERRORS = {
    TokenFailure.NOT_FOUND: TokenNotFoundError,
    TokenFailure.EXPIRED: TokenExpiredError,
    TokenFailure.ALREADY_USED: TokenAlreadyUsedError,
}


@dataclass
class TokenVerification:
    valid: bool
    token: Optional[EmailToken] = None
    failure: Optional[TokenFailure] = None

    def raise_for_failure(self) -> None:
        if self.failure is not None:
            raise _FAILURE_ERRORS[self.failure]()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _is_expired(token: EmailToken, now: datetime) -> bool:
    return token.expires_at is None or now > token.expires_at


class EmailTokenService:
    def __init__(self, store: DocumentStore, ttl: timedelta = DEFAULT_TOKEN_TTL):
        self.store = store
        self.ttl = ttl

    def issue(
        self,
        request_id: str,
        mentor_email: str,
        action: Optional[TokenAction] = None,
    ) -> str:
        """Create a token and return its id."""
        token_id = secrets.token_hex(TOKEN_BYTES)
        now = _now()
        token = EmailToken(
            id=token_id,
            request_id=request_id,
            mentor_email=mentor_email,
            created_at=now,
            expires_at=now + self.ttl,
            used=False,
            action=action,
        )
        self.store.set(EMAIL_TOKENS_COLLECTION, token_id, token.as_document())
        return token_id

    def _load(self, token_id: str) -> Optional[EmailToken]:
        if not token_id:
            return None
        data = self.store.get(EMAIL_TOKENS_COLLECTION, token_id)
        if data is None:
            return None
        return EmailToken.from_document(token_id, data)

    def verify(self, token_id: str) -> TokenVerification:
        """
        Check a token without consuming it. Expired tokens are deleted as a
        side effect.
        """
        token = self._load(token_id)
        if token is None:
            return TokenVerification(valid=False, failure=TokenFailure.NOT_FOUND)

        if _is_expired(token, _now()):
            self.store.delete(EMAIL_TOKENS_COLLECTION, token_id)
            logger.info("Deleted expired email token for request %s", token.request_id)
            return TokenVerification(
                valid=False, token=token, failure=TokenFailure.EXPIRED
            )

        if token.used:
            return TokenVerification(
                valid=False, token=token, failure=TokenFailure.ALREADY_USED
            )

        return TokenVerification(valid=True, token=token)

    def consume(self, token_id: str) -> None:
        """Mark a token as used."""
        if not self.store.update(EMAIL_TOKENS_COLLECTION, token_id, {"used": True}):
            raise TokenNotFoundError()

    def claim(self, token_id: str) -> EmailToken:
        """
        Verify and consume in one step. The ``used`` flag is flipped with a
        conditional update, so concurrent claims of the same token succeed at
        most once.
        """
        verification = self.verify(token_id)
        verification.raise_for_failure()

        result = self.store.compare_and_set(
            EMAIL_TOKENS_COLLECTION, token_id, "used", False, {"used": True}
        )
        if not result.applied:
            if not result.exists:
                raise TokenNotFoundError()
            raise TokenAlreadyUsedError()

        token = verification.token
        token.used = True
        return token

    def cleanup_expired(self) -> int:
        """Delete every token whose expiry has passed. Returns the count."""
        expired = self.store.query(
            EMAIL_TOKENS_COLLECTION, [Filter("expiresAt", "<", _now())]
        )
        if not expired:
            return 0
        count = self.store.delete_many(
            EMAIL_TOKENS_COLLECTION, [doc_id for doc_id, _ in expired]
        )
        logger.info("Cleaned up %d expired email tokens", count)
        return count
