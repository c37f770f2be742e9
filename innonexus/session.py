"""
Session keeper: refreshes the signed-in user's Firebase ID token on a timer
and tracks idle time through a shared ``ActivityStore``.

The manager is owned by whoever creates it. Call ``start()`` once, feed it
``on_auth_state_changed`` as users sign in and out, and ``stop()`` on logout
or shutdown (or use it as a context manager).
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import requests
from starlette.middleware.base import BaseHTTPMiddleware

from innonexus.activity import ActivityStore

logger = logging.getLogger(__name__)

TOKEN_REFRESH_INTERVAL = 30 * 60
ACTIVITY_CHECK_INTERVAL = 5 * 60
MAX_INACTIVE_TIME = 2 * 60 * 60
MAX_SESSION_TIME = 24 * 60 * 60

SECURE_TOKEN_URL = "https://securetoken.googleapis.com/v1/token"


@dataclass
class SessionUser:
    uid: str
    refresh_token: str
    id_token: Optional[str] = None


class TokenRefresher(Protocol):
    def refresh(self, user: SessionUser) -> str:
        """Return a fresh ID token for ``user``."""
        ...


class FirebaseTokenRefresher:
    """Exchanges a refresh token at the Firebase secure-token endpoint."""

    def __init__(self, api_key: str, timeout: float = 10.0, session=None):
        self.api_key = api_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def refresh(self, user: SessionUser) -> str:
        response = self.session.post(
            SECURE_TOKEN_URL,
            params={"key": self.api_key},
            data={"grant_type": "refresh_token", "refresh_token": user.refresh_token},
            timeout=self.timeout,
        )
        response.raise_for_status()
        payload = response.json()
        user.id_token = payload["id_token"]
        user.refresh_token = payload.get("refresh_token", user.refresh_token)
        return user.id_token


class RepeatingTimer(threading.Timer):
    """``threading.Timer`` that fires every ``interval`` until cancelled."""

    def __init__(self, interval: float, function: Callable, args=None, kwargs=None):
        super().__init__(interval, function, args=args, kwargs=kwargs)
        self.daemon = True

    def run(self):
        while not self.finished.wait(self.interval):
            self.function(*self.args, **self.kwargs)


class SessionManager:
    def __init__(
        self,
        refresher: TokenRefresher,
        activity_store: ActivityStore,
        current_user: Optional[Callable[[], Optional[SessionUser]]] = None,
        *,
        refresh_interval: float = TOKEN_REFRESH_INTERVAL,
        check_interval: float = ACTIVITY_CHECK_INTERVAL,
        max_inactive: float = MAX_INACTIVE_TIME,
        max_session: float = MAX_SESSION_TIME,
        clock: Callable[[], float] = time.time,
    ):
        self.refresher = refresher
        self.activity_store = activity_store
        self.current_user_provider = current_user
        self.refresh_interval = refresh_interval
        self.check_interval = check_interval
        self.max_inactive = max_inactive
        self.max_session = max_session
        self.clock = clock

        self._user: Optional[SessionUser] = None
        self._created_at = clock()
        self._lock = threading.Lock()
        self._refresh_timer: Optional[RepeatingTimer] = None
        self._check_timer: Optional[RepeatingTimer] = None

    def __enter__(self) -> "SessionManager":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.stop()

    @property
    def current_user(self) -> Optional[SessionUser]:
        if self.current_user_provider is not None:
            return self.current_user_provider()
        return self._user

    @property
    def refreshing(self) -> bool:
        return self._refresh_timer is not None

    @property
    def checking(self) -> bool:
        return self._check_timer is not None

    def start(self) -> None:
        with self._lock:
            if self._check_timer is None:
                self._check_timer = RepeatingTimer(
                    self.check_interval, self._check_activity
                )
                self._check_timer.start()
        if self.current_user is not None:
            self._start_token_refresh()

    def on_auth_state_changed(self, user: Optional[SessionUser]) -> None:
        self._user = user
        if user is not None:
            self._start_token_refresh()
        else:
            self._stop_token_refresh()

    def _start_token_refresh(self) -> None:
        with self._lock:
            if self._refresh_timer is not None:
                self._refresh_timer.cancel()
            self._refresh_timer = RepeatingTimer(
                self.refresh_interval, self._refresh_tick
            )
            self._refresh_timer.start()
        logger.info("Token refresh started (every %ss)", self.refresh_interval)

    def _stop_token_refresh(self) -> None:
        with self._lock:
            timer, self._refresh_timer = self._refresh_timer, None
        if timer is not None:
            timer.cancel()
            logger.info("Token refresh stopped")

    def _refresh_tick(self) -> None:
        if self.force_token_refresh():
            self.record_activity()

    def _check_activity(self) -> None:
        if self.time_since_last_activity() > self.max_inactive:
            logger.info("User inactive for over %ss, refreshing token", self.max_inactive)
            self.force_token_refresh()

    def record_activity(self) -> Optional[float]:
        user = self.current_user
        if user is None:
            return None
        return self.activity_store.touch(user.uid, self.clock())

    def force_token_refresh(self) -> bool:
        """Refresh the present user's token. Returns False on failure."""
        user = self.current_user
        if user is None:
            return False
        try:
            self.refresher.refresh(user)
        except Exception:
            logger.exception("Token refresh failed for user %s", user.uid)
            return False
        logger.info("Token refreshed for user %s", user.uid)
        return True

    def time_since_last_activity(self) -> float:
        user = self.current_user
        last = self.activity_store.last_activity(user.uid) if user else None
        if last is None:
            last = self._created_at
        return self.clock() - last

    def is_session_valid(self) -> bool:
        return (
            self.current_user is not None
            and self.time_since_last_activity() < self.max_session
        )

    def stop(self) -> None:
        self._stop_token_refresh()
        with self._lock:
            timer, self._check_timer = self._check_timer, None
        if timer is not None:
            timer.cancel()


class ActivityMiddleware(BaseHTTPMiddleware):
    """Records activity for the user whose ID token a request verified.

    ``get_current_claims`` sets ``request.state.activity_uid`` once the token
    checks out. Unauthenticated or failed requests are not counted.
    """

    def __init__(self, app, get_activity_store: Callable[[], ActivityStore]):
        super().__init__(app)
        self.get_activity_store = get_activity_store

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        uid = getattr(request.state, "activity_uid", None)
        if uid and response.status_code < 400:
            try:
                self.get_activity_store().touch(uid)
            except Exception:
                logger.exception("Failed to record activity for user %s", uid)
        return response
