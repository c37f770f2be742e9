import threading
import unittest
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import requests
from redis import exceptions as redis_exceptions

from innonexus.activity import InMemoryActivityStore, RedisActivityStore
from innonexus.dependencies import create_session_manager
from innonexus.errors import ValidationError
from innonexus.session import (
    SECURE_TOKEN_URL,
    FirebaseTokenRefresher,
    RepeatingTimer,
    SessionManager,
    SessionUser,
)


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class SessionManagerTests(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.refresher = MagicMock()
        self.activity = InMemoryActivityStore()
        self.user = SessionUser(uid="u1", refresh_token="r1")
        self.manager = SessionManager(
            self.refresher,
            self.activity,
            current_user=lambda: self.user,
            max_inactive=100,
            max_session=1000,
            clock=self.clock,
        )

    def tearDown(self):
        self.manager.stop()

    def test_force_refresh(self):
        self.assertTrue(self.manager.force_token_refresh())
        self.refresher.refresh.assert_called_once_with(self.user)

    def test_force_refresh_failure_is_reported(self):
        self.refresher.refresh.side_effect = requests.HTTPError("400")
        with self.assertLogs("innonexus.session", level="ERROR"):
            self.assertFalse(self.manager.force_token_refresh())

    def test_force_refresh_without_user(self):
        self.user = None
        self.assertFalse(self.manager.force_token_refresh())
        self.refresher.refresh.assert_not_called()

    def test_refresh_tick_records_activity(self):
        self.clock.advance(50)
        self.manager._refresh_tick()
        self.assertEqual(self.activity.last_activity("u1"), self.clock.now)

    def test_failed_refresh_does_not_record_activity(self):
        self.refresher.refresh.side_effect = RuntimeError("offline")
        self.manager._refresh_tick()
        self.assertIsNone(self.activity.last_activity("u1"))

    def test_idle_time_falls_back_to_creation(self):
        self.clock.advance(30)
        self.assertEqual(self.manager.time_since_last_activity(), 30)
        self.manager.record_activity()
        self.clock.advance(5)
        self.assertEqual(self.manager.time_since_last_activity(), 5)

    def test_other_users_activity_is_ignored(self):
        self.clock.advance(150)
        self.activity.touch("u2", self.clock.now)
        self.assertEqual(self.manager.time_since_last_activity(), 150)

        self.manager._check_activity()
        self.refresher.refresh.assert_called_once_with(self.user)

    def test_record_activity_without_user(self):
        self.user = None
        self.assertIsNone(self.manager.record_activity())
        self.assertEqual(self.activity.values, {})

    def test_check_activity_refreshes_after_idle(self):
        self.manager.record_activity()
        self.clock.advance(50)
        self.manager._check_activity()
        self.refresher.refresh.assert_not_called()

        self.clock.advance(51)
        self.manager._check_activity()
        self.refresher.refresh.assert_called_once()

    def test_session_validity(self):
        self.manager.record_activity()
        self.assertTrue(self.manager.is_session_valid())
        self.clock.advance(1000)
        self.assertFalse(self.manager.is_session_valid())
        self.manager.record_activity()
        self.user = None
        self.assertFalse(self.manager.is_session_valid())

    def test_start_and_stop_timers(self):
        self.manager.start()
        self.assertTrue(self.manager.checking)
        self.assertTrue(self.manager.refreshing)

        self.manager.stop()
        self.assertFalse(self.manager.checking)
        self.assertFalse(self.manager.refreshing)

    def test_auth_state_changes_toggle_refresh(self):
        manager = SessionManager(self.refresher, self.activity, clock=self.clock)
        with manager:
            self.assertTrue(manager.checking)
            self.assertFalse(manager.refreshing)

            manager.on_auth_state_changed(self.user)
            self.assertIs(manager.current_user, self.user)
            self.assertTrue(manager.refreshing)

            manager.on_auth_state_changed(None)
            self.assertIsNone(manager.current_user)
            self.assertFalse(manager.refreshing)
        self.assertFalse(manager.checking)


class SessionFactoryTests(unittest.TestCase):
    def settings(self, **overrides):
        values = {
            "firebase_web_api_key": "web-key",
            "session_refresh_interval": 60.0,
            "session_check_interval": 10.0,
            "session_max_inactive": 120.0,
            "session_max_age": 3600.0,
            "redis_url": None,
            "redis_activity_prefix": "innonexus:last_activity",
        }
        values.update(overrides)
        return SimpleNamespace(**values)

    def test_uses_configured_timings(self):
        with patch("innonexus.dependencies.get_settings", return_value=self.settings()):
            manager = create_session_manager()
        self.assertIsInstance(manager.refresher, FirebaseTokenRefresher)
        self.assertEqual(manager.refresher.api_key, "web-key")
        self.assertEqual(manager.refresh_interval, 60.0)
        self.assertEqual(manager.max_session, 3600.0)

    def test_requires_web_api_key(self):
        settings = self.settings(firebase_web_api_key=None)
        with patch("innonexus.dependencies.get_settings", return_value=settings):
            with self.assertRaises(ValidationError):
                create_session_manager()


class RepeatingTimerTests(unittest.TestCase):
    def test_fires_repeatedly_until_cancelled(self):
        fired = threading.Event()
        calls = []

        def tick():
            calls.append(1)
            if len(calls) >= 3:
                fired.set()

        timer = RepeatingTimer(0.01, tick)
        timer.start()
        self.assertTrue(fired.wait(2))
        timer.cancel()
        timer.join(1)
        self.assertFalse(timer.is_alive())
        self.assertTrue(timer.daemon)


class FirebaseTokenRefresherTests(unittest.TestCase):
    def test_refresh_updates_tokens(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {
            "id_token": "new-id",
            "refresh_token": "new-refresh",
        }
        user = SessionUser(uid="u1", refresh_token="old-refresh")

        token = FirebaseTokenRefresher("api-key", session=session).refresh(user)

        self.assertEqual(token, "new-id")
        self.assertEqual(user.refresh_token, "new-refresh")
        session.post.assert_called_once_with(
            SECURE_TOKEN_URL,
            params={"key": "api-key"},
            data={"grant_type": "refresh_token", "refresh_token": "old-refresh"},
            timeout=10.0,
        )

    def test_refresh_raises_http_errors(self):
        session = MagicMock()
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("400")
        user = SessionUser(uid="u1", refresh_token="old")
        with self.assertRaises(requests.HTTPError):
            FirebaseTokenRefresher("api-key", session=session).refresh(user)
        self.assertIsNone(user.id_token)


class RedisActivityStoreTests(unittest.TestCase):
    @patch("innonexus.activity.redis.Redis.from_url")
    def test_touch_and_read(self, from_url):
        client = from_url.return_value
        store = RedisActivityStore("redis://localhost:6379/0")

        self.assertEqual(store.touch("u1", 123.5), 123.5)
        client.set.assert_called_once_with("innonexus:last_activity:u1", "123.5")

        client.get.return_value = b"123.5"
        self.assertEqual(store.last_activity("u1"), 123.5)
        client.get.assert_called_with("innonexus:last_activity:u1")
        client.get.return_value = None
        self.assertIsNone(store.last_activity("u2"))

    @patch("innonexus.activity.redis.Redis.from_url")
    def test_touch_reconnects_once(self, from_url):
        broken = MagicMock()
        broken.set.side_effect = redis_exceptions.ConnectionError("closed")
        healthy = MagicMock()
        from_url.side_effect = [broken, healthy]

        store = RedisActivityStore("redis://localhost:6379/0")
        store.touch("u1", 10.0)
        healthy.set.assert_called_once_with("innonexus:last_activity:u1", "10.0")


if __name__ == "__main__":
    unittest.main()
