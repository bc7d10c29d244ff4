# tests/test_session.py
"""
Session Store Tests

Tests for:
- get/set/clear round trip of {user, token}
- Both halves written in one storage operation
- Admission: incomplete, deactivated and expired sessions are refused
- Listeners and unsubscribe
- FileStorage durability and atomic replace
- Notification preference independent of the session

Run with: pytest tests/test_session.py -v
"""

import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from gamerhive.accounts.models import SessionRecord, UserProfile
from gamerhive.accounts.session import (
    FileStorage,
    MemoryStorage,
    NotificationPreference,
    SessionStore,
    is_token_expired,
    token_expiry,
)


def _record(user_id="u1", token="t1", **user_fields) -> SessionRecord:
    user = UserProfile.model_validate({"id": user_id, "email": "a@b.com", **user_fields})
    return SessionRecord(user=user, token=token)


def _jwt(exp: datetime) -> str:
    return jwt.encode({"user_id": "u1", "exp": int(exp.timestamp())}, "secret", algorithm="HS256")


# ============================================================
# Round Trip
# ============================================================

class TestSessionRoundTrip:
    """An immediate read returns exactly what was written."""

    def test_set_then_get_returns_identical_pair(self, store):
        record = _record(username="player_one")
        store.set(record)

        got = store.get()
        assert got is not None
        assert got.token == "t1"
        assert got.user.id == "u1"
        assert got.user.username == "player_one"

    def test_empty_store_returns_none(self, store):
        assert store.get() is None
        assert store.get_token() is None
        assert store.get_user() is None

    def test_set_writes_both_keys_in_one_operation(self, store, storage):
        store.set(_record())

        assert len(storage.history) == 1, "user and token must be written together"
        assert set(storage.history[0]) >= {"user", "token"}

    def test_user_stored_with_wire_names(self, store, storage):
        store.set(_record(is_active=True))

        stored = json.loads(storage.get_item("user"))
        assert stored["isActive"] is True
        assert "is_active" not in stored

    def test_clear_removes_both_keys(self, store, storage):
        store.set(_record())
        store.clear()

        assert storage.get_item("user") is None
        assert storage.get_item("token") is None
        assert store.get() is None

    def test_set_replaces_previous_session(self, store):
        store.set(_record("u1", "t1"))
        store.set(_record("u2", "t2"))

        got = store.get()
        assert (got.user.id, got.token) == ("u2", "t2")

    def test_token_without_user_is_not_a_session(self):
        store = SessionStore(MemoryStorage({"token": "t1"}))
        assert store.get() is None

    def test_double_encoded_user_is_accepted(self):
        user_json = json.dumps({"id": "u1", "email": "a@b.com"})
        store = SessionStore(MemoryStorage({"user": json.dumps(user_json), "token": "t1"}))

        assert store.get().user.id == "u1"


# ============================================================
# Admission
# ============================================================

class TestAdmission:
    """admit() refuses sessions that must not enter the app, and clears them."""

    def test_valid_session_is_admitted(self, store):
        store.set(_record())
        assert store.admit() is not None
        assert store.is_authenticated() is True

    def test_half_written_session_is_cleared(self):
        storage = MemoryStorage({"token": "t1"})
        store = SessionStore(storage)

        assert store.admit() is None
        assert storage.get_item("token") is None

    def test_corrupt_user_is_cleared(self):
        storage = MemoryStorage({"user": "{not json", "token": "t1"})
        store = SessionStore(storage)

        assert store.admit() is None
        assert storage.snapshot() == {}

    def test_deactivated_user_is_logged_out(self, store):
        store.set(_record(isActive=False))

        assert store.admit() is None
        assert store.get() is None

    def test_expired_jwt_is_logged_out(self, store):
        store.set(_record(token=_jwt(datetime.now(timezone.utc) - timedelta(minutes=1))))

        assert store.admit() is None
        assert store.get() is None

    def test_live_jwt_is_admitted(self, store):
        store.set(_record(token=_jwt(datetime.now(timezone.utc) + timedelta(hours=1))))
        assert store.admit() is not None

    def test_opaque_token_has_no_expiry(self):
        assert token_expiry("t1") is None
        assert is_token_expired("t1") is False


# ============================================================
# Profile Update
# ============================================================

class TestUpdateUser:

    def test_update_keeps_token(self, store):
        store.set(_record())
        user = store.get_user().model_copy(update={"is_active": False})

        assert store.update_user(user) is True
        got = store.get()
        assert got.token == "t1"
        assert got.user.is_active is False

    def test_update_without_session_writes_nothing(self, store, storage):
        user = UserProfile(id="u1")
        assert store.update_user(user) is False
        assert storage.history == []

    def test_update_for_other_user_is_refused(self, store):
        store.set(_record("u1"))
        assert store.update_user(UserProfile(id="u2")) is False
        assert store.get_user().id == "u1"


# ============================================================
# Listeners
# ============================================================

class TestListeners:

    def test_listener_sees_set_and_clear(self, store):
        seen = []
        store.subscribe(seen.append)

        store.set(_record())
        store.clear()

        assert seen[0].user.id == "u1"
        assert seen[1] is None

    def test_unsubscribe_stops_notifications(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        unsubscribe()

        store.set(_record())
        assert seen == []

    def test_unsubscribe_twice_is_harmless(self, store):
        unsubscribe = store.subscribe(lambda record: None)
        unsubscribe()
        unsubscribe()


# ============================================================
# File Storage
# ============================================================

class TestFileStorage:

    def test_session_survives_a_new_store(self, tmp_path):
        path = tmp_path / "state" / "session.json"
        SessionStore(FileStorage(path)).set(_record())

        reloaded = SessionStore(FileStorage(path)).get()
        assert reloaded.user.id == "u1"
        assert reloaded.token == "t1"

    def test_file_is_a_complete_json_document(self, tmp_path):
        path = tmp_path / "session.json"
        SessionStore(FileStorage(path)).set(_record())

        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {"user", "token"}

    def test_no_temp_files_left_behind(self, tmp_path):
        path = tmp_path / "session.json"
        store = SessionStore(FileStorage(path))
        store.set(_record())
        store.clear()

        assert [p.name for p in tmp_path.iterdir()] == ["session.json"]

    def test_unreadable_file_reads_as_empty(self, tmp_path):
        path = tmp_path / "session.json"
        path.write_text("{broken", encoding="utf-8")

        assert FileStorage(path).get_item("token") is None

    def test_clear_keeps_other_keys(self, tmp_path):
        storage = FileStorage(tmp_path / "session.json")
        NotificationPreference(storage).set_enabled(False)
        store = SessionStore(storage)
        store.set(_record())
        store.clear()

        assert NotificationPreference(storage).is_enabled() is False


# ============================================================
# Notification Preference
# ============================================================

class TestNotificationPreference:

    def test_defaults_to_enabled_and_persists_default(self):
        storage = MemoryStorage()
        assert NotificationPreference(storage).is_enabled() is True
        assert storage.get_item("notificationsEnabled") == "true"

    def test_toggle(self):
        preference = NotificationPreference(MemoryStorage())
        assert preference.toggle() is False
        assert preference.toggle() is True

    def test_not_part_of_session(self, store, storage):
        NotificationPreference(storage).set_enabled(False)
        store.set(_record())
        store.clear()

        assert storage.get_item("notificationsEnabled") == "false"

    @pytest.mark.parametrize("raw", ["not-json", '"yes"', "1"])
    def test_invalid_value_reads_as_enabled(self, raw):
        storage = MemoryStorage({"notificationsEnabled": raw})
        assert NotificationPreference(storage).is_enabled() is True
