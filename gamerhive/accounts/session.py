# gamerhive/accounts/session.py
"""
Session Store for the authentication core.

This module provides:
- Storage backends (MemoryStorage for tests, FileStorage for durable use)
- SessionStore: the one process-wide holder of {user, token}
- NotificationPreference: a flag stored beside, not inside, the session

Storage Keys:
- "user": JSON-encoded UserProfile (wire names)
- "token": bearer credential
- "notificationsEnabled": JSON boolean

Invariants:
- user and token are written together in one storage operation and removed
  together; a reader never sees one without the other
- Writers: SessionFinalizer (create), logout and the account lifecycle
  controller (teardown). Nothing else writes these keys
- Readers must tolerate the store becoming empty at any time; subscribe()
  lets them react
"""

from __future__ import annotations

import os
import json
import logging
import tempfile
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional

import jwt
from pydantic import ValidationError as PydanticValidationError

from gamerhive.accounts.models import SessionRecord, UserProfile
from gamerhive.privacy_utils import hash_user_id

log = logging.getLogger("gamerhive.session")

USER_KEY = "user"
TOKEN_KEY = "token"
NOTIFICATION_PREFERENCE_KEY = "notificationsEnabled"

SessionListener = Callable[[Optional[SessionRecord]], None]


# ============================================================
# Storage Backends
# ============================================================

class Storage(ABC):
    """
    String key/value storage with multi-key atomic writes.

    Implementations:
    - MemoryStorage: dict in memory (tests, ephemeral hosts)
    - FileStorage: JSON file replaced atomically on every write
    """

    @abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set_items(self, items: Dict[str, str]) -> None:
        """Write every item, or none of them."""
        pass

    @abstractmethod
    def remove_items(self, keys: Iterable[str]) -> None:
        pass

    def set_item(self, key: str, value: str) -> None:
        self.set_items({key: value})

    def remove_item(self, key: str) -> None:
        self.remove_items([key])


class MemoryStorage(Storage):
    """In-memory storage. Lost when the process exits."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self._lock = threading.RLock()

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set_items(self, items: Dict[str, str]) -> None:
        with self._lock:
            self._data.update(items)

    def remove_items(self, keys: Iterable[str]) -> None:
        with self._lock:
            for key in keys:
                self._data.pop(key, None)

    def snapshot(self) -> Dict[str, str]:
        with self._lock:
            return dict(self._data)


class FileStorage(Storage):
    """
    Durable storage in a single JSON file.

    Every write builds the full document in a temp file in the same
    directory and replaces the target, so the file on disk is always a
    complete document.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Unreadable storage file %s: %s", self.path.name, str(e)[:100])
            return {}
        if not isinstance(data, dict):
            log.warning("Storage file %s is not an object, ignoring it", self.path.name)
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            mode="w", dir=self.path.parent, delete=False, encoding="utf-8", suffix=".tmp"
        ) as tf:
            json.dump(data, tf, indent=2, ensure_ascii=False)
            temp_path = Path(tf.name)
        try:
            os.replace(temp_path, self.path)
        except OSError:
            temp_path.unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set_items(self, items: Dict[str, str]) -> None:
        with self._lock:
            data = self._load()
            data.update(items)
            self._save(data)

    def remove_items(self, keys: Iterable[str]) -> None:
        with self._lock:
            data = self._load()
            changed = False
            for key in keys:
                if key in data:
                    del data[key]
                    changed = True
            if changed:
                self._save(data)


# ============================================================
# Token Helpers
# ============================================================

def token_expiry(token: str) -> Optional[datetime]:
    """
    Read the exp claim of a JWT without verifying its signature.

    The backend stays the authority on token validity; this only lets the
    client drop a session it already knows is dead. Opaque tokens, or JWTs
    without exp, return None.
    """
    try:
        payload = jwt.decode(token, options={"verify_signature": False})
    except jwt.InvalidTokenError:
        return None

    exp = payload.get("exp")
    if not isinstance(exp, (int, float)):
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc)


def is_token_expired(token: str, now: Optional[datetime] = None) -> bool:
    expires_at = token_expiry(token)
    if expires_at is None:
        return False
    return expires_at <= (now or datetime.now(timezone.utc))


def _parse_user(raw: str) -> Optional[UserProfile]:
    """Parse a stored user, accepting double-encoded JSON."""
    try:
        parsed = json.loads(raw)
        if isinstance(parsed, str):
            parsed = json.loads(parsed)
    except (json.JSONDecodeError, TypeError):
        log.warning("Stored user is not valid JSON")
        return None

    if not isinstance(parsed, dict):
        log.warning("Stored user is not an object")
        return None

    try:
        return UserProfile.model_validate(parsed)
    except PydanticValidationError:
        log.warning("Stored user is missing required fields")
        return None


# ============================================================
# Session Store
# ============================================================

class SessionStore:
    """
    Explicit get/set/clear accessor over the {user, token} pair.

    Args:
        storage: Backend holding the pair. Inject MemoryStorage in tests.
    """

    def __init__(self, storage: Storage):
        self.storage = storage
        self._listeners: List[SessionListener] = []
        self._lock = threading.RLock()

    # ----- reads -----

    def get(self) -> Optional[SessionRecord]:
        """Return the stored pair, or None if either half is missing."""
        with self._lock:
            raw_user = self.storage.get_item(USER_KEY)
            token = self.storage.get_item(TOKEN_KEY)

        if not raw_user or not token:
            return None

        user = _parse_user(raw_user)
        if user is None:
            return None

        return SessionRecord(user=user, token=token)

    def get_token(self) -> Optional[str]:
        record = self.get()
        return record.token if record else None

    def get_user(self) -> Optional[UserProfile]:
        record = self.get()
        return record.user if record else None

    def admit(self) -> Optional[SessionRecord]:
        """
        Return the session only if it may be used to enter the app.

        A record is refused when the user is deactivated or the token is a
        JWT past its exp. A refused record is cleared.
        """
        record = self.get()
        if record is None:
            # A half-written or corrupt pair is not a session
            if self.storage.get_item(USER_KEY) or self.storage.get_item(TOKEN_KEY):
                log.info("Discarding incomplete stored session")
                self.clear()
            return None

        if not record.user.is_active:
            log.info("Stored session for deactivated user %s, logging out", hash_user_id(record.user.id))
            self.clear()
            return None

        if is_token_expired(record.token):
            log.info("Stored session for user %s has expired", hash_user_id(record.user.id))
            self.clear()
            return None

        return record

    def is_authenticated(self) -> bool:
        return self.admit() is not None

    # ----- writes -----

    def set(self, record: SessionRecord) -> None:
        """Replace any live session with record, both halves at once."""
        with self._lock:
            self.storage.set_items({
                USER_KEY: json.dumps(record.user.to_storage()),
                TOKEN_KEY: record.token,
            })
        log.info("Session stored for user %s", hash_user_id(record.user.id))
        self._notify(record)

    def update_user(self, user: UserProfile) -> bool:
        """
        Replace the cached profile of the live session.

        Returns False (and writes nothing) when there is no session or the
        profile belongs to another user.
        """
        with self._lock:
            current = self.get()
            if current is None or current.user.id != user.id:
                return False
            self.storage.set_item(USER_KEY, json.dumps(user.to_storage()))
            record = SessionRecord(user=user, token=current.token)
        self._notify(record)
        return True

    def clear(self) -> None:
        with self._lock:
            self.storage.remove_items([USER_KEY, TOKEN_KEY])
        log.info("Session cleared")
        self._notify(None)

    # ----- listeners -----

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener; returns a callable that unregisters it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, record: Optional[SessionRecord]) -> None:
        for listener in list(self._listeners):
            listener(record)


# ============================================================
# Notification Preference
# ============================================================

class NotificationPreference:
    """Local on/off switch for notifications, independent of the session."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def is_enabled(self) -> bool:
        raw = self.storage.get_item(NOTIFICATION_PREFERENCE_KEY)
        if raw is None:
            self.set_enabled(True)
            return True
        try:
            value = json.loads(raw)
        except json.JSONDecodeError:
            log.warning("Invalid notification preference %r, defaulting to enabled", raw)
            return True
        return value if isinstance(value, bool) else True

    def set_enabled(self, enabled: bool) -> None:
        self.storage.set_item(NOTIFICATION_PREFERENCE_KEY, json.dumps(bool(enabled)))

    def toggle(self) -> bool:
        new_value = not self.is_enabled()
        self.set_enabled(new_value)
        return new_value
