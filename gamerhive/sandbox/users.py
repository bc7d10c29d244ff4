# gamerhive/sandbox/users.py
"""
In-memory user directory for the sandbox backend.

This module provides:
- Password hashing (bcrypt)
- Pending signups: held until the signup OTP is verified
- Users: create, look up, activate/deactivate, delete, export

Nothing here survives the process; every create_app() starts empty.
"""

from __future__ import annotations

import uuid
import logging
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

import bcrypt

from gamerhive.privacy_utils import hash_user_id, mask_email

log = logging.getLogger("gamerhive.sandbox.users")

MIN_PASSWORD_LENGTH = 6


# ============================================================
# Password Hashing
# ============================================================

def hash_password(password: str) -> str:
    """Hash a password with bcrypt; the salt is embedded in the result."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def check_password(password: str, stored: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def public_user(user: dict) -> dict:
    """The user record as sent to clients (camelCase, no secrets)."""
    return {
        "id": user["id"],
        "username": user["username"],
        "email": user["email"],
        "name": user.get("name"),
        "picture": user.get("picture"),
        "isActive": user["is_active"],
        "isVerified": user.get("is_verified", True),
        "createdAt": user["created_at"],
    }


# ============================================================
# User Directory
# ============================================================

class UserDirectory:
    """Users and pending signups, keyed by id and by lowercase email."""

    def __init__(self):
        self._users: Dict[str, dict] = {}
        self._by_email: Dict[str, str] = {}
        self._pending: Dict[str, dict] = {}
        self._lock = threading.RLock()

    # ----- pending signups -----

    def add_pending_signup(self, username: str, email: str, password: str) -> None:
        email = email.strip().lower()
        with self._lock:
            self._pending[email] = {
                "username": username.strip(),
                "email": email,
                "password_hash": hash_password(password),
                "created_at": _now_iso(),
            }
        log.info("Pending signup stored for %s", mask_email(email))

    def has_pending_signup(self, email: str) -> bool:
        with self._lock:
            return email.strip().lower() in self._pending

    def complete_signup(self, email: str) -> Optional[dict]:
        """Turn a pending signup into a verified user."""
        email = email.strip().lower()
        with self._lock:
            pending = self._pending.pop(email, None)
            if pending is None or email in self._by_email:
                return None
            user_id = uuid.uuid4().hex
            user = {
                "id": user_id,
                "username": pending["username"],
                "email": email,
                "name": pending["username"],
                "picture": None,
                "password_hash": pending["password_hash"],
                "is_active": True,
                "is_verified": True,
                "created_at": _now_iso(),
            }
            self._users[user_id] = user
            self._by_email[email] = user_id
        log.info("User created: %s (%s)", mask_email(email), hash_user_id(user_id))
        return user

    # ----- users -----

    def get_user_by_email(self, email: str) -> Optional[dict]:
        with self._lock:
            user_id = self._by_email.get(email.strip().lower())
            return self._users.get(user_id) if user_id else None

    def get_user_by_id(self, user_id: str) -> Optional[dict]:
        with self._lock:
            return self._users.get(str(user_id))

    def email_taken(self, email: str) -> bool:
        return self.get_user_by_email(email) is not None

    def set_active(self, user_id: str, is_active: bool) -> Optional[dict]:
        with self._lock:
            user = self._users.get(str(user_id))
            if user is None:
                return None
            user["is_active"] = bool(is_active)
        log.info("User %s is_active=%s", hash_user_id(user_id), is_active)
        return user

    def set_password(self, user_id: str, password: str) -> None:
        with self._lock:
            self._users[str(user_id)]["password_hash"] = hash_password(password)

    def delete(self, user_id: str) -> bool:
        with self._lock:
            user = self._users.pop(str(user_id), None)
            if user is None:
                return False
            self._by_email.pop(user["email"], None)
        log.info("User deleted: %s", hash_user_id(user_id))
        return True

    def export(self, user_id: str) -> Optional[dict]:
        user = self.get_user_by_id(user_id)
        if user is None:
            return None
        return {
            "exportDate": _now_iso(),
            "user": public_user(user),
            "friends": [],
            "games": [],
            "communities": [],
            "posts": [],
        }
