# gamerhive/accounts/lifecycle.py
"""
Account Lifecycle Controller: export, deactivate, reactivate, delete, logout.

Endpoints:
- GET /user/export/{userId} → data blob, written to a JSON file locally
- PUT /user/account-status {userId, isActive}
- DELETE /user/account {userId}

Rules:
- every operation needs a live Session Record (SessionRequiredError)
- deactivate/delete ask confirm(title, message) first; a "no" sends nothing
- the session is torn down only after the request succeeded; any failure
  leaves it exactly as it was
- each action refuses to start while its own previous call is in flight;
  other actions stay available
"""

from __future__ import annotations

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Callable, Optional, Set

from gamerhive.api import ApiClient
from gamerhive.config import get_export_dir
from gamerhive.accounts.models import AccountStatus, SessionRecord
from gamerhive.accounts.session import SessionStore
from gamerhive.errors import ActionInProgressError, ServerError, SessionRequiredError
from gamerhive.privacy_utils import hash_user_id

log = logging.getLogger("gamerhive.lifecycle")

EXPORT_PATH = "/user/export/{user_id}"
ACCOUNT_STATUS_PATH = "/user/account-status"
ACCOUNT_PATH = "/user/account"

EXPORT_FILENAME = "GamerHive_Export_{stamp}.json"

EXPORT_SUCCESS_MESSAGE = "Data exported successfully"
EXPORT_FAILED_MESSAGE = "Failed to export data"
DEACTIVATE_FAILED_MESSAGE = "Failed to deactivate account"
REACTIVATE_FAILED_MESSAGE = "Failed to reactivate account"
DELETE_FAILED_MESSAGE = "Failed to delete account"

DEACTIVATE_TITLE = "Deactivate Account"
DEACTIVATE_PROMPT = (
    "Are you sure you want to temporarily deactivate your account? "
    "You can reactivate later by logging back in."
)
DELETE_TITLE = "Delete Account"
DELETE_PROMPT = (
    "Are you sure you want to permanently delete your account and all data? "
    "This cannot be undone."
)

ConfirmFn = Callable[[str, str], bool]


def export_filename(day: date) -> str:
    return EXPORT_FILENAME.format(stamp=day.strftime("%Y%m%d"))


def write_export(data: Any, directory: Path, day: date) -> Path:
    """Write the export blob as indented JSON and return its path."""
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / export_filename(day)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
    return path


class AccountLifecycleController:
    """
    Account operations for the signed-in user.

    Args:
        api: API client holding the Session Store for bearer auth.
        store: Session Store.
        confirm: confirm(title, message) -> bool, asked before destructive calls.
        on_logout: Called after the session was torn down.
        export_dir: Export directory. Defaults to GAMERHIVE_EXPORT_DIR.
        today: Date source for export file names.
    """

    def __init__(
        self,
        api: ApiClient,
        store: SessionStore,
        *,
        confirm: ConfirmFn,
        on_logout: Optional[Callable[[], None]] = None,
        export_dir: Optional[Path] = None,
        today: Callable[[], date] = date.today,
    ):
        self.api = api
        self.store = store
        self.confirm = confirm
        self.on_logout = on_logout
        self.export_dir = export_dir
        self.today = today
        self._in_flight: Set[str] = set()

    # ============================================================
    # Helpers
    # ============================================================

    def _require_session(self) -> SessionRecord:
        record = self.store.get()
        if record is None:
            raise SessionRequiredError()
        return record

    def _begin(self, action: str) -> None:
        if action in self._in_flight:
            raise ActionInProgressError(action)
        self._in_flight.add(action)

    def _end(self, action: str) -> None:
        self._in_flight.discard(action)

    def is_in_flight(self, action: str) -> bool:
        return action in self._in_flight

    def _is_current(self, record: SessionRecord, action: str) -> bool:
        """True when the session that started `action` is still the live one."""
        live = self.store.get()
        if live is not None and live.user.id == record.user.id and live.token == record.token:
            return True
        log.debug("%s response discarded: session changed while in flight", action)
        return False

    def _teardown(self) -> None:
        self.store.clear()
        if self.on_logout is not None:
            self.on_logout()

    # ============================================================
    # Operations
    # ============================================================

    async def export_data(self) -> Path:
        """
        Download the user's data and save it as GamerHive_Export_YYYYMMDD.json.

        Raises:
            SessionRequiredError, ServerError, NetworkError. The session is
            untouched either way.
        """
        record = self._require_session()
        self._begin("Export")
        try:
            resp = await self.api.call(
                "GET",
                EXPORT_PATH.format(user_id=record.user.id),
                fallback=EXPORT_FAILED_MESSAGE,
            )
            if resp.data is None:
                raise ServerError(EXPORT_FAILED_MESSAGE, status_code=resp.status_code)
            try:
                path = write_export(resp.data, self.export_dir or get_export_dir(), self.today())
            except OSError as e:
                log.error("Export write failed: %s", str(e)[:100])
                raise ServerError(EXPORT_FAILED_MESSAGE) from e
        finally:
            self._end("Export")

        log.info("Data exported for user %s", hash_user_id(record.user.id))
        return path

    async def deactivate(self) -> bool:
        """
        Deactivate the account and log out.

        Returns False when the user declined. Raises on failure with the
        session left in place.
        """
        record = self._require_session()
        if not self.confirm(DEACTIVATE_TITLE, DEACTIVATE_PROMPT):
            return False

        self._begin("Deactivate")
        try:
            await self.api.call(
                "PUT",
                ACCOUNT_STATUS_PATH,
                json=AccountStatus(user_id=record.user.id, is_active=False).to_payload(),
                fallback=DEACTIVATE_FAILED_MESSAGE,
            )
        finally:
            self._end("Deactivate")

        if not self._is_current(record, "Deactivate"):
            return True
        self.store.update_user(record.user.model_copy(update={"is_active": False}))
        self._teardown()
        log.info("Account deactivated for user %s", hash_user_id(record.user.id))
        return True

    async def reactivate(self) -> bool:
        """Mark the account active again and refresh the cached profile."""
        record = self._require_session()
        self._begin("Reactivate")
        try:
            resp = await self.api.call(
                "PUT",
                ACCOUNT_STATUS_PATH,
                json=AccountStatus(user_id=record.user.id, is_active=True).to_payload(),
                fallback=REACTIVATE_FAILED_MESSAGE,
            )
        finally:
            self._end("Reactivate")

        is_active = True
        if isinstance(resp.data, dict) and isinstance(resp.data.get("isActive"), bool):
            is_active = resp.data["isActive"]
        if not self._is_current(record, "Reactivate"):
            return is_active
        self.store.update_user(record.user.model_copy(update={"is_active": is_active}))
        log.info("Account reactivated for user %s", hash_user_id(record.user.id))
        return is_active

    async def delete_account(self) -> bool:
        """
        Permanently delete the account and log out.

        Returns False when the user declined. Raises on failure with the
        session left in place so the call can be retried.
        """
        record = self._require_session()
        if not self.confirm(DELETE_TITLE, DELETE_PROMPT):
            return False

        self._begin("Delete")
        try:
            await self.api.call(
                "DELETE",
                ACCOUNT_PATH,
                json={"userId": record.user.id},
                fallback=DELETE_FAILED_MESSAGE,
            )
        finally:
            self._end("Delete")

        if not self._is_current(record, "Delete"):
            return True
        self._teardown()
        log.info("Account deleted for user %s", hash_user_id(record.user.id))
        return True

    def logout(self) -> None:
        """Local logout; the backend keeps no session to revoke."""
        self._teardown()
