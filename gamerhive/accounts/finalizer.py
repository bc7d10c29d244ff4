# gamerhive/accounts/finalizer.py
"""
Session Finalizer.

Turns a successful verify-otp payload into a live Session Record. This is
the only code path that calls SessionStore.set().
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from pydantic import ValidationError as PydanticValidationError

from gamerhive.accounts.models import SessionRecord, UserProfile
from gamerhive.accounts.session import SessionStore
from gamerhive.errors import ServerError
from gamerhive.privacy_utils import hash_user_id

log = logging.getLogger("gamerhive.finalizer")


class SessionFinalizer:
    """
    Write {user, token} into the Session Store, then signal the host.

    Args:
        store: Session Store to write.
        on_authenticated: Optional host callback, called after the write.
    """

    def __init__(
        self,
        store: SessionStore,
        on_authenticated: Optional[Callable[[SessionRecord], None]] = None,
    ):
        self.store = store
        self.on_authenticated = on_authenticated

    def finalize(self, user: Any, token: Any) -> SessionRecord:
        """
        Persist the pair atomically.

        Raises:
            ServerError: user or token is missing or malformed. Nothing is
                written in that case.
        """
        try:
            profile = user if isinstance(user, UserProfile) else UserProfile.model_validate(user or {})
            record = SessionRecord(user=profile, token=token or "")
        except PydanticValidationError as e:
            log.error("Refusing to store incomplete session: %d field error(s)", e.error_count())
            raise ServerError("OTP verification failed") from e

        self.store.set(record)
        log.info("Session finalized for user %s", hash_user_id(record.user.id))

        if self.on_authenticated is not None:
            self.on_authenticated(record)
        return record
