# gamerhive/accounts/recovery.py
"""
Password recovery: forgot-password → code → new password.

Steps:
    REQUEST → CODE → RESET → DONE

- REQUEST: POST /auth/forgot-password {email}
- CODE: six-digit entry; confirm_code() only checks completeness, the
  backend checks the code together with the new password
- RESET: POST /auth/reset-password {email, otp, newPassword, confirmPassword}
- DONE: the password changed. No Session Record is created here; the host
  goes back to login with the email prefilled, and the user passes the
  normal OTP challenge

A rejected reset clears the code and returns to CODE.
"""

from __future__ import annotations

import time
import logging
from enum import Enum
from typing import Callable, Optional

from gamerhive.api import ApiClient
from gamerhive.accounts.models import MIN_PASSWORD_LENGTH, Purpose, normalize_email
from gamerhive.accounts.otp import INCOMPLETE_MESSAGE, RESENT_MESSAGE, OtpEntry, TransientNotice, request_resend
from gamerhive.errors import AuthError, ValidationError
from gamerhive.privacy_utils import mask_email

log = logging.getLogger("gamerhive.recovery")

FORGOT_PASSWORD_PATH = "/auth/forgot-password"
RESET_PASSWORD_PATH = "/auth/reset-password"

REQUEST_SENT_MESSAGE = "Password reset OTP has been sent to your email."
ENTER_PASSWORD_MESSAGE = "Please enter your new password."


class RecoveryStep(str, Enum):
    REQUEST = "request"
    CODE = "code"
    RESET = "reset"
    DONE = "done"


def validate_new_password(new_password: str, confirm_password: str) -> None:
    """
    Raises:
        ValidationError: with the message shown on the reset form.
    """
    if not new_password or not confirm_password:
        raise ValidationError("Please enter both password fields")
    if len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match")


class PasswordRecovery:
    """Drives one forgot-password attempt."""

    def __init__(self, api: ApiClient, clock: Callable[[], float] = time.monotonic):
        self.api = api
        self.step = RecoveryStep.REQUEST
        self.email = ""
        self.entry = OtpEntry()
        self.error: Optional[str] = None
        self.in_flight = False
        self._notice = TransientNotice(clock)
        self._aborted = False

    @property
    def notice(self) -> Optional[str]:
        return self._notice.message

    def abort(self) -> None:
        self._aborted = True

    @property
    def aborted(self) -> bool:
        return self._aborted

    # ----- REQUEST -----

    async def request_reset(self, email: str) -> bool:
        if self._aborted or self.in_flight or self.step is not RecoveryStep.REQUEST:
            return False

        self.error = None
        self._notice.clear()

        if not (email or "").strip():
            self.error = "Email is required"
            return False

        email = normalize_email(email)
        self.in_flight = True
        try:
            await self.api.call(
                "POST",
                FORGOT_PASSWORD_PATH,
                json={"email": email},
                auth=False,
                fallback="Failed to send reset OTP",
            )
        except AuthError as e:
            if not self._aborted:
                self.error = e.message
            return False
        finally:
            self.in_flight = False

        if self._aborted:
            return False

        self.email = email
        self.step = RecoveryStep.CODE
        self._notice.show(REQUEST_SENT_MESSAGE)
        log.info("Password reset requested for %s", mask_email(email))
        return True

    # ----- CODE -----

    def type_digit(self, index: int, value: str) -> bool:
        if self.step is not RecoveryStep.CODE:
            return False
        accepted = self.entry.type_digit(index, value)
        if accepted:
            self.error = None
        return accepted

    def backspace(self, index: int) -> None:
        if self.step is RecoveryStep.CODE:
            self.entry.backspace(index)

    def paste(self, text: str) -> int:
        if self.step is not RecoveryStep.CODE:
            return 0
        return self.entry.paste(text)

    def enter_code(self, code: str) -> int:
        if self.step is not RecoveryStep.CODE:
            return 0
        self.entry.clear()
        return self.entry.paste(code)

    def confirm_code(self) -> bool:
        if self.step is not RecoveryStep.CODE:
            return False
        if not self.entry.is_complete:
            self.error = INCOMPLETE_MESSAGE
            return False
        self.error = None
        self.step = RecoveryStep.RESET
        self._notice.show(ENTER_PASSWORD_MESSAGE)
        return True

    async def resend(self) -> bool:
        if self._aborted or self.in_flight or self.step is not RecoveryStep.CODE:
            return False

        self.error = None
        self._notice.clear()
        self.in_flight = True
        try:
            await request_resend(self.api, self.email, Purpose.PASSWORD_RESET)
        except AuthError as e:
            if not self._aborted:
                self.error = e.message
            return False
        finally:
            self.in_flight = False

        if self._aborted:
            return False

        self.entry.clear()
        self._notice.show(RESENT_MESSAGE)
        return True

    # ----- RESET -----

    async def reset_password(self, new_password: str, confirm_password: str) -> bool:
        if self._aborted or self.in_flight or self.step is not RecoveryStep.RESET:
            return False

        self.error = None
        self._notice.clear()

        try:
            validate_new_password(new_password, confirm_password)
        except ValidationError as e:
            self.error = e.message
            return False

        self.in_flight = True
        try:
            await self.api.call(
                "POST",
                RESET_PASSWORD_PATH,
                json={
                    "email": self.email,
                    "otp": self.entry.code,
                    "newPassword": new_password,
                    "confirmPassword": confirm_password,
                },
                auth=False,
                fallback="Password reset failed",
            )
        except AuthError as e:
            if not self._aborted:
                self.error = e.message
                self.entry.clear()
                self.step = RecoveryStep.CODE
            return False
        finally:
            self.in_flight = False

        if self._aborted:
            return False

        # Any {user, token} in the response is ignored: sessions only come
        # from verify-otp.
        self.step = RecoveryStep.DONE
        log.info("Password reset completed for %s", mask_email(self.email))
        return True
