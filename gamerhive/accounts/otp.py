# gamerhive/accounts/otp.py
"""
OTP Challenge for signup/login verification.

This module provides:
- OtpEntry: six index-addressable digit slots with focus tracking
- OtpChallenge: the per-attempt state machine around verify-otp/resend-otp
- request_resend(): the resend call shared with password recovery

State Machine:
    ENTERING → SUBMITTING → VERIFIED (terminal)
                          → REJECTED (editable again, like ENTERING)
    Resend runs beside it and never changes VERIFIED/REJECTED logic.

Rules:
- verify-otp is only sent when all six slots hold a digit
- any rejection (server or network) clears every slot and focuses slot 0
- resend success clears every slot and shows a notice for NOTICE_SECONDS
- the client imposes no resend cooldown; the backend rate-limits
- after abort() (the "back" action) late responses are discarded
"""

from __future__ import annotations

import re
import time
import logging
from enum import Enum
from typing import Callable, List, Optional, Union

from gamerhive.api import ApiClient
from gamerhive.accounts.finalizer import SessionFinalizer
from gamerhive.accounts.models import NOTICE_SECONDS, OTP_LENGTH, PendingVerification, Purpose
from gamerhive.errors import AuthError
from gamerhive.privacy_utils import mask_email

log = logging.getLogger("gamerhive.otp")

VERIFY_PATH = "/auth/verify-otp"
RESEND_PATH = "/auth/resend-otp"

INCOMPLETE_MESSAGE = "Please enter the complete 6-digit OTP"
VERIFY_FAILED_MESSAGE = "OTP verification failed"
RESEND_FAILED_MESSAGE = "Failed to resend OTP"
RESENT_MESSAGE = "OTP has been resent to your email. Please check your inbox."

_DIGIT = re.compile(r"^\d$")
_NON_DIGITS = re.compile(r"\D")


# ============================================================
# OTP Entry
# ============================================================

class OtpEntry:
    """Fixed-length digit slots with the focus behavior of the code form."""

    def __init__(self, length: int = OTP_LENGTH):
        self.length = length
        self.slots: List[str] = [""] * length
        self.focus = 0

    def _check_index(self, index: int) -> None:
        if not 0 <= index < self.length:
            raise IndexError(f"slot {index} out of range 0..{self.length - 1}")

    def type_digit(self, index: int, value: str) -> bool:
        """
        Set one slot. An empty value clears it.

        Returns False (slot untouched) for anything but a single digit.
        Focus advances to the next slot after a digit.
        """
        self._check_index(index)
        if value and not _DIGIT.match(value):
            return False

        self.slots[index] = value
        if value and index < self.length - 1:
            self.focus = index + 1
        else:
            self.focus = index
        return True

    def backspace(self, index: int) -> None:
        """Clear a filled slot, or retreat focus from an empty one."""
        self._check_index(index)
        if self.slots[index]:
            self.slots[index] = ""
            self.focus = index
        elif index > 0:
            self.focus = index - 1

    def paste(self, text: str) -> int:
        """
        Spread the digits of text across the slots from slot 0.

        Non-digits are dropped and extra digits ignored. Returns the number
        of slots filled; focus lands on the last one.
        """
        digits = _NON_DIGITS.sub("", text or "")[: self.length]
        if not digits:
            return 0
        for i, digit in enumerate(digits):
            self.slots[i] = digit
        self.focus = min(len(digits) - 1, self.length - 1)
        return len(digits)

    def clear(self) -> None:
        self.slots = [""] * self.length
        self.focus = 0

    @property
    def code(self) -> str:
        return "".join(self.slots)

    @property
    def is_complete(self) -> bool:
        return all(_DIGIT.match(slot) for slot in self.slots)


# ============================================================
# Transient Notice
# ============================================================

class TransientNotice:
    """A confirmation message that clears itself after a fixed interval."""

    def __init__(self, clock: Callable[[], float] = time.monotonic, seconds: float = NOTICE_SECONDS):
        self.clock = clock
        self.seconds = seconds
        self._message: Optional[str] = None
        self._until = 0.0

    def show(self, message: str) -> None:
        self._message = message
        self._until = self.clock() + self.seconds

    def clear(self) -> None:
        self._message = None

    @property
    def message(self) -> Optional[str]:
        if self._message is not None and self.clock() >= self._until:
            self._message = None
        return self._message


# ============================================================
# Shared Resend Call
# ============================================================

async def request_resend(api: ApiClient, email: str, purpose: Union[Purpose, str]) -> None:
    """
    POST /auth/resend-otp.

    Raises:
        ServerError / NetworkError from the API client.
    """
    purpose = Purpose(purpose)
    await api.call(
        "POST",
        RESEND_PATH,
        json={"email": email, "purpose": purpose.value},
        auth=False,
        fallback=RESEND_FAILED_MESSAGE,
    )
    log.info("OTP resend accepted for %s (%s)", mask_email(email), purpose.value)


# ============================================================
# OTP Challenge
# ============================================================

class OtpState(str, Enum):
    ENTERING = "entering"
    SUBMITTING = "submitting"
    VERIFIED = "verified"
    REJECTED = "rejected"


class OtpChallenge:
    """
    One verification attempt for a PendingVerification.

    Args:
        api: API client.
        pending: Email and purpose accepted by the backend.
        finalizer: Receives {user, token} on success.
        clock: Monotonic clock, injectable for notice expiry in tests.
    """

    def __init__(
        self,
        api: ApiClient,
        pending: PendingVerification,
        finalizer: SessionFinalizer,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.pending = pending
        self.finalizer = finalizer
        self.clock = clock

        self.entry = OtpEntry()
        self.state = OtpState.ENTERING
        self.error: Optional[str] = None
        self.resend_in_flight = False

        self._notice = TransientNotice(clock)
        self._generation = 0
        self._aborted = False

    # ----- entry -----

    def type_digit(self, index: int, value: str) -> bool:
        if self.state in (OtpState.SUBMITTING, OtpState.VERIFIED):
            return False
        accepted = self.entry.type_digit(index, value)
        if accepted:
            self.error = None
            self.state = OtpState.ENTERING
        return accepted

    def backspace(self, index: int) -> None:
        if self.state in (OtpState.SUBMITTING, OtpState.VERIFIED):
            return
        self.entry.backspace(index)

    def paste(self, text: str) -> int:
        if self.state in (OtpState.SUBMITTING, OtpState.VERIFIED):
            return 0
        filled = self.entry.paste(text)
        if filled:
            self.error = None
            self.state = OtpState.ENTERING
        return filled

    def enter_code(self, text: str) -> int:
        """Replace everything typed so far with the digits of text."""
        if self.state in (OtpState.SUBMITTING, OtpState.VERIFIED):
            return 0
        self.entry.clear()
        self.error = None
        self.state = OtpState.ENTERING
        return self.entry.paste(text)

    @property
    def can_verify(self) -> bool:
        return (
            not self._aborted
            and self.state in (OtpState.ENTERING, OtpState.REJECTED)
            and self.entry.is_complete
        )

    @property
    def notice(self) -> Optional[str]:
        """Transient confirmation; disappears NOTICE_SECONDS after it was set."""
        return self._notice.message

    # ----- stale-response guard -----

    def abort(self) -> None:
        """Leave the challenge; responses still in flight become no-ops."""
        self._aborted = True
        self._generation += 1

    @property
    def aborted(self) -> bool:
        return self._aborted

    def _is_stale(self, generation: int) -> bool:
        return self._aborted or generation != self._generation

    # ----- network actions -----

    async def verify(self) -> bool:
        """
        Submit the six digits.

        Returns True once the session has been finalized. On rejection the
        slots are cleared, focus returns to slot 0 and error holds the
        message.
        """
        if self._aborted or self.state in (OtpState.SUBMITTING, OtpState.VERIFIED):
            return False

        if not self.entry.is_complete:
            self.error = INCOMPLETE_MESSAGE
            return False

        generation = self._generation
        payload = {
            "email": self.pending.email,
            "otp": self.entry.code,
            "purpose": self.pending.purpose.value,
        }
        self.state = OtpState.SUBMITTING
        self.error = None
        self._notice.clear()

        try:
            resp = await self.api.call("POST", VERIFY_PATH, json=payload, auth=False, fallback=VERIFY_FAILED_MESSAGE)
            if self._is_stale(generation):
                log.debug("Discarding verify-otp response for an abandoned challenge")
                return False
            data = resp.data if isinstance(resp.data, dict) else {}
            self.finalizer.finalize(data.get("user"), data.get("token"))
        except AuthError as e:
            if self._is_stale(generation):
                log.debug("Discarding verify-otp failure for an abandoned challenge")
                return False
            self._reject(e.message)
            return False

        self.state = OtpState.VERIFIED
        log.info("OTP verified for %s (%s)", mask_email(self.pending.email), self.pending.purpose.value)
        return True

    def _reject(self, message: str) -> None:
        self.entry.clear()
        self.error = message
        self.state = OtpState.REJECTED
        log.info("OTP rejected for %s", mask_email(self.pending.email))

    async def resend(self) -> bool:
        """
        Ask the backend for a new code.

        On success the slots are cleared and a notice is shown. On failure
        the slots are left as typed and error holds the message.
        """
        if self._aborted or self.resend_in_flight or self.state is OtpState.VERIFIED:
            return False

        generation = self._generation
        self.resend_in_flight = True
        self.error = None
        self._notice.clear()

        try:
            await request_resend(self.api, self.pending.email, self.pending.purpose)
        except AuthError as e:
            if not self._is_stale(generation):
                self.error = e.message
            return False
        finally:
            self.resend_in_flight = False

        if self._is_stale(generation):
            log.debug("Discarding resend-otp response for an abandoned challenge")
            return False

        self.entry.clear()
        self._notice.show(RESENT_MESSAGE)
        return True
