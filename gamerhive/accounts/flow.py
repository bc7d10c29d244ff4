# gamerhive/accounts/flow.py
"""
Auth flow coordinator: form → OTP → success, as an explicit state machine.

Steps:
    CREDENTIALS --SUBMIT_ACCEPTED--> OTP --OTP_VERIFIED--> SUCCESS
    SUCCESS --ACKNOWLEDGED--> AUTHENTICATED
    OTP --BACK--> CREDENTIALS
    AUTHENTICATED/SUCCESS --SESSION_ENDED--> CREDENTIALS
    CREDENTIALS --SESSION_RESTORED--> AUTHENTICATED
    CREDENTIALS --RECOVERY_STARTED--> RECOVERY --RECOVERY_FINISHED/BACK--> CREDENTIALS

transition() is the only place steps change. AuthFlow owns the
collaborators for one flow entry and guards every await with a generation
counter so a response that lands after "back" changes nothing.
"""

from __future__ import annotations

import time
import logging
from enum import Enum
from typing import Callable, Dict, Optional, Tuple, Union

from gamerhive.api import ApiClient
from gamerhive.accounts.credentials import CredentialSubmission
from gamerhive.accounts.finalizer import SessionFinalizer
from gamerhive.accounts.models import CredentialDraft, PendingVerification, Purpose, SessionRecord
from gamerhive.accounts.otp import OtpChallenge
from gamerhive.accounts.recovery import PasswordRecovery
from gamerhive.accounts.session import SessionStore
from gamerhive.errors import AuthError

log = logging.getLogger("gamerhive.flow")


class FlowStep(str, Enum):
    CREDENTIALS = "credentials"
    OTP = "otp"
    SUCCESS = "success"
    AUTHENTICATED = "authenticated"
    RECOVERY = "recovery"


class FlowEvent(str, Enum):
    SUBMIT_ACCEPTED = "submit_accepted"
    BACK = "back"
    OTP_VERIFIED = "otp_verified"
    ACKNOWLEDGED = "acknowledged"
    SESSION_ENDED = "session_ended"
    SESSION_RESTORED = "session_restored"
    RECOVERY_STARTED = "recovery_started"
    RECOVERY_FINISHED = "recovery_finished"


class InvalidTransitionError(ValueError):
    def __init__(self, step: FlowStep, event: FlowEvent):
        super().__init__(f"no transition from {step.value} on {event.value}")
        self.step = step
        self.event = event


_TRANSITIONS: Dict[Tuple[FlowStep, FlowEvent], FlowStep] = {
    (FlowStep.CREDENTIALS, FlowEvent.SUBMIT_ACCEPTED): FlowStep.OTP,
    (FlowStep.CREDENTIALS, FlowEvent.SESSION_RESTORED): FlowStep.AUTHENTICATED,
    (FlowStep.CREDENTIALS, FlowEvent.RECOVERY_STARTED): FlowStep.RECOVERY,
    (FlowStep.OTP, FlowEvent.BACK): FlowStep.CREDENTIALS,
    (FlowStep.OTP, FlowEvent.OTP_VERIFIED): FlowStep.SUCCESS,
    (FlowStep.SUCCESS, FlowEvent.ACKNOWLEDGED): FlowStep.AUTHENTICATED,
    (FlowStep.SUCCESS, FlowEvent.SESSION_ENDED): FlowStep.CREDENTIALS,
    (FlowStep.AUTHENTICATED, FlowEvent.SESSION_ENDED): FlowStep.CREDENTIALS,
    (FlowStep.RECOVERY, FlowEvent.BACK): FlowStep.CREDENTIALS,
    (FlowStep.RECOVERY, FlowEvent.RECOVERY_FINISHED): FlowStep.CREDENTIALS,
}


def transition(step: FlowStep, event: FlowEvent) -> FlowStep:
    """
    Next step for (step, event).

    Raises:
        InvalidTransitionError: event is not valid in step.
    """
    try:
        return _TRANSITIONS[(FlowStep(step), FlowEvent(event))]
    except KeyError:
        raise InvalidTransitionError(FlowStep(step), FlowEvent(event)) from None


class AuthFlow:
    """
    Coordinator for one auth screen.

    Args:
        api: API client (auth=False is used for every call made here).
        store: Session Store; written only through the SessionFinalizer.
        on_authenticated: Called with the SessionRecord after acknowledge()
            or when start() restores a stored session.
        on_logged_out: Called when the store is emptied while the flow
            believed it was authenticated.
        clock: Monotonic clock for transient notices.
    """

    def __init__(
        self,
        api: ApiClient,
        store: SessionStore,
        *,
        on_authenticated: Optional[Callable[[SessionRecord], None]] = None,
        on_logged_out: Optional[Callable[[], None]] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.api = api
        self.store = store
        self.on_authenticated = on_authenticated
        self.on_logged_out = on_logged_out
        self.clock = clock

        self.step = FlowStep.CREDENTIALS
        self.mode = Purpose.LOGIN
        self.error: Optional[str] = None
        self.pending: Optional[PendingVerification] = None
        self.challenge: Optional[OtpChallenge] = None
        self.recovery: Optional[PasswordRecovery] = None
        self.welcome_name: Optional[str] = None
        self.prefill_email: Optional[str] = None

        self.submission = CredentialSubmission(api)
        self.finalizer = SessionFinalizer(store)
        self._generation = 0
        self._unsubscribe = store.subscribe(self._on_session_change)

    # ============================================================
    # Steps
    # ============================================================

    def _fire(self, event: FlowEvent) -> None:
        previous = self.step
        self.step = transition(self.step, event)
        log.debug("Flow %s -> %s on %s", previous.value, self.step.value, event.value)

    def start(self) -> FlowStep:
        """Enter the flow; a stored session that passes admission skips the form."""
        record = self.store.admit()
        if record is not None and self.step is FlowStep.CREDENTIALS:
            self._fire(FlowEvent.SESSION_RESTORED)
            if self.on_authenticated is not None:
                self.on_authenticated(record)
        return self.step

    def set_mode(self, mode: Union[Purpose, str]) -> None:
        mode = Purpose(mode)
        if mode not in (Purpose.SIGNUP, Purpose.LOGIN):
            raise ValueError(f"unsupported credential mode: {mode.value}")
        self.mode = mode
        self.error = None

    # ============================================================
    # Credentials
    # ============================================================

    async def submit(self, draft: CredentialDraft, mode: Optional[Union[Purpose, str]] = None) -> bool:
        """
        Submit the form. Returns True once the flow is on the OTP step.

        On failure error holds the message and the draft is untouched.
        """
        if self.step is not FlowStep.CREDENTIALS:
            return False
        if mode is not None:
            self.set_mode(mode)

        generation = self._generation
        self.error = None
        try:
            pending = await self.submission.submit(self.mode, draft)
        except AuthError as e:
            if generation == self._generation:
                self.error = e.message
            return False

        if generation != self._generation or self.step is not FlowStep.CREDENTIALS:
            log.debug("Discarding submit response for an abandoned form")
            return False

        self.pending = pending
        self.challenge = OtpChallenge(self.api, pending, self.finalizer, clock=self.clock)
        self._fire(FlowEvent.SUBMIT_ACCEPTED)
        return True

    @property
    def submitting(self) -> bool:
        return self.submission.in_flight

    # ============================================================
    # OTP
    # ============================================================

    def type_digit(self, index: int, value: str) -> bool:
        if self.challenge is None or self.step is not FlowStep.OTP:
            return False
        return self.challenge.type_digit(index, value)

    def backspace(self, index: int) -> None:
        if self.challenge is not None and self.step is FlowStep.OTP:
            self.challenge.backspace(index)

    def paste(self, text: str) -> int:
        if self.challenge is None or self.step is not FlowStep.OTP:
            return 0
        return self.challenge.paste(text)

    def enter_code(self, code: str) -> int:
        if self.challenge is None or self.step is not FlowStep.OTP:
            return 0
        return self.challenge.enter_code(code)

    async def verify(self) -> bool:
        """Verify the typed code; on success the flow moves to SUCCESS."""
        challenge = self.challenge
        if challenge is None or self.step is not FlowStep.OTP:
            return False

        generation = self._generation
        verified = await challenge.verify()
        if generation != self._generation or challenge is not self.challenge:
            return False

        self.error = challenge.error
        if not verified:
            return False

        user = self.store.get_user()
        self.welcome_name = user.display_name if user else None
        self.pending = None
        self._fire(FlowEvent.OTP_VERIFIED)
        return True

    async def resend(self) -> bool:
        challenge = self.challenge
        if challenge is None or self.step is not FlowStep.OTP:
            return False

        generation = self._generation
        resent = await challenge.resend()
        if generation != self._generation or challenge is not self.challenge:
            return False

        self.error = challenge.error
        return resent

    def back(self) -> None:
        """Leave OTP or recovery for the form; in-flight responses become no-ops."""
        if self.step is FlowStep.OTP:
            if self.challenge is not None:
                self.challenge.abort()
            self.challenge = None
            self.pending = None
        elif self.step is FlowStep.RECOVERY:
            if self.recovery is not None:
                self.recovery.abort()
            self.recovery = None
        else:
            return

        self._generation += 1
        self.error = None
        self._fire(FlowEvent.BACK)

    # ============================================================
    # Success / Session
    # ============================================================

    def acknowledge(self) -> Optional[SessionRecord]:
        """Dismiss the success screen and hand over to the app."""
        if self.step is not FlowStep.SUCCESS:
            return None

        record = self.store.get()
        if record is None:
            # Session vanished between verify and acknowledge
            self._fire(FlowEvent.SESSION_ENDED)
            return None

        self.challenge = None
        self._fire(FlowEvent.ACKNOWLEDGED)
        if self.on_authenticated is not None:
            self.on_authenticated(record)
        return record

    def logout(self) -> None:
        self.store.clear()

    def _on_session_change(self, record: Optional[SessionRecord]) -> None:
        if record is not None:
            return
        if self.step not in (FlowStep.AUTHENTICATED, FlowStep.SUCCESS):
            return

        self._generation += 1
        self.challenge = None
        self.welcome_name = None
        self._fire(FlowEvent.SESSION_ENDED)
        log.info("Session ended, returning to credentials")
        if self.on_logged_out is not None:
            self.on_logged_out()

    # ============================================================
    # Recovery
    # ============================================================

    def start_recovery(self) -> PasswordRecovery:
        if self.step is not FlowStep.CREDENTIALS:
            raise InvalidTransitionError(self.step, FlowEvent.RECOVERY_STARTED)
        self.error = None
        self.recovery = PasswordRecovery(self.api, clock=self.clock)
        self._fire(FlowEvent.RECOVERY_STARTED)
        return self.recovery

    def finish_recovery(self) -> None:
        """Return to login with the recovered email prefilled."""
        if self.step is not FlowStep.RECOVERY:
            return
        if self.recovery is not None and self.recovery.email:
            self.prefill_email = self.recovery.email
        self.recovery = None
        self.mode = Purpose.LOGIN
        self._fire(FlowEvent.RECOVERY_FINISHED)

    def close(self) -> None:
        """Detach from the Session Store."""
        self._generation += 1
        if self.challenge is not None:
            self.challenge.abort()
        self._unsubscribe()
