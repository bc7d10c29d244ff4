# gamerhive/accounts/credentials.py
"""
Credential Submission: signup/login form validation and the first request.

Flow:
1. validate_draft() fails locally with an inline message, no network call
2. exactly one POST to /auth/signup or /auth/login with auth=False
3. on success return PendingVerification(email lowercased, purpose)

No credential is stored here. The backend answers signup/login with
{success: true} only; the token arrives after OTP verification.
"""

from __future__ import annotations

import logging
from typing import Union

from gamerhive.api import ApiClient
from gamerhive.accounts.models import CredentialDraft, PendingVerification, Purpose, normalize_email
from gamerhive.errors import ActionInProgressError, ValidationError
from gamerhive.privacy_utils import mask_email

log = logging.getLogger("gamerhive.credentials")

SIGNUP_PATH = "/auth/signup"
LOGIN_PATH = "/auth/login"

AUTH_FAILED_MESSAGE = "Authentication failed"


def _coerce_mode(mode: Union[Purpose, str]) -> Purpose:
    purpose = Purpose(mode)
    if purpose not in (Purpose.SIGNUP, Purpose.LOGIN):
        raise ValueError(f"unsupported credential mode: {purpose.value}")
    return purpose


def validate_draft(mode: Union[Purpose, str], draft: CredentialDraft) -> None:
    """
    Check a draft before anything touches the network.

    Raises:
        ValidationError: with the message shown inline on the form.
    """
    mode = _coerce_mode(mode)

    if not draft.email.strip() or not draft.password.strip():
        raise ValidationError("Email and password are required.")

    if mode is Purpose.SIGNUP:
        if not (draft.username or "").strip():
            raise ValidationError("Username is required.")
        if not (draft.confirm_password or "").strip():
            raise ValidationError("Confirm password is required.")
        if draft.password != draft.confirm_password:
            raise ValidationError("Passwords do not match.")


def build_payload(mode: Union[Purpose, str], draft: CredentialDraft) -> dict:
    """Request body for the signup or login endpoint."""
    mode = _coerce_mode(mode)
    if mode is Purpose.LOGIN:
        return {"email": draft.email.strip(), "password": draft.password}
    return {
        "username": (draft.username or "").strip(),
        "email": draft.email.strip(),
        "password": draft.password,
        "confirmPassword": draft.confirm_password,
    }


class CredentialSubmission:
    """
    Submits a validated draft.

    While a request is in flight, submit() refuses to start another one.
    """

    def __init__(self, api: ApiClient):
        self.api = api
        self.in_flight = False

    async def submit(self, mode: Union[Purpose, str], draft: CredentialDraft) -> PendingVerification:
        """
        Validate and send the draft.

        Returns:
            PendingVerification for the OTP step.

        Raises:
            ValidationError: draft rejected locally; nothing was sent.
            ServerError: backend refused; message is the server's verbatim.
            NetworkError: no response.
            ActionInProgressError: a previous submit has not settled.
        """
        if self.in_flight:
            raise ActionInProgressError("Sign in")

        mode = _coerce_mode(mode)
        validate_draft(mode, draft)

        path = LOGIN_PATH if mode is Purpose.LOGIN else SIGNUP_PATH
        email = normalize_email(draft.email)

        self.in_flight = True
        try:
            await self.api.call(
                "POST",
                path,
                json=build_payload(mode, draft),
                auth=False,
                fallback=AUTH_FAILED_MESSAGE,
            )
        finally:
            self.in_flight = False

        log.info("%s accepted for %s, awaiting OTP", mode.value, mask_email(email))
        return PendingVerification(email=email, purpose=mode)
