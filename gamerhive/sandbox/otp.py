# gamerhive/sandbox/otp.py
"""
OTP issuing and checking for the sandbox backend.

This module provides:
- OTP generation, hashing, and verification utilities
- OTPService interface + StubOTPService (logs, keeps an outbox)
- OTPManager: one active code per (email, purpose), in memory

Security:
- OTP is 6 digits (000000-999999), from the secrets module
- OTP hashed with SHA-256 before storage (never store plaintext)
- TTL: SANDBOX_OTP_TTL_MINUTES (default 5)
- Max attempts: SANDBOX_OTP_MAX_ATTEMPTS per code (default 3)
- Cooldown: SANDBOX_OTP_COOLDOWN_SECONDS between codes per email (default 0)
- Single-use: removed after successful verification
- Per-IP limits: enforced at route level via slowapi
"""

from __future__ import annotations

import os
import hmac
import logging
import secrets
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from hashlib import sha256
from typing import Callable, Dict, List, Optional, Tuple

from gamerhive.privacy_utils import mask_email

log = logging.getLogger("gamerhive.sandbox.otp")

DEFAULT_OTP_TTL_MINUTES = 5
DEFAULT_OTP_MAX_ATTEMPTS = 3
DEFAULT_OTP_COOLDOWN_SECONDS = 0

INVALID_OR_MISSING_MESSAGE = "Invalid or expired OTP. Please request a new one."
EXPIRED_MESSAGE = "OTP has expired. Please request a new one."


# ============================================================
# Configuration
# ============================================================

def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        log.warning("Invalid %s, using %d", name, default)
        return default


def get_otp_ttl_minutes() -> int:
    return _int_env("SANDBOX_OTP_TTL_MINUTES", DEFAULT_OTP_TTL_MINUTES)


def get_otp_max_attempts() -> int:
    return _int_env("SANDBOX_OTP_MAX_ATTEMPTS", DEFAULT_OTP_MAX_ATTEMPTS)


def get_otp_cooldown_seconds() -> int:
    return _int_env("SANDBOX_OTP_COOLDOWN_SECONDS", DEFAULT_OTP_COOLDOWN_SECONDS)


# ============================================================
# OTP Utilities
# ============================================================

def generate_otp() -> str:
    """Generate a secure 6-digit OTP, e.g. "123456" or "000001"."""
    return f"{secrets.randbelow(1000000):06d}"


def hash_otp(otp: str) -> str:
    """Hash OTP with SHA-256."""
    return sha256(otp.encode("utf-8")).hexdigest()


def verify_otp_hash(otp: str, otp_hash: str) -> bool:
    """Verify OTP against stored hash (constant-time comparison)."""
    return hmac.compare_digest(hash_otp(otp), otp_hash)


# ============================================================
# Delivery
# ============================================================

class OTPService(ABC):
    """Delivery channel for codes."""

    @abstractmethod
    def send_otp(self, email: str, otp: str, purpose: str) -> bool:
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass


@dataclass
class SentOTP:
    email: str
    otp: str
    purpose: str
    sent_at: datetime


class StubOTPService(OTPService):
    """
    Records every code in an outbox instead of sending mail.

    Tests and the CLI read codes back with latest().
    """

    def __init__(self):
        self.outbox: List[SentOTP] = []
        self._lock = threading.Lock()

    def send_otp(self, email: str, otp: str, purpose: str) -> bool:
        with self._lock:
            self.outbox.append(SentOTP(email, otp, purpose, datetime.now(timezone.utc)))
        log.info("[STUB OTP] %s code queued for %s", purpose, mask_email(email))
        return True

    def latest(self, email: str, purpose: Optional[str] = None) -> Optional[str]:
        email = email.strip().lower()
        with self._lock:
            for sent in reversed(self.outbox):
                if sent.email == email and (purpose is None or sent.purpose == purpose):
                    return sent.otp
        return None

    def get_provider_name(self) -> str:
        return "stub"


# ============================================================
# OTP Manager
# ============================================================

@dataclass
class OtpRecord:
    otp_hash: str
    expires_at: datetime
    created_at: datetime
    attempts: int = 0


class OTPManager:
    """
    Issues and checks codes per (email, purpose).

    Args:
        service: Delivery channel. Defaults to StubOTPService.
        now: Clock, injectable for expiry tests.
    """

    def __init__(
        self,
        service: Optional[OTPService] = None,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.service = service or StubOTPService()
        self.now = now
        self._records: Dict[Tuple[str, str], OtpRecord] = {}
        self._lock = threading.Lock()

    def issue(self, email: str, purpose: str) -> Tuple[bool, str]:
        """
        Create and send a new code, replacing any previous one.

        Returns:
            (success, message). On cooldown the message says how long to wait.
        """
        email = email.strip().lower()
        key = (email, purpose)
        now = self.now()

        with self._lock:
            previous = self._records.get(key)
            cooldown = get_otp_cooldown_seconds()
            if previous is not None and cooldown > 0:
                elapsed = (now - previous.created_at).total_seconds()
                if elapsed < cooldown:
                    wait = int(cooldown - elapsed) or 1
                    log.info("OTP cooldown active for %s, wait %ds", mask_email(email), wait)
                    return False, f"Please wait {wait} seconds before requesting another code"

            otp = generate_otp()
            self._records[key] = OtpRecord(
                otp_hash=hash_otp(otp),
                expires_at=now + timedelta(minutes=get_otp_ttl_minutes()),
                created_at=now,
            )

        if not self.service.send_otp(email, otp, purpose):
            log.warning("OTP delivery failed for %s", mask_email(email))
            return False, "Failed to send OTP email. Please try again."

        log.info("OTP issued for %s (%s) via %s", mask_email(email), purpose, self.service.get_provider_name())
        return True, "OTP sent"

    def verify(self, email: str, otp: str, purpose: str, consume: bool = True) -> Tuple[bool, str]:
        """
        Check a code. A wrong code uses up one attempt.

        consume=False keeps the record on success (used by reset-password,
        which verifies and consumes in one request after its own checks).
        """
        email = email.strip().lower()
        key = (email, purpose)
        max_attempts = get_otp_max_attempts()

        with self._lock:
            record = self._records.get(key)
            if record is None:
                return False, INVALID_OR_MISSING_MESSAGE

            if self.now() >= record.expires_at:
                del self._records[key]
                log.info("OTP expired for %s", mask_email(email))
                return False, EXPIRED_MESSAGE

            if record.attempts >= max_attempts:
                del self._records[key]
                return False, INVALID_OR_MISSING_MESSAGE

            if not verify_otp_hash(otp.strip(), record.otp_hash):
                record.attempts += 1
                remaining = max_attempts - record.attempts
                log.info("OTP mismatch for %s, %d attempts remaining", mask_email(email), remaining)
                if remaining <= 0:
                    del self._records[key]
                    return False, "Invalid OTP. No attempts remaining. Please request a new OTP."
                return False, f"Invalid OTP. You have {remaining} attempt(s) remaining."

            if consume:
                del self._records[key]

        log.info("OTP verified for %s (%s)", mask_email(email), purpose)
        return True, "OTP verified"

    def discard(self, email: str, purpose: str) -> None:
        with self._lock:
            self._records.pop((email.strip().lower(), purpose), None)

    def has_active(self, email: str, purpose: str) -> bool:
        with self._lock:
            return (email.strip().lower(), purpose) in self._records
