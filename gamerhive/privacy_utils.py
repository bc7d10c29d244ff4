# gamerhive/privacy_utils.py
"""
Privacy utilities for client-side logging.

Every log line in the client and in the sandbox backend goes through these
helpers before it mentions a person.

Functions:
- mask_email(email): Mask email for logs
- hash_user_id(user_id): Hash user ID for logs
- is_pii_masked(value): Check that a value looks masked
- contains_raw_email(log_string): Detect unmasked emails in log output

Privacy Rails:
- Never log raw emails (use mask_email)
- Never log raw user IDs (use hash_user_id)
- Never log OTPs, passwords or bearer tokens
"""

from __future__ import annotations

import re
from hashlib import sha256
from typing import Optional


# ============================================================
# Email Masking
# ============================================================

def mask_email(email: Optional[str]) -> str:
    """
    Mask email for logs: gamer@example.com → ga**@example.com

    Examples:
        mask_email("gamer@example.com") → "ga**@example.com"
        mask_email("ab@example.com") → "**@example.com"
        mask_email(None) → "***"
        mask_email("invalid") → "***"
    """
    if not email or not isinstance(email, str):
        return "***"

    email = email.strip()

    if "@" not in email:
        return "***"

    local, domain = email.rsplit("@", 1)

    if len(local) <= 2:
        return f"**@{domain}"

    return f"{local[:2]}**@{domain}"


# ============================================================
# User ID Hashing
# ============================================================

def hash_user_id(user_id: Optional[str]) -> str:
    """
    Hash a user ID to 8 hex characters for logs.

    Returns "anon" when there is no ID to hash.
    """
    if not user_id or not isinstance(user_id, str):
        return "anon"

    user_id = user_id.strip()
    if not user_id:
        return "anon"

    return sha256(user_id.encode("utf-8")).hexdigest()[:8]


# ============================================================
# Validation Helpers (for testing)
# ============================================================

def is_pii_masked(value: str) -> bool:
    """Check if a value appears to be masked."""
    if not value or not isinstance(value, str):
        return False
    return "**" in value or value in ("anon", "***")


def contains_raw_email(log_string: str) -> bool:
    """
    Check if a log string contains what looks like a raw email.

    Note: This is a heuristic, not foolproof.
    """
    if not log_string or not isinstance(log_string, str):
        return False

    email_pattern = r'\b[A-Za-z0-9._%+-]{3,}@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b'
    matches = re.findall(email_pattern, log_string)

    raw_emails = [m for m in matches if "**" not in m]

    return len(raw_emails) > 0
