# tests/test_privacy.py
"""
Privacy Tests

Tests for:
- Email masking and user ID hashing helpers
- No raw email, OTP or token in client or sandbox logs across a full sign-in

Run with: pytest tests/test_privacy.py -v
"""

import logging

import pytest

from gamerhive.accounts.flow import AuthFlow
from gamerhive.accounts.lifecycle import AccountLifecycleController
from gamerhive.accounts.models import CredentialDraft
from gamerhive.privacy_utils import contains_raw_email, hash_user_id, is_pii_masked, mask_email


# ============================================================
# Privacy Utils Tests
# ============================================================

class TestPrivacyUtils:
    """Tests for privacy utility functions."""

    def test_mask_email(self):
        """Email masking should work correctly."""
        # Standard email
        assert mask_email("gamer@example.com") == "ga**@example.com"

        # Short local part
        assert mask_email("ab@example.com") == "**@example.com"

        # Invalid email
        assert mask_email("invalid") == "***"

        # None
        assert mask_email(None) == "***"

    def test_hash_user_id(self):
        hashed = hash_user_id("550e8400-e29b-41d4-a716-446655440000")
        assert len(hashed) == 8
        assert hashed.isalnum()

        assert hash_user_id(None) == "anon"
        assert hash_user_id("   ") == "anon"

    def test_hash_user_id_deterministic(self):
        uid = "550e8400-e29b-41d4-a716-446655440000"
        assert hash_user_id(uid) == hash_user_id(uid)

    def test_masked_values_are_recognized(self):
        assert is_pii_masked(mask_email("gamer@example.com")) is True
        assert is_pii_masked("anon") is True
        assert is_pii_masked("gamer@example.com") is False

    @pytest.mark.parametrize("line,expected", [
        ("Login failed for gamer@example.com", True),
        ("Login failed for ga**@example.com", False),
        ("nothing to see", False),
        ("", False),
    ])
    def test_contains_raw_email(self, line, expected):
        assert contains_raw_email(line) is expected


# ============================================================
# Log Hygiene
# ============================================================

class TestLogHygiene:
    """A full sign-in and account deletion never logs PII or secrets."""

    @pytest.mark.asyncio
    async def test_flow_logs_are_masked(self, sandbox_api, otp_outbox, store, caplog):
        email = "privacy.gamer@example.com"
        draft = CredentialDraft(username="quiet", email=email, password="secret1", confirm_password="secret1")

        with caplog.at_level(logging.DEBUG, logger="gamerhive"):
            flow = AuthFlow(sandbox_api, store)
            await flow.submit(draft, mode="signup")
            code = otp_outbox.latest(email, "signup")
            flow.paste(code)
            assert await flow.verify() is True
            record = flow.acknowledge()

            controller = AccountLifecycleController(sandbox_api, store, confirm=lambda t, m: True)
            await controller.delete_account()

        text = caplog.text
        assert contains_raw_email(text) is False
        assert code not in text
        assert record.token not in text
        assert record.user.id not in text
        assert "secret1" not in text
