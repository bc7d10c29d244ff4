# gamerhive/accounts/__init__.py
"""
GamerHive Accounts Package

This package provides:
- Session Store and storage backends (session)
- Credential Submission for signup/login (credentials)
- OTP Challenge with six-slot entry and resend (otp)
- Session Finalizer, the only writer of new sessions (finalizer)
- AuthFlow: explicit step machine over the above (flow)
- Password recovery (recovery)
- Account Lifecycle Controller: export, deactivate, reactivate, delete (lifecycle)

Invariants:
- A Session Record is created only after a successful verify-otp response
- user and token are written and removed together
- Failed deactivate/delete never tears down the session
"""

from __future__ import annotations

# Explicit exports for clean imports
__all__ = [
    # Models
    "UserProfile",
    "SessionRecord",
    "CredentialDraft",
    "PendingVerification",
    "AccountStatus",
    "Purpose",
    # Session
    "Storage",
    "MemoryStorage",
    "FileStorage",
    "SessionStore",
    "NotificationPreference",
    # Components
    "CredentialSubmission",
    "OtpEntry",
    "OtpChallenge",
    "OtpState",
    "SessionFinalizer",
    "AuthFlow",
    "FlowStep",
    "FlowEvent",
    "transition",
    "PasswordRecovery",
    "RecoveryStep",
    "AccountLifecycleController",
]

_SUBMODULES = {
    "models": ("UserProfile", "SessionRecord", "CredentialDraft", "PendingVerification",
               "AccountStatus", "Purpose"),
    "session": ("Storage", "MemoryStorage", "FileStorage", "SessionStore", "NotificationPreference"),
    "credentials": ("CredentialSubmission",),
    "otp": ("OtpEntry", "OtpChallenge", "OtpState"),
    "finalizer": ("SessionFinalizer",),
    "flow": ("AuthFlow", "FlowStep", "FlowEvent", "transition"),
    "recovery": ("PasswordRecovery", "RecoveryStep"),
    "lifecycle": ("AccountLifecycleController",),
}


# Lazy imports to avoid circular dependencies
def __getattr__(name: str):
    """Lazy import pattern for clean module loading."""
    from importlib import import_module

    for module, names in _SUBMODULES.items():
        if name in names:
            return getattr(import_module(f".{module}", __name__), name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
