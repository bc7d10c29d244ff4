# gamerhive/sandbox/__init__.py
"""
In-process backend implementing the GamerHive auth and account endpoints.

Used by the test suite (through httpx.ASGITransport) and for local runs:

    uvicorn --factory gamerhive.sandbox.app:create_app

Submodules:
- app: create_app(), exception handlers
- routes: /auth/* and /user/* routers, slowapi limiter
- otp: OTP generation, hashing, stub delivery, attempts and expiry
- tokens: PyJWT tokens and the bearer dependency
- users: in-memory user directory
"""

from __future__ import annotations

__all__ = [
    "create_app",
    "limiter",
    "StubOTPService",
    "OTPManager",
]


def __getattr__(name: str):
    """Lazy import pattern so importing the client never pulls in FastAPI."""
    if name == "create_app":
        from .app import create_app
        return create_app

    if name == "limiter":
        from .routes import limiter
        return limiter

    if name in ("StubOTPService", "OTPManager"):
        from . import otp
        return getattr(otp, name)

    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
