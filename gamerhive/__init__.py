# gamerhive/__init__.py
"""
GamerHive client: authentication and account lifecycle core.

Subpackages:
- accounts: session store, credential submission, OTP challenge, session
  finalizer, auth flow, password recovery, account lifecycle
- sandbox: in-process FastAPI backend for tests and local runs

Modules:
- api: async REST client (httpx)
- config: environment-driven settings
- errors: error taxonomy
- privacy_utils: PII masking for logs
"""

__version__ = "0.1.0"
