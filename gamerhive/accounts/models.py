# gamerhive/accounts/models.py
"""
Pydantic models for the authentication and account lifecycle core.

Models (5):
1. UserProfile: The cached user record returned by verify-otp
2. SessionRecord: {user, token}, the only proof of authentication
3. CredentialDraft: Form contents while the signup/login form is open
4. PendingVerification: {email, purpose} between submission and OTP success
5. AccountStatus: Payload/result of the account-status call

Design Decisions:
- Pydantic v2 syntax (field_validator, ConfigDict)
- Wire names are camelCase (isActive, confirmPassword, userId); Python
  attributes are snake_case via aliases, populate_by_name on every model
- UserProfile keeps unknown fields (extra="allow") so a profile written
  back to storage loses nothing the backend sent

Privacy Rails:
- CredentialDraft is never persisted
- PendingVerification holds no token and no user record
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================
# Constants
# ============================================================

# OTP entry settings
OTP_LENGTH = 6

# Seconds a transient confirmation ("OTP has been resent...") stays visible
NOTICE_SECONDS = 3.0

# Minimum length enforced by the backend and by the reset-password form
MIN_PASSWORD_LENGTH = 6


class Purpose(str, Enum):
    """Discriminator threaded through the OTP flow."""

    SIGNUP = "signup"
    LOGIN = "login"
    PASSWORD_RESET = "forgot-password"


# Purposes that may lead to a Session Record
SESSION_PURPOSES = frozenset({Purpose.SIGNUP, Purpose.LOGIN})


def normalize_email(value: str) -> str:
    """Trim and lowercase an email address."""
    return value.strip().lower()


# ============================================================
# User Profile
# ============================================================

class UserProfile(BaseModel):
    """
    Subset of the backend user record the auth core relies on.

    is_active drives UI admission: a profile with isActive=false is never
    admitted as a live session.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(..., description="Backend user ID")
    email: Optional[str] = Field(default=None, description="Account email")
    username: Optional[str] = Field(default=None, description="Public username")
    name: Optional[str] = Field(default=None, description="Display name")
    is_active: bool = Field(default=True, alias="isActive", description="False once deactivated")
    picture: Optional[str] = Field(default=None, description="Avatar URL")

    @field_validator("id", mode="before")
    @classmethod
    def coerce_id(cls, v):
        # Backends hand out ObjectIds, UUIDs or integers
        if v is None:
            raise ValueError("user id is required")
        v = str(v).strip()
        if not v:
            raise ValueError("user id is required")
        return v

    @field_validator("is_active", mode="before")
    @classmethod
    def default_active(cls, v):
        return True if v is None else v

    @property
    def display_name(self) -> str:
        return self.username or self.name or ""

    def to_storage(self) -> dict:
        """Serialize with wire names, extra backend fields included."""
        return self.model_dump(mode="json", by_alias=True)


# ============================================================
# Session Record
# ============================================================

class SessionRecord(BaseModel):
    """
    The authenticated credential pair.

    Both fields are required, so a token without a user (or the reverse)
    cannot be represented.
    """

    model_config = ConfigDict(frozen=True)

    user: UserProfile
    token: str = Field(..., min_length=1, description="Bearer credential")

    @field_validator("token", mode="before")
    @classmethod
    def strip_token(cls, v):
        if isinstance(v, str):
            return v.strip()
        return v


# ============================================================
# Credential Draft
# ============================================================

class CredentialDraft(BaseModel):
    """
    Form contents for signup/login.

    Validation lives in credentials.validate_draft so every failure maps to
    the exact message shown inline on the form.
    """

    model_config = ConfigDict(populate_by_name=True)

    email: str = ""
    password: str = ""
    username: Optional[str] = None
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


# ============================================================
# Pending Verification
# ============================================================

class PendingVerification(BaseModel):
    """
    State between an accepted signup/login request and OTP success.

    Only created after the backend accepted the request. Holds no token.
    """

    model_config = ConfigDict(frozen=True)

    email: str
    purpose: Purpose

    @field_validator("email", mode="before")
    @classmethod
    def normalize(cls, v):
        if isinstance(v, str):
            v = normalize_email(v)
            if not v:
                raise ValueError("email is required")
        return v

    @field_validator("purpose")
    @classmethod
    def session_purpose_only(cls, v: Purpose) -> Purpose:
        if v not in SESSION_PURPOSES:
            raise ValueError("purpose must be signup or login")
        return v

    def to_payload(self) -> dict:
        return {"email": self.email, "purpose": self.purpose.value}


# ============================================================
# Account Status
# ============================================================

class AccountStatus(BaseModel):
    """Body of PUT /user/account-status and the data it returns."""

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="userId")
    is_active: bool = Field(..., alias="isActive")

    def to_payload(self) -> dict:
        return self.model_dump(by_alias=True)
