# gamerhive/sandbox/routes.py
"""
Sandbox backend routes.

Endpoints (mounted under /api):
- POST /auth/signup: Store a pending signup and send a signup OTP
- POST /auth/login: Check password, reactivate if deactivated, send a login OTP
- POST /auth/verify-otp: Verify OTP; signup/login get {user, token}
- POST /auth/resend-otp: New code for a pending signup/login/reset
- POST /auth/forgot-password: Send a password reset OTP
- POST /auth/reset-password: Verify the reset OTP and set a new password
- GET /user/export/{user_id}: Export the caller's data
- PUT /user/account-status: Activate/deactivate the caller's account
- DELETE /user/account: Delete the caller's account

Rate Limits:
┌──────────────────────────────────────────────────────────────────┐
│ Endpoint             │ IP Limit                │ Per-Email Limit   │
├──────────────────────────────────────────────────────────────────┤
│ /auth/signup, login  │ 10/min                  │ OTP cooldown      │
│ /auth/verify-otp     │ 10/min                  │ attempts per OTP  │
│ /auth/resend-otp     │ SANDBOX_RESEND_LIMIT    │ OTP cooldown      │
└──────────────────────────────────────────────────────────────────┘

Every response uses the {success, message, data} envelope.
"""

import os
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field, field_validator

from slowapi import Limiter
from slowapi.util import get_remote_address

from gamerhive.privacy_utils import hash_user_id, mask_email
from gamerhive.sandbox.otp import OTPManager
from gamerhive.sandbox.tokens import create_token, get_current_user_required
from gamerhive.sandbox.users import MIN_PASSWORD_LENGTH, UserDirectory, check_password, public_user

log = logging.getLogger("gamerhive.sandbox.routes")

VALID_PURPOSES = ("signup", "login", "forgot-password")
PURPOSE_MESSAGE = 'Purpose must be either "signup", "login", or "forgot-password"'
DEACTIVATED_MESSAGE = "Account is deactivated. Please contact support."

DEFAULT_RESEND_LIMIT = "5/minute"


def get_resend_limit() -> str:
    return os.getenv("SANDBOX_RESEND_LIMIT", DEFAULT_RESEND_LIMIT).strip() or DEFAULT_RESEND_LIMIT


# ============================================================
# Router Setup
# ============================================================

auth_router = APIRouter(prefix="/auth", tags=["Authentication"])
user_router = APIRouter(prefix="/user", tags=["User"])

# Shared with create_app(); tests reset it between cases
limiter = Limiter(key_func=get_remote_address)


def fail(status_code: int, message: str) -> HTTPException:
    return HTTPException(status_code=status_code, detail={"success": False, "message": message})


def _users(request: Request) -> UserDirectory:
    return request.app.state.users


def _otp(request: Request) -> OTPManager:
    return request.app.state.otp


# ============================================================
# Request Schemas
# ============================================================

class _EmailInput(BaseModel):
    email: Optional[EmailStr] = None

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
            return v or None
        return v


class SignupInput(_EmailInput):
    username: str = ""
    password: str = ""
    confirm_password: str = Field(default="", alias="confirmPassword")


class LoginInput(_EmailInput):
    password: str = ""


class VerifyOTPInput(_EmailInput):
    otp: str = ""
    purpose: str = ""


class ResendOTPInput(_EmailInput):
    purpose: str = ""


class ForgotPasswordInput(_EmailInput):
    pass


class ResetPasswordInput(_EmailInput):
    otp: str = ""
    new_password: str = Field(default="", alias="newPassword")
    confirm_password: str = Field(default="", alias="confirmPassword")


class AccountStatusInput(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    is_active: Optional[bool] = Field(default=None, alias="isActive")


class DeleteAccountInput(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")


# ============================================================
# Auth Endpoints
# ============================================================

@auth_router.post("/signup", status_code=201)
@limiter.limit("10/minute")
async def signup(body: SignupInput, request: Request) -> dict:
    if not (body.username.strip() and body.email and body.password and body.confirm_password):
        raise fail(400, "All fields are required")
    if body.password != body.confirm_password:
        raise fail(400, "Passwords do not match")
    if len(body.password) < MIN_PASSWORD_LENGTH:
        raise fail(400, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    users = _users(request)
    if users.email_taken(body.email):
        raise fail(400, "Email is already taken")

    users.add_pending_signup(body.username, body.email, body.password)
    sent, message = _otp(request).issue(body.email, "signup")
    if not sent:
        raise fail(429, message)

    return {"success": True, "message": "OTP sent to your email. Please verify to complete signup."}


@auth_router.post("/login")
@limiter.limit("10/minute")
async def login(body: LoginInput, request: Request) -> dict:
    if not body.email or not body.password:
        raise fail(400, "Email and password are required")

    users = _users(request)
    user = users.get_user_by_email(body.email)
    if user is None or not check_password(body.password, user["password_hash"]):
        log.info("Login failed for %s", mask_email(body.email))
        raise fail(401, "Invalid email or password")

    was_deactivated = not user["is_active"]
    if was_deactivated:
        users.set_active(user["id"], True)
        log.info("Account reactivated on login: %s", hash_user_id(user["id"]))

    sent, message = _otp(request).issue(body.email, "login")
    if not sent:
        raise fail(429, message)

    return {
        "success": True,
        "message": (
            "Account reactivated. Please check your email for OTP verification."
            if was_deactivated
            else "Please check your email for OTP verification."
        ),
        "data": {"email": user["email"]},
    }


@auth_router.post("/verify-otp")
@limiter.limit("10/minute")
async def verify_otp(body: VerifyOTPInput, request: Request) -> dict:
    if not body.email or not body.otp or not body.purpose:
        raise fail(400, "Email, OTP, and purpose are required")
    if body.purpose not in VALID_PURPOSES:
        raise fail(400, PURPOSE_MESSAGE)

    consume = body.purpose != "forgot-password"
    ok, message = _otp(request).verify(body.email, body.otp, body.purpose, consume=consume)
    if not ok:
        raise fail(400, message)

    if body.purpose == "forgot-password":
        return {"success": True, "message": "OTP verified successfully. You can now reset your password."}

    users = _users(request)
    if body.purpose == "signup":
        user = users.complete_signup(body.email)
        if user is None:
            raise fail(400, "No pending signup request found. Please request signup OTP first.")
        message = "Email verified successfully"
    else:
        user = users.get_user_by_email(body.email)
        if user is None:
            raise fail(404, "User not found")
        if not user["is_active"]:
            raise fail(403, DEACTIVATED_MESSAGE)
        message = "OTP verified successfully. Login successful."

    token, _ = create_token(user["id"])
    return {"success": True, "message": message, "data": {"user": public_user(user), "token": token}}


@auth_router.post("/resend-otp")
@limiter.limit(get_resend_limit)
async def resend_otp(body: ResendOTPInput, request: Request) -> dict:
    if not body.email or not body.purpose:
        raise fail(400, "Email and purpose are required")
    if body.purpose not in VALID_PURPOSES:
        raise fail(400, PURPOSE_MESSAGE)

    users = _users(request)
    if body.purpose == "signup":
        if users.email_taken(body.email):
            raise fail(400, "User already exists. Please login instead.")
        if not users.has_pending_signup(body.email):
            raise fail(400, "No pending signup request found. Please request signup OTP first.")
    elif users.get_user_by_email(body.email) is None:
        raise fail(404, "User not found")

    sent, message = _otp(request).issue(body.email, body.purpose)
    if not sent:
        raise fail(429, message)

    return {"success": True, "message": "OTP has been resent to your email. Please check your inbox."}


@auth_router.post("/forgot-password")
@limiter.limit("10/minute")
async def forgot_password(body: ForgotPasswordInput, request: Request) -> dict:
    if not body.email:
        raise fail(400, "Email is required")

    user = _users(request).get_user_by_email(body.email)
    if user is None:
        # Anti-enumeration: same outcome whether the account exists or not
        return {
            "success": True,
            "message": "If an account with that email exists, we have sent a password reset OTP.",
        }
    if not user["is_active"]:
        raise fail(403, DEACTIVATED_MESSAGE)

    sent, message = _otp(request).issue(body.email, "forgot-password")
    if not sent:
        raise fail(429, message)

    return {"success": True, "message": "Password reset OTP has been sent to your email."}


@auth_router.post("/reset-password")
@limiter.limit("10/minute")
async def reset_password(body: ResetPasswordInput, request: Request) -> dict:
    if not (body.email and body.otp and body.new_password and body.confirm_password):
        raise fail(400, "Email, OTP, new password, and confirm password are required")
    if body.new_password != body.confirm_password:
        raise fail(400, "Passwords do not match")
    if len(body.new_password) < MIN_PASSWORD_LENGTH:
        raise fail(400, f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    users = _users(request)
    user = users.get_user_by_email(body.email)
    if user is None:
        raise fail(404, "User not found")

    ok, message = _otp(request).verify(body.email, body.otp, "forgot-password")
    if not ok:
        raise fail(400, message)

    users.set_password(user["id"], body.new_password)
    log.info("Password reset for %s", hash_user_id(user["id"]))
    return {"success": True, "message": "Password reset successfully. Please log in with your new password."}


# ============================================================
# User Endpoints
# ============================================================

def _require_self(current: dict, user_id: Optional[str]) -> None:
    if str(user_id) != current["id"]:
        raise fail(403, "Not authorized to manage another user's account")


@user_router.get("/export/{user_id}")
@limiter.limit("10/minute")
async def export_user_data(user_id: str, request: Request, current: dict = Depends(get_current_user_required)) -> dict:
    _require_self(current, user_id)
    data = _users(request).export(user_id)
    if data is None:
        raise fail(404, "User not found")
    return {"success": True, "message": "User data exported successfully", "data": data}


@user_router.put("/account-status")
@limiter.limit("10/minute")
async def update_account_status(
    body: AccountStatusInput,
    request: Request,
    current: dict = Depends(get_current_user_required),
) -> dict:
    if not body.user_id or body.is_active is None:
        raise fail(400, "User ID and isActive status are required")
    _require_self(current, body.user_id)

    user = _users(request).set_active(body.user_id, body.is_active)
    if user is None:
        raise fail(404, "User not found")

    return {
        "success": True,
        "message": (
            "Account activated successfully. Welcome back!"
            if user["is_active"]
            else "Account deactivated successfully. You can reactivate anytime by logging in."
        ),
        "data": {"isActive": user["is_active"], "userId": user["id"]},
    }


@user_router.delete("/account")
@limiter.limit("10/minute")
async def delete_account(
    body: DeleteAccountInput,
    request: Request,
    current: dict = Depends(get_current_user_required),
) -> dict:
    if not body.user_id:
        raise fail(400, "User ID is required")
    _require_self(current, body.user_id)

    if not _users(request).delete(body.user_id):
        raise fail(404, "User not found")
    return {"success": True, "message": "Account deleted successfully"}
