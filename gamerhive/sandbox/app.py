# gamerhive/sandbox/app.py
"""
Sandbox backend application.

create_app() builds a fresh FastAPI app with empty in-memory state:
- app.state.users: UserDirectory
- app.state.otp: OTPManager (StubOTPService outbox unless a service is given)
- app.state.limiter: the slowapi limiter shared by the routers

Errors are normalized to {"success": false, "message": ...}, the shape the
client expects from every endpoint.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from gamerhive.sandbox.otp import OTPManager, OTPService
from gamerhive.sandbox.routes import auth_router, limiter, user_router
from gamerhive.sandbox.users import UserDirectory

log = logging.getLogger("gamerhive.sandbox")

RATE_LIMITED_MESSAGE = "Too many requests. Please try again in a minute."


def error_json(message: str, status: int = 400) -> JSONResponse:
    return JSONResponse(status_code=status, content={"success": False, "message": message})


def create_app(otp_service: Optional[OTPService] = None) -> FastAPI:
    """Build an isolated sandbox backend."""
    app = FastAPI(title="GamerHive Sandbox API")
    app.state.limiter = limiter
    app.state.users = UserDirectory()
    app.state.otp = OTPManager(otp_service)

    app.include_router(auth_router, prefix="/api")
    app.include_router(user_router, prefix="/api")

    @app.get("/api/health")
    async def health() -> dict:
        return {"success": True, "message": "ok"}

    @app.exception_handler(HTTPException)
    async def http_exc_handler(request: Request, exc: HTTPException):
        if isinstance(exc.detail, dict) and "message" in exc.detail:
            return JSONResponse(status_code=exc.status_code, content=exc.detail, headers=exc.headers)
        return error_json(str(exc.detail), exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        fields = {str(err.get("loc", ["", ""])[-1]) for err in exc.errors()}
        if "email" in fields:
            return error_json("Please provide a valid email address", 400)
        return error_json("Invalid input.", 400)

    @app.exception_handler(RateLimitExceeded)
    async def ratelimit_handler(request: Request, exc: RateLimitExceeded):
        log.info("Rate limit hit on %s", request.url.path)
        return error_json(RATE_LIMITED_MESSAGE, 429)

    return app
