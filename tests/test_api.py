# tests/test_api.py
"""
API Client Tests

Tests for:
- Path normalization under /api
- Bearer header only when auth=True and a token exists
- Response envelope normalization (non-2xx, non-JSON, missing envelope)
- Transport failures become NetworkError
- Configuration from the environment

Run with: pytest tests/test_api.py -v
"""

import os
from unittest.mock import patch

import httpx
import pytest

from gamerhive.api import ApiClient, normalize_path
from gamerhive.accounts.models import SessionRecord, UserProfile
from gamerhive.config import get_api_base_url, get_request_timeout, is_request_logging_enabled
from gamerhive.errors import NETWORK_ERROR_MESSAGE, NetworkError, ServerError


def _login(store):
    store.set(SessionRecord(user=UserProfile(id="u1"), token="t1"))


# ============================================================
# Paths and Headers
# ============================================================

class TestPathsAndHeaders:

    @pytest.mark.parametrize("path,expected", [
        ("/auth/login", "/api/auth/login"),
        ("auth/login", "/api/auth/login"),
        ("/api/auth/login", "/api/auth/login"),
    ])
    def test_normalize_path(self, path, expected):
        assert normalize_path(path) == expected

    @pytest.mark.asyncio
    async def test_auth_true_attaches_bearer(self, make_api, store, request_log):
        _login(store)

        def handler(request):
            request_log.requests.append(request)
            return httpx.Response(200, json={"success": True})

        await make_api(handler).request("GET", "/user/export/u1")
        assert request_log.requests[0].headers["Authorization"] == "Bearer t1"

    @pytest.mark.asyncio
    async def test_auth_false_never_attaches_bearer(self, make_api, store, request_log):
        _login(store)

        def handler(request):
            request_log.requests.append(request)
            return httpx.Response(200, json={"success": True})

        await make_api(handler).request("POST", "/auth/login", json={}, auth=False)
        assert "Authorization" not in request_log.requests[0].headers

    @pytest.mark.asyncio
    async def test_no_session_means_no_bearer(self, make_api, request_log):
        def handler(request):
            request_log.requests.append(request)
            return httpx.Response(200, json={"success": True})

        await make_api(handler).request("GET", "/user/export/u1")
        assert "Authorization" not in request_log.requests[0].headers


# ============================================================
# Envelope Normalization
# ============================================================

class TestNormalization:

    @pytest.mark.asyncio
    async def test_success_envelope(self, make_api):
        api = make_api(lambda r: httpx.Response(200, json={"success": True, "data": {"x": 1}}))
        resp = await api.request("GET", "/health")
        assert resp.success is True
        assert resp.data == {"x": 1}

    @pytest.mark.asyncio
    async def test_error_envelope_keeps_server_message(self, make_api):
        api = make_api(lambda r: httpx.Response(401, json={"success": False, "message": "Invalid email or password"}))
        resp = await api.request("POST", "/auth/login", auth=False)
        assert resp.success is False
        assert resp.message == "Invalid email or password"
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_non_json_error_gets_status_message(self, make_api):
        api = make_api(lambda r: httpx.Response(502, text="Bad Gateway"))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.success is False
        assert resp.message == "Request failed: 502"

    @pytest.mark.asyncio
    async def test_error_body_without_envelope_uses_its_message(self, make_api):
        api = make_api(lambda r: httpx.Response(500, json={"message": "Internal server error"}))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.message == "Internal server error"

    @pytest.mark.asyncio
    async def test_success_flag_on_error_status_is_overridden(self, make_api):
        api = make_api(lambda r: httpx.Response(500, json={"success": True}))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.success is False

    @pytest.mark.asyncio
    async def test_2xx_without_envelope_is_not_success(self, make_api):
        api = make_api(lambda r: httpx.Response(200, json={"ok": True}))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.success is False

    @pytest.mark.asyncio
    async def test_badly_typed_envelope_becomes_status_message(self, make_api):
        api = make_api(lambda r: httpx.Response(400, json={"success": False, "message": {"text": "bad"}}))
        resp = await api.request("POST", "/auth/verify-otp", auth=False)
        assert resp.success is False
        assert resp.message == "Request failed: 400"
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_badly_typed_success_flag_is_not_success(self, make_api):
        api = make_api(lambda r: httpx.Response(200, json={"success": {"yes": 1}, "data": {"x": 1}}))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.success is False
        assert resp.message == "Request failed: 200"

    @pytest.mark.asyncio
    async def test_non_string_message_without_envelope(self, make_api):
        api = make_api(lambda r: httpx.Response(500, json={"message": ["a", "b"]}))
        resp = await api.request("GET", "/user/export/u1")
        assert resp.message == "Request failed: 500"

    @pytest.mark.asyncio
    async def test_call_raises_server_error_verbatim(self, make_api):
        api = make_api(lambda r: httpx.Response(400, json={"success": False, "message": "Email is already taken"}))
        with pytest.raises(ServerError) as exc_info:
            await api.call("POST", "/auth/signup", json={}, auth=False, fallback="Authentication failed")
        assert exc_info.value.message == "Email is already taken"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_call_uses_fallback_without_message(self, make_api):
        api = make_api(lambda r: httpx.Response(500, json={"success": False}))
        with pytest.raises(ServerError) as exc_info:
            await api.call("POST", "/auth/login", auth=False, fallback="Authentication failed")
        assert exc_info.value.message == "Authentication failed"


# ============================================================
# Transport Failures
# ============================================================

class TestNetworkErrors:

    @pytest.mark.asyncio
    async def test_connect_error_becomes_network_error(self, make_api):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await make_api(handler).call("GET", "/user/export/u1")
        assert exc_info.value.message == NETWORK_ERROR_MESSAGE
        assert "connection refused" in exc_info.value.detail

    @pytest.mark.asyncio
    async def test_network_error_is_logged(self, make_api, caplog):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with caplog.at_level("WARNING", logger="gamerhive.api"):
            with pytest.raises(NetworkError):
                await make_api(handler).request("GET", "/user/export/u1")
        assert "Network error" in caplog.text

    @pytest.mark.asyncio
    async def test_health(self, make_api):
        assert await make_api(lambda r: httpx.Response(200, json={"success": True})).health() is True
        assert await make_api(lambda r: httpx.Response(503)).health() is False


# ============================================================
# Configuration
# ============================================================

class TestConfig:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            assert get_api_base_url() == "http://localhost:3000"
            assert get_request_timeout() == 30.0
            assert is_request_logging_enabled() is False

    def test_base_url_trailing_slash_dropped(self):
        with patch.dict(os.environ, {"GAMERHIVE_API_URL": "https://api.example.com/"}):
            assert get_api_base_url() == "https://api.example.com"
            assert ApiClient().base_url == "https://api.example.com"

    @pytest.mark.parametrize("raw", ["abc", "-5", "0"])
    def test_invalid_timeout_falls_back(self, raw):
        with patch.dict(os.environ, {"GAMERHIVE_TIMEOUT_SECONDS": raw}):
            assert get_request_timeout() == 30.0

    @pytest.mark.parametrize("raw", ["on", "TRUE", "1", "yes"])
    def test_request_logging_flag(self, raw):
        with patch.dict(os.environ, {"GAMERHIVE_LOG_REQUESTS": raw}):
            assert is_request_logging_enabled() is True
