"""
Request Context Middleware Tests.

WHY: Audit entries for role changes read the client IP, user agent and
request id from this middleware. These tests cover:
- Client IP extraction (direct and through proxies)
- Request id generation and propagation
- Context cleanup after the request, also on errors
"""

import dataclasses
from typing import Optional
from unittest.mock import MagicMock

import pytest
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_context import (
    RequestContext,
    RequestContextMiddleware,
    get_client_ip,
    get_request_context,
    get_user_agent,
)


def make_request(
    headers: Optional[dict] = None,
    client_host: Optional[str] = "10.0.0.1",
    method: str = "GET",
    path: str = "/api/organizations/members",
) -> Request:
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "headers": [(k.lower().encode(), v.encode()) for k, v in (headers or {}).items()],
        "query_string": b"",
        "client": (client_host, 12345) if client_host else None,
    }
    return Request(scope)


class TestGetClientIp:
    def test_prefers_x_real_ip(self):
        request = make_request(
            headers={"X-Real-IP": "192.168.1.100", "X-Forwarded-For": "203.0.113.50"}
        )
        assert get_client_ip(request) == "192.168.1.100"

    def test_uses_first_forwarded_hop(self):
        request = make_request(headers={"X-Forwarded-For": "203.0.113.50, 70.41.3.18"})
        assert get_client_ip(request) == "203.0.113.50"

    def test_falls_back_to_peer(self):
        assert get_client_ip(make_request(client_host="192.168.1.50")) == "192.168.1.50"

    def test_unknown_without_any_source(self):
        assert get_client_ip(make_request(client_host=None)) == "unknown"

    def test_strips_whitespace(self):
        request = make_request(headers={"X-Real-IP": "  192.168.1.100  "})
        assert get_client_ip(request) == "192.168.1.100"


class TestGetUserAgent:
    def test_present(self):
        request = make_request(headers={"User-Agent": "Mozilla/5.0 Chrome/120.0"})
        assert get_user_agent(request) == "Mozilla/5.0 Chrome/120.0"

    def test_missing(self):
        assert get_user_agent(make_request()) is None


class TestRequestContext:
    def test_context_is_frozen(self):
        ctx = RequestContext(
            request_id="abc-123",
            ip_address="192.168.1.1",
            user_agent=None,
            path="/api/admin/users",
            method="PUT",
        )
        with pytest.raises(dataclasses.FrozenInstanceError):
            ctx.ip_address = "10.0.0.2"

    def test_no_context_outside_request(self):
        assert get_request_context() is None


class TestRequestContextMiddleware:
    @pytest.mark.asyncio
    async def test_generates_request_id(self):
        async def call_next(req):
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        response = await middleware.dispatch(make_request(), call_next)

        assert len(response.headers["X-Request-ID"]) == 36

    @pytest.mark.asyncio
    async def test_reuses_inbound_request_id(self):
        async def call_next(req):
            return Response(content="OK", status_code=200)

        middleware = RequestContextMiddleware(app=MagicMock())
        response = await middleware.dispatch(
            make_request(headers={"X-Request-ID": "req-42"}), call_next
        )

        assert response.headers["X-Request-ID"] == "req-42"

    @pytest.mark.asyncio
    async def test_context_available_during_request(self):
        seen = {}

        async def call_next(req):
            seen["state"] = req.state.context
            seen["var"] = get_request_context()
            return Response(content="OK", status_code=200)

        request = make_request(
            headers={"X-Real-IP": "192.168.1.100", "User-Agent": "TestBrowser/1.0"},
            method="PUT",
            path="/api/admin/users/3/role",
        )
        middleware = RequestContextMiddleware(app=MagicMock())
        await middleware.dispatch(request, call_next)

        assert seen["state"] is seen["var"]
        assert seen["var"].ip_address == "192.168.1.100"
        assert seen["var"].user_agent == "TestBrowser/1.0"
        assert seen["var"].method == "PUT"
        assert seen["var"].path == "/api/admin/users/3/role"
        assert get_request_context() is None

    @pytest.mark.asyncio
    async def test_context_cleared_on_error(self):
        async def call_next(req):
            raise ValueError("handler failed")

        middleware = RequestContextMiddleware(app=MagicMock())
        with pytest.raises(ValueError):
            await middleware.dispatch(make_request(), call_next)

        assert get_request_context() is None
