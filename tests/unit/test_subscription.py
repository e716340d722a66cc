"""Tests for the billing functions client, using httpx's mock transport."""

import asyncio
import json
from datetime import datetime, timezone

import httpx
import pytest

from coaching_assistant.infrastructure.subscription.client import (
    SubscriptionConfig,
    SubscriptionError,
    SubscriptionGateway,
)


def gateway(handler) -> SubscriptionGateway:
    config = SubscriptionConfig(base_url="https://billing.example.com/functions/v1", api_key="secret")
    return SubscriptionGateway(config, transport=httpx.MockTransport(handler))


class TestSubscriptionGateway:

    def test_check_parses_status(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["user"] = request.headers["X-User-Id"]
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={
                "subscribed": True,
                "subscription_tier": "pro",
                "subscription_end": "2025-12-31T00:00:00Z",
            })

        status = asyncio.run(gateway(handler).check("coach-1"))

        assert status.subscribed
        assert status.subscription_tier == "pro"
        assert status.subscription_end == datetime(2025, 12, 31, tzinfo=timezone.utc)
        assert seen == {
            "path": "/functions/v1/check-subscription",
            "user": "coach-1",
            "auth": "Bearer secret",
        }

    def test_checkout_sends_tier_and_returns_url(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert json.loads(request.content) == {"tier": "premium"}
            return httpx.Response(200, json={"url": "https://checkout.example.com/abc"})

        url = asyncio.run(gateway(handler).create_checkout("coach-1", "premium"))

        assert url == "https://checkout.example.com/abc"

    def test_error_status_raises(self):
        def handler(request):
            return httpx.Response(500, json={"error": "boom"})

        with pytest.raises(SubscriptionError, match="500"):
            asyncio.run(gateway(handler).customer_portal("coach-1"))

    def test_missing_url_raises(self):
        def handler(request):
            return httpx.Response(200, json={})

        with pytest.raises(SubscriptionError, match="no redirect URL"):
            asyncio.run(gateway(handler).customer_portal("coach-1"))

    def test_unreachable_service_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        with pytest.raises(SubscriptionError, match="check-subscription failed"):
            asyncio.run(gateway(handler).check("coach-1"))

    def test_config_requires_url(self):
        with pytest.raises(ValueError):
            SubscriptionConfig(base_url="")
