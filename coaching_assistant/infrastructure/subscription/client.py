"""
Billing functions client.

Subscription state and checkout live in a separate billing service exposed
as three HTTP functions. This client only relays: it never decides what a
tier grants.

    POST {base_url}/check-subscription  -> {subscribed, subscription_tier, subscription_end}
    POST {base_url}/create-checkout     -> {url}
    POST {base_url}/customer-portal     -> {url}
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

import httpx


logger = logging.getLogger(__name__)


class SubscriptionError(Exception):
    """The billing service failed or answered with something unusable."""
    pass


@dataclass
class SubscriptionConfig:
    base_url: str
    api_key: str = ""
    timeout_seconds: float = 10.0

    def __post_init__(self) -> None:
        if not self.base_url:
            raise ValueError("Subscription functions URL is required")


@dataclass
class SubscriptionStatus:
    subscribed: bool = False
    subscription_tier: Optional[str] = None
    subscription_end: Optional[datetime] = None


class SubscriptionGateway:

    def __init__(
        self,
        config: SubscriptionConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    async def check(self, coach_id: str) -> SubscriptionStatus:
        data = await self._call("check-subscription", coach_id)
        end = data.get("subscription_end")
        try:
            subscription_end = datetime.fromisoformat(end.replace("Z", "+00:00")) if end else None
        except (AttributeError, ValueError):
            logger.warning("Unparsable subscription end", extra={"subscription_end": end})
            subscription_end = None
        return SubscriptionStatus(
            subscribed=bool(data.get("subscribed")),
            subscription_tier=data.get("subscription_tier"),
            subscription_end=subscription_end,
        )

    async def create_checkout(self, coach_id: str, tier: str) -> str:
        return self._url(await self._call("create-checkout", coach_id, {"tier": tier}))

    async def customer_portal(self, coach_id: str) -> str:
        return self._url(await self._call("customer-portal", coach_id))

    async def _call(
        self,
        function: str,
        coach_id: str,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        headers = {"X-User-Id": coach_id}
        if self._config.api_key:
            headers["Authorization"] = f"Bearer {self._config.api_key}"

        async with httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/") + "/",
            timeout=self._config.timeout_seconds,
            transport=self._transport,
        ) as client:
            try:
                resp = await client.post(function, json=body or {}, headers=headers)
            except httpx.HTTPError as e:
                logger.error(
                    "Billing function unreachable",
                    extra={"function": function, "error": str(e)}
                )
                raise SubscriptionError(f"{function} failed: {e}") from e

        if resp.status_code != 200:
            logger.error(
                "Billing function returned an error",
                extra={"function": function, "status_code": resp.status_code}
            )
            raise SubscriptionError(f"{function} returned {resp.status_code}")

        try:
            data = resp.json()
        except ValueError as e:
            raise SubscriptionError(f"{function} returned invalid JSON") from e
        if not isinstance(data, dict):
            raise SubscriptionError(f"{function} returned an unexpected payload")
        return data

    def _url(self, data: dict[str, Any]) -> str:
        url = data.get("url")
        if not isinstance(url, str) or not url:
            raise SubscriptionError("Billing function returned no redirect URL")
        return url
