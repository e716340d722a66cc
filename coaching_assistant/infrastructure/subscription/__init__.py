"""HTTP client for the billing functions."""

from .client import SubscriptionConfig, SubscriptionError, SubscriptionGateway, SubscriptionStatus

__all__ = ["SubscriptionConfig", "SubscriptionError", "SubscriptionGateway", "SubscriptionStatus"]
