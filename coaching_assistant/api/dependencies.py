"""
FastAPI dependency injection.

Dependencies provide instances of services, stores, and configuration
to route handlers. Using dependency injection means:
- Routes don't instantiate their own dependencies (easier to test)
- Tests swap in in-memory stores and a scripted provider with
  app.dependency_overrides
- Resource lifecycle (connections, clients) is managed in one place

Each dependency is a function that FastAPI calls when needed.
"""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Annotated, Generator, Optional

from fastapi import Depends, Header, HTTPException, Security, status
from fastapi.security import APIKeyHeader

from ..config.settings import Settings, get_settings
from ..core.coaching.feedback import FeedbackAggregator
from ..core.coaching.follow_ups import FollowUpService
from ..core.coaching.lifecycle import SessionLifecycleService
from ..core.coaching.notifications import NotificationService
from ..core.coaching.provider import CoachingProvider
from ..core.coaching.smart_suggestions import SmartSuggestionOrchestrator
from ..core.coaching.stores import (
    ClientStore,
    FeedbackStore,
    FollowUpStore,
    InteractionStore,
    NotificationStore,
    SessionContextStore,
    SessionStore,
)
from ..infrastructure.anthropic.client import create_anthropic_client
from ..infrastructure.anthropic.provider import ClaudeCoachingProvider, DeferredChatClient
from ..infrastructure.memory.stores import (
    MemoryClientStore,
    MemoryDatabase,
    MemoryFeedbackStore,
    MemoryFollowUpStore,
    MemoryInteractionStore,
    MemoryNotificationStore,
    MemorySessionContextStore,
    MemorySessionStore,
)
from ..infrastructure.snowflake.client import SnowflakeConfig, get_snowflake_connection
from ..infrastructure.snowflake.repositories import (
    ClientRepository,
    FeedbackRepository,
    FollowUpRepository,
    InteractionRepository,
    NotificationRepository,
    SessionContextRepository,
    SessionRepository,
)
from ..infrastructure.subscription.client import SubscriptionConfig, SubscriptionGateway

logger = logging.getLogger(__name__)

# API Key security scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)

# Shared in-memory database for mock mode (persists across requests)
_mock_database: Optional[MemoryDatabase] = None


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------

async def verify_api_key(
    settings: Annotated[Settings, Depends(get_settings)],
    api_key: str = Security(api_key_header),
) -> str:
    """
    Validate API key from request header.

    Raises 403 if key is invalid or missing.
    """
    if not api_key:
        logger.warning("Request missing API key")
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="API key required. Provide X-API-Key header.",
        )

    if api_key not in settings.api_keys_list:
        logger.warning(
            "Invalid API key attempt",
            extra={"key_prefix": api_key[:8]}
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key",
        )

    return api_key


async def get_coach_id(
    api_key: Annotated[str, Depends(verify_api_key)],
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """
    The coach making the request.

    Authentication happens upstream; the API trusts the X-User-Id header
    once the API key checks out. Raises 401 without it.
    """
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="X-User-Id header required",
        )
    return x_user_id.strip()


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------

@dataclass
class Stores:
    """Every store the services need, backed by one connection per request."""
    sessions: SessionStore
    contexts: SessionContextStore
    clients: ClientStore
    feedback: FeedbackStore
    interactions: InteractionStore
    follow_ups: FollowUpStore
    notifications: NotificationStore


def memory_stores(db: MemoryDatabase) -> Stores:
    return Stores(
        sessions=MemorySessionStore(db),
        contexts=MemorySessionContextStore(db),
        clients=MemoryClientStore(db),
        feedback=MemoryFeedbackStore(db),
        interactions=MemoryInteractionStore(db),
        follow_ups=MemoryFollowUpStore(db),
        notifications=MemoryNotificationStore(db),
    )


def snowflake_config(settings: Settings) -> SnowflakeConfig:
    return SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )


def get_stores(
    settings: Annotated[Settings, Depends(get_settings)],
) -> Generator[Stores, None, None]:
    """
    Provide the stores with their backing connection.

    This is a generator function because the Snowflake connection has to
    be closed after the request. In mock mode one in-memory database is
    shared across requests so data persists during the testing session.
    """
    global _mock_database

    if settings.snowflake_mock_mode:
        if _mock_database is None:
            _mock_database = MemoryDatabase()
            logger.info("Created shared in-memory database for mock mode")
        yield memory_stores(_mock_database)
        return

    with get_snowflake_connection(snowflake_config(settings)) as conn:
        logger.debug("Created repositories with Snowflake connection")
        yield Stores(
            sessions=SessionRepository(conn),
            contexts=SessionContextRepository(conn),
            clients=ClientRepository(conn),
            feedback=FeedbackRepository(conn),
            interactions=InteractionRepository(conn),
            follow_ups=FollowUpRepository(conn),
            notifications=NotificationRepository(conn),
        )


# ---------------------------------------------------------------------------
# Service Dependencies
# ---------------------------------------------------------------------------

def get_provider(
    settings: Annotated[Settings, Depends(get_settings)],
) -> CoachingProvider:
    """
    Provide the Claude-backed coaching provider.

    The SDK client is only created when a request first talks to Claude,
    so routes that never call the provider work without an API key.
    """
    factory = partial(
        create_anthropic_client,
        api_key=settings.anthropic_api_key,
        model=settings.anthropic_model,
        max_tokens=settings.anthropic_max_tokens,
        temperature=settings.anthropic_temperature,
    )
    return ClaudeCoachingProvider(DeferredChatClient(factory))


def get_lifecycle_service(
    settings: Annotated[Settings, Depends(get_settings)],
    stores: Annotated[Stores, Depends(get_stores)],
    provider: Annotated[CoachingProvider, Depends(get_provider)],
) -> SessionLifecycleService:
    return SessionLifecycleService(
        sessions=stores.sessions,
        contexts=stores.contexts,
        clients=stores.clients,
        provider=provider,
        strategist_timeout_seconds=settings.strategist_timeout_seconds,
        load_timeout_seconds=settings.simple_session_load_timeout_seconds,
        detail_load_timeout_seconds=settings.session_load_timeout_seconds,
    )


def get_feedback_aggregator(
    stores: Annotated[Stores, Depends(get_stores)],
) -> FeedbackAggregator:
    return FeedbackAggregator(stores.feedback, stores.sessions)


def get_smart_suggestions(
    settings: Annotated[Settings, Depends(get_settings)],
    stores: Annotated[Stores, Depends(get_stores)],
    provider: Annotated[CoachingProvider, Depends(get_provider)],
) -> SmartSuggestionOrchestrator:
    return SmartSuggestionOrchestrator(
        provider,
        stores.interactions,
        window=settings.smart_suggestion_window,
    )


def get_follow_up_service(
    stores: Annotated[Stores, Depends(get_stores)],
) -> FollowUpService:
    return FollowUpService(stores.follow_ups, stores.clients)


def get_notification_service(
    stores: Annotated[Stores, Depends(get_stores)],
) -> NotificationService:
    return NotificationService(stores.notifications)


def get_subscription_gateway(
    settings: Annotated[Settings, Depends(get_settings)],
) -> SubscriptionGateway:
    if not settings.subscription_functions_url:
        logger.error("Subscription functions URL not configured")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Billing is not configured",
        )
    config = SubscriptionConfig(
        base_url=settings.subscription_functions_url,
        api_key=settings.subscription_functions_key,
        timeout_seconds=settings.subscription_timeout_seconds,
    )
    return SubscriptionGateway(config)


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
CoachId = Annotated[str, Depends(get_coach_id)]
SettingsDep = Annotated[Settings, Depends(get_settings)]
StoresDep = Annotated[Stores, Depends(get_stores)]
LifecycleDep = Annotated[SessionLifecycleService, Depends(get_lifecycle_service)]
FeedbackDep = Annotated[FeedbackAggregator, Depends(get_feedback_aggregator)]
SmartSuggestionsDep = Annotated[SmartSuggestionOrchestrator, Depends(get_smart_suggestions)]
FollowUpsDep = Annotated[FollowUpService, Depends(get_follow_up_service)]
NotificationsDep = Annotated[NotificationService, Depends(get_notification_service)]
SubscriptionDep = Annotated[SubscriptionGateway, Depends(get_subscription_gateway)]
