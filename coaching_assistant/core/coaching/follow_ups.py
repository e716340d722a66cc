"""Follow-up questions queued for the next session with a client."""

import logging
from datetime import datetime
from typing import Optional

from .errors import FollowUpAccessError
from .models import FollowUpTrigger, utcnow
from .stores import ClientStore, FollowUpStore


logger = logging.getLogger(__name__)


class FollowUpService:

    def __init__(self, store: FollowUpStore, clients: ClientStore) -> None:
        self._store = store
        self._clients = clients

    async def pending(self, target_id: str) -> list[FollowUpTrigger]:
        return await self._store.list_pending(target_id)

    async def mark_triggered(
        self,
        coach_id: str,
        trigger_id: str,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Raises:
            FollowUpAccessError: missing, or about a client the coach doesn't own
        """
        trigger = await self._store.fetch_trigger(trigger_id)
        client = await self._clients.fetch_client(trigger.target_id) if trigger else None
        if client is None or client.coach_id != coach_id:
            logger.warning(
                "Follow-up trigger not accessible",
                extra={"trigger_id": trigger_id, "coach_id": coach_id}
            )
            raise FollowUpAccessError(trigger_id)

        await self._store.mark_triggered([trigger_id], now or utcnow())
        logger.info("Follow-up triggered", extra={"trigger_id": trigger_id})

    async def dismiss_all(self, target_id: str, now: Optional[datetime] = None) -> int:
        """Mark every pending trigger for the client as triggered. Returns how many."""
        pending = await self._store.list_pending(target_id)
        if not pending:
            return 0
        await self._store.mark_triggered([t.id for t in pending], now or utcnow())
        logger.info(
            "Dismissed pending follow-ups",
            extra={"target_id": target_id, "count": len(pending)}
        )
        return len(pending)
