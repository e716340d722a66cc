"""
The coach's client roster.

Clients ("targets" in storage) are the people sessions are about. The
roster keeps the coach's list in memory the way a view does, so a
favorite toggle shows up immediately and is reverted if the write fails.
"""

import logging
from typing import Optional

from .errors import ClientAccessError
from .models import Client, utcnow
from .optimistic import apply_optimistically
from .stores import ClientStore


logger = logging.getLogger(__name__)


class ClientRoster:

    def __init__(self, store: ClientStore, coach_id: str) -> None:
        self._store = store
        self._coach_id = coach_id
        self._clients: list[Client] = []

    @property
    def clients(self) -> list[Client]:
        return list(self._clients)

    async def refresh(self) -> list[Client]:
        self._clients = await self._store.list_clients(self._coach_id)
        return self.clients

    async def get(self, client_id: str) -> Client:
        """
        Load one of the coach's clients.

        Raises:
            ClientAccessError: missing, or owned by another coach
        """
        client = await self._store.fetch_client(client_id)
        if client is None or client.coach_id != self._coach_id:
            raise ClientAccessError(client_id)
        return client

    async def add(self, name: str) -> Client:
        client = Client(name=name.strip(), coach_id=self._coach_id, created_at=utcnow())
        await self._store.insert_client(client)
        self._clients.insert(0, client)
        logger.info("Client added", extra={"client_id": client.id, "coach_id": self._coach_id})
        return client

    async def toggle_favorite(self, client_id: str) -> Client:
        """
        Flip the favorite flag, optimistically.

        Raises:
            ClientAccessError: the client isn't in the roster or storage
        """
        client = self._find(client_id)
        if client is None:
            client = await self.get(client_id)
            self._clients.append(client)

        new_value = not client.is_favorite
        await apply_optimistically(
            client,
            "is_favorite",
            new_value,
            lambda: self._store.set_favorite(client_id, new_value),
        )
        return client

    def _find(self, client_id: str) -> Optional[Client]:
        for client in self._clients:
            if client.id == client_id:
                return client
        return None
