"""Snowflake repository for the coach's clients (`targets`)."""

import logging
from typing import Optional

from ....core.coaching.models import Client
from .base import SnowflakeRepository, as_utc


logger = logging.getLogger(__name__)


class ClientRepository(SnowflakeRepository):

    async def list_clients(self, coach_id: str) -> list[Client]:
        rows = await self._fetchall("""
            SELECT id, target_name, user_id, created_at, is_favorite
            FROM targets
            WHERE user_id = %s
            ORDER BY created_at DESC
        """, (coach_id,))
        return [self._build_client(row) for row in rows if row[1]]

    async def fetch_client(self, client_id: str) -> Optional[Client]:
        row = await self._fetchone("""
            SELECT id, target_name, user_id, created_at, is_favorite
            FROM targets
            WHERE id = %s
        """, (client_id,))
        if not row or not row[1]:
            return None
        return self._build_client(row)

    async def insert_client(self, client: Client) -> None:
        await self._write("""
            INSERT INTO targets (id, target_name, user_id, created_at, is_favorite)
            VALUES (%s, %s, %s, %s, %s)
        """, (
            client.id, client.name, client.coach_id, client.created_at, client.is_favorite,
        ), "insert_client")

    async def set_favorite(self, client_id: str, is_favorite: bool) -> None:
        updated = await self._write("""
            UPDATE targets SET is_favorite = %s WHERE id = %s
        """, (is_favorite, client_id), "set_favorite")
        if updated == 0:
            logger.warning("Favorite update matched no client", extra={"client_id": client_id})

    def _build_client(self, row) -> Client:
        return Client(
            id=row[0],
            name=row[1],
            coach_id=row[2],
            created_at=as_utc(row[3]),
            is_favorite=bool(row[4]),
        )
