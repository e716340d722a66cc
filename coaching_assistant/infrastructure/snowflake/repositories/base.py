"""
Shared plumbing for the Snowflake repositories.

The repository methods are async so they satisfy the store protocols.
The connector itself is synchronous: each helper runs one statement on
its own cursor in a worker thread, and writes commit before returning.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

from ..client import SnowflakeConnection


logger = logging.getLogger(__name__)


def to_variant_param(value: Any) -> Optional[str]:
    """JSON text for a PARSE_JSON(%s) placeholder; None stays SQL NULL."""
    if value is None:
        return None
    return json.dumps(value)


def parse_variant_json(variant_data: Any) -> Any:
    """
    Parse Snowflake VARIANT data that might be a string or already parsed.

    snowflake-connector-python returns VARIANT columns as JSON text, other
    drivers and fakes may hand back dicts and lists directly. Returns None
    for empty or unparsable values.
    """
    if variant_data is None or variant_data == "":
        return None

    if isinstance(variant_data, str):
        try:
            return json.loads(variant_data)
        except json.JSONDecodeError as e:
            logger.error(
                "Failed to parse VARIANT JSON string",
                extra={"variant_data": variant_data[:100], "error": str(e)}
            )
            return None

    return variant_data


def as_utc(value: Any) -> Optional[datetime]:
    """Timestamps from storage as aware UTC datetimes. Naive values are UTC."""
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SnowflakeRepository:
    """
    Base class holding the connection and the cursor helpers.

    The connector blocks, so every statement runs in a worker thread.
    That keeps the event loop free and lets asyncio.wait_for deadlines
    fire while a query is outstanding.
    """

    def __init__(self, connection: SnowflakeConnection) -> None:
        self._conn = connection

    async def _fetchall(self, query: str, params: Sequence[Any] = ()) -> list:
        return await asyncio.to_thread(self._run_fetchall, query, tuple(params))

    async def _fetchone(self, query: str, params: Sequence[Any] = ()):
        return await asyncio.to_thread(self._run_fetchone, query, tuple(params))

    async def _write(self, query: str, params: Sequence[Any], operation: str) -> int:
        """Run one write statement and commit. Returns the affected row count."""
        try:
            return await asyncio.to_thread(self._run_write, query, tuple(params))
        except Exception as e:
            logger.error(
                "Snowflake write failed",
                extra={"operation": operation, "error": str(e)}
            )
            raise

    def _run_fetchall(self, query: str, params: tuple) -> list:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            return list(cursor.fetchall())
        finally:
            cursor.close()

    def _run_fetchone(self, query: str, params: tuple):
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            return cursor.fetchone()
        finally:
            cursor.close()

    def _run_write(self, query: str, params: tuple) -> int:
        cursor = self._conn.cursor()
        try:
            cursor.execute(query, params)
            self._conn.commit()
            return cursor.rowcount or 0
        finally:
            cursor.close()
