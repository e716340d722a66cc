"""Optimistic local updates with rollback on a failed remote commit."""

import logging
from typing import Any, Awaitable, Callable, TypeVar


logger = logging.getLogger(__name__)

T = TypeVar("T")


async def apply_optimistically(
    target: Any,
    field_name: str,
    value: Any,
    commit: Callable[[], Awaitable[T]],
) -> T:
    """
    Set `target.field_name` to `value` now, then await `commit`.

    If the commit raises, the previous value is put back and the error is
    re-raised unchanged. There is no retry.
    """
    previous = getattr(target, field_name)
    setattr(target, field_name, value)
    try:
        return await commit()
    except Exception as e:
        setattr(target, field_name, previous)
        logger.warning(
            "Optimistic update reverted",
            extra={"field": field_name, "error": str(e)}
        )
        raise
