"""Non-propagating wrapper for writes that are allowed to fail silently."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def best_effort(
    session: AsyncSession,
    description: str,
    write: Callable[[], Awaitable[Any]],
    **log_context: Any,
) -> bool:
    """Run ``write`` inside a SAVEPOINT, logging and discarding database failures.

    Returns ``True`` when the write was applied. Only the savepoint is rolled
    back on failure; the surrounding transaction stays usable.
    """
    try:
        async with session.begin_nested():
            await write()
    except SQLAlchemyError:
        logger.warning(
            "Best-effort %s failed context=%s", description, log_context, exc_info=True
        )
        return False
    return True


__all__ = ["best_effort"]
