"""
Timeout and error translation for store calls made by the services.
"""
import asyncio
import logging
from typing import Awaitable, TypeVar

from ..exceptions import ServiceUnavailable
from ..store import StoreError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def call_store(operation: str, awaitable: Awaitable[T], timeout: float) -> T:
    """
    Await a store call with a timeout.

    Args:
        operation: Short name used in logs
        awaitable: The pending store call
        timeout: Seconds before giving up

    Returns:
        The store call's result

    Raises:
        ServiceUnavailable: On timeout or store failure
    """
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout)

    except asyncio.TimeoutError:
        logger.error(f"Store operation '{operation}' timed out after {timeout}s")
        raise ServiceUnavailable(f"Store operation '{operation}' timed out")

    except StoreError as e:
        logger.error(f"Store operation '{operation}' failed: {e}")
        raise ServiceUnavailable(f"Store operation '{operation}' failed") from e


__all__ = ['call_store']
