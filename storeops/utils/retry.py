"""Retry helpers for transient transport failures."""

from __future__ import annotations

import asyncio
import functools
import logging
import random
from collections.abc import Awaitable, Callable

import httpx

logger = logging.getLogger(__name__)

RETRY_EXCEPTIONS = (OSError, asyncio.TimeoutError, httpx.TransportError)
MAX_ATTEMPTS = 3


def retry_async(func: Callable[..., Awaitable]):
    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        delay = 1.0
        for attempt in range(MAX_ATTEMPTS):
            try:
                return await func(*args, **kwargs)
            except RETRY_EXCEPTIONS as exc:
                if attempt == MAX_ATTEMPTS - 1:
                    raise
                logger.info("Transient failure (%s), retrying in %.1fs", exc, delay)
                await asyncio.sleep(delay + random.random())
                delay *= 2
    return wrapper
