"""Best-effort email dispatch with a hard upper bound on waiting time."""

from __future__ import annotations

import asyncio
from typing import Awaitable

from shared.logging import get_logger

log = get_logger(__name__)


async def dispatch_best_effort(
    send: Awaitable[bool], *, timeout: float, event: str, **context
) -> bool:
    """Await *send* for at most *timeout* seconds.

    Returns the provider's result, or False on timeout/error. Never raises:
    the mutation that triggered the email has already committed.
    """
    try:
        delivered = await asyncio.wait_for(send, timeout=timeout)
    except asyncio.TimeoutError:
        log.warning(f"{event}_timeout", timeout=timeout, **context)
        return False
    except Exception as e:
        log.error(
            f"{event}_error", error=str(e), error_type=type(e).__name__, **context
        )
        return False
    if not delivered:
        log.warning(f"{event}_not_delivered", **context)
    return bool(delivered)
