from __future__ import annotations

import asyncio
import functools
import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


def provider_executor(name: str, workers: int) -> ThreadPoolExecutor:
    """Bounded worker pool owned by a single provider.

    A hung call at one provider can only exhaust that provider's pool.
    """
    return ThreadPoolExecutor(max_workers=max(1, workers), thread_name_prefix=f"quotedesk-{name}")


async def call_upstream(
    provider: str,
    fetch: Callable[..., T],
    *args,
    timeout: float,
    executor: Executor | None = None,
) -> T | None:
    """Run a blocking adapter in a worker thread, bounded by ``timeout``.

    Returns ``None`` on timeout or on any exception the adapter failed to
    classify. A timed-out worker is abandoned and its result discarded.
    """
    loop = asyncio.get_running_loop()
    try:
        return await asyncio.wait_for(
            loop.run_in_executor(executor, functools.partial(fetch, *args)), timeout=timeout
        )
    except asyncio.TimeoutError:
        logger.info("%s timed out after %.1fs", provider, timeout)
    except Exception:
        logger.exception("%s adapter raised", provider)
    return None
