"""
Worker threads for the synchronous Resend SDK.

Email sends run here so a slow provider round-trip never stalls the event
loop. The pool is created on first use and torn down by the app lifespan.
"""
import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, TypeVar

from config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

_pool: ThreadPoolExecutor | None = None


def _get_pool() -> ThreadPoolExecutor:
    global _pool
    if _pool is None:
        _pool = ThreadPoolExecutor(max_workers=settings.email_pool_workers, thread_name_prefix="mail")
        logger.info(f"Mail worker pool started ({settings.email_pool_workers} threads)")
    return _pool


async def run_blocking(func: Callable[..., T], *args: Any, timeout: float | None = None, **kwargs: Any) -> T:
    """
    Await `func(*args, **kwargs)` on the mail pool.

    With `timeout`, raises asyncio.TimeoutError when the call has not
    returned in time; the worker thread itself keeps running to completion.
    """
    loop = asyncio.get_running_loop()
    future = loop.run_in_executor(_get_pool(), functools.partial(func, *args, **kwargs))
    if timeout is None:
        return await future
    return await asyncio.wait_for(future, timeout)


def shutdown_executor() -> None:
    global _pool
    if _pool is not None:
        _pool.shutdown(wait=True)
        _pool = None
        logger.info("Mail worker pool stopped")
