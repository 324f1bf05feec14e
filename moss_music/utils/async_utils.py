"""
Async helper for offloading blocking callables.

SQLite calls and file system work run on a small dedicated thread pool so
the event loop keeps driving downloader subprocesses while they execute.
"""

import asyncio
import atexit
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import Any, Callable, TypeVar

T = TypeVar("T")

_IO_EXECUTOR = ThreadPoolExecutor(max_workers=4, thread_name_prefix="moss-music-io")


@atexit.register
def _shutdown_io_executor() -> None:
    _IO_EXECUTOR.shutdown(wait=False, cancel_futures=True)


async def run_blocking(func: Callable[..., T], /, *args: Any, **kwargs: Any) -> T:
    """Run blocking callable on the IO executor and await its result."""
    if not callable(func):
        raise TypeError("func must be callable")
    loop = asyncio.get_running_loop()
    if kwargs:
        return await loop.run_in_executor(_IO_EXECUTOR, partial(func, *args, **kwargs))
    return await loop.run_in_executor(_IO_EXECUTOR, func, *args)
