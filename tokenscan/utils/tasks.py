import asyncio
from collections.abc import Awaitable
from typing import Any


async def gather_in_order(*aws: Awaitable[Any]) -> list[Any]:
    """Run awaitables concurrently, returning results in argument order.

    Fails fast: as soon as any branch raises, every other branch is
    cancelled and the error propagates unchanged (no ExceptionGroup).
    When several branches have failed by the time that is noticed, the
    one earliest in argument order wins. Outer cancellation reaches
    every branch as well.
    """
    tasks = [asyncio.ensure_future(aw) for aw in aws]
    try:
        pending = set(tasks)
        while pending:
            _, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_EXCEPTION)
            for task in tasks:
                if task.done() and not task.cancelled() and task.exception() is not None:
                    raise task.exception()
        return [task.result() for task in tasks]
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
