"""
Background loops started by the application lifespan.

Each loop calls a synchronous store operation on a fixed interval. A failing
iteration is logged and the loop keeps going; loops end only when cancelled at
shutdown.
"""
import asyncio
import logging
from typing import Callable

logger = logging.getLogger(__name__)


async def run_periodically(name: str, interval: float, func: Callable[[], object]):
    logger.info(f"Background task '{name}' started (every {interval}s)")
    try:
        while True:
            await asyncio.sleep(interval)
            try:
                func()
            except Exception as e:
                logger.error(f"Background task '{name}' failed: {e}", exc_info=True)
    except asyncio.CancelledError:
        logger.info(f"Background task '{name}' stopped")
        raise


def start_background_tasks(specs: list[tuple[str, float, Callable[[], object]]]) -> list[asyncio.Task]:
    """Schedule one loop per ``(name, interval, func)``."""
    return [
        asyncio.create_task(run_periodically(name, interval, func), name=name)
        for name, interval, func in specs
    ]


async def stop_background_tasks(tasks: list[asyncio.Task]):
    for task in tasks:
        task.cancel()
    await asyncio.gather(*tasks, return_exceptions=True)
