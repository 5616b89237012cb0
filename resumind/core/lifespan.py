import contextlib
from contextlib import asynccontextmanager
import asyncio
import logging

from resumind.core.platform import Platform

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app):
    platform = Platform.from_settings()
    app.state.platform = platform

    async def start_platform() -> None:
        try:
            await platform.start()
        except Exception as exc:  # readiness stays unset
            logger.error("platform_start_failed: %s", exc)

    start_task = asyncio.create_task(start_platform())
    yield
    if not start_task.done():
        start_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await start_task
    platform.close()
