import asyncio
import logging
from typing import Optional

from teleconsult.application.services.availability_registry import AvailabilityRegistry
from teleconsult.core.config import AvailabilitySettings

logger = logging.getLogger("teleconsult")

MIN_INTERVAL_SECONDS = 5


async def _sweep_once(registry: AvailabilityRegistry, stale_minutes: Optional[int] = None) -> int:
    """
    Perform a single sweep marking online doctors that stopped reporting as offline.
    """
    count = await registry.cleanup_stale_availability(stale_minutes)
    if count:
        logger.info("[AvailabilitySweeper] Marked %d stale doctor(s) offline", count)
    else:
        logger.debug("[AvailabilitySweeper] No stale doctors found")
    return count


async def run_availability_sweeper_forever(
    registry: AvailabilityRegistry, settings: AvailabilitySettings
) -> None:
    """
    Run the stale availability sweeper in a loop until cancelled.

    A failed sweep is logged and retried on the next tick.
    """
    interval = max(MIN_INTERVAL_SECONDS, settings.sweeper_interval_seconds)

    logger.info(
        "[AvailabilitySweeper] Starting (interval=%ss, stale_minutes=%s)",
        interval,
        settings.stale_minutes,
    )

    while True:
        try:
            await _sweep_once(registry, settings.stale_minutes)
        except Exception as e:  # noqa: PERF203
            logger.error("[AvailabilitySweeper] Sweep iteration failed: %s", e, exc_info=True)
        await asyncio.sleep(interval)
