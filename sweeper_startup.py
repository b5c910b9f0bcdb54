import asyncio
import logging
import signal

from teleconsult.core.container import start_container
from teleconsult.core.config import get_settings
from teleconsult.core.structured_logger import configure_logging
from teleconsult.workers.availability_sweeper import run_availability_sweeper_forever

logger = logging.getLogger("teleconsult")


async def main() -> None:
    """
    Entry point for the stale availability sweeper.

    This process is intended to run alongside the API workers when the API
    itself has AVAILABILITY_SWEEPER_ENABLED=false:
        PYTHONPATH=./src python3 sweeper_startup.py
    """
    settings = get_settings()
    configure_logging(settings.logging.level, settings.logging.format)

    if settings.database.backend != "mongo":
        logger.info(
            "Standalone sweeper needs shared storage; DATABASE_BACKEND=%s keeps "
            "availability in the API process. Set AVAILABILITY_SWEEPER_ENABLED=true instead.",
            settings.database.backend,
        )
        return

    logger.info("Starting stale availability sweeper…")
    logger.info(
        "Sweeper config: interval=%ss, stale_minutes=%s, db=%s",
        settings.availability.sweeper_interval_seconds,
        settings.availability.stale_minutes,
        settings.database.db_name,
    )

    container = await start_container(settings)

    # Graceful shutdown via signals
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received for sweeper, stopping gracefully…")
        stop_event.set()

    loop = asyncio.get_running_loop()
    if hasattr(signal, "SIGTERM"):
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    if hasattr(signal, "SIGINT"):
        loop.add_signal_handler(signal.SIGINT, _signal_handler)

    try:
        sweeper_task = asyncio.create_task(
            run_availability_sweeper_forever(container.registry, settings.availability)
        )
        await stop_event.wait()
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            logger.info("Sweeper task cancelled.")
    finally:
        await container.close()
        logger.info("Sweeper MongoDB client closed.")


if __name__ == "__main__":
    # Allow running as: PYTHONPATH=./src python3 sweeper_startup.py
    asyncio.run(main())
