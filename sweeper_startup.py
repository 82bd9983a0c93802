import asyncio
import logging
import signal

from clinicrecords.adapters.store.factory import build_document_store
from clinicrecords.core.config import get_settings
from clinicrecords.core.structured_logger import configure_logging
from clinicrecords.workers.prescription_expiry_sweeper import run_expiry_sweeper_forever

logger = logging.getLogger("clinicrecords")


async def main() -> None:
    """
    Entry point for the prescription expiry sweeper.

    This process is intended to be run separately from the API:
        PYTHONPATH=./src python3 sweeper_startup.py
    """
    settings = get_settings()
    configure_logging(settings.logging)
    if not settings.prescription.expiry_sweep_enabled:
        logger.info(
            "Prescription expiry sweeper is disabled. "
            "Set PRESCRIPTION_EXPIRY_SWEEP_ENABLED=true to enable."
        )
        return

    logger.info("Starting prescription expiry sweeper")
    logger.info(
        "Sweeper config: backend=%s, interval=%ss",
        settings.store.backend,
        settings.prescription.expiry_sweep_interval_seconds,
    )

    store = build_document_store(settings)

    # Graceful shutdown via signals
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("Shutdown signal received for sweeper, stopping gracefully")
        stop_event.set()

    loop = asyncio.get_running_loop()
    if hasattr(signal, "SIGTERM"):
        loop.add_signal_handler(signal.SIGTERM, _signal_handler)
    if hasattr(signal, "SIGINT"):
        loop.add_signal_handler(signal.SIGINT, _signal_handler)

    try:
        sweeper_task = asyncio.create_task(run_expiry_sweeper_forever(store))
        await stop_event.wait()
        sweeper_task.cancel()
        try:
            await sweeper_task
        except asyncio.CancelledError:
            logger.info("Sweeper task cancelled.")
    finally:
        await store.close()
        logger.info("Sweeper document store closed.")


if __name__ == "__main__":
    asyncio.run(main())
