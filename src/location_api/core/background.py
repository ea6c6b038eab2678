"""In-process background maintenance for the location service.

A single asyncio loop periodically evicts idle rate-limit windows and probe
histories, purges expired cache entries and deletes search logs past their
retention period.
"""

import asyncio

from loguru import logger

from location_api.services.location_service import LocationService


async def run_sweep(service: LocationService, *, purge_logs: bool = True) -> dict[str, int]:
    """Run one maintenance pass.

    Args:
        service: The location service to sweep.
        purge_logs: Also delete expired search logs.

    Returns:
        Counts of removed items by kind.
    """
    counts = await service.sweep()
    if purge_logs:
        counts["search_logs"] = await service.purge_search_logs()
    logger.debug(f"Location sweep complete: {counts}")
    return counts


async def location_sweep_loop(service: LocationService, interval: float, *, purge_logs: bool = True) -> None:
    """Background asyncio loop that sweeps location service state.

    Args:
        service: The location service to sweep.
        interval: Seconds between sweeps.
        purge_logs: Also delete expired search logs on each pass.
    """
    logger.info(f"Location sweep loop started (interval={interval:g}s)")

    while True:
        try:
            await asyncio.sleep(interval)
            await run_sweep(service, purge_logs=purge_logs)
        except asyncio.CancelledError:
            logger.info("Location sweep loop cancelled")
            break
        except Exception:
            logger.exception("Location sweep loop error")
