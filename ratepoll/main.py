"""
Entrypoint: load config, init logging, build the fetcher and the cycle
coordinator, then run the cycle loop until the process is interrupted.
"""

import asyncio
import sys

import structlog

from ratepoll.config import Config, CycleSettings
from ratepoll.cycle import CycleCoordinator, CycleDriver
from ratepoll.diagnostics import DiagnosticsLog, setup_logging
from ratepoll.errors import ConfigError
from ratepoll.fetcher import HTTPFetcher

logger = structlog.get_logger(__name__)


async def run(settings: CycleSettings, max_cycles: int = None):
    """Build the collaborators and drive cycles with them."""
    fetcher = HTTPFetcher(
        settings.target_resource,
        user_agent=settings.user_agent,
        accept_language=settings.accept_language,
        timeout=settings.request_timeout,
    )
    coordinator = CycleCoordinator(settings, fetcher, DiagnosticsLog())
    driver = CycleDriver(coordinator, settings)

    try:
        await driver.run_forever(max_cycles=max_cycles)
    finally:
        await fetcher.aclose()


def main():
    """Main entry point for the ratepoll daemon."""
    try:
        config = Config()
    except (FileNotFoundError, ValueError) as e:
        print(f"Fatal error during startup: {e}")
        sys.exit(1)

    setup_logging(config.logging)

    try:
        settings = CycleSettings.from_config(config)
    except ConfigError as e:
        logger.error("invalid_configuration", error=str(e))
        sys.exit(1)

    logger.info(
        "ratepoll_starting",
        target=settings.target_resource,
        cadence=settings.cadence,
        batch_size=settings.batch_size,
        rate_band=[settings.rate_floor, settings.rate_ceiling],
    )

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("ratepoll_stopped", reason="keyboard interrupt")


if __name__ == "__main__":
    main()
