"""PawCalm workers: engagement evaluation, reminder sweeps and insight refresh."""

import asyncio
import logging

from .config import Config
from .health import start_health_server
from .logging import setup_logging
from .registry import registered_types
from .worker import Worker

# Import handlers to register them
from . import handlers  # noqa: F401


def main() -> None:
    config = Config.from_env()
    setup_logging(config.log_format)

    logger = logging.getLogger(__name__)
    logger.info("PawCalm worker starting")
    logger.info("Log format: %s", config.log_format)
    logger.info("Health port: %d", config.health_port)
    logger.info("Reference timezone: %s", config.reference_timezone)
    logger.info("Registered job types: %s", registered_types())

    asyncio.run(_run(config))


async def _run(config: Config) -> None:
    health_server = await start_health_server(config.health_port, config.database_url)
    try:
        await Worker(config).run()
    finally:
        health_server.close()
        await health_server.wait_closed()


if __name__ == "__main__":
    main()
