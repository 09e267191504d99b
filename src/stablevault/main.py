"""Main entry point - runs the ledger API."""

import asyncio
import logging
import signal

import uvicorn

from stablevault.api.app import create_app
from stablevault.config import get_settings

logger = logging.getLogger(__name__)


class Application:
    """Runs the API server until a shutdown signal arrives."""

    def __init__(self):
        self.settings = get_settings()
        self.server = None

    def configure_logging(self):
        log_level = logging.DEBUG if self.settings.debug else logging.INFO
        logging.basicConfig(
            level=log_level,
            format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        )

    async def start(self):
        """Start the API server."""
        self.configure_logging()

        logger.info("Starting StableVault...")
        logger.info(f"Environment: {self.settings.environment}")
        if self.settings.dry_run:
            logger.info("Dry-run mode: simulated router and tokens")

        app = create_app()
        config = uvicorn.Config(
            app,
            host=self.settings.api_host,
            port=self.settings.api_port,
            log_level="debug" if self.settings.debug else "info",
        )
        self.server = uvicorn.Server(config)
        logger.info(f"Starting API server on {self.settings.api_host}:{self.settings.api_port}")
        try:
            await self.server.serve()
        except asyncio.CancelledError:
            logger.info("API server cancelled")

    def shutdown(self):
        """Signal shutdown."""
        logger.info("Shutdown requested")
        if self.server is not None:
            self.server.should_exit = True


def main():
    """Main entry point."""
    app = Application()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, app.shutdown)

    try:
        loop.run_until_complete(app.start())
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received")
    finally:
        loop.close()


if __name__ == "__main__":
    main()
