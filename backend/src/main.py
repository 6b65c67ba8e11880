#!/usr/bin/env python3
"""
FPL Round Tracker - Main Entry Point

Polls the fantasy site for the configured week and keeps rosters, player
scores and fixture results in Supabase up to date.
"""

import asyncio
import logging
import signal
import sys
from pathlib import Path

# Load .env from backend directory before Config() is used
from dotenv import load_dotenv
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent))

from config import Config
from sync.orchestrator import SyncOrchestrator
from utils.logger import setup_logging

logger = logging.getLogger(__name__)


class RoundTrackerService:
    """Main service class for the round tracker."""

    def __init__(self, config: Config):
        self.config = config
        self.orchestrator = None

    async def start(self):
        """Start the tracker loop."""
        logger.info("Starting FPL Round Tracker", extra={
            "version": "1.0.0",
            "environment": self.config.environment,
            "week": self.config.current_week,
        })

        try:
            self.orchestrator = SyncOrchestrator(self.config)
            await self.orchestrator.initialize()

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, self._handle_shutdown, sig)

            await self.orchestrator.run()

        except Exception as e:
            logger.error("Fatal error in round tracker", extra={
                "error": str(e),
                "error_type": type(e).__name__
            }, exc_info=True)
            raise

    def _handle_shutdown(self, signum):
        """Handle shutdown signals gracefully."""
        logger.info("Received shutdown signal", extra={"signal": signum})
        if self.orchestrator:
            asyncio.create_task(self.orchestrator.shutdown())


async def main():
    """Main entry point."""
    try:
        config = Config()
    except ValueError as e:
        setup_logging()
        logger.error("Invalid configuration", extra={"error": str(e)})
        sys.exit(2)

    setup_logging(config)

    service = RoundTrackerService(config)
    try:
        await service.start()
    except KeyboardInterrupt:
        logger.info("Service interrupted by user")
    except Exception as e:
        logger.error("Service crashed", extra={"error": str(e)}, exc_info=True)
        sys.exit(1)


def run():
    """Console script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
