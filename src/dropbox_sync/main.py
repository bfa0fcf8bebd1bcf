"""Main application entry point."""

import argparse
import asyncio
import signal
import sys
from typing import Optional

from .config import ConfigLoader, ConfigurationError, SyncConfig, load_config_from_env
from .config.settings import get_settings
from .core import CancelToken, SyncOrchestrator
from .utils.logging import setup_logging, get_logger


class DropboxSyncApp:
    """Main Dropbox folder sync application."""

    def __init__(self, config: SyncConfig):
        """Initialize the application."""
        self.settings = get_settings()
        self.config = config
        self.logger = get_logger("DropboxSync")
        self.cancel = CancelToken()
        self.orchestrator: Optional[SyncOrchestrator] = None

    async def run(self, once: bool = False):
        """Run the sync loop until stopped."""
        self.logger.info(
            "Starting Dropbox folder sync",
            version=self.settings.version,
            accounts=len(self.config.accounts)
        )
        self.orchestrator = SyncOrchestrator(self.config)

        try:
            if once:
                await self.orchestrator.reconcile()
            else:
                await self.orchestrator.run(self.cancel)
        finally:
            await self.orchestrator.close()
            self.logger.info("Dropbox folder sync stopped")

    def stop(self):
        self.logger.info("Stop requested")
        self.cancel.cancel()


def setup_signal_handlers(app: DropboxSyncApp):
    """Set up signal handlers for graceful shutdown."""
    loop = asyncio.get_event_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(signum, app.stop)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(signum, lambda *_: app.stop())


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Mirror Dropbox folders into local directories")
    parser.add_argument("--config", help="Path to a YAML or JSON configuration file")
    parser.add_argument("--log-level", help="Override the LOG_LEVEL setting")
    parser.add_argument("--once", action="store_true", help="Run a single sync pass and exit")
    parser.add_argument(
        "--write-example",
        metavar="PATH",
        help="Write an example configuration file to PATH and exit"
    )
    return parser.parse_args(argv)


async def main(argv=None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging(log_level=args.log_level)
    logger = get_logger("main")

    if args.write_example:
        loader = ConfigLoader()
        fmt = "json" if args.write_example.endswith(".json") else "yaml"
        loader.save_to_file(loader.create_default_config(), args.write_example, format=fmt)
        return 0

    try:
        config = load_config_from_env(args.config)
    except ConfigurationError as e:
        logger.error("Could not load configuration", error=str(e))
        return 2

    app = DropboxSyncApp(config)
    setup_signal_handlers(app)
    await app.run(once=args.once)
    return 0


def cli():
    """Console script entry point."""
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
        sys.exit(0)


if __name__ == "__main__":
    cli()
