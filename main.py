#!/usr/bin/env python3
"""Entry point for the Mosaic observer.

Connects to the origin and auxiliary nodes, then observes both chains until
interrupted or until one of the block streams fails.
"""

import argparse
import asyncio
import logging
import os
import sys


# Configure logging before any other imports create loggers
def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the application.

    Args:
        level: Logging level as string (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    log_level: int = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


# Get logger for this module
logger = logging.getLogger(__name__)

from mosaic_observer.chain_connection import ChainConnection
from mosaic_observer.config import ChainConfig, ObserverConfig
from mosaic_observer.credentials import EnvCredentialProvider
from mosaic_observer.errors import ChainConnectionError
from mosaic_observer.observer import run
from mosaic_observer.scheduler import Scheduler


async def connect_chain(chain: ChainConfig, config: ObserverConfig, scheduler: Scheduler) -> ChainConnection:
    """Open the connection to one chain. Failures here are fatal."""
    return await ChainConnection.connect(
        name=chain.name,
        endpoint=chain.rpc_url,
        validator=chain.validator_address,
        polling_interval=config.monitoring.polling_interval,
        scheduler=scheduler,
        credential_provider=EnvCredentialProvider(chain.password_env),
        request_timeout=config.monitoring.request_timeout,
        max_poll_failures=config.monitoring.max_poll_failures,
    )


async def main() -> None:
    """Main entry point for the observer.

    Raises:
        SystemExit: On configuration, connection or runtime errors
    """
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="Mosaic observer - stream blocks and events from origin and auxiliary",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""Environment Variables:
  ORIGIN_RPC_URL              - RPC endpoint of the origin node
  ORIGIN_VALIDATOR_ADDRESS    - Validator account on the origin node
  ORIGIN_CONTRACTS            - Comma-separated address=abi_path pairs to decode events for
  ORIGIN_PASSWORD             - Validator password (prompted if unset)
  AUXILIARY_*                 - Same settings for the auxiliary chain
  POLLING_INTERVAL            - Seconds between polls for new blocks (default: 1)
  REQUEST_TIMEOUT             - HTTP request timeout in seconds (default: 30)
  MAX_POLL_FAILURES           - Failed polls in a row before giving up (default: 10)
  LOG_LEVEL                   - Logging level (can be overridden with --log-level)
        """
    )
    parser.add_argument(
        "--log-level",
        default=os.environ.get("LOG_LEVEL", "INFO"),
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level (default: INFO)"
    )
    args: argparse.Namespace = parser.parse_args()

    setup_logging(args.log_level)
    logger.info("=== Mosaic Observer Starting ===")

    try:
        config: ObserverConfig = ObserverConfig.from_env()
        config.log_config()
    except ValueError as e:
        logger.error(f"Configuration Error: {e}")
        logger.error("Please check your environment variables (see --help)")
        sys.exit(1)

    scheduler = Scheduler()
    connections: list[ChainConnection] = []
    observer = None
    try:
        origin = await connect_chain(config.origin, config, scheduler)
        connections.append(origin)
        auxiliary = await connect_chain(config.auxiliary, config, scheduler)
        connections.append(auxiliary)

        observer = run(origin, auxiliary, scheduler, config)
        await observer.wait()

    except (ChainConnectionError, ValueError, FileNotFoundError) as e:
        logger.error(f"Startup Error: {e}")
        sys.exit(1)

    except (KeyboardInterrupt, asyncio.CancelledError):
        logger.info("Received interrupt signal, shutting down gracefully...")
        if observer is not None:
            observer.stop()

    except Exception as e:
        logger.error(f"Fatal Error: {e}", exc_info=True)
        sys.exit(1)

    finally:
        await scheduler.shutdown()
        for connection in connections:
            await connection.close()

    # Observation only ends on its own when both block streams have failed
    if observer is not None and not observer.shutdown_event.is_set():
        sys.exit(1)


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
