"""Command line entry point: ``ring-to-open`` / ``python -m ring_to_open``."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import List, Optional

from .config import load_config
from .const import DEFAULT_ENV_FILE, VERSION
from .errors import RingToOpenError
from .models import RingToOpenConfig
from .service import RingToOpen

_LOGGER = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ring-to-open",
        description="Open the door when the Ring intercom doorbell is pressed during configured hours",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                          # Run until interrupted
  %(prog)s --env-file /etc/ring.env # Use another env file
  %(prog)s --test-unlock            # Unlock every intercom once and exit
  %(prog)s --test-unlock "Front"    # Unlock only the intercom named Front

Environment variables (or the env file):
- RING_REFRESH_TOKEN=... (required, rewritten when Ring rotates it)
- AUTO_OPEN_ENABLED=true (default false)
- DOOR_OPEN_TIME=08:00, DOOR_CLOSE_TIME=22:00
- DOOR_DEVICE_ID=... (optional, only watch this intercom)
- DEBUG=true (verbose logging)
        """,
    )
    parser.add_argument(
        "--env-file",
        default=DEFAULT_ENV_FILE,
        help=f"Path of the env file holding the refresh token (default: {DEFAULT_ENV_FILE})",
    )
    parser.add_argument(
        "--test-unlock",
        nargs="?",
        const="",
        default=None,
        metavar="NAME",
        help="Unlock all intercoms (or the one named NAME) immediately and exit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {VERSION}")
    return parser


def configure_logging(debug: bool) -> None:
    logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    if debug:
        logging.getLogger().setLevel(logging.DEBUG)
    else:
        # aiohttp is chatty at DEBUG, keep it quiet unless asked
        logging.getLogger("aiohttp").setLevel(logging.WARNING)


async def run_service(config: RingToOpenConfig, stop_event: Optional[asyncio.Event] = None) -> int:
    service = RingToOpen(config)
    stop_event = stop_event or asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except (NotImplementedError, RuntimeError):
            # Not available on every platform; Ctrl+C then surfaces as KeyboardInterrupt
            pass

    try:
        await service.async_start()
    except RingToOpenError as err:
        _LOGGER.error("Startup failed: %s", err)
        await service.async_close()
        return 1

    try:
        await stop_event.wait()
    finally:
        await service.async_stop()
    return 0


async def run_test_unlock(config: RingToOpenConfig, name: Optional[str]) -> int:
    service = RingToOpen(config)
    try:
        results = await service.async_test_unlock(name or None)
    except RingToOpenError as err:
        _LOGGER.error("Test unlock failed: %s", err)
        return 1
    finally:
        await service.async_close()

    for device_name, ok in results.items():
        _LOGGER.info("%s: %s", device_name, "unlocked" if ok else "FAILED")
    return 0 if results and all(results.values()) else 1


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.env_file)
    except RingToOpenError as err:
        configure_logging(False)
        _LOGGER.error("Invalid configuration: %s", err)
        return 1

    configure_logging(config.debug)

    try:
        if args.test_unlock is not None:
            return asyncio.run(run_test_unlock(config, args.test_unlock))
        return asyncio.run(run_service(config))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
