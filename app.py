#!/usr/bin/env python3
"""Airlock controller – Main Entry Point.

Loads the layered configuration, builds the door and both side controllers,
serves the panels over HTTP and runs the control loop until SIGINT/SIGTERM.

Usage:
    python3 app.py                        # Run with INFO logging
    python3 app.py --log-level=debug      # error, warning, info, debug, trace
    python3 app.py --log-level=7          # Numeric logging threshold

Environment:
    AIRLOCK_DEFAULT_CONFIG   Default config file (default: next to app.py)
    AIRLOCK_CONFIG           Override config file (default: /etc/airlock/config.json)
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import re
import signal
import sys
from functools import partial

from const import (
    CONFIG_FILE,
    DEFAULT_CONFIG_FILE,
    ENV_CONFIG,
    ENV_DEFAULT_CONFIG,
    LOG_LEVELS,
)
from coordinator import Coordinator
from dashboard import Dashboard
from devices import SimulatedDeviceRegistry
from exceptions import AirlockError, OptionInvalid

_LOGGER = logging.getLogger(__name__)


def setup_logging(level: int = logging.INFO) -> None:
    """Configure logging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
    )
    # Reduce noise from libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def parse_log_level(value: str) -> int:
    """Map a level name or an integer verbosity to a logging level."""
    level = LOG_LEVELS.get(value)
    if level is not None:
        return level
    if re.fullmatch(r"[+-]?[0-9]+", value) is None:
        raise argparse.ArgumentTypeError(f"Invalid value for log-level: {value}")
    return int(value, 10)


def parse_options(argv: list[str]) -> argparse.Namespace:
    """Parse command line options, raising OptionInvalid on anything unknown."""
    parser = argparse.ArgumentParser(
        prog="airlock",
        description="Airlock controller",
        add_help=False,
        allow_abbrev=False,
        exit_on_error=False,
    )
    parser.add_argument(
        "--log-level",
        type=parse_log_level,
        default=logging.INFO,
        help="Logging level; may be repeated, the last one wins",
    )
    try:
        options, extras = parser.parse_known_args(argv)
    except argparse.ArgumentError as err:
        raise OptionInvalid(str(err)) from err
    if extras:
        raise OptionInvalid(f"Invalid option: {extras[0]}")
    return options


def install_signal_handlers(coordinator: Coordinator) -> None:
    """Stop the control loop on SIGINT/SIGTERM. Must run inside the loop."""

    def handle_signal():
        _LOGGER.info("Shutdown signal received")
        coordinator.stop()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal)


def main(argv: list[str] | None = None) -> None:
    try:
        options = parse_options(sys.argv[1:] if argv is None else argv)
    except OptionInvalid as err:
        sys.exit(f"airlock: {err}")

    setup_logging(options.log_level)

    default_file = os.environ.get(ENV_DEFAULT_CONFIG, DEFAULT_CONFIG_FILE)
    config_file = os.environ.get(ENV_CONFIG, CONFIG_FILE)

    devices = SimulatedDeviceRegistry()
    try:
        coordinator = Coordinator.from_files(devices, default_file, config_file)
    except AirlockError as err:
        _LOGGER.critical("Startup failed: %s", err)
        sys.exit(1)

    tasks = [partial(install_signal_handlers, coordinator)]
    dashboard_config = coordinator.config.dashboard
    if dashboard_config.enabled:
        dashboard = Dashboard(
            coordinator,
            devices,
            host=dashboard_config.host,
            port=dashboard_config.port,
        )
        tasks.append(dashboard.serve)

    coordinator.run(*tasks)


if __name__ == "__main__":
    main()
