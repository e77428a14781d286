#!/usr/bin/env python3
"""Main entrypoint — wires the lag monitor and the command listener.

Usage::

    # Run with .env and config/settings.yaml from the working directory
    python scripts/run.py

    # Custom config / env files
    python scripts/run.py --config config/settings.yaml --env-file prod.env

    # Override log level
    python scripts/run.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from heightwatch.core.config import load_settings
from heightwatch.core.exceptions import ConfigurationError
from heightwatch.core.logging import setup_logging
from heightwatch.monitor.factory import create_monitor_stack

logger = structlog.get_logger(__name__)

EXIT_CONFIG_ERROR = 2


async def run(args: argparse.Namespace) -> int:
    """Start both loops and run until interrupted."""
    try:
        settings = load_settings(args.config, env_file=args.env_file)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    setup_logging(level=args.log_level, config=settings.logging)

    logger.info(
        "heightwatch_starting",
        endpoints=len(settings.endpoints.rpc_urls),
        node=settings.endpoints.node_url,
        level_1=settings.thresholds.level_1,
        level_2=settings.thresholds.level_2,
        level_3=settings.thresholds.level_3,
        interval_secs=settings.schedule.interval_secs,
        state_file=str(settings.state.path),
    )
    if settings.worst_case_cycle_secs > settings.schedule.interval_secs:
        logger.warning(
            "cycle_may_overrun",
            worst_case_secs=settings.worst_case_cycle_secs,
            interval_secs=settings.schedule.interval_secs,
            probe_timeout_secs=settings.probe.timeout_secs,
            telegram_timeout_secs=settings.telegram.timeout_secs,
        )

    stack = create_monitor_stack(settings)

    # ── Start everything ─────────────────────────────────────────
    await stack.monitor.start()
    await stack.listener.start()

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("heightwatch_shutting_down")

    await stack.listener.stop()
    await stack.monitor.stop()
    await stack.dispatcher.close()

    logger.info(
        "heightwatch_stopped",
        cycles=stack.monitor.cycle_count,
        cycle_errors=stack.monitor.error_count,
    )
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Monitor block height lag of a node against peer RPC endpoints.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--env-file",
        default=None,
        help="Path to a dotenv file (default: .env)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
