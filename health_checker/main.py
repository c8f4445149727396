"""Main entry point for the TCP health checker."""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import structlog

from health_checker.config import ConfigError, HealthCheckerConfig, load_config
from health_checker.notifications.discord_bot import HealthCheckBot
from health_checker.notifications.messages import StatusMessage
from health_checker.scheduler.health_monitor import HealthMonitor
from health_checker.state_tracker import ReachabilityState


logger = structlog.get_logger(__name__)

EXIT_CONFIG_ERROR = 1
EXIT_TARGET_DOWN = 2


def configure_logging(level: str = "INFO"):
    """Configure structlog and route third-party stdlib logging to stderr."""
    numeric_level = getattr(logging, str(level).upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        level=numeric_level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    # Request URLs and headers carry credentials.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(max(numeric_level, logging.INFO))


class LoggingNotificationSink:
    """Notification sink for runs without a chat session; it only logs."""

    async def set_presence(self, text: str, active: bool) -> bool:
        logger.info("Presence (not sent)", text=text, active=active)
        return True

    async def send_direct_message(self, recipient_id: str, message: StatusMessage) -> bool:
        logger.info("Direct message (not sent)", recipient_id=recipient_id, title=message.title, body=message.body)
        return True


async def run_once(config: HealthCheckerConfig) -> int:
    """Run a single monitor cycle without a Discord session."""
    monitor = HealthMonitor(config, LoggingNotificationSink())
    await monitor.run(max_cycles=1)
    return 0 if monitor.tracker.state is ReachabilityState.UP else EXIT_TARGET_DOWN


async def run_bot(config: HealthCheckerConfig):
    """Run the Discord session and the health monitor until terminated."""
    bot = HealthCheckBot(config)
    async with bot:
        await bot.start(config.discord_token.get_secret_value())


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="TCP health checker with Discord alerts")
    parser.add_argument(
        "--config",
        default=os.getenv("HEALTH_CHECKER_CONFIG"),
        help="Optional YAML file with settings (environment variables take precedence)",
    )
    parser.add_argument("--once", action="store_true", help="Probe the target once and exit (0 = up, 2 = down)")
    parser.add_argument(
        "--log-level",
        default=os.getenv("LOG_LEVEL", "INFO"),
        help="Logging level (DEBUG, INFO, WARNING, ...)",
    )
    args = parser.parse_args(argv)

    configure_logging(args.log_level)

    try:
        config = load_config(Path(args.config) if args.config else None)
    except ConfigError as e:
        print("Configuration errors:", file=sys.stderr)
        for error in e.errors:
            print(f"  - {error}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    logger.info(
        "Starting health checker",
        target=config.target,
        check_interval_seconds=config.check_interval_seconds,
        timeout_ms=config.timeout_ms,
    )

    if args.once:
        return asyncio.run(run_once(config))

    try:
        asyncio.run(run_bot(config))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
