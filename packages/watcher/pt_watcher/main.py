"""
Watcher entry point.

Loads configuration, configures logging, and follows the notification feed,
logging each notification as it arrives.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from .config import load_config
from .listener import NotificationWatcher


def configure_logging(level: str = "info", fmt: str = "json") -> None:
    """Configure structlog with the specified level and format."""
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level.lower()),
    )


async def log_notification(notification: dict[str, Any]) -> None:
    structlog.get_logger().info(
        "notification.received",
        notification_id=notification.get("id"),
        type=notification.get("type"),
        title=notification.get("title"),
        message=notification.get("message"),
    )


def run() -> None:
    """CLI entry point for the watcher."""
    parser = argparse.ArgumentParser(description="Project Tracker notification watcher")
    parser.add_argument(
        "-c", "--config",
        default="pt-watcher.yaml",
        help="Path to configuration file (default: pt-watcher.yaml)",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Poll once, print what is new and exit",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except FileNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except (ValidationError, yaml.YAMLError) as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)

    token = config.server.token
    if not token:
        print(f"Error: set {config.server.token_env} to a bearer token", file=sys.stderr)
        sys.exit(1)

    configure_logging(config.logging.level, config.logging.format)
    log = structlog.get_logger()
    log.info("watcher.config_loaded", config_path=args.config, server=config.server.url)

    watcher = NotificationWatcher(config, token)
    watcher.on_notification(log_notification)

    async def _once() -> None:
        try:
            await watcher.poll_once()
        finally:
            await watcher.stop()

    try:
        asyncio.run(_once() if args.once else watcher.run_forever())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
