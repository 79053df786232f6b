"""CLI entry point for newsbridge.

Three commands share one configuration file:

* ``run`` -- the sync service, continuously with a Prometheus metrics server
  or for a single cycle with ``--once``;
* ``clear`` -- forget delivered article ids so the next cycle posts them again;
* ``nodes`` -- print recent Drupal nodes, and optionally one node in full.

The configuration path defaults to ``$CONFIG_PATH`` or
``config/connector.yaml``.

Examples:
    ```bash
    python -m newsbridge run
    python -m newsbridge run --once --log-level DEBUG --log-format text
    python -m newsbridge clear 8f2c1e 91ab07
    python -m newsbridge nodes --limit 10 4b7f6c1a-0000-4000-8000-000000000000
    ```
"""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from newsbridge.clients.drupal import Publisher
from newsbridge.core import start_metrics_server
from newsbridge.core.exceptions import ConfigurationError, NewsBridgeError
from newsbridge.core.ledger import DuplicateLedger
from newsbridge.core.logger import JsonFormatter, Logger, StructuredFormatter
from newsbridge.core.yaml import load_yaml
from newsbridge.services.connector import Connector, ConnectorConfig


DEFAULT_CONFIG = Path("config") / "connector.yaml"

logger = Logger("cli")

_log_handler = logging.StreamHandler()


def default_config_path() -> Path:
    """Return ``$CONFIG_PATH`` if set, else ``config/connector.yaml``."""
    return Path(os.getenv("CONFIG_PATH") or DEFAULT_CONFIG)


def load_config(path: Path) -> ConnectorConfig:
    """Load and validate the connector configuration.

    A missing file is not an error by itself: environment variables may
    supply everything, and validation reports whatever is still missing.

    Raises:
        ConfigurationError: If the YAML is malformed or does not validate.
    """
    if path.exists():
        data: dict[str, Any] = load_yaml(str(path))
    else:
        logger.warning("config_not_found", path=str(path))
        data = {}
    try:
        return ConnectorConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration in {path}: {e}") from e


async def run_connector(config: ConnectorConfig, *, once: bool) -> int:
    """Run the connector in one-shot or continuous mode.

    In one-shot mode, the service runs a single cycle and exits. In
    continuous mode, a Prometheus metrics server is started and the service
    runs until a shutdown signal is received.

    Returns:
        Exit code: 0 for success, 1 for failure.
    """
    service = Connector(config=config)

    # One-shot mode: single cycle, no metrics server
    if once:
        try:
            async with service:
                await service.run()
            logger.info("connector_completed")
            return 0
        except Exception as e:  # Intentionally broad: CLI error boundary for one-shot mode
            logger.error("connector_failed", error=str(e), error_type=type(e).__name__)
            return 1

    # Continuous mode: metrics server + indefinite operation
    metrics_config = config.metrics
    metrics_server = await start_metrics_server(metrics_config)

    if metrics_config.enabled:
        logger.info(
            "metrics_server_started",
            host=metrics_config.host,
            port=metrics_config.port,
            path=metrics_config.path,
        )

    def handle_signal(sig: signal.Signals) -> None:
        logger.info("shutdown_signal", signal=sig.name)
        service.request_shutdown()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, handle_signal, sig)

    try:
        async with service:
            await service.run_forever()
        return 0
    except Exception as e:  # Intentionally broad: CLI error boundary for continuous mode
        logger.error("connector_failed", error=str(e), error_type=type(e).__name__)
        return 1
    finally:
        await metrics_server.stop()
        if metrics_config.enabled:
            logger.info("metrics_server_stopped")


async def clear_articles(config: ConnectorConfig, article_ids: Sequence[str]) -> int:
    """Remove ledger entries so the given articles are delivered again.

    Returns:
        Exit code: 0 if every id was cleared, 1 otherwise.
    """
    ledger = DuplicateLedger.from_config(config.redis, ttl=config.service.dedup_ttl)
    failed = 0
    async with ledger:
        for article_id in article_ids:
            try:
                await ledger.clear(article_id)
            except NewsBridgeError:
                failed += 1
    logger.info("clear_completed", cleared=len(article_ids) - failed, failed=failed)
    return 1 if failed else 0


async def show_nodes(config: ConnectorConfig, node_id: str | None, limit: int) -> int:
    """Print recent nodes of the configured content type, then ``node_id`` if given."""
    content_type = config.service.content_type
    async with Publisher(config.drupal) as publisher:
        listing = await publisher.list_nodes(limit, content_type)
        print("=== Node List ===")
        print(json.dumps(listing, indent=2))

        if node_id:
            logger.info("node_fetch_started", node_id=node_id)
            node = await publisher.get_node(node_id, content_type)
            print("\n=== Node Details ===")
            print(json.dumps(node, indent=2))
    return 0


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Config path (default: $CONFIG_PATH or {DEFAULT_CONFIG})",
    )
    common.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Log level (default: INFO; 'debug: true' in the config forces DEBUG)",
    )
    common.add_argument(
        "--log-format",
        choices=["text", "json"],
        default=None,
        help="Log output format (default: log_format from the config, else text "
        "when debug is on and json otherwise)",
    )

    parser = argparse.ArgumentParser(
        prog="newsbridge",
        description="Elasticsearch to Drupal crime news connector",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", parents=[common], help="Run the sync service")
    run.add_argument(
        "--once",
        action="store_true",
        help="Run one cycle and exit (default: run continuously)",
    )

    clear = commands.add_parser(
        "clear", parents=[common], help="Forget delivered article ids"
    )
    clear.add_argument("article_ids", nargs="+", metavar="ID", help="Article id to clear")

    nodes = commands.add_parser("nodes", parents=[common], help="Inspect Drupal nodes")
    nodes.add_argument(
        "--limit", type=int, default=5, help="Number of nodes to list (default: 5)"
    )
    nodes.add_argument("node_id", nargs="?", help="Node UUID to print in full")

    return parser.parse_args(argv)


def setup_logging(level: str, log_format: str = "text") -> None:
    """Configure the root logger with structured formatting.

    Installs a single handler on the root logger so that all output, from
    ``Logger`` and from plain ``logging.getLogger()`` calls in libraries
    alike, shares one layout: ``level name message key=value ...`` for
    ``text``, one JSON object per line for ``json``. Calling it again
    switches the format and level in place.
    """
    formatter = JsonFormatter() if log_format == "json" else StructuredFormatter()
    _log_handler.setFormatter(formatter)
    logging.root.addHandler(_log_handler)
    logging.root.setLevel(getattr(logging, level))


def resolve_log_format(flag: str | None, config: ConnectorConfig) -> str:
    """Pick the log format: the CLI flag, then ``log_format``, then ``debug``.

    Without an explicit choice, debug runs log human-readable text and
    production runs log JSON lines.
    """
    if flag:
        return flag
    if config.log_format:
        return config.log_format
    return "text" if config.debug else "json"


async def main(argv: Sequence[str] | None = None) -> int:
    """Main entry point: parse args, load the configuration, dispatch the command."""
    args = parse_args(argv)
    setup_logging(args.log_level, args.log_format or "text")

    config_path = args.config or default_config_path()
    try:
        config = load_config(config_path)
    except (ConfigurationError, FileNotFoundError) as e:
        logger.error("config_invalid", path=str(config_path), error=str(e))
        return 1

    setup_logging(
        "DEBUG" if config.debug else args.log_level,
        resolve_log_format(args.log_format, config),
    )

    try:
        if args.command == "clear":
            return await clear_articles(config, args.article_ids)
        if args.command == "nodes":
            return await show_nodes(config, args.node_id, args.limit)
        return await run_connector(config, once=args.once)
    except NewsBridgeError as e:
        logger.error(f"{args.command}_failed", error=str(e), error_type=type(e).__name__)
        return 1
    except KeyboardInterrupt:
        logger.info("interrupted")
        return 130


def cli() -> None:
    """Synchronous entry point for console_scripts."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
