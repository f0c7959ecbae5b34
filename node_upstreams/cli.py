"""Argument parsing, configuration loading, and watcher bootstrap."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import sys

from .config import load_config
from .daemon import Watcher
from .exceptions import ConfigError, NodeUpstreamsError
from .logging_config import configure_logging
from .source import NodeUpstreamSource

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="node-upstreams",
        description="Discover cloud node addresses and serve them as reverse-proxy upstreams",
    )
    parser.add_argument(
        "-c", "--config",
        required=True,
        help="Path to the YAML configuration file",
    )
    parser.add_argument(
        "--node-name-prefix",
        default=None,
        help="Override discovery.node_name_prefix from the configuration file",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Fetch upstreams once, print one host:port per line and exit",
    )
    parser.add_argument(
        "--validate",
        action="store_true",
        help="Validate the configuration file and exit",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    # Load config (minimal logging until config is loaded)
    try:
        config = load_config(args.config)
    except ConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 1

    if args.node_name_prefix is not None:
        config = dataclasses.replace(
            config,
            discovery=dataclasses.replace(config.discovery, node_name_prefix=args.node_name_prefix),
        )

    configure_logging(config.logging)

    if args.validate:
        logger.info("Configuration is valid")
        return 0

    source = NodeUpstreamSource(config)
    try:
        source.provision()
        watcher = Watcher(config, source)
        if args.once:
            logger.info("Fetching upstreams once (--once)")
            for upstream in watcher.run_once():
                print(upstream.dial)
        else:
            watcher.run()
    except NodeUpstreamsError as exc:
        logger.error("Fatal error: %s", exc)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 0

    return 0
