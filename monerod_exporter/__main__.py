#!/usr/bin/env python3
"""
Monerod Prometheus exporter

Usage:
    monerod-exporter [-c CONFIG]

    # or override single settings from the environment
    MONEROD_EXPORTER_MONEROD__BASE_URL=http://node:18081 monerod-exporter
"""

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

from monerod_exporter import __version__
from monerod_exporter.app import create_app
from monerod_exporter.config import default_config_path, load_config
from monerod_exporter.errors import ConfigError

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Prometheus exporter for monerod")
    parser.add_argument("-c", "--config", type=Path, default=None,
                        help=f"Path to the TOML config file (default: {default_config_path()})")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    try:
        config = load_config(args.config or default_config_path())
    except ConfigError as e:
        logger.error(f"Failed to load config: {e}")
        sys.exit(1)

    logging.getLogger().setLevel(config.log_level.upper())
    logger.debug(f"config: {config}")

    host, port = config.server.bind
    app = create_app(config)

    # uvicorn exits with status 1 by itself when the address can't be bound
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=config.log_level,
        ssl_keyfile=str(config.server.tls_key_path) if config.server.tls_key_path else None,
        ssl_certfile=str(config.server.tls_cert_path) if config.server.tls_cert_path else None,
    )


if __name__ == "__main__":
    main()
