#!/usr/bin/env python3
"""CLI entry point for clio-ai."""

import asyncio
import logging
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from agent.config import load_config
from agent.exceptions import ConfigError
from cli.cli_app import CLIApp


def setup_logging(log_dir: str, level: int = logging.INFO) -> None:
    """Send log records to <log_dir>/clio-ai.log; the terminal is left to the REPL."""
    os.makedirs(log_dir, exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.FileHandler(os.path.join(log_dir, "clio-ai.log"), encoding="utf-8")],
        force=True,
    )
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("asyncio").setLevel(logging.WARNING)


def main():
    config_path = sys.argv[1] if len(sys.argv) > 1 else None
    try:
        config = load_config(config_path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    setup_logging(config.log_dir)
    app = CLIApp(config)
    try:
        asyncio.run(app.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
