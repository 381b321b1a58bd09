"""Entrypoint for running the Mowa server."""

from __future__ import annotations

import argparse
import sys
from typing import Optional, Sequence

import structlog
import uvicorn

from .api import create_app
from .config import load_settings
from .errors import ConfigError
from .logger import configure_logging

log = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mowa", description="Local messaging, uptime and storage API.")
    parser.add_argument("--config", default="", help="Path to configuration file (optional)")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    try:
        settings = load_settings(args.config)
    except ConfigError as exc:
        log.error("config.load_failed", error=str(exc))
        return 1

    configure_logging(log_level=settings.log_level, json_logs=settings.json_logs)
    log.info("server.starting", url=f"http://{settings.host}:{settings.port}")
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
        log_config=None,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
