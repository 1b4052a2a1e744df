"""Run the playboard session server.

    python -m playboard --port 8080
"""
from __future__ import annotations

import argparse
import logging

import uvicorn

from playboard.config import Settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="playboard", description="Chess session server")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8080)
    parser.add_argument("--log-level", default=None, help="overrides PLAYBOARD_LOG_LEVEL")
    return parser


def main(argv: list[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    level = (args.log_level or Settings.from_env().log_level).upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run("playboard.server:app", host=args.host, port=args.port, log_level=level.lower())


if __name__ == "__main__":
    main()
