"""Command line entry point.

Examples:
    balancer watch --input input.json --output output.json --interval 1
    balancer stdin < rounds.jsonl
    balancer serve --port 8080
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

from balancer.config import load_config
from balancer.driver import FileRoundDriver, StreamRoundDriver
from balancer.errors import ValidationError
from balancer.reconciler import Reconciler

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="balancer", description="VM placement and rebalancing loop")
    parser.add_argument("--config", default=None, help="YAML config file (default: $BALANCER_CONFIG)")
    parser.add_argument("--log-level", default=None, help="override log level")
    sub = parser.add_subparsers(dest="command", required=True)

    watch = sub.add_parser("watch", help="poll an input file and write reports")
    watch.add_argument("--input", default=None)
    watch.add_argument("--output", default=None)
    watch.add_argument("--interval", type=float, default=None, help="seconds between polls")
    watch.add_argument("--max-ticks", type=int, default=None)

    sub.add_parser("stdin", help="read JSON rounds from stdin, write reports to stdout")

    serve = sub.add_parser("serve", help="run the REST API (development server)")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8080)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = load_config(args.config)
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2

    logging.basicConfig(
        level=(args.log_level or config.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    reconciler = Reconciler(config)

    if args.command == "watch":
        driver = FileRoundDriver(
            reconciler,
            input_path=args.input or config.input_path,
            output_path=args.output or config.output_path,
            interval_sec=args.interval if args.interval is not None else config.poll_interval_sec,
        )
        try:
            driver.run(max_ticks=args.max_ticks)
        except KeyboardInterrupt:
            logger.info("Stopping file driver")
        return 0

    if args.command == "stdin":
        StreamRoundDriver(reconciler, sys.stdin, sys.stdout).run()
        return 0

    from balancer.api import create_app

    create_app(reconciler).run(host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
