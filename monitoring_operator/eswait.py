"""Command-line readiness check run as an init container before policy jobs."""
import argparse
import os
import re
import sys
from typing import List, Optional

from loguru import logger

from .constants import ES_PASSWORD_ENV, ES_USER_ENV
from .errors import ReadinessTimeout
from .readiness import ReadinessGate

_DURATION = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h)$")
_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: str) -> float:
    """Parse a duration such as 90s, 1m or 2h into seconds."""
    match = _DURATION.match(value.strip())
    if not match:
        raise argparse.ArgumentTypeError(f"invalid duration '{value}'")
    return float(match.group(1)) * _UNITS[match.group(2)]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="monitoring-eswait",
        description="Wait until a search cluster runs the target version with enough data nodes.",
    )
    parser.add_argument("url", help="Base URL of the search cluster")
    parser.add_argument("version", help="Version every node must report")
    parser.add_argument("--number-of-data-nodes", type=int, default=1, dest="data_nodes",
                        help="Minimum number of data nodes (default: 1)")
    parser.add_argument("--timeout", type=parse_duration, default=parse_duration("1m"),
                        help="How long to wait, e.g. 30s, 5m (default: 1m)")
    return parser


def main(argv: Optional[List[str]] = None, gate: Optional[ReadinessGate] = None) -> int:
    args = build_parser().parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="INFO")

    gate = gate or ReadinessGate()
    try:
        gate.wait(
            args.url,
            args.version,
            args.data_nodes,
            args.timeout,
            username=os.environ.get(ES_USER_ENV) or None,
            password=os.environ.get(ES_PASSWORD_ENV) or None,
        )
    except ReadinessTimeout as e:
        logger.error(f"Timed out waiting for search cluster: {e}")
        return 1
    return 0


def run() -> None:
    sys.exit(main())


if __name__ == "__main__":
    run()
