"""
Line-oriented host loop for the command interface.

Reads one command per line from stdin, prints every response, and runs the
motion director for a number of ticks after each command so G1 moves play
out between commands.
"""

import argparse
import logging
import sys
from typing import Optional, Sequence, TextIO

from .protocol import ArmCommandInterface
from .utils import load_config

logger = logging.getLogger(__name__)


def run(interface: ArmCommandInterface, lines: TextIO, out: TextIO,
        dt: float = 0.02, ticks: int = 50) -> int:
    """
    Feed ``lines`` to ``interface`` and write responses to ``out``.

    Returns:
        Number of commands handled
    """
    def listener(message: str):
        print(message, file=out)

    interface.add_listener(listener)
    count = 0
    try:
        for line in lines:
            line = line.strip()
            if not line or line.startswith(";"):
                continue
            interface.send(line)
            count += 1
            for _ in range(ticks):
                interface.update(dt)
    finally:
        interface.remove_listener(listener)
    return count


def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="G-code console for a DH robot arm")
    parser.add_argument("--config", default=None, help="YAML configuration file")
    parser.add_argument("--dt", type=float, default=0.02, help="tick length in seconds")
    parser.add_argument("--ticks", type=int, default=50, help="ticks to run after each command")
    parser.add_argument("--linear-velocity", type=float, default=None,
                        help="override the configured cartesian speed")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING,
                        format='%(levelname)s:%(name)s:%(message)s')

    config = load_config(args.config)
    if args.linear_velocity is not None:
        config.linear_velocity = args.linear_velocity

    interface = ArmCommandInterface.from_config(config)
    run(interface, sys.stdin, sys.stdout, dt=args.dt, ticks=args.ticks)
    return 0


if __name__ == "__main__":
    sys.exit(main())
