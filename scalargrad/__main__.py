import argparse
import logging
import sys

from scalargrad.config import DTYPES, config, setup_logger
from scalargrad.errors import ScalargradError
from scalargrad.value import Value

logger = logging.getLogger('scalargrad')


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        prog="scalargrad",
        description="Build z = x * y + y and backpropagate through it",
    )
    parser.add_argument("--x", type=float, default=2.0)
    parser.add_argument("--y", type=float, default=3.0)
    parser.add_argument("--dtype", type=str, default="float32", choices=sorted(DTYPES),
                        help="Scalar type of every node")
    parser.add_argument("--unchecked", action="store_true",
                        help="Let overflow produce inf/nan instead of raising")
    # logging arguments
    parser.add_argument("--log-level", type=str, default=config["log_level"],
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Set the logging level")
    parser.add_argument("--log-file", type=str, default=None, help="Also write logs to this file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)

    global logger
    logger = setup_logger(args.log_level, args.log_file)
    logger.debug(f"Command line arguments: {args}")

    if args.unchecked:
        config["checked_arithmetic"] = False

    dtype = DTYPES[args.dtype]
    try:
        x = Value(args.x, dtype=dtype)
        y = Value(args.y, dtype=dtype)
        z = x * y + y
        z.backward()
    except ScalargradError as e:
        logger.error(f"Error computing gradients: {e}")
        return 1

    print(f"z : {z}")
    print(f"x.grad: {x.grad}")  # y
    print(f"y.grad: {y.grad}")  # x + 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
