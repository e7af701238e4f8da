"""Command-line entry point: `ppl PROGRAM`.

Loads the program file, runs it and prints every binding as `name = value`
in identifier order. A run-time error is reported on stderr instead of the
bindings; that still counts as a successful run (exit 0). Only a file that
cannot be read or fails to load exits non-zero.
"""

import argparse
import logging
import sys
from typing import List, Optional

from .errors import ParseError, PPLRuntimeError
from .interpreter import Interpreter, format_bindings, format_output
from .loader import load_file

logger = logging.getLogger("ppl.cli")
logger.addHandler(logging.NullHandler())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ppl", description="Run a PPL program.")
    parser.add_argument("program", help="path to the program file")
    parser.add_argument("--max-steps", type=int, default=None,
                        help="stop after this many instructions (default: unlimited)")
    parser.add_argument("--max-time", type=float, default=None, dest="max_time_s",
                        help="stop after this many seconds (default: unlimited)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log engine activity to stderr")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        program = load_file(args.program)
    except OSError as e:
        print(f"Error loading program: Unable to open file: {args.program} ({e.strerror or e})", file=sys.stderr)
        return 1
    except UnicodeDecodeError:
        print(f"Error loading program: {args.program} is not UTF-8 text", file=sys.stderr)
        return 1
    except ParseError as e:
        print(f"Error loading program: {e}", file=sys.stderr)
        return 1

    it = Interpreter()
    it.max_steps = args.max_steps
    it.max_time_s = args.max_time_s
    try:
        snapshot = it.execute(program)
    except PPLRuntimeError as e:
        print(f"Runtime error: {e}", file=sys.stderr)
        return 0
    sys.stdout.write(format_output(format_bindings(snapshot)))
    logger.debug("%d bindings printed", len(snapshot))
    return 0


if __name__ == "__main__":
    sys.exit(main())
