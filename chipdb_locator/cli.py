#!/usr/bin/env python3
"""
Command-line front end for the chip database locator

Usage:
  chipdb-locate hx8k
  chipdb-locate -v --prefix ~/.local hx1k
  chipdb-locate --exe-dir
"""

import argparse
import logging
import sys
from typing import List, Optional

from pydantic import ValidationError

from chipdb_locator.exepath import ExecutablePathError, proc_self_dirname
from chipdb_locator.locator import find_chipdb
from chipdb_locator.settings import LocatorSettings

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format=LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chipdb-locate",
        description="Print the path of the chip database file for a device.",
    )
    parser.add_argument("device", nargs="?", help="device name, e.g. hx8k")
    parser.add_argument("--prefix", help="install prefix (env: CHIPDB_PREFIX)")
    parser.add_argument("--subdir", help="chipdb subdirectory (env: CHIPDB_SUBDIR)")
    parser.add_argument("--home", dest="home_dir", help="home directory used for a ~/ prefix")
    parser.add_argument("-v", "--verbose", action="store_true", help="log every path tried")
    parser.add_argument("--exe-dir", action="store_true",
                        help="print the directory of the running executable and exit")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = LocatorSettings.from_env(
            prefix=args.prefix,
            subdir=args.subdir,
            verbose=args.verbose or None,
        )
    except ValidationError as e:
        print(f"invalid configuration: {e}", file=sys.stderr)
        return 2

    configure_logging(settings.verbose)

    try:
        if args.exe_dir:
            print(proc_self_dirname())
            return 0

        if not args.device:
            parser.error("the following arguments are required: device")

        path = find_chipdb(
            args.device,
            prefix=settings.prefix,
            subdir=settings.subdir,
            home_dir=args.home_dir,
            verbose=settings.verbose,
        )
    except ExecutablePathError as e:
        print(f"fatal error: {e}", file=sys.stderr)
        return 1

    if path is None:
        print(f"Can't find chipdb file for device {args.device}.", file=sys.stderr)
        return 1

    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
