import argparse
import logging
import os
import textwrap
import traceback

from dotenv import load_dotenv

from . import hash, remote, stats


def main(args=None):
    """The main routine."""

    # Pick up TURBO_TOKEN and friends from a local .env file. Real environment
    # variables win.
    load_dotenv(os.path.join(os.getcwd(), ".env"), override=False)

    parent_parser = argparse.ArgumentParser(add_help=False)
    parent_parser.add_argument(
        "--verbose",
        "-v",
        default=0,
        action="count",
        help="Include additional details, including full stack traces on errors. Pass twice (-vv) for debug logging.",
    )

    parser = argparse.ArgumentParser(
        prog="recency-cache",
        description=textwrap.dedent(
            """recency-cache is a cli tool to inspect and maintain build artifact caches.
    To see help for a specific subcommand, run `recency-cache <subcommand> --help`,
    e.g. `recency-cache stats --help`"""
        ),
    )
    subparsers = parser.add_subparsers(help="sub-command help", dest="subcommand", required=True)

    for module in [stats, hash, remote]:
        module.build_parser(subparsers, parent_parser)

    args = parser.parse_args(args=args)
    level = logging.DEBUG if args.verbose >= 2 else logging.INFO
    logging.basicConfig(format="%(asctime)s %(levelname)s [%(name)s]: %(message)s", level=level)

    return args.func(args)


if __name__ == "__main__":
    try:
        ret = main()
        if ret:
            os._exit(1)
    except Exception:
        traceback.print_exc()
        os._exit(1)
