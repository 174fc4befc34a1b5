import traceback

from ..hashing import cache_key, composite_hash, file_hash
from ..util import eprint


def build_parser(subparsers, parent_parser):
    parser = subparsers.add_parser(
        "hash",
        help="Print content hashes of files, ignoring their metadata.",
        parents=[parent_parser],
    )
    parser.add_argument("files", nargs="+", help="Files to hash.")
    parser.add_argument(
        "--task",
        help="Also print the cache key for TASK over all of the files, e.g. `--task format:check`.",
    )
    parser.set_defaults(func=main)


def main(args):
    digests = []
    for path in args.files:
        try:
            digest = file_hash(path)
        except OSError as e:
            eprint(f"Error: could not hash {path}: {e}")
            if args.verbose:
                traceback.print_exc()
            return 1
        digests.append(digest)
        print(f"{digest}  {path}")

    if args.task:
        try:
            key = cache_key(args.task, composite_hash(*digests))
        except ValueError as e:
            eprint(f"Error: {e}")
            return 1
        print(key)
    return 0
