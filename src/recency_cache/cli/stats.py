import json
import logging
import traceback

from ..config import CacheSettings
from ..monitor import CacheMonitor, recommendations
from ..stats import CacheStats
from ..util import eprint, format_bytes

_logger = logging.getLogger("recency_cache.cli.stats")


def _cache_dir(args):
    return args.cache_dir or CacheSettings.from_env().cache_dir


def build_parser(subparsers, parent_parser):
    parser = subparsers.add_parser(
        "stats",
        help="Report the size, compression ratio and hit rate of a cache directory.",
        parents=[parent_parser],
    )
    parser.add_argument(
        "cache_dir",
        nargs="?",
        help="Cache directory to inspect. Defaults to RECENCY_CACHE_DIR, or ~/.cache/recency-cache.",
    )
    parser.add_argument(
        "--target",
        type=float,
        default=None,
        help="Target hit rate between 0 and 1. Defaults to RECENCY_CACHE_TARGET_HIT_RATE, or 0.8.",
    )
    parser.add_argument(
        "--hits",
        type=int,
        default=0,
        help="Number of cache hits observed by the caller, used to compute the hit rate.",
    )
    parser.add_argument(
        "--misses",
        type=int,
        default=0,
        help="Number of cache misses observed by the caller, used to compute the hit rate.",
    )
    parser.add_argument(
        "--access-time",
        type=float,
        default=None,
        metavar="MS",
        help="Average cache access time observed by the caller, in milliseconds.",
    )
    parser.add_argument("--save", metavar="PATH", help="Write the metrics as JSON to PATH.")
    parser.add_argument("--json", action="store_true", help="Print the metrics as JSON.")
    parser.add_argument(
        "--no-progress-bars",
        action="store_true",
        help="Do not show a progress bar while scanning the cache directory.",
    )
    parser.set_defaults(func=run_stats)

    prune_parser = subparsers.add_parser(
        "prune",
        help="Delete the least recently used files of a cache directory.",
        parents=[parent_parser],
    )
    prune_parser.add_argument("cache_dir", nargs="?", help="Cache directory to prune.")
    prune_parser.add_argument(
        "--max-entries",
        type=int,
        required=True,
        help="Number of most recently used files to keep.",
    )
    prune_parser.set_defaults(func=run_prune)


def _fail(args, e):
    eprint(f"Error: {e}")
    if args.verbose:
        traceback.print_exc()
    return 1


def run_stats(args):
    settings = CacheSettings.from_env()
    try:
        monitor = CacheMonitor(
            _cache_dir(args),
            target_hit_rate=settings.target_hit_rate if args.target is None else args.target,
            metrics_file=args.save,
            show_progress=not args.no_progress_bars and not args.json,
        )
        counters = CacheStats()
        for _ in range(args.hits):
            counters.record_hit()
        for _ in range(args.misses):
            counters.record_miss()
        if args.access_time is not None:
            counters.record_read(args.access_time / 1000)
        metrics = monitor.analyze(counters)
    except (FileNotFoundError, ValueError) as e:
        return _fail(args, e)

    if args.save:
        if monitor.save_metrics(metrics) is None:
            return 1

    if args.json:
        print(json.dumps(metrics, indent=2))
    else:
        print(f"Entries:           {metrics['total_entries']}")
        print(f"Total size:        {format_bytes(metrics['total_size'])}")
        print(f"Compression ratio: {metrics['compression_ratio']:.2f}")
        print(f"Hit rate:          {metrics['hit_rate'] * 100:.1f}% (target {metrics['target_hit_rate'] * 100:.0f}%)")
        print(f"Access time:       {metrics['average_access_time'] * 1000:.1f} ms")
        print(f"Status:            {metrics['status']}")
        tips = recommendations(metrics)
        if tips:
            print("Recommendations:")
            for tip in tips:
                print(f"  - {tip}")
    return 0


def run_prune(args):
    try:
        monitor = CacheMonitor(_cache_dir(args))
        removed = monitor.prune(args.max_entries)
    except (FileNotFoundError, ValueError) as e:
        return _fail(args, e)

    for path in removed:
        _logger.debug("Removed %s", path)
    print(f"Removed {len(removed)} entries")
    return 0
