import logging
import traceback

from ..errors import RemoteCacheError
from ..remote_cache import RemoteCacheConfig, create_remote_cache_client
from ..util import eprint

_logger = logging.getLogger("recency_cache.cli.remote")


def build_parser(subparsers, parent_parser):
    remote_parser = subparsers.add_parser(
        "remote",
        help="Work with a Turborepo-compatible remote artifact cache.",
        parents=[parent_parser],
    )
    remote_parser.add_argument(
        "--team",
        help="Team identifier. If the parameter is not specified, the TURBO_TEAM environment variable will be used.",
    )
    remote_parser.add_argument(
        "--token",
        help="Authentication token. If the parameter is not specified, the TURBO_TOKEN environment variable will be used.",
    )
    remote_parser.add_argument(
        "--api-url",
        help="Remote cache base url. Defaults to TURBO_API, or https://api.vercel.com.",
    )
    remote_subparsers = remote_parser.add_subparsers(dest="remote_subcommand", required=True)

    exists_parser = remote_subparsers.add_parser("exists", help="Check whether an artifact is in the remote cache.")
    exists_parser.add_argument("hash", help="Artifact hash.")
    exists_parser.set_defaults(func=run_exists)

    push_parser = remote_subparsers.add_parser("push", help="Upload a file as an artifact.")
    push_parser.add_argument("hash", help="Artifact hash.")
    push_parser.add_argument("file", help="File to upload.")
    push_parser.set_defaults(func=run_push)

    pull_parser = remote_subparsers.add_parser("pull", help="Download an artifact into a file.")
    pull_parser.add_argument("hash", help="Artifact hash.")
    pull_parser.add_argument("output", help="File to write the artifact to.")
    pull_parser.set_defaults(func=run_pull)


def _client(args):
    config = RemoteCacheConfig()
    if args.team:
        config.team = args.team
    if args.token:
        config.token = args.token
    if args.api_url:
        config.endpoint = args.api_url.rstrip("/") + "/v8/artifacts"
    return create_remote_cache_client(config)


def run_exists(args):
    client = _client(args)
    try:
        if not client.config.has_token:
            raise RemoteCacheError("No authentication token provided. Set TURBO_TOKEN or pass --token.")
        exists = client.artifact_exists(args.hash)
    except RemoteCacheError as e:
        eprint(f"Error: {e}")
        return 1
    finally:
        client.close()
    print("found" if exists else "not found")
    return 0 if exists else 1


def run_push(args):
    try:
        with open(args.file, "rb") as f:
            data = f.read()
    except OSError as e:
        eprint(f"Error: could not read {args.file}: {e}")
        if args.verbose:
            traceback.print_exc()
        return 1

    client = _client(args)
    try:
        result = client.upload_artifact(args.hash, data)
    finally:
        client.close()

    if not result.success:
        eprint(f"Error: {result.error}")
        return 1
    _logger.info(f"Uploaded {result.bytes_transferred} bytes in {result.duration:.2f}s")
    return 0


def run_pull(args):
    client = _client(args)
    try:
        result = client.download_artifact(args.hash)
    finally:
        client.close()

    if not result.success:
        eprint(f"Error: {result.error}")
        return 1

    with open(args.output, "wb") as f:
        f.write(result.data)
    _logger.info(f"Downloaded {result.bytes_transferred} bytes in {result.duration:.2f}s")
    return 0
