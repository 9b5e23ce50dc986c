"""CLI commands for podcast feed synchronization.

Provides commands for:
- Syncing every active podcast (one-shot batch)
- Syncing a single podcast
- Adding a podcast from its feed URL
- Viewing sync status and history
"""

import argparse
import logging
import sys

from ..argparse_shared import add_log_level_argument, add_timeout_argument, get_base_parser
from ..config import Config
from ..db.errors import RepositoryError
from ..db.factory import create_repository_from_config
from ..podcast.errors import FeedSyncError
from ..podcast.feed_sync import create_sync_service

logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Log to stdout and keep chatty libraries quiet at INFO."""
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    if log_level == "INFO":
        logging.getLogger("urllib3").setLevel("WARNING")
        logging.getLogger("apscheduler").setLevel("WARNING")


def sync_all(args, config: Config):
    """Sync every active podcast and exit with status 1 if any failed."""
    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    try:
        logger.info("Syncing all podcasts")
        result = sync_service.sync_all_podcasts(timeout=args.timeout)

        print(f"\nSync complete:")
        print(f"  Podcasts synced: {result.synced}")
        print(f"  Podcasts failed: {result.failed}")
        print(f"  New episodes: {result.episodes_added}")
        print(f"  Updated episodes: {result.episodes_updated}")

        failures = [r for r in result.results if not r.success]
        if failures:
            print(f"\nFailed syncs:")
            for r in failures:
                print(f"  - {r.podcast_id}: {r.error_message}")
            sys.exit(1)

    finally:
        sync_service.close()
        repository.close()


def sync_one(args, config: Config):
    """Sync a single podcast by ID."""
    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    try:
        logger.info(f"Syncing podcast: {args.podcast_id}")
        try:
            result = sync_service.sync_podcast(args.podcast_id, timeout=args.timeout)
        except FeedSyncError as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(f"\nSync complete:")
        print(f"  New episodes: {result.episodes_added}")
        print(f"  Updated episodes: {result.episodes_updated}")

    finally:
        sync_service.close()
        repository.close()


def add_podcast(args, config: Config):
    """Register a podcast from its feed URL and run the initial sync."""
    logger.info(f"Adding podcast from: {args.url}")

    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    try:
        try:
            podcast, result = sync_service.add_podcast(args.url, owner_id=args.owner)
        except (FeedSyncError, RepositoryError) as e:
            print(f"Error: {e}")
            sys.exit(1)

        print(f"\nAdded podcast: {podcast.title}")
        print(f"  ID: {podcast.id}")
        print(f"  Episodes: {result.episodes_added}")

    finally:
        sync_service.close()
        repository.close()


def show_status(args, config: Config):
    """Print the latest sync outcome for a podcast."""
    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    try:
        podcast = repository.get_podcast(args.podcast_id)
        if not podcast:
            print(f"Podcast not found: {args.podcast_id}")
            sys.exit(1)

        print(f"\nPodcast: {podcast.title}")
        print(f"  RSS URL: {podcast.rss_url or '-'}")
        print(f"  Last synced: {podcast.last_synced_at or 'never'}")

        latest = sync_service.get_sync_status(podcast.id)
        if latest is None:
            print(f"  No sync attempts recorded")
            return

        print(f"  Last attempt: {latest.created_at} ({latest.status})")
        print(f"    Added: {latest.episodes_added}")
        print(f"    Updated: {latest.episodes_updated}")
        if latest.error_message:
            print(f"    Error: {latest.error_message}")

    finally:
        sync_service.close()
        repository.close()


def show_history(args, config: Config):
    """Print one page of a podcast's sync history."""
    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    try:
        try:
            entries, total = sync_service.get_sync_history(
                args.podcast_id, page=args.page, page_size=args.page_size
            )
        except ValueError as e:
            print(f"Error: {e}")
            sys.exit(1)

        if not entries:
            print(f"No sync history for podcast {args.podcast_id}")
            return

        print(f"\nSync history ({total} total, page {args.page}):")
        print(f"{'When':<28}  {'Status':<8}  {'Added':<6}  {'Updated':<8}  {'Error'}")
        print("-" * 100)
        for entry in entries:
            print(
                f"{str(entry.created_at):<28}  "
                f"{entry.status:<8}  "
                f"{entry.episodes_added:<6}  "
                f"{entry.episodes_updated:<8}  "
                f"{entry.error_message or ''}"
            )

    finally:
        sync_service.close()
        repository.close()


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for sync commands."""
    parser = get_base_parser("Podcast feed synchronization")
    add_log_level_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # sync-all command
    sync_all_parser = subparsers.add_parser(
        "sync-all",
        help="Sync every active podcast once and exit",
    )
    add_timeout_argument(sync_all_parser)

    # sync command
    sync_parser = subparsers.add_parser(
        "sync",
        help="Sync a single podcast",
    )
    sync_parser.add_argument("podcast_id", help="ID of the podcast to sync")
    add_timeout_argument(sync_parser)

    # add command
    add_parser = subparsers.add_parser(
        "add",
        help="Add a podcast from its RSS feed URL",
    )
    add_parser.add_argument("url", help="RSS feed URL")
    add_parser.add_argument(
        "--owner",
        help="ID of the podcaster account that owns the podcast",
    )

    # status command
    status_parser = subparsers.add_parser(
        "status",
        help="Show the latest sync status of a podcast",
    )
    status_parser.add_argument("podcast_id", help="Podcast ID")

    # history command
    history_parser = subparsers.add_parser(
        "history",
        help="Show the sync history of a podcast",
    )
    history_parser.add_argument("podcast_id", help="Podcast ID")
    history_parser.add_argument("--page", type=int, default=1, help="Page number (from 1)")
    history_parser.add_argument(
        "--page-size", type=int, default=20, help="Entries per page"
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging(args.log_level)

    # Load configuration
    config = Config(env_file=args.env_file)

    # Route to appropriate command
    commands = {
        "sync-all": sync_all,
        "sync": sync_one,
        "add": add_podcast,
        "status": show_status,
        "history": show_history,
    }

    command_func = commands.get(args.command)
    if command_func:
        command_func(args, config)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
