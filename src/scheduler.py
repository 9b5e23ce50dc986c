"""Periodic podcast feed sync scheduler.

Runs sync_all_podcasts on a fixed interval with APScheduler, starting
after a short initial delay. Only one batch runs at a time; a run that is
still going when the next one is due causes that next run to be skipped.
"""

import logging
from datetime import datetime, timedelta

from apscheduler.schedulers.blocking import BlockingScheduler

from src.argparse_shared import add_log_level_argument, get_base_parser
from src.cli.sync_commands import setup_logging
from src.config import Config
from src.db.factory import create_repository_from_config
from src.podcast.feed_sync import FeedSyncService, create_sync_service

SYNC_JOB_ID = "sync_all_podcasts"

logger = logging.getLogger(__name__)


def run_sync_job(sync_service: FeedSyncService) -> None:
    """Run one batch sync. Errors are logged so the scheduler keeps running."""
    try:
        result = sync_service.sync_all_podcasts()
    except Exception:
        logger.exception("Scheduled sync failed")
        return

    logger.info(
        f"Scheduled sync complete: "
        f"{result.synced} synced, "
        f"{result.failed} failed, "
        f"{result.episodes_added} new episodes"
    )


def create_scheduler(sync_service: FeedSyncService, config: Config) -> BlockingScheduler:
    """Build a scheduler with the periodic sync job registered.

    Args:
        sync_service: Service whose sync_all_podcasts is run.
        config: Provides SYNC_INTERVAL_HOURS and SYNC_INITIAL_DELAY_SECONDS.
    """
    scheduler = BlockingScheduler()
    first_run = datetime.now() + timedelta(seconds=config.SYNC_INITIAL_DELAY_SECONDS)

    scheduler.add_job(
        run_sync_job,
        "interval",
        hours=config.SYNC_INTERVAL_HOURS,
        args=[sync_service],
        id=SYNC_JOB_ID,
        next_run_time=first_run,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=600,
    )
    return scheduler


if __name__ == "__main__":
    parser = get_base_parser("Periodic podcast feed sync scheduler.")
    add_log_level_argument(parser)
    args = parser.parse_args()

    setup_logging(args.log_level)

    config = Config(env_file=args.env_file)
    repository = create_repository_from_config(config)
    sync_service = create_sync_service(repository, config)

    logging.info("Podcast feed sync scheduler starting...")
    logging.info(f"Sync interval: {config.SYNC_INTERVAL_HOURS}h")
    logging.info(f"Initial delay: {config.SYNC_INITIAL_DELAY_SECONDS}s")

    scheduler = create_scheduler(sync_service, config)

    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logging.info("Scheduler stopped.")
    finally:
        sync_service.close()
        repository.close()
        logging.info("Database connection closed")
