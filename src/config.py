import os
from typing import Optional

from dotenv import load_dotenv

WRITE_POLICIES = ("abort", "savepoint")


def _get_int_env(
    name: str,
    default: int,
    min_val: Optional[int] = None,
    max_val: Optional[int] = None,
) -> int:
    """Parse an integer from an environment variable with validation.

    Args:
        name: Environment variable name.
        default: Default value if env var is not set.
        min_val: Minimum allowed value (inclusive), or None for no minimum.
        max_val: Maximum allowed value (inclusive), or None for no maximum.

    Returns:
        The parsed and validated integer value.

    Raises:
        ValueError: If the value cannot be parsed as an integer or is out of range.
    """
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = int(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for {name}: '{raw}' is not a valid integer"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be >= {min_val}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"Invalid value for {name}: {value} must be <= {max_val}"
        )

    return value


class Config:
    def __init__(self, env_file=None):
        """
        Initialize configuration by loading environment variables and setting default attributes.

        Parameters:
            env_file (str | None): Optional path to a .env file to load environment variables from.
                If omitted, the default .env discovery is used.

        Raises:
            ValueError: If a numeric setting is malformed or out of range, or the
                episode write policy is unknown.
        """
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()

        # Database configuration
        self.DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./podcast_sync.db")
        self.DB_POOL_SIZE = _get_int_env("DB_POOL_SIZE", 5, min_val=1)
        self.DB_MAX_OVERFLOW = _get_int_env("DB_MAX_OVERFLOW", 10, min_val=0)
        self.DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

        # Feed fetching
        self.FEED_USER_AGENT = os.getenv("FEED_USER_AGENT", "PodcastFeedSync/1.0")
        self.FEED_FETCH_TIMEOUT = _get_int_env("FEED_FETCH_TIMEOUT", 30, min_val=1)

        # Sync budgets in seconds
        self.SYNC_TIMEOUT_SECONDS = _get_int_env("SYNC_TIMEOUT_SECONDS", 300, min_val=1)
        self.SYNC_ALL_TIMEOUT_SECONDS = _get_int_env(
            "SYNC_ALL_TIMEOUT_SECONDS", 3600, min_val=1
        )
        self.SYNC_MAX_WORKERS = _get_int_env("SYNC_MAX_WORKERS", 4, min_val=1, max_val=64)

        # Periodic scheduler
        self.SYNC_INTERVAL_HOURS = _get_int_env("SYNC_INTERVAL_HOURS", 6, min_val=1)
        self.SYNC_INITIAL_DELAY_SECONDS = _get_int_env(
            "SYNC_INITIAL_DELAY_SECONDS", 60, min_val=0
        )

        # What a failing episode write does to the rest of the sync
        self.SYNC_EPISODE_WRITE_POLICY = os.getenv(
            "SYNC_EPISODE_WRITE_POLICY", "abort"
        ).strip().lower()
        if self.SYNC_EPISODE_WRITE_POLICY not in WRITE_POLICIES:
            raise ValueError(
                f"SYNC_EPISODE_WRITE_POLICY must be one of {', '.join(WRITE_POLICIES)}, "
                f"got: {self.SYNC_EPISODE_WRITE_POLICY}"
            )
