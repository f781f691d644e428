"""League configuration management."""

import logging
import os
from functools import lru_cache
from pathlib import Path

from .schemas import DropRateBand, LeagueConfig
from .utils import load_json

logger = logging.getLogger('pffl.config')

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / 'data' / 'league_config.json'


def get_config_path() -> Path:
    """Config path, overridable with the PFFL_CONFIG environment variable."""
    return Path(os.environ.get('PFFL_CONFIG', DEFAULT_CONFIG_PATH))


@lru_cache(maxsize=1)
def get_config() -> LeagueConfig:
    """
    Load league configuration from data/league_config.json.

    Configuration is cached after first load. A missing file falls back to
    the built-in defaults; a malformed file is an error.

    Returns:
        LeagueConfig object with validated settings

    Raises:
        ValueError: If the config file has an invalid structure

    Example:
        from pffl.config import get_config
        config = get_config()
        print(f"Squad size: {config.squad_size}")
    """
    config_path = get_config_path()
    if not config_path.exists():
        logger.warning(f'No league config at {config_path}, using defaults')
        return LeagueConfig()
    return load_json(config_path, schema=LeagueConfig)


def get_squad_size() -> int:
    """Get the number of players in a full squad."""
    return get_config().squad_size


def get_bucket_slots() -> dict[str, int]:
    """Get the slot count for the defensive and attacking buckets."""
    return get_config().bucket_slots


def get_multipliers() -> tuple[float, float]:
    """Get (captain, vice-captain) scoring multipliers."""
    config = get_config()
    return config.captain_multiplier, config.vice_captain_multiplier


def get_drop_rate_bands() -> list[DropRateBand]:
    """Get loot box drop-rate bands, worst-ranked band first."""
    return get_config().drop_rate_bands


def clear_config_cache() -> None:
    """
    Clear the configuration cache.

    Use this if the config file or PFFL_CONFIG changes during runtime.

    Example:
        from pffl.config import clear_config_cache, get_config
        clear_config_cache()
        config = get_config()  # Reloads from file
    """
    get_config.cache_clear()
