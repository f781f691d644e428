"""Performance feed ingestion using polars.

The feed is a tabular export with one row per player per gameweek:

    player_id, gameweek, points, goals, assists, clean_sheets,
    yellow_cards, red_cards, minutes, bonus[, season_points]

Only player_id, gameweek and points are required. season_points, when
present, replaces the player's season total.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

import polars as pl

from . import constants
from .errors import RuleViolation, UpstreamUnavailable
from .models import GameweekPerformance
from .store import InMemoryStore
from .validators import check_gameweek

logger = logging.getLogger('pffl.feed')

REQUIRED_COLUMNS = ('player_id', 'gameweek', 'points')
STAT_COLUMNS = ('goals', 'assists', 'clean_sheets', 'yellow_cards', 'red_cards', 'minutes', 'bonus')
SEASON_COLUMN = 'season_points'


@dataclass
class IngestResult:
    gameweek: int
    recorded: int = 0
    unchanged: int = 0
    season_updates: int = 0
    unknown_players: List[str] = field(default_factory=list)


class PerformanceFeed:
    """Read-only view of a feed export, filtered per gameweek."""

    def __init__(self, source: Union[str, Path, pl.DataFrame]):
        self.source = source
        self._frame: Optional[pl.DataFrame] = None

    @property
    def frame(self) -> pl.DataFrame:
        """Lazy load and normalise the feed."""
        if self._frame is None:
            self._frame = self._normalise(self._load())
        return self._frame

    def _load(self) -> pl.DataFrame:
        if isinstance(self.source, pl.DataFrame):
            return self.source
        path = Path(self.source)
        logger.info(f'Loading performance feed from {path}')
        try:
            return pl.read_csv(path, schema_overrides={'player_id': pl.Utf8})
        except (OSError, pl.exceptions.PolarsError) as e:
            logger.error(f'Could not read performance feed {path}: {e}')
            raise UpstreamUnavailable(f'Performance feed unavailable: {path}', path=str(path)) from e

    @staticmethod
    def _normalise(frame: pl.DataFrame) -> pl.DataFrame:
        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise RuleViolation(f'Performance feed is missing columns: {", ".join(missing)}', missing=missing)

        stats = [
            pl.col(c).fill_null(0).cast(pl.Int64) if c in frame.columns else pl.lit(0, dtype=pl.Int64).alias(c)
            for c in STAT_COLUMNS
        ]
        frame = frame.with_columns(
            pl.col('player_id').cast(pl.Utf8),
            pl.col('gameweek').cast(pl.Int64),
            pl.col('points').fill_null(0).cast(pl.Float64),
            *stats,
        )
        if SEASON_COLUMN in frame.columns:
            frame = frame.with_columns(pl.col(SEASON_COLUMN).cast(pl.Float64))
        return frame

    def gameweeks(self) -> List[int]:
        return sorted(self.frame.get_column('gameweek').unique().to_list())

    def rows_for(self, gameweek: int) -> pl.DataFrame:
        return self.frame.filter(pl.col('gameweek') == gameweek)

    def performances_for(self, gameweek: int) -> List[GameweekPerformance]:
        return [
            GameweekPerformance(
                player_id=row['player_id'],
                gameweek=row['gameweek'],
                points=row['points'],
                **{c: row[c] for c in STAT_COLUMNS},
            )
            for row in self.rows_for(gameweek).iter_rows(named=True)
        ]

    def season_points_for(self, gameweek: int) -> dict[str, float]:
        """Season totals reported alongside a gameweek, where the feed has them."""
        if SEASON_COLUMN not in self.frame.columns:
            return {}
        rows = self.rows_for(gameweek).filter(pl.col(SEASON_COLUMN).is_not_null())
        return dict(zip(rows.get_column('player_id').to_list(), rows.get_column(SEASON_COLUMN).to_list()))


def ingest_gameweek(
    store: InMemoryStore,
    feed: PerformanceFeed,
    gameweek: int,
    max_gameweek: int = constants.MAX_GAMEWEEK,
) -> IngestResult:
    """
    Record a gameweek's performances and season totals from the feed.

    Re-ingesting identical rows is a no-op. Rows for players not in the pool
    are skipped and reported.

    Raises:
        UpstreamUnavailable: If the feed cannot be read
        RuleViolation: If the gameweek is out of range, or the feed is malformed or
            contradicts a recorded performance
    """
    check_gameweek(gameweek, max_gameweek)
    performances = feed.performances_for(gameweek)
    season_points = feed.season_points_for(gameweek)
    result = IngestResult(gameweek=gameweek)

    with store.transaction() as tx:
        for performance in performances:
            player = tx.get_player(performance.player_id)
            if player is None:
                result.unknown_players.append(performance.player_id)
                continue
            if tx.record_performance(performance):
                result.recorded += 1
            else:
                result.unchanged += 1
            season = season_points.get(player.id)
            if season is not None and season != player.season_points:
                player.season_points = season
                tx.put_player(player)
                result.season_updates += 1

    if result.unknown_players:
        logger.warning(
            f'Feed rows for unknown players in gameweek {gameweek}: {", ".join(result.unknown_players)}'
        )
    logger.info(
        f'Ingested gameweek {gameweek}: {result.recorded} recorded, {result.unchanged} unchanged, '
        f'{result.season_updates} season totals updated'
    )
    return result
