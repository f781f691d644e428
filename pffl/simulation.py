"""Gameweek simulator for test leagues and dry runs.

Generates plausible performances from a seeded RNG so a whole season can be
replayed deterministically without a live feed.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from . import constants
from .models import GameweekPerformance, Player
from .store import InMemoryStore
from .utils import round_points
from .validators import check_gameweek

logger = logging.getLogger('pffl.simulation')

APPEARANCE_POINTS = 2
FULL_MATCH_MINUTES = 90

# Per position: (stat credited, probability, points)
POSITION_EVENTS = {
    'GK': [
        ('clean_sheets', 0.30, 4),
        (None, 0.10, 5),  # save points
    ],
    'DEF': [
        ('clean_sheets', 0.30, 4),
        ('goals', 0.10, 6),
        ('assists', 0.15, 3),
    ],
    'MID': [
        ('goals', 0.15, 5),
        ('assists', 0.25, 3),
        (None, 0.20, 1),  # passing points
    ],
    'FWD': [
        ('goals', 0.25, 4),
        ('assists', 0.20, 3),
    ],
}

BONUS_CHANCE = 0.25
FORM_WEIGHT = 0.3
NEUTRAL_FORM = 5.0
VARIANCE = 4.0


def simulate_player_performance(
    player: Player,
    gameweek: int,
    rng: random.Random,
    form: float = NEUTRAL_FORM,
) -> GameweekPerformance:
    """
    Generate one player's performance for a gameweek.

    Scoring:
        - Appearance: 2 points
        - Position events (clean sheet, goal, assist, ...) each rolled once
        - Bonus: 25% chance of 1-3 points
        - Form modifier: (form - 5) * 0.3
        - Variance: uniform in [-2, 2)
        - Rounded and floored at 0

    Args:
        player: Player to simulate
        gameweek: Gameweek number
        rng: Seeded random source
        form: Player form on the 0-10 scale

    Returns:
        GameweekPerformance with points and the stats that produced them
    """
    performance = GameweekPerformance(
        player_id=player.id,
        gameweek=gameweek,
        minutes=FULL_MATCH_MINUTES,
    )
    points = APPEARANCE_POINTS

    for stat, chance, value in POSITION_EVENTS[player.position]:
        if rng.random() < chance:
            points += value
            if stat:
                setattr(performance, stat, getattr(performance, stat) + 1)

    if rng.random() < BONUS_CHANCE:
        performance.bonus = rng.randint(1, 3)
        points += performance.bonus

    points += (form - NEUTRAL_FORM) * FORM_WEIGHT
    points += (rng.random() - 0.5) * VARIANCE
    performance.points = float(max(0, round(points)))
    return performance


@dataclass
class SimulationResult:
    gameweek: int
    recorded: List[GameweekPerformance] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)


def simulate_gameweek(
    store: InMemoryStore,
    gameweek: int,
    rng: random.Random,
    form: Optional[Dict[str, float]] = None,
    max_gameweek: int = constants.MAX_GAMEWEEK,
) -> SimulationResult:
    """
    Simulate a gameweek for every player in the pool.

    Players that already have a performance for the gameweek are skipped,
    so re-running is harmless. Each recorded performance also advances the
    player's season_points.

    Raises:
        RuleViolation: If gameweek is outside 1..max_gameweek
    """
    check_gameweek(gameweek, max_gameweek)

    form = form or {}
    result = SimulationResult(gameweek=gameweek)
    with store.transaction() as tx:
        recorded = tx.performances_for(gameweek)
        for player in tx.list_players():
            if player.id in recorded:
                result.skipped.append(player.id)
                continue
            performance = simulate_player_performance(
                player, gameweek, rng, form.get(player.id, NEUTRAL_FORM)
            )
            tx.record_performance(performance)
            player.season_points = round_points(player.season_points + performance.points)
            tx.put_player(player)
            result.recorded.append(performance)

    logger.info(
        f'Simulated gameweek {gameweek}: {len(result.recorded)} performances recorded, '
        f'{len(result.skipped)} already present'
    )
    return result
