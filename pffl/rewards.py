"""Daily loot box: rank-weighted chip rewards.

Participants lower down the table get better odds. One box per participant
per UTC calendar day.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from . import constants
from .clock import Clock, system_clock, utc_date
from .config import get_config
from .errors import NotFound, PreconditionFailed
from .models import ChipDefinition, ChipInventoryEntry
from .schemas import LeagueConfig
from .scoring import project_leaderboard, rank_of
from .store import InMemoryStore, Transaction

logger = logging.getLogger('pffl.rewards')

DAILY_LIMIT = 'daily_limit'


@dataclass
class RewardResult:
    participant_id: str
    chip: ChipDefinition
    rank: int
    total_participants: int
    drop_rates: Dict[str, float] = field(default_factory=dict)
    quantity: int = 1
    granted_at: Optional[datetime] = None


def pick_rarity(rates: Dict[str, float], rng: random.Random) -> str:
    """
    Choose a rarity by walking cumulative percentages, rarest first.

    Rates that do not add up to 100 are treated as misconfigured and always
    give common, as does a roll that matches no tier.
    """
    total = sum(rates.values())
    if abs(total - 100) > 1e-6:
        logger.warning(f'Drop rates add up to {total}, not 100; falling back to common')
        return constants.COMMON

    roll = rng.random() * 100
    cumulative = 0.0
    for rarity in constants.RARITY_DRAW_ORDER:
        cumulative += rates.get(rarity, 0)
        if roll < cumulative:
            return rarity
    return constants.COMMON


class RewardSelector:
    """Grants daily loot boxes."""

    def __init__(
        self,
        store: InMemoryStore,
        rng: Optional[random.Random] = None,
        clock: Clock = system_clock,
        config: Optional[LeagueConfig] = None,
    ):
        self.store = store
        self.rng = rng or random.Random()
        self.clock = clock
        self.config = config or get_config()

    def can_draw(self, participant_id: str) -> bool:
        """False if the participant already opened a box today (UTC)."""
        with self.store.transaction() as tx:
            return self._can_draw(tx, participant_id, self.clock())

    @staticmethod
    def _can_draw(tx: Transaction, participant_id: str, now: datetime) -> bool:
        last = tx.last_grant(participant_id)
        return last is None or utc_date(last) != utc_date(now)

    def drop_rates(self, rank: int, total: int) -> Dict[str, float]:
        """
        Drop-rate percentages for a table position.

        Bands are checked worst-ranked first; a band applies when
        rank / total is strictly above its min_fraction.
        """
        bands = self.config.drop_rate_bands
        fraction = rank / total if total > 0 else 0.0
        for band in bands:
            if fraction > band.min_fraction:
                return dict(band.rates)
        return dict(bands[-1].rates)

    def pick_rarity(self, rates: Dict[str, float]) -> str:
        return pick_rarity(rates, self.rng)

    def draw(
        self, rank: int, total: int, definitions: Optional[List[ChipDefinition]] = None
    ) -> ChipDefinition:
        """
        Pick a chip for a table position.

        A rarity is chosen from the position's drop rates, then one
        definition of that rarity uniformly at random. An empty tier falls
        back to common chips.

        Raises:
            NotFound: If there are no chip definitions at all
        """
        if definitions is None:
            with self.store.transaction() as tx:
                definitions = self._definitions(tx)
        if not definitions:
            raise NotFound('No chip definitions available')

        rarity = self.pick_rarity(self.drop_rates(rank, total))
        pool = [d for d in definitions if d.rarity == rarity]
        if not pool:
            logger.debug(f'No {rarity} chips defined, falling back to common')
            pool = [d for d in definitions if d.rarity == constants.COMMON] or list(definitions)
        pool.sort(key=lambda d: d.id)
        return self.rng.choice(pool)

    def _definitions(self, tx: Transaction) -> List[ChipDefinition]:
        """Stored definitions; an empty store is seeded from the configured catalogue."""
        definitions = tx.list_chip_definitions()
        if definitions:
            return definitions
        definitions = [ChipDefinition(**record.model_dump()) for record in self.config.chip_catalogue]
        for definition in definitions:
            tx.put_chip_definition(definition)
        logger.info(f'Installed {len(definitions)} chip definitions from config')
        return definitions

    def _rank(self, tx: Transaction, participant_id: str) -> Tuple[int, int]:
        participants = tx.list_participants()
        players = tx.list_players()
        try:
            board = project_leaderboard(
                participants,
                players,
                self.config.captain_multiplier,
                self.config.vice_captain_multiplier,
            )
        except PreconditionFailed:
            # Before the first baseline, rank by raw season points
            totals = {p.id: 0.0 for p in participants}
            for player in players:
                if player.owner_id in totals:
                    totals[player.owner_id] += player.season_points
            order = sorted(totals, key=lambda pid: totals[pid], reverse=True)
            return order.index(participant_id) + 1, len(order)
        return rank_of(board, participant_id), len(board)

    def open_loot_box(self, participant_id: str) -> RewardResult:
        """
        Grant today's loot box.

        Raises:
            NotFound: If the participant does not exist
            PreconditionFailed: If a box was already opened today (reason 'daily_limit')
            Conflict: If a concurrent grant for the same participant committed first
        """
        now = self.clock()
        with self.store.transaction() as tx:
            if tx.get_participant(participant_id) is None:
                raise NotFound(f'Participant {participant_id} not found', participant_id=participant_id)
            if not self._can_draw(tx, participant_id, now):
                logger.info(f'Loot box refused for {participant_id}: already opened today')
                raise PreconditionFailed(
                    'You can only open one loot box per day. Try again tomorrow!',
                    reason=DAILY_LIMIT,
                )

            definitions = self._definitions(tx)
            rank, total = self._rank(tx, participant_id)
            rates = self.drop_rates(rank, total)
            chip = self.draw(rank, total, definitions)

            entry = tx.get_inventory_entry(participant_id, chip.id) or ChipInventoryEntry(
                participant_id=participant_id, chip_def_id=chip.id
            )
            entry.quantity += 1
            tx.put_inventory_entry(entry)
            tx.record_grant(participant_id, now)

        logger.info(
            f'Loot box for {participant_id} (rank {rank}/{total}): '
            f'{chip.name} [{chip.rarity}], now holds {entry.quantity}'
        )
        return RewardResult(
            participant_id=participant_id,
            chip=chip,
            rank=rank,
            total_participants=total,
            drop_rates=rates,
            quantity=entry.quantity,
            granted_at=now,
        )
