"""Chip scoring rules.

Each chip type maps to a ChipRule. The scorer asks for the adjustments that
apply to a participant in a gameweek; the result is added to the score row
as chip_points and itemised in its breakdown under 'chip:<type>'.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from . import constants
from .models import ChipEffect, GameweekPerformance, Player
from .scoring import base_points_for

logger = logging.getLogger('pffl.chip_rules')


@dataclass
class ScoringContext:
    """Gameweek state a chip rule can look at."""
    squads: Dict[str, List[Player]]
    performances: Dict[str, GameweekPerformance]

    def base_points(self, participant_id: str) -> Dict[str, float]:
        """Player id -> unweighted gameweek points for a participant's squad."""
        return {
            player.id: base_points_for(player, self.performances)
            for player in self.squads.get(participant_id, [])
        }

    def captain_base(self, participant_id: str) -> float:
        for player in self.squads.get(participant_id, []):
            if player.is_captain:
                return base_points_for(player, self.performances)
        return 0.0

    def non_captain_bases(self, participant_id: str) -> List[float]:
        return [
            base_points_for(player, self.performances)
            for player in self.squads.get(participant_id, [])
            if not player.is_captain
        ]


ScoreFn = Callable[[ChipEffect, str, ScoringContext], float]


@dataclass(frozen=True)
class ChipRule:
    chip_type: str
    requires_target: bool
    hostile: bool
    score: ScoreFn
    # Swap also pays out to the player who played it
    applies_to_source: bool = False


def _magnitude(effect: ChipEffect) -> float:
    return float(effect.payload.get('magnitude', 1.0))


def _triple_captain(effect, participant_id, ctx):
    return ctx.captain_base(participant_id) * _magnitude(effect)


def _bench_boost(effect, participant_id, ctx):
    bases = ctx.non_captain_bases(participant_id)
    return min(bases) * _magnitude(effect) if bases else 0.0


def _shield(effect, participant_id, ctx):
    return 0.0


def _curse(effect, participant_id, ctx):
    return -ctx.captain_base(participant_id) * _magnitude(effect)


def _banish(effect, participant_id, ctx):
    bases = ctx.non_captain_bases(participant_id)
    return -max(bases) * _magnitude(effect) if bases else 0.0


def swap_delta(effect: ChipEffect, ctx: ScoringContext) -> float:
    """Points gained by trading the source's worst scorer for the target's best."""
    source = ctx.base_points(effect.source_participant_id).values()
    target = ctx.base_points(effect.target_participant_id).values()
    if not source or not target:
        return 0.0
    return max(0.0, max(target) - min(source)) * _magnitude(effect)


def _swap(effect, participant_id, ctx):
    delta = swap_delta(effect, ctx)
    if participant_id == effect.source_participant_id:
        return delta
    return -delta


CHIP_RULES: Dict[str, ChipRule] = {
    constants.TRIPLE_CAPTAIN: ChipRule(constants.TRIPLE_CAPTAIN, False, False, _triple_captain),
    constants.BENCH_BOOST: ChipRule(constants.BENCH_BOOST, False, False, _bench_boost),
    constants.SHIELD: ChipRule(constants.SHIELD, False, False, _shield),
    constants.CURSE: ChipRule(constants.CURSE, True, True, _curse),
    constants.BANISH: ChipRule(constants.BANISH, True, True, _banish),
    constants.SWAP: ChipRule(constants.SWAP, True, True, _swap, applies_to_source=True),
}


def effect_applies(effect: ChipEffect, participant_id: str, gameweek: int, at: datetime) -> bool:
    """True if an effect counts towards a participant's score for a gameweek scored at `at`."""
    if effect.gameweek != gameweek or at > effect.active_until:
        return False
    if effect.target_participant_id == participant_id:
        return True
    rule = CHIP_RULES.get(effect.chip_type)
    return bool(rule and rule.applies_to_source and effect.source_participant_id == participant_id)


def is_shielded(participant_id: str, gameweek: int, effects: Iterable[ChipEffect], at: datetime) -> bool:
    return any(
        e.chip_type == constants.SHIELD and effect_applies(e, participant_id, gameweek, at)
        for e in effects
    )


def chip_adjustments(
    participant_id: str,
    gameweek: int,
    effects: Iterable[ChipEffect],
    ctx: ScoringContext,
    at: datetime,
) -> Dict[str, float]:
    """
    Points each active chip adds to (or takes from) a participant's gameweek.

    A hostile chip aimed at a shielded participant is ignored entirely,
    including a swap's gain for the player who played it.

    Returns:
        Dict of 'chip:<type>' -> adjustment, only for chips that apply
    """
    effects = list(effects)
    adjustments: Dict[str, float] = {}

    for effect in effects:
        if not effect_applies(effect, participant_id, gameweek, at):
            continue
        rule: Optional[ChipRule] = CHIP_RULES.get(effect.chip_type)
        if rule is None:
            logger.warning(f'No scoring rule for chip type {effect.chip_type} (effect {effect.id})')
            continue
        if rule.hostile and is_shielded(effect.target_participant_id, gameweek, effects, at):
            logger.debug(f'{effect.chip_type} on {effect.target_participant_id} blocked by shield')
            continue
        points = rule.score(effect, participant_id, ctx)
        key = f'chip:{effect.chip_type}'
        adjustments[key] = adjustments.get(key, 0.0) + points

    return adjustments
