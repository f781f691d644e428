"""Scoring math: weekly squad scores and baseline-adjusted competition points.

Everything here is pure. The ScoringEngine in scorer.py reads the store and
feeds these functions.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from . import constants
from .errors import PreconditionFailed
from .models import (
    GameweekPerformance,
    LeaderboardEntry,
    Participant,
    ParticipantGameweekScore,
    Player,
    PlayerStanding,
)
from .utils import round_points


@dataclass
class RoleContribution:
    """A player's base points split into the parts a score row records."""
    base: float
    weighted: float
    captain_points: float = 0.0
    vice_captain_points: float = 0.0


def player_role(player: Player) -> str:
    if player.is_captain:
        return constants.CAPTAIN
    if player.is_vice_captain:
        return constants.VICE_CAPTAIN
    return constants.STARTER


def role_contribution(
    base_points: float,
    role: str,
    captain_multiplier: float = constants.CAPTAIN_MULTIPLIER,
    vice_captain_multiplier: float = constants.VICE_CAPTAIN_MULTIPLIER,
) -> RoleContribution:
    """
    Weight a player's base points by role.

    Scoring:
        - Captain: x2, the extra base lands in captain_points
        - Vice-captain: x1.5, the extra half lands in vice_captain_points
        - Everyone else: x1

    Args:
        base_points: Unweighted points for the period
        role: constants.CAPTAIN, constants.VICE_CAPTAIN or constants.STARTER

    Returns:
        RoleContribution with weighted = base + captain_points + vice_captain_points
    """
    if role == constants.CAPTAIN:
        bonus = base_points * (captain_multiplier - 1)
        return RoleContribution(base_points, base_points + bonus, captain_points=bonus)
    if role == constants.VICE_CAPTAIN:
        bonus = base_points * (vice_captain_multiplier - 1)
        return RoleContribution(base_points, base_points + bonus, vice_captain_points=bonus)
    return RoleContribution(base_points, base_points)


def base_points_for(player: Player, performances: Dict[str, GameweekPerformance]) -> float:
    """A player's gameweek points; a player without a recorded performance scored zero."""
    performance = performances.get(player.id)
    return performance.points if performance is not None else 0.0


def score_squad(
    participant_id: str,
    gameweek: int,
    squad: Iterable[Player],
    performances: Dict[str, GameweekPerformance],
    captain_multiplier: float = constants.CAPTAIN_MULTIPLIER,
    vice_captain_multiplier: float = constants.VICE_CAPTAIN_MULTIPLIER,
) -> ParticipantGameweekScore:
    """
    Score one participant's squad for a gameweek, before chips.

    starting_points is the unweighted sum over the squad; captain and
    vice-captain bonuses are recorded separately so that
    total = starting + captain + vice-captain.

    Args:
        participant_id: Owner of the squad
        gameweek: Gameweek being scored
        squad: The participant's players
        performances: Recorded performances for the gameweek, keyed by player id

    Returns:
        ParticipantGameweekScore with chip_points 0 and a per-player breakdown
    """
    score = ParticipantGameweekScore(participant_id=participant_id, gameweek=gameweek)

    for player in squad:
        contribution = role_contribution(
            base_points_for(player, performances),
            player_role(player),
            captain_multiplier,
            vice_captain_multiplier,
        )
        score.starting_points += contribution.base
        score.captain_points += contribution.captain_points
        score.vice_captain_points += contribution.vice_captain_points
        score.breakdown[player.id] = round_points(contribution.weighted)

    score.starting_points = round_points(score.starting_points)
    score.captain_points = round_points(score.captain_points)
    score.vice_captain_points = round_points(score.vice_captain_points)
    score.total_points = round_points(
        score.starting_points + score.captain_points + score.vice_captain_points
    )
    return score


def player_competition_points(player: Player) -> float:
    """
    Points a player has earned since the competition baseline, floored at zero.

    Raises:
        PreconditionFailed: If the player's baseline has never been set
    """
    if player.baseline_points is None:
        raise PreconditionFailed(
            f'Baseline not set for {player.name}; run update_baseline first',
            player_id=player.id,
        )
    return max(0.0, player.season_points - player.baseline_points)


def aggregate_competition_points(
    participant: Participant,
    squad: Iterable[Player],
    captain_multiplier: float = constants.CAPTAIN_MULTIPLIER,
    vice_captain_multiplier: float = constants.VICE_CAPTAIN_MULTIPLIER,
) -> LeaderboardEntry:
    """Sum a squad's baseline-adjusted points with the weekly role multipliers."""
    entry = LeaderboardEntry(participant_id=participant.id, name=participant.name)

    for player in squad:
        points = player_competition_points(player)
        contribution = role_contribution(
            points, player_role(player), captain_multiplier, vice_captain_multiplier
        )
        entry.competition_points += contribution.weighted
        entry.captain_points += contribution.captain_points
        entry.vice_captain_points += contribution.vice_captain_points
        entry.players.append(PlayerStanding(
            player_id=player.id,
            name=player.name,
            season_points=player.season_points,
            baseline_points=player.baseline_points,
            competition_points=round_points(points),
            weighted_points=round_points(contribution.weighted),
            is_captain=player.is_captain,
            is_vice_captain=player.is_vice_captain,
        ))

    entry.competition_points = round_points(entry.competition_points)
    entry.captain_points = round_points(entry.captain_points)
    entry.vice_captain_points = round_points(entry.vice_captain_points)
    entry.players.sort(key=lambda s: s.weighted_points, reverse=True)
    return entry


def project_leaderboard(
    participants: Iterable[Participant],
    players: Iterable[Player],
    captain_multiplier: float = constants.CAPTAIN_MULTIPLIER,
    vice_captain_multiplier: float = constants.VICE_CAPTAIN_MULTIPLIER,
) -> List[LeaderboardEntry]:
    """
    Rank participants by competition points.

    Computed on demand from current player rows, never cached. Ties keep
    the order participants were given in; ranks run 1..n.

    Raises:
        PreconditionFailed: If any owned player has no baseline
    """
    squads: Dict[str, List[Player]] = {}
    for player in players:
        if player.owner_id is not None:
            squads.setdefault(player.owner_id, []).append(player)

    entries = [
        aggregate_competition_points(
            participant,
            squads.get(participant.id, []),
            captain_multiplier,
            vice_captain_multiplier,
        )
        for participant in participants
    ]
    entries.sort(key=lambda e: e.competition_points, reverse=True)
    for rank, entry in enumerate(entries, start=1):
        entry.rank = rank
    return entries


def rank_of(leaderboard: List[LeaderboardEntry], participant_id: str) -> Optional[int]:
    for entry in leaderboard:
        if entry.participant_id == participant_id:
            return entry.rank
    return None
