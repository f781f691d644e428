"""Validation functions for squads and scoring results."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from . import constants
from .errors import RuleViolation
from .models import (
    GameweekPerformance,
    ParticipantGameweekScore,
    Player,
    SquadComposition,
    ValidationResult,
    Violation,
)

# Rule codes, in the order they are checked
SQUAD_SIZE = 'squad_size'
DEFENSIVE_COUNT = 'defensive_count'
ATTACKING_COUNT = 'attacking_count'
CAPTAIN_COUNT = 'captain_count'
VICE_CAPTAIN_COUNT = 'vice_captain_count'
DISTINCT_CAPTAINS = 'distinct_captains'


def check_gameweek(gameweek: int, max_gameweek: int = constants.MAX_GAMEWEEK) -> None:
    """
    Raises:
        RuleViolation: If gameweek is outside 1..max_gameweek
    """
    if not 1 <= gameweek <= max_gameweek:
        raise RuleViolation(
            f'Invalid gameweek: {gameweek}. Must be between 1 and {max_gameweek}',
            gameweek=gameweek,
            current=gameweek,
            required=max_gameweek,
        )


def summarize_squad(squad: Iterable[Player]) -> SquadComposition:
    """Count a squad's players per bucket and its captaincy flags."""
    composition = SquadComposition()
    for player in squad:
        composition.size += 1
        if player.bucket == constants.DEFENSIVE:
            composition.defensive += 1
        else:
            composition.attacking += 1
        if player.is_captain:
            composition.captains += 1
            composition.captain_id = player.id
        if player.is_vice_captain:
            composition.vice_captains += 1
            composition.vice_captain_id = player.id
    return composition


def validate_squad(
    squad: Iterable[Player],
    squad_size: int = constants.SQUAD_SIZE,
    bucket_slots: Optional[dict[str, int]] = None,
) -> ValidationResult:
    """
    Validate that a squad has the required shape.

    Checks, in order:
    - Squad size (5)
    - Defensive bucket, GK + DEF (2)
    - Attacking bucket, MID + FWD (3)
    - Exactly one captain
    - Exactly one vice-captain
    - Captain and vice-captain are different players

    Every check runs so audits see all problems; result.first_violation is
    the one to show a user.

    Args:
        squad: Players owned by one participant
        squad_size: Required number of players
        bucket_slots: Required count per bucket (default: 2 defensive, 3 attacking)

    Returns:
        ValidationResult with the composition and any violations
    """
    squad = list(squad)
    slots = bucket_slots or constants.BUCKET_SLOTS
    composition = summarize_squad(squad)
    violations = []

    if composition.size != squad_size:
        violations.append(Violation(
            rule=SQUAD_SIZE,
            message=f'Squad must have exactly {squad_size} players. Current: {composition.size}',
            current=composition.size,
            required=squad_size,
        ))

    required_defensive = slots[constants.DEFENSIVE]
    if composition.defensive != required_defensive:
        violations.append(Violation(
            rule=DEFENSIVE_COUNT,
            message=f'Squad must have exactly {required_defensive} GK/DEF players. '
                    f'Current: {composition.defensive}',
            current=composition.defensive,
            required=required_defensive,
        ))

    required_attacking = slots[constants.ATTACKING]
    if composition.attacking != required_attacking:
        violations.append(Violation(
            rule=ATTACKING_COUNT,
            message=f'Squad must have exactly {required_attacking} MID/FWD players. '
                    f'Current: {composition.attacking}',
            current=composition.attacking,
            required=required_attacking,
        ))

    if composition.captains != 1:
        violations.append(Violation(
            rule=CAPTAIN_COUNT,
            message=f'Squad must have exactly 1 captain. Current: {composition.captains}',
            current=composition.captains,
            required=1,
        ))

    if composition.vice_captains != 1:
        violations.append(Violation(
            rule=VICE_CAPTAIN_COUNT,
            message=f'Squad must have exactly 1 vice-captain. Current: {composition.vice_captains}',
            current=composition.vice_captains,
            required=1,
        ))

    # A single player flagged both ways counts once as captain and once as vice
    both = [p.id for p in squad if p.is_captain and p.is_vice_captain]
    if both:
        player_id = both[0]
        violations.append(Violation(
            rule=DISTINCT_CAPTAINS,
            message=f'Captain and vice-captain must be different players ({player_id} holds both)',
            current=player_id,
            required='distinct players',
        ))

    return ValidationResult(valid=not violations, composition=composition, violations=violations)


@dataclass
class SquadAudit:
    """Result of validating every participant's squad."""
    total: int = 0
    valid: int = 0
    invalid: int = 0
    results: dict[str, ValidationResult] = field(default_factory=dict)

    @property
    def all_valid(self) -> bool:
        return self.invalid == 0

    def invalid_participants(self) -> list[str]:
        return [pid for pid, result in self.results.items() if not result.valid]


def audit_squads(
    squads: dict[str, list[Player]],
    squad_size: int = constants.SQUAD_SIZE,
    bucket_slots: Optional[dict[str, int]] = None,
) -> SquadAudit:
    """
    Validate all squads.

    Args:
        squads: Dict of participant id -> owned players (empty list for none)

    Returns:
        SquadAudit with per-participant results and aggregate counts
    """
    audit = SquadAudit()
    for participant_id, squad in squads.items():
        result = validate_squad(squad, squad_size, bucket_slots)
        audit.results[participant_id] = result
        audit.total += 1
        if result.valid:
            audit.valid += 1
        else:
            audit.invalid += 1
    return audit


def validate_gameweek_score(
    score: ParticipantGameweekScore,
    max_team_points: float = constants.MAX_PLAUSIBLE_TEAM_POINTS,
) -> list[str]:
    """
    Check that a participant's gameweek score is reasonable and internally consistent.

    Sanity checks:
    - total == starting + captain + vice-captain + chip (within rounding)
    - Breakdown adds up to the total (within rounding)
    - Total not implausibly high
    - Total not negative

    Args:
        score: ParticipantGameweekScore to validate
        max_team_points: Upper bound for a plausible total

    Returns:
        List of warning messages (empty if no issues)
    """
    warnings = []
    label = f'{score.participant_id} GW{score.gameweek}'

    if not isinstance(score.total_points, (int, float)):
        warnings.append(f'{label} has invalid score type: {type(score.total_points)}')
        return warnings

    parts = score.starting_points + score.captain_points + score.vice_captain_points + score.chip_points
    diff = abs(parts - score.total_points)
    if diff > 0.1:
        warnings.append(
            f'{label} components ({parts:.1f}) != total ({score.total_points:.1f}) - difference: {diff:.1f}'
        )

    if score.breakdown:
        breakdown_sum = sum(score.breakdown.values())
        diff = abs(breakdown_sum - score.total_points)
        if diff > 0.1:
            warnings.append(
                f'{label} breakdown sum ({breakdown_sum:.1f}) != total ({score.total_points:.1f}) - difference: {diff:.1f}'
            )

    if score.total_points > max_team_points:
        warnings.append(
            f'{label} scored {score.total_points:.1f} pts (unusually high - check for scoring bug)'
        )
    if score.total_points < 0:
        warnings.append(f'{label} has a negative total: {score.total_points:.1f}')

    return warnings


def validate_performances(
    performances: Iterable[GameweekPerformance],
    max_player_points: float = constants.MAX_PLAUSIBLE_PLAYER_POINTS,
) -> list[str]:
    """Warnings for single-player scores above max_player_points."""
    return [
        f'{p.player_id} GW{p.gameweek} scored {p.points:.1f} pts (unusually high - check the feed)'
        for p in performances
        if p.points > max_player_points
    ]


def validate_all_scores(
    scores: list[ParticipantGameweekScore],
    max_team_points: float = constants.MAX_PLAUSIBLE_TEAM_POINTS,
) -> tuple[list[str], list[str]]:
    """
    Validate all participant scores for a gameweek.

    Returns:
        Tuple of (errors, warnings)
        - errors: Duplicate rows for one participant and gameweek
        - warnings: Issues to review but not block scoring
    """
    errors: list[str] = []
    warnings: list[str] = []

    seen = set()
    for score in scores:
        key = (score.participant_id, score.gameweek)
        if key in seen:
            errors.append(f'Duplicate score for {score.participant_id} in gameweek {score.gameweek}')
        seen.add(key)
        warnings.extend(validate_gameweek_score(score, max_team_points))

    return errors, warnings
