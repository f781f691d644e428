from .models import (
    Player,
    Participant,
    GameweekPerformance,
    ParticipantGameweekScore,
    LeaderboardEntry,
    ChipDefinition,
    ChipEffect,
    ChipCooldown,
    DraftState,
)
from .errors import (
    LeagueError,
    RuleViolation,
    NotFound,
    Conflict,
    PreconditionFailed,
    UpstreamUnavailable,
)
from .validators import validate_squad, audit_squads, summarize_squad
from .allocation import AllocationManager, AllocationResult, can_assign
from .scoring import (
    role_contribution,
    score_squad,
    player_competition_points,
    project_leaderboard,
)
from .scorer import ScoringEngine
from .rewards import RewardSelector
from .chips import ChipEffectEngine, ChipUseResult
from .store import InMemoryStore, JsonFileStore
from .feed import PerformanceFeed, ingest_gameweek
from .simulation import simulate_gameweek
from .commands import Actor, League, dispatch

__all__ = [
    # Models
    'Player',
    'Participant',
    'GameweekPerformance',
    'ParticipantGameweekScore',
    'LeaderboardEntry',
    'ChipDefinition',
    'ChipEffect',
    'ChipCooldown',
    'DraftState',
    # Errors
    'LeagueError',
    'RuleViolation',
    'NotFound',
    'Conflict',
    'PreconditionFailed',
    'UpstreamUnavailable',
    # Squad rules and draft
    'validate_squad',
    'audit_squads',
    'summarize_squad',
    'AllocationManager',
    'AllocationResult',
    'can_assign',
    # Scoring
    'role_contribution',
    'score_squad',
    'player_competition_points',
    'project_leaderboard',
    'ScoringEngine',
    # Chips and rewards
    'RewardSelector',
    'ChipEffectEngine',
    'ChipUseResult',
    # Storage and feed
    'InMemoryStore',
    'JsonFileStore',
    'PerformanceFeed',
    'ingest_gameweek',
    'simulate_gameweek',
    # Requests
    'Actor',
    'League',
    'dispatch',
]
