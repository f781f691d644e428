"""Data models for the PFFL rules engine."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Optional

from .constants import DRAFT_ACTIVE, DRAFT_COMPLETE, POSITION_BUCKETS


@dataclass
class Player:
    """A player in the pool, possibly owned by a participant."""
    id: str
    name: str
    position: str  # GK, DEF, MID or FWD
    season_points: float = 0.0
    baseline_points: Optional[float] = None  # None until the first baseline snapshot
    owner_id: Optional[str] = None
    is_captain: bool = False
    is_vice_captain: bool = False

    @property
    def bucket(self) -> str:
        return POSITION_BUCKETS[self.position]

    @property
    def is_owned(self) -> bool:
        return self.owner_id is not None

    def release(self) -> None:
        self.owner_id = None
        self.is_captain = False
        self.is_vice_captain = False


@dataclass
class Participant:
    """A competition participant. Profile fields belong to the identity service."""
    id: str
    name: str
    email: str = ''


@dataclass
class GameweekPerformance:
    """Raw stat bundle for one player in one gameweek."""
    player_id: str
    gameweek: int
    points: float = 0.0
    goals: int = 0
    assists: int = 0
    clean_sheets: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    minutes: int = 0
    bonus: int = 0


@dataclass
class ParticipantGameweekScore:
    """A participant's score for a single gameweek."""
    participant_id: str
    gameweek: int
    total_points: float = 0.0
    starting_points: float = 0.0
    captain_points: float = 0.0
    vice_captain_points: float = 0.0
    chip_points: float = 0.0
    calculated_at: Optional[datetime] = None
    # player id -> weighted contribution, 'chip:<type>' -> chip adjustment
    breakdown: dict[str, float] = field(default_factory=dict)


@dataclass
class PlayerStanding:
    """One owned player's contribution to the leaderboard."""
    player_id: str
    name: str
    season_points: float
    baseline_points: float
    competition_points: float
    weighted_points: float
    is_captain: bool = False
    is_vice_captain: bool = False


@dataclass
class LeaderboardEntry:
    participant_id: str
    name: str
    competition_points: float = 0.0
    captain_points: float = 0.0
    vice_captain_points: float = 0.0
    players: list[PlayerStanding] = field(default_factory=list)
    rank: int = 0


@dataclass
class ChipDefinition:
    id: str
    name: str
    rarity: str
    chip_type: str
    magnitude: float = 1.0
    description: str = ''


@dataclass
class ChipInventoryEntry:
    participant_id: str
    chip_def_id: str
    quantity: int = 0


@dataclass
class ChipEffect:
    """A played chip. Expires by timestamp; stale rows are ignored, not deleted."""
    id: str
    source_participant_id: str
    target_participant_id: str
    chip_type: str
    gameweek: int
    created_at: datetime
    active_until: datetime
    chip_def_id: Optional[str] = None
    payload: dict[str, Any] = field(default_factory=dict)

    def is_active(self, at: datetime) -> bool:
        return self.created_at <= at <= self.active_until

    def involves(self, participant_id: str) -> bool:
        return participant_id in (self.source_participant_id, self.target_participant_id)


@dataclass
class ChipCooldown:
    participant_id: str
    chip_type: str
    cooldown_until: datetime
    target_participant_id: Optional[str] = None

    def blocks(self, chip_type: str, target_participant_id: Optional[str], at: datetime) -> bool:
        """True if this cooldown forbids playing chip_type at the given target now."""
        if self.chip_type != chip_type or at >= self.cooldown_until:
            return False
        if self.target_participant_id is None:
            return True
        return self.target_participant_id == target_participant_id


@dataclass
class DraftState:
    status: str = DRAFT_ACTIVE
    completed_at: Optional[datetime] = None
    competition_start_date: Optional[date] = None

    @property
    def is_complete(self) -> bool:
        return self.status == DRAFT_COMPLETE


@dataclass
class SquadComposition:
    """Derived counts for a participant's squad. Never persisted."""
    size: int = 0
    defensive: int = 0
    attacking: int = 0
    captains: int = 0
    vice_captains: int = 0
    captain_id: Optional[str] = None
    vice_captain_id: Optional[str] = None


@dataclass
class Violation:
    """A failed squad rule, with current and required counts for the client."""
    rule: str
    message: str
    current: Any = None
    required: Any = None


@dataclass
class ValidationResult:
    valid: bool
    composition: SquadComposition
    violations: list[Violation] = field(default_factory=list)

    @property
    def first_violation(self) -> Optional[Violation]:
        return self.violations[0] if self.violations else None


@dataclass
class NotificationEvent:
    """Fire-and-forget event handed to the notification service."""
    kind: str
    target_participant_id: str
    message: str
    metadata: dict[str, Any] = field(default_factory=dict)
