"""Pydantic schemas for JSON data validation."""

from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from . import constants

RARITY_PATTERN = rf'^({"|".join(constants.RARITY_DRAW_ORDER)})$'
CHIP_TYPE_PATTERN = rf'^({"|".join(constants.CHIP_TYPES)})$'
POSITION_PATTERN = rf'^({"|".join(constants.POSITIONS)})$'


class DropRateBand(BaseModel):
    """Rarity percentages for participants ranked below min_fraction of the table."""

    min_fraction: float = Field(..., ge=0.0, lt=1.0)
    rates: dict[str, float]

    @field_validator('rates')
    @classmethod
    def validate_rarities(cls, v):
        """Ensure every rarity is known and no rate is negative."""
        for rarity, rate in v.items():
            if rarity not in constants.RARITY_DRAW_ORDER:
                raise ValueError(f'Invalid rarity: {rarity}')
            if rate < 0:
                raise ValueError(f'Negative drop rate for {rarity}: {rate}')
        return v

    class Config:
        extra = 'forbid'


class ChipDefinitionRecord(BaseModel):
    """Chip definition in the catalogue."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    rarity: str = Field(..., pattern=RARITY_PATTERN)
    chip_type: str = Field(..., pattern=CHIP_TYPE_PATTERN)
    magnitude: float = Field(default=1.0, ge=0.0)
    description: str = ''

    class Config:
        extra = 'forbid'


class LeagueConfig(BaseModel):
    """League configuration settings."""

    squad_size: int = Field(default=constants.SQUAD_SIZE, ge=1, le=15)
    bucket_slots: dict[str, int] = Field(default_factory=lambda: dict(constants.BUCKET_SLOTS))
    captain_multiplier: float = Field(default=constants.CAPTAIN_MULTIPLIER, ge=1.0)
    vice_captain_multiplier: float = Field(default=constants.VICE_CAPTAIN_MULTIPLIER, ge=1.0)
    max_gameweek: int = Field(default=constants.MAX_GAMEWEEK, ge=1)
    effect_window_days: int = Field(default=constants.EFFECT_WINDOW_DAYS, ge=1)
    cooldown_hours: int = Field(default=constants.COOLDOWN_HOURS, ge=0)
    legendary_cooldown_hours: int = Field(default=constants.LEGENDARY_COOLDOWN_HOURS, ge=0)
    drop_rate_bands: list[DropRateBand] = Field(
        default_factory=lambda: [DropRateBand(**band) for band in constants.DROP_RATE_BANDS]
    )
    chip_catalogue: list[ChipDefinitionRecord] = Field(
        default_factory=lambda: [ChipDefinitionRecord(**chip) for chip in constants.CHIP_CATALOGUE]
    )
    max_player_points: float = Field(default=constants.MAX_PLAUSIBLE_PLAYER_POINTS, gt=0)
    max_team_points: float = Field(default=constants.MAX_PLAUSIBLE_TEAM_POINTS, gt=0)

    @field_validator('bucket_slots')
    @classmethod
    def validate_bucket_slots(cls, v):
        """Ensure both buckets have slot counts."""
        for bucket in (constants.DEFENSIVE, constants.ATTACKING):
            if bucket not in v:
                raise ValueError(f'Missing slot count for {bucket}')
        for bucket, slots in v.items():
            if bucket not in (constants.DEFENSIVE, constants.ATTACKING):
                raise ValueError(f'Invalid bucket: {bucket}')
            if slots < 0:
                raise ValueError(f'Invalid slot count for {bucket}: {slots}')
        return v

    @model_validator(mode='after')
    def validate_squad_shape(self):
        """Bucket slots must add up to the squad size."""
        if sum(self.bucket_slots.values()) != self.squad_size:
            raise ValueError(
                f'Bucket slots ({sum(self.bucket_slots.values())}) '
                f'must add up to squad size ({self.squad_size})'
            )
        return self

    @field_validator('drop_rate_bands')
    @classmethod
    def validate_bands(cls, v):
        """Bands are listed worst-ranked first and must end with a catch-all."""
        if not v:
            raise ValueError('At least one drop-rate band is required')
        fractions = [band.min_fraction for band in v]
        if fractions != sorted(fractions, reverse=True):
            raise ValueError('Drop-rate bands must be ordered by descending min_fraction')
        if fractions[-1] != 0.0:
            raise ValueError('The last drop-rate band must have min_fraction 0.0')
        return v

    class Config:
        extra = 'forbid'


class PlayerRecord(BaseModel):
    """Player row in the league file."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    position: str = Field(..., pattern=POSITION_PATTERN)
    season_points: float = 0.0
    baseline_points: float | None = None
    owner_id: str | None = None
    is_captain: bool = False
    is_vice_captain: bool = False

    @model_validator(mode='after')
    def validate_roles(self):
        """A player cannot hold both roles, and roles need an owner."""
        if self.is_captain and self.is_vice_captain:
            raise ValueError(f'{self.id} cannot be both captain and vice-captain')
        if (self.is_captain or self.is_vice_captain) and self.owner_id is None:
            raise ValueError(f'{self.id} holds a captaincy role without an owner')
        return self

    class Config:
        extra = 'forbid'


class ParticipantRecord(BaseModel):
    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    email: str = ''

    class Config:
        extra = 'forbid'


class PerformanceRecord(BaseModel):
    player_id: str
    gameweek: int = Field(..., ge=1)
    points: float = 0.0
    goals: int = Field(default=0, ge=0)
    assists: int = Field(default=0, ge=0)
    clean_sheets: int = Field(default=0, ge=0)
    yellow_cards: int = Field(default=0, ge=0)
    red_cards: int = Field(default=0, ge=0)
    minutes: int = Field(default=0, ge=0, le=130)
    bonus: int = Field(default=0, ge=0)

    class Config:
        extra = 'forbid'


class ScoreRecord(BaseModel):
    participant_id: str
    gameweek: int = Field(..., ge=1)
    total_points: float = 0.0
    starting_points: float = 0.0
    captain_points: float = 0.0
    vice_captain_points: float = 0.0
    chip_points: float = 0.0
    calculated_at: datetime | None = None
    breakdown: dict[str, float] = Field(default_factory=dict)

    class Config:
        extra = 'forbid'


class InventoryRecord(BaseModel):
    participant_id: str
    chip_def_id: str
    quantity: int = Field(default=0, ge=0)

    class Config:
        extra = 'forbid'


class ChipEffectRecord(BaseModel):
    id: str
    source_participant_id: str
    target_participant_id: str
    chip_type: str = Field(..., pattern=CHIP_TYPE_PATTERN)
    gameweek: int = Field(..., ge=1)
    created_at: datetime
    active_until: datetime
    chip_def_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)

    class Config:
        extra = 'forbid'


class ChipCooldownRecord(BaseModel):
    participant_id: str
    chip_type: str = Field(..., pattern=CHIP_TYPE_PATTERN)
    cooldown_until: datetime
    target_participant_id: str | None = None

    class Config:
        extra = 'forbid'


class DraftStateRecord(BaseModel):
    status: str = Field(default=constants.DRAFT_ACTIVE, pattern=r'^(active|complete)$')
    completed_at: datetime | None = None
    competition_start_date: date | None = None

    class Config:
        extra = 'forbid'


class LeagueFile(BaseModel):
    """Complete league.json file structure."""

    players: list[PlayerRecord] = Field(default_factory=list)
    participants: list[ParticipantRecord] = Field(default_factory=list)
    performances: list[PerformanceRecord] = Field(default_factory=list)
    scores: list[ScoreRecord] = Field(default_factory=list)
    chip_definitions: list[ChipDefinitionRecord] = Field(default_factory=list)
    inventory: list[InventoryRecord] = Field(default_factory=list)
    effects: list[ChipEffectRecord] = Field(default_factory=list)
    cooldowns: list[ChipCooldownRecord] = Field(default_factory=list)
    grants: dict[str, datetime] = Field(default_factory=dict)
    draft: DraftStateRecord = Field(default_factory=DraftStateRecord)

    @field_validator('players')
    @classmethod
    def validate_unique_players(cls, v):
        """Ensure player ids are unique."""
        seen = set()
        for player in v:
            if player.id in seen:
                raise ValueError(f'Duplicate player id: {player.id}')
            seen.add(player.id)
        return v

    class Config:
        extra = 'forbid'
