"""Request commands and the dispatcher that routes them to the engines.

A request body is parsed into exactly one command by its "type" tag and
answered with an envelope:

    {"ok": true, "data": {...}}
    {"ok": false, "errorKind": "...", "message": "...", "details": {...}}
"""

import logging
import random
from dataclasses import dataclass
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .allocation import AllocationManager, AllocationResult
from .chips import ChipEffectEngine, ChipUseResult
from .clock import Clock, system_clock
from .config import get_config
from .errors import VALIDATION_ERROR, LeagueError, NotFound, PreconditionFailed
from .notifications import LoggingNotifier, Notifier
from .rewards import RewardSelector
from .schemas import CHIP_TYPE_PATTERN, LeagueConfig
from .scorer import ScoringEngine
from .store import InMemoryStore

logger = logging.getLogger('pffl.commands')

FORBIDDEN = 'forbidden'
DRAFT_LOCKED = 'draft_locked'


class Assign(BaseModel):
    type: Literal['Assign']
    player_id: str
    owner_id: str
    as_captain: bool = False
    as_vice_captain: bool = False

    class Config:
        extra = 'forbid'


class Unassign(BaseModel):
    type: Literal['Unassign']
    player_id: str

    class Config:
        extra = 'forbid'


class SetCaptaincy(BaseModel):
    type: Literal['SetCaptaincy']
    player_id: str
    as_captain: bool = False
    as_vice_captain: bool = False

    class Config:
        extra = 'forbid'


class Transfer(BaseModel):
    type: Literal['Transfer']
    player_out_id: str
    player_in_id: str

    class Config:
        extra = 'forbid'


class CompleteDraft(BaseModel):
    type: Literal['CompleteDraft']

    class Config:
        extra = 'forbid'


class UpdateBaseline(BaseModel):
    type: Literal['UpdateBaseline']

    class Config:
        extra = 'forbid'


class AuditSquads(BaseModel):
    type: Literal['AuditSquads']

    class Config:
        extra = 'forbid'


class ScoreGameweek(BaseModel):
    type: Literal['ScoreGameweek']
    gameweek: int = Field(..., ge=1)

    class Config:
        extra = 'forbid'


class OpenLootBox(BaseModel):
    type: Literal['OpenLootBox']
    participant_id: str

    class Config:
        extra = 'forbid'


class UseChip(BaseModel):
    type: Literal['UseChip']
    participant_id: str
    chip_type: str = Field(..., pattern=CHIP_TYPE_PATTERN)
    gameweek: int = Field(..., ge=1)
    target_participant_id: Optional[str] = None

    class Config:
        extra = 'forbid'


Command = Annotated[
    Union[
        Assign,
        Unassign,
        SetCaptaincy,
        Transfer,
        CompleteDraft,
        UpdateBaseline,
        AuditSquads,
        ScoreGameweek,
        OpenLootBox,
        UseChip,
    ],
    Field(discriminator='type'),
]

COMMAND_ADAPTER = TypeAdapter(Command)
JSON_ADAPTER = TypeAdapter(Any)

PRIVILEGED_COMMANDS = (CompleteDraft, UpdateBaseline, AuditSquads, ScoreGameweek)


@dataclass
class Actor:
    """The authenticated caller, as established by the identity service."""
    participant_id: Optional[str] = None
    is_privileged: bool = False

    def may_act_for(self, participant_id: Optional[str]) -> bool:
        return self.is_privileged or (participant_id is not None and participant_id == self.participant_id)


class League:
    """The engines of one league, sharing a store, clock and config."""

    def __init__(
        self,
        store: InMemoryStore,
        config: Optional[LeagueConfig] = None,
        clock: Clock = system_clock,
        rng: Optional[random.Random] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.config = config or get_config()
        self.clock = clock
        notifier = notifier or LoggingNotifier()
        self.allocation = AllocationManager(store, self.config, notifier, clock)
        self.scoring = ScoringEngine(store, self.config, clock)
        self.rewards = RewardSelector(store, rng, clock, self.config)
        self.chips = ChipEffectEngine(store, self.config, clock, notifier)


def parse_command(payload: Any) -> Command:
    """
    Raises:
        pydantic.ValidationError: If the payload is not a known, well-formed command
    """
    return COMMAND_ADAPTER.validate_python(payload)


def to_jsonable(data: Any) -> Any:
    """Dataclasses, dates and nested containers as plain JSON values."""
    return JSON_ADAPTER.dump_python(data, mode='json')


def ok(data: Any = None) -> dict:
    return {'ok': True, 'data': to_jsonable(data)}


def _refusal(result: AllocationResult | ChipUseResult, **extra) -> dict:
    details = {'reason': result.reason, 'current': result.current, 'required': result.required, **extra}
    return {
        'ok': False,
        'errorKind': result.error_kind,
        'message': result.message,
        'details': to_jsonable(details),
    }


def _allocation_envelope(result: AllocationResult) -> dict:
    if result.ok:
        return ok({
            'message': result.message,
            'player': result.player,
            'composition': result.composition,
            'draft': result.draft,
        })
    if result.incomplete:
        return _refusal(result, incomplete=result.incomplete)
    return _refusal(result)


def _chip_envelope(result: ChipUseResult) -> dict:
    if result.ok:
        return ok({
            'message': result.message,
            'effect': result.effect,
            'cooldown': result.cooldown,
            'remaining': result.remaining,
        })
    return _refusal(result)


def _forbidden(command: BaseModel) -> PreconditionFailed:
    return PreconditionFailed(f'Not allowed to run {command.type}', reason=FORBIDDEN)


def _check_draft_open(league: League) -> None:
    if league.allocation.draft_status().is_complete:
        raise PreconditionFailed('The draft is complete; squads are locked', reason=DRAFT_LOCKED)


def _player_owner(league: League, player_id: str) -> Optional[str]:
    with league.store.transaction() as tx:
        player = tx.get_player(player_id)
    if player is None:
        raise NotFound(f'Player {player_id} not found', player_id=player_id)
    return player.owner_id


def execute(league: League, actor: Actor, command: Command) -> dict:
    """
    Authorise and run one command.

    Raises:
        LeagueError: Any engine error; dispatch() turns these into envelopes
    """
    if isinstance(command, PRIVILEGED_COMMANDS) and not actor.is_privileged:
        raise _forbidden(command)

    match command:
        case Assign():
            if not actor.may_act_for(command.owner_id):
                raise _forbidden(command)
            _check_draft_open(league)
            return _allocation_envelope(league.allocation.assign(
                command.player_id, command.owner_id, command.as_captain, command.as_vice_captain
            ))
        case Unassign():
            if not actor.may_act_for(_player_owner(league, command.player_id)):
                raise _forbidden(command)
            _check_draft_open(league)
            return _allocation_envelope(league.allocation.unassign(command.player_id))
        case SetCaptaincy():
            if not actor.may_act_for(_player_owner(league, command.player_id)):
                raise _forbidden(command)
            return _allocation_envelope(league.allocation.set_captaincy(
                command.player_id, command.as_captain, command.as_vice_captain
            ))
        case Transfer():
            if not actor.may_act_for(_player_owner(league, command.player_out_id)):
                raise _forbidden(command)
            return _allocation_envelope(league.allocation.transfer(
                command.player_out_id, command.player_in_id
            ))
        case CompleteDraft():
            return _allocation_envelope(league.allocation.complete_draft())
        case UpdateBaseline():
            return ok(league.scoring.update_baseline())
        case AuditSquads():
            audit = league.allocation.audit_squads()
            return ok({
                'total': audit.total,
                'valid': audit.valid,
                'invalid': audit.invalid,
                'all_valid': audit.all_valid,
                'violations': {
                    pid: audit.results[pid].violations for pid in audit.invalid_participants()
                },
            })
        case ScoreGameweek():
            return ok(league.scoring.score_gameweek(command.gameweek))
        case OpenLootBox():
            if not actor.may_act_for(command.participant_id):
                raise _forbidden(command)
            return ok(league.rewards.open_loot_box(command.participant_id))
        case UseChip():
            if not actor.may_act_for(command.participant_id):
                raise _forbidden(command)
            return _chip_envelope(league.chips.use(
                command.chip_type,
                command.participant_id,
                command.target_participant_id,
                command.gameweek,
            ))
        case _:
            raise PreconditionFailed(f'Unsupported command: {type(command).__name__}')


def dispatch(league: League, actor: Actor, payload: Any) -> dict:
    """
    Parse, authorise and run a request body, always returning an envelope.

    Conflict errors are returned like any other error; callers that want to
    retry should use execute() and catch Conflict themselves.
    """
    try:
        command = parse_command(payload)
    except ValidationError as e:
        logger.info(f'Rejected malformed command: {e.error_count()} errors')
        return {
            'ok': False,
            'errorKind': VALIDATION_ERROR,
            'message': 'Invalid command',
            'details': {'errors': to_jsonable(e.errors(include_url=False, include_context=False))},
        }

    try:
        return execute(league, actor, command)
    except LeagueError as e:
        logger.info(f'{command.type} failed with {e.kind}: {e.message}')
        return to_jsonable(e.to_envelope())
