"""Draft allocation: assigning players to participants and managing captaincy.

Business-rule rejections come back as AllocationResult(ok=False, ...) with
the rule that failed and the current vs. required counts. Only missing
records (NotFound) and store conflicts (Conflict) are raised.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Optional

from . import constants
from .clock import Clock, system_clock
from .config import get_config
from .errors import PRECONDITION_FAILED, VALIDATION_ERROR, NotFound
from .models import DraftState, NotificationEvent, Player, SquadComposition
from .notifications import LoggingNotifier, Notifier, dispatch
from .schemas import LeagueConfig
from .store import InMemoryStore, Transaction
from .validators import SquadAudit, audit_squads, summarize_squad

logger = logging.getLogger('pffl.allocation')

# Rejection reasons
ALREADY_ASSIGNED = 'AlreadyAssigned'
CAPACITY_EXCEEDED = 'CapacityExceeded'
BUCKET_FULL = 'BucketFull'
DUPLICATE_CAPTAINCY = 'DuplicateCaptaincy'
UNOWNED = 'Unowned'
INCOMPLETE_SQUADS = 'IncompleteSquads'
DRAFT_ALREADY_COMPLETE = 'DraftAlreadyComplete'

BUCKET_LABELS = {
    constants.DEFENSIVE: 'GK/DEF',
    constants.ATTACKING: 'MID/FWD',
}


@dataclass
class AllocationResult:
    """Outcome of an allocation request or pre-flight check."""
    ok: bool
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    message: str = ''
    current: Any = None
    required: Any = None
    composition: Optional[SquadComposition] = None
    player: Optional[Player] = None
    draft: Optional[DraftState] = None
    incomplete: dict[str, int] = field(default_factory=dict)


def _reject(reason: str, message: str, current: Any = None, required: Any = None,
            error_kind: str = VALIDATION_ERROR, **extra) -> AllocationResult:
    return AllocationResult(
        ok=False,
        reason=reason,
        error_kind=error_kind,
        message=message,
        current=current,
        required=required,
        **extra,
    )


def can_assign(
    squad: Iterable[Player],
    candidate: Player,
    as_captain: bool = False,
    as_vice_captain: bool = False,
    squad_size: int = constants.SQUAD_SIZE,
    bucket_slots: Optional[dict[str, int]] = None,
    allow_transfer: bool = False,
) -> AllocationResult:
    """
    Pre-flight check for adding a player to a squad.

    Rejects when the squad is full, when the candidate's bucket is full, or
    on duplicate captaincy. Duplicate captaincy means one player claiming
    both roles, or, unless allow_transfer is set, claiming a role another
    squad member already holds. assign() passes allow_transfer=True because
    it moves the role across by clear-then-set.

    This is advisory only; assign() repeats the check inside its transaction.

    Returns:
        AllocationResult; on success, composition is the hypothetical
        post-assignment composition
    """
    squad = [p for p in squad if p.id != candidate.id]
    slots = bucket_slots or constants.BUCKET_SLOTS
    composition = summarize_squad(squad)

    if as_captain and as_vice_captain:
        return _reject(
            DUPLICATE_CAPTAINCY,
            f'{candidate.name} cannot be both captain and vice-captain',
            current=2,
            required=1,
        )

    if composition.size >= squad_size:
        return _reject(
            CAPACITY_EXCEEDED,
            f'Squad already has {composition.size} players. Maximum allowed: {squad_size}',
            current=composition.size,
            required=squad_size,
        )

    bucket = candidate.bucket
    in_bucket = composition.defensive if bucket == constants.DEFENSIVE else composition.attacking
    if in_bucket >= slots[bucket]:
        label = BUCKET_LABELS[bucket]
        return _reject(
            BUCKET_FULL,
            f'Squad already has {in_bucket} {label} players. Maximum allowed: {slots[bucket]}',
            current=in_bucket,
            required=slots[bucket],
        )

    if not allow_transfer:
        if as_captain and composition.captains >= 1:
            return _reject(
                DUPLICATE_CAPTAINCY,
                'Squad already has a captain. Only one captain allowed.',
                current=composition.captains,
                required=1,
            )
        if as_vice_captain and composition.vice_captains >= 1:
            return _reject(
                DUPLICATE_CAPTAINCY,
                'Squad already has a vice-captain. Only one vice-captain allowed.',
                current=composition.vice_captains,
                required=1,
            )

    hypothetical = replace(candidate, is_captain=as_captain, is_vice_captain=as_vice_captain)
    if as_captain:
        squad = [replace(p, is_captain=False) for p in squad]
    if as_vice_captain:
        squad = [replace(p, is_vice_captain=False) for p in squad]
    return AllocationResult(
        ok=True,
        message=f'{candidate.name} can be added',
        composition=summarize_squad(squad + [hypothetical]),
    )


def _transfer_roles(
    tx: Transaction, owner_id: str, holder: Player, as_captain: bool, as_vice_captain: bool
) -> None:
    """Clear the claimed roles from the owner's other players, then set them on holder."""
    for other in tx.squad_of(owner_id):
        if other.id == holder.id:
            continue
        changed = False
        if as_captain and other.is_captain:
            other.is_captain = False
            changed = True
        if as_vice_captain and other.is_vice_captain:
            other.is_vice_captain = False
            changed = True
        if changed:
            logger.debug(f'Cleared captaincy flags on {other.id} for {owner_id}')
            tx.put_player(other)
    holder.is_captain = as_captain
    holder.is_vice_captain = as_vice_captain
    tx.put_player(holder)


class AllocationManager:
    """Assigns players to participants and runs the draft state machine."""

    def __init__(
        self,
        store: InMemoryStore,
        config: Optional[LeagueConfig] = None,
        notifier: Optional[Notifier] = None,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.config = config or get_config()
        self.notifier = notifier or LoggingNotifier()
        self.clock = clock

    def can_assign(
        self,
        squad: Iterable[Player],
        candidate: Player,
        as_captain: bool = False,
        as_vice_captain: bool = False,
    ) -> AllocationResult:
        return can_assign(
            squad,
            candidate,
            as_captain,
            as_vice_captain,
            squad_size=self.config.squad_size,
            bucket_slots=self.config.bucket_slots,
        )

    def assign(
        self,
        player_id: str,
        owner_id: str,
        as_captain: bool = False,
        as_vice_captain: bool = False,
    ) -> AllocationResult:
        """
        Assign an unowned player to a participant.

        Raises:
            NotFound: If the player or participant does not exist
            Conflict: If the squad or player changed concurrently
        """
        with self.store.transaction() as tx:
            player = tx.get_player(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found', player_id=player_id)
            participant = tx.get_participant(owner_id)
            if participant is None:
                raise NotFound(f'Participant {owner_id} not found', participant_id=owner_id)

            if player.owner_id is not None:
                result = _reject(
                    ALREADY_ASSIGNED,
                    f'{player.name} is already assigned to {player.owner_id}',
                    current=player.owner_id,
                    required=None,
                )
                logger.info(f'Rejected assign {player_id} -> {owner_id}: {result.reason}')
                return result

            squad = tx.squad_of(owner_id)
            check = can_assign(
                squad,
                player,
                as_captain,
                as_vice_captain,
                squad_size=self.config.squad_size,
                bucket_slots=self.config.bucket_slots,
                allow_transfer=True,
            )
            if not check.ok:
                logger.info(f'Rejected assign {player_id} -> {owner_id}: {check.reason}')
                return check

            player.owner_id = owner_id
            _transfer_roles(tx, owner_id, player, as_captain, as_vice_captain)

        logger.info(
            f'Assigned {player.name} ({player.position}) to {participant.name}'
            + (' as captain' if as_captain else '')
            + (' as vice-captain' if as_vice_captain else '')
        )
        dispatch(self.notifier, NotificationEvent(
            kind=constants.PLAYER_ALLOCATED,
            target_participant_id=owner_id,
            message=f'{player.name} has been allocated to your squad',
            metadata={'player_id': player.id, 'position': player.position},
        ))
        return AllocationResult(ok=True, message=f'{player.name} assigned to {participant.name}',
                                player=player, composition=check.composition)

    def unassign(self, player_id: str) -> AllocationResult:
        """
        Return a player to the unassigned pool.

        Raises:
            NotFound: If the player does not exist
        """
        with self.store.transaction() as tx:
            player = tx.get_player(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found', player_id=player_id)
            previous_owner = player.owner_id
            player.release()
            tx.put_player(player)

        logger.info(f'Unassigned {player.name} (was {previous_owner})')
        return AllocationResult(ok=True, message=f'{player.name} returned to the pool', player=player)

    def transfer(self, player_out_id: str, player_in_id: str) -> AllocationResult:
        """
        Swap an owned player for an unowned one in a single step.

        The incoming player takes the outgoing player's captaincy roles and
        must fit the squad once the outgoing player has left, so a transfer
        within the same bucket always works on a full squad and one across
        buckets is refused as BucketFull. Allowed after the draft.

        Raises:
            NotFound: If either player does not exist
            Conflict: If the squad or either player changed concurrently
        """
        with self.store.transaction() as tx:
            player_out = tx.get_player(player_out_id)
            if player_out is None:
                raise NotFound(f'Player {player_out_id} not found', player_id=player_out_id)
            player_in = tx.get_player(player_in_id)
            if player_in is None:
                raise NotFound(f'Player {player_in_id} not found', player_id=player_in_id)

            owner_id = player_out.owner_id
            if owner_id is None:
                return _reject(UNOWNED, f'{player_out.name} is not owned by any participant',
                               error_kind=PRECONDITION_FAILED)
            if player_in.owner_id is not None:
                result = _reject(
                    ALREADY_ASSIGNED,
                    f'{player_in.name} is already assigned to {player_in.owner_id}',
                    current=player_in.owner_id,
                    required=None,
                )
                logger.info(f'Rejected transfer {player_out_id} -> {player_in_id}: {result.reason}')
                return result

            as_captain, as_vice_captain = player_out.is_captain, player_out.is_vice_captain
            remaining = [p for p in tx.squad_of(owner_id) if p.id != player_out.id]
            check = can_assign(
                remaining,
                player_in,
                as_captain,
                as_vice_captain,
                squad_size=self.config.squad_size,
                bucket_slots=self.config.bucket_slots,
            )
            if not check.ok:
                logger.info(f'Rejected transfer {player_out_id} -> {player_in_id}: {check.reason}')
                return check

            player_out.release()
            tx.put_player(player_out)
            player_in.owner_id = owner_id
            player_in.is_captain = as_captain
            player_in.is_vice_captain = as_vice_captain
            tx.put_player(player_in)

        logger.info(f'Transfer for {owner_id}: {player_out.name} out, {player_in.name} in')
        dispatch(self.notifier, NotificationEvent(
            kind=constants.PLAYER_ALLOCATED,
            target_participant_id=owner_id,
            message=f'{player_in.name} has joined your squad, replacing {player_out.name}',
            metadata={'player_id': player_in.id, 'replaced_player_id': player_out.id},
        ))
        return AllocationResult(ok=True, message=f'{player_in.name} replaces {player_out.name}',
                                player=player_in, composition=check.composition)

    def set_captaincy(
        self, player_id: str, as_captain: bool = False, as_vice_captain: bool = False
    ) -> AllocationResult:
        """
        Set a player's captaincy flags, taking the role from any teammate.

        The target's flags become exactly (as_captain, as_vice_captain).
        Idempotent.

        Raises:
            NotFound: If the player does not exist
        """
        with self.store.transaction() as tx:
            player = tx.get_player(player_id)
            if player is None:
                raise NotFound(f'Player {player_id} not found', player_id=player_id)
            if player.owner_id is None:
                return _reject(UNOWNED, f'{player.name} is not owned by any participant',
                               error_kind=PRECONDITION_FAILED)
            if as_captain and as_vice_captain:
                return _reject(
                    DUPLICATE_CAPTAINCY,
                    f'{player.name} cannot be both captain and vice-captain',
                    current=2,
                    required=1,
                )
            _transfer_roles(tx, player.owner_id, player, as_captain, as_vice_captain)
            composition = summarize_squad(tx.squad_of(player.owner_id))

        logger.info(
            f'Captaincy for {player.owner_id}: {player.name} '
            f'captain={as_captain} vice={as_vice_captain}'
        )
        return AllocationResult(ok=True, message='Captaincy updated', player=player,
                                composition=composition)

    def complete_draft(self) -> AllocationResult:
        """
        Close the draft. Every participant must own exactly squad_size players.

        Only squad size gates completion; composition validity is audited
        separately with audit_squads().
        """
        with self.store.transaction() as tx:
            draft = tx.get_draft()
            if draft.is_complete:
                return _reject(DRAFT_ALREADY_COMPLETE, 'Draft is already complete',
                               error_kind=PRECONDITION_FAILED, draft=draft)

            incomplete = {}
            for participant in tx.list_participants():
                size = len(tx.squad_of(participant.id))
                if size != self.config.squad_size:
                    incomplete[participant.id] = size
            if incomplete:
                details = ', '.join(f'{pid}: {size} players' for pid, size in incomplete.items())
                logger.info(f'Cannot complete draft, incomplete squads: {details}')
                return _reject(
                    INCOMPLETE_SQUADS,
                    f'Cannot complete draft: all squads must have exactly '
                    f'{self.config.squad_size} players ({details})',
                    current=incomplete,
                    required=self.config.squad_size,
                    error_kind=PRECONDITION_FAILED,
                    incomplete=incomplete,
                )

            draft.status = constants.DRAFT_COMPLETE
            draft.completed_at = self.clock()
            tx.put_draft(draft)

        logger.info('Draft completed')
        return AllocationResult(ok=True, message='Draft completed successfully', draft=draft)

    def draft_status(self) -> DraftState:
        with self.store.transaction() as tx:
            return tx.get_draft()

    def audit_squads(self) -> SquadAudit:
        """Validate every participant's squad composition."""
        with self.store.transaction() as tx:
            squads = {p.id: tx.squad_of(p.id) for p in tx.list_participants()}
        audit = audit_squads(squads, self.config.squad_size, self.config.bucket_slots)
        logger.info(f'Squad audit: {audit.valid}/{audit.total} valid')
        return audit
