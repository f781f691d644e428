"""Playing chips: inventory, cooldowns and the effects the scorer reads."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, List, Optional

from . import constants
from .chip_rules import CHIP_RULES
from .clock import Clock, system_clock
from .config import get_config
from .errors import PRECONDITION_FAILED, VALIDATION_ERROR, NotFound
from .models import ChipCooldown, ChipDefinition, ChipEffect, ChipInventoryEntry, NotificationEvent
from .notifications import LoggingNotifier, Notifier, dispatch
from .schemas import LeagueConfig
from .store import InMemoryStore, Transaction
from .utils import new_id
from .validators import check_gameweek

logger = logging.getLogger('pffl.chips')

# Refusal reasons
UNKNOWN_CHIP_TYPE = 'unknown_chip_type'
COOLDOWN_ACTIVE = 'cooldown_active'
INSUFFICIENT_INVENTORY = 'insufficient_inventory'
TARGET_REQUIRED = 'target_required'
INVALID_TARGET = 'invalid_target'

CHIP_MESSAGES = {
    constants.SWAP: 'Player swap effect applied',
    constants.BANISH: 'Bench banish effect applied',
    constants.SHIELD: 'Shield activated - you are protected from chip effects',
    constants.CURSE: 'Captain curse effect applied',
    constants.TRIPLE_CAPTAIN: 'Triple captain activated',
    constants.BENCH_BOOST: 'Bench boost activated',
}


@dataclass
class ChipUseResult:
    """Outcome of playing a chip. On refusal, reason says which check failed."""
    ok: bool
    reason: Optional[str] = None
    error_kind: Optional[str] = None
    message: str = ''
    current: Any = None
    required: Any = None
    effect: Optional[ChipEffect] = None
    cooldown: Optional[ChipCooldown] = None
    remaining: Optional[int] = None


def _refuse(reason: str, message: str, error_kind: str = VALIDATION_ERROR,
            current: Any = None, required: Any = None) -> ChipUseResult:
    return ChipUseResult(
        ok=False,
        reason=reason,
        error_kind=error_kind,
        message=message,
        current=current,
        required=required,
    )


@dataclass
class InventoryItem:
    """An inventory row joined with its chip definition."""
    definition: ChipDefinition
    quantity: int


class ChipEffectEngine:
    """Validates and records chip plays."""

    def __init__(
        self,
        store: InMemoryStore,
        config: Optional[LeagueConfig] = None,
        clock: Clock = system_clock,
        notifier: Optional[Notifier] = None,
    ):
        self.store = store
        self.config = config or get_config()
        self.clock = clock
        self.notifier = notifier or LoggingNotifier()

    def _cooldown_hours(self, definition: ChipDefinition) -> int:
        if definition.rarity == constants.LEGENDARY:
            return self.config.legendary_cooldown_hours
        return self.config.cooldown_hours

    @staticmethod
    def _held_definition(tx: Transaction, participant_id: str, chip_type: str) -> Optional[ChipInventoryEntry]:
        """First inventory row with stock for a definition of this chip type."""
        for entry in tx.inventory_of(participant_id):
            if entry.quantity < 1:
                continue
            definition = tx.get_chip_definition(entry.chip_def_id)
            if definition is not None and definition.chip_type == chip_type:
                return entry
        return None

    def use(
        self,
        chip_type: str,
        source_id: str,
        target_id: Optional[str] = None,
        gameweek: int = 1,
    ) -> ChipUseResult:
        """
        Play a chip for a gameweek.

        Checks, in order: a known chip type, no active cooldown, a unit in
        inventory, a valid target. Then, in one transaction, spends the unit,
        records the effect (active for effect_window_days) and starts the
        cooldown (longer for legendary chips). The target is notified after
        commit.

        A failed check comes back as ChipUseResult(ok=False) with the reason
        and nothing is written.

        Args:
            chip_type: One of constants.CHIP_TYPES
            source_id: Participant playing the chip
            target_id: Participant the chip is aimed at (hostile chips only)
            gameweek: Gameweek the effect applies to

        Returns:
            ChipUseResult with the effect, cooldown and units left

        Raises:
            RuleViolation: If gameweek is outside 1..max_gameweek
            NotFound: If the source or target participant does not exist
            Conflict: If a concurrent play touched the same inventory or cooldowns
        """
        check_gameweek(gameweek, self.config.max_gameweek)
        rule = CHIP_RULES.get(chip_type)
        if rule is None:
            return _refuse(UNKNOWN_CHIP_TYPE, f'Unknown chip type: {chip_type}')

        now = self.clock()
        with self.store.transaction() as tx:
            if tx.get_participant(source_id) is None:
                raise NotFound(f'Participant {source_id} not found', participant_id=source_id)
            if rule.requires_target and target_id is not None and tx.get_participant(target_id) is None:
                raise NotFound(f'Participant {target_id} not found', participant_id=target_id)

            cooldown_target = target_id if rule.requires_target else None
            for cooldown in tx.cooldowns_of(source_id):
                if cooldown.blocks(chip_type, cooldown_target, now):
                    logger.info(f'{source_id} refused {chip_type}: cooldown until {cooldown.cooldown_until}')
                    return _refuse(
                        COOLDOWN_ACTIVE,
                        f'{chip_type} is on cooldown until {cooldown.cooldown_until.isoformat()}',
                        error_kind=PRECONDITION_FAILED,
                        current=now,
                        required=cooldown.cooldown_until,
                    )

            entry = self._held_definition(tx, source_id, chip_type)
            if entry is None:
                logger.info(f'{source_id} refused {chip_type}: none in inventory')
                return _refuse(
                    INSUFFICIENT_INVENTORY,
                    f'No {chip_type} chip in inventory',
                    error_kind=PRECONDITION_FAILED,
                    current=0,
                    required=1,
                )

            if rule.requires_target:
                if target_id is None:
                    return _refuse(TARGET_REQUIRED, f'Target participant required for {chip_type}')
                if target_id == source_id:
                    return _refuse(INVALID_TARGET, f'{chip_type} cannot target yourself',
                                   current=target_id)
            elif target_id is not None and target_id != source_id:
                return _refuse(INVALID_TARGET, f'{chip_type} can only be played on your own squad',
                               current=target_id, required=source_id)

            definition = tx.get_chip_definition(entry.chip_def_id)
            entry.quantity -= 1
            tx.put_inventory_entry(entry)

            effect = ChipEffect(
                id=new_id('fx'),
                source_participant_id=source_id,
                target_participant_id=target_id if rule.requires_target else source_id,
                chip_type=chip_type,
                gameweek=gameweek,
                created_at=now,
                active_until=now + timedelta(days=self.config.effect_window_days),
                chip_def_id=definition.id,
                payload={'magnitude': definition.magnitude, 'chip_name': definition.name},
            )
            tx.add_effect(effect)

            cooldown = ChipCooldown(
                participant_id=source_id,
                chip_type=chip_type,
                cooldown_until=now + timedelta(hours=self._cooldown_hours(definition)),
                target_participant_id=cooldown_target,
            )
            tx.put_cooldown(cooldown)

        logger.info(
            f'{source_id} played {definition.name} on {effect.target_participant_id} '
            f'for gameweek {gameweek} ({entry.quantity} left)'
        )
        if effect.target_participant_id != source_id:
            dispatch(self.notifier, NotificationEvent(
                kind=constants.CHIP_USED_ON_YOU,
                target_participant_id=effect.target_participant_id,
                message=f'A {definition.name} chip was used on you!',
                metadata={
                    'from_participant_id': source_id,
                    'chip_type': chip_type,
                    'gameweek': gameweek,
                },
            ))
        return ChipUseResult(
            ok=True,
            message=CHIP_MESSAGES[chip_type],
            effect=effect,
            cooldown=cooldown,
            remaining=entry.quantity,
        )

    def inventory(self, participant_id: str) -> List[InventoryItem]:
        """Chips a participant holds (quantity > 0)."""
        with self.store.transaction() as tx:
            items = []
            for entry in tx.inventory_of(participant_id):
                definition = tx.get_chip_definition(entry.chip_def_id)
                if definition is None or entry.quantity < 1:
                    continue
                items.append(InventoryItem(definition=definition, quantity=entry.quantity))
            return items

    def active_effects(self, participant_id: str, at: Optional[datetime] = None) -> List[ChipEffect]:
        """Effects played by or against a participant that have not yet expired."""
        at = at or self.clock()
        with self.store.transaction() as tx:
            return [e for e in tx.effects_for(participant_id) if e.is_active(at)]
