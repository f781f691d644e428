"""Transactional record store.

The rules engine treats persistence as an external collaborator. This module
provides the two stores the project ships with:

- InMemoryStore: process-local tables with optimistic, row-level concurrency
  control. Each transaction remembers the version of every row it read, plus
  the version of any index it scanned (a participant's squad, cooldowns,
  inventory or effects). Commit fails with Conflict if any of those changed
  since, so two requests racing for the last open slot of a squad, or for the
  last unit of a chip, cannot both succeed.
- JsonFileStore: the same tables persisted to a single league.json document,
  validated with pydantic schemas on load and on save. A commit whose
  document cannot be validated or written changes nothing in memory either.

Usage:
    with store.transaction() as tx:
        squad = tx.squad_of('alice')
        player = tx.get_player('p7')
        player.owner_id = 'alice'
        tx.put_player(player)
"""

import copy
import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Iterator, Optional

from pydantic import ValidationError

from .errors import Conflict, RuleViolation, UpstreamUnavailable
from .models import (
    ChipCooldown,
    ChipDefinition,
    ChipEffect,
    ChipInventoryEntry,
    DraftState,
    GameweekPerformance,
    Participant,
    ParticipantGameweekScore,
    Player,
)
from .schemas import LeagueFile
from .utils import load_json, save_json

logger = logging.getLogger('pffl.store')

TABLES = (
    'players',
    'participants',
    'performances',
    'scores',
    'chip_definitions',
    'inventory',
    'effects',
    'cooldowns',
    'grants',
    'draft',
)

DRAFT_KEY = 'state'


def _index_keys(table: str, record: Any) -> list[tuple]:
    """Index rows a record belongs to. Writing the record bumps these versions."""
    if record is None:
        return []
    if table == 'players' and record.owner_id is not None:
        return [('index', 'squad', record.owner_id)]
    if table == 'inventory':
        return [('index', 'inventory', record.participant_id)]
    if table == 'cooldowns':
        return [('index', 'cooldowns', record.participant_id)]
    if table == 'effects':
        return [
            ('index', 'effects', record.source_participant_id),
            ('index', 'effects', record.target_participant_id),
        ]
    return []


class Transaction:
    """A unit of work against a store.

    Reads see the committed state plus this transaction's own writes. Writes
    are buffered and applied together at commit.
    """

    def __init__(self, store: 'InMemoryStore'):
        self._store = store
        self._reads: dict[tuple, int] = {}
        self._writes: dict[tuple[str, Any], Any] = {}

    # -- low-level access -------------------------------------------------

    def _get(self, table: str, key: Any) -> Any:
        if (table, key) in self._writes:
            return copy.deepcopy(self._writes[(table, key)])
        record, version = self._store._read(table, key)
        self._reads.setdefault(('row', table, key), version)
        return record

    def _put(self, table: str, key: Any, record: Any) -> None:
        self._writes[(table, key)] = copy.deepcopy(record)

    def _scan(
        self,
        table: str,
        index: Optional[tuple] = None,
        where: Optional[Callable[[Any], bool]] = None,
    ) -> list[Any]:
        """Rows of a table, filtered by where.

        Only the rows that match are recorded as read. A row that starts or
        stops matching later is caught by the index version, so an indexed
        scan should always pass the filter that defines its index.
        """
        if index is not None:
            self._reads.setdefault(index, self._store._version(index))
        rows = {}
        for key, record, version in self._store._scan(table):
            if where is not None and not where(record):
                continue
            self._reads.setdefault(('row', table, key), version)
            rows[key] = record
        for (written_table, key), record in self._writes.items():
            if written_table != table:
                continue
            if record is None or (where is not None and not where(record)):
                rows.pop(key, None)
            else:
                rows[key] = copy.deepcopy(record)
        return list(rows.values())

    @property
    def has_writes(self) -> bool:
        return bool(self._writes)

    # -- players ------------------------------------------------------------

    def get_player(self, player_id: str) -> Optional[Player]:
        return self._get('players', player_id)

    def list_players(self) -> list[Player]:
        return sorted(self._scan('players'), key=lambda p: p.id)

    def squad_of(self, owner_id: str) -> list[Player]:
        """All players owned by a participant."""
        players = self._scan(
            'players', index=('index', 'squad', owner_id), where=lambda p: p.owner_id == owner_id
        )
        return sorted(players, key=lambda p: p.id)

    def put_player(self, player: Player) -> None:
        self._put('players', player.id, player)

    # -- participants -------------------------------------------------------

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        return self._get('participants', participant_id)

    def list_participants(self) -> list[Participant]:
        return sorted(self._scan('participants'), key=lambda p: p.id)

    def put_participant(self, participant: Participant) -> None:
        self._put('participants', participant.id, participant)

    # -- gameweek performances ---------------------------------------------

    def get_performance(self, player_id: str, gameweek: int) -> Optional[GameweekPerformance]:
        return self._get('performances', (player_id, gameweek))

    def performances_for(self, gameweek: int) -> dict[str, GameweekPerformance]:
        """Recorded performances for a gameweek, keyed by player id."""
        return {
            perf.player_id: perf
            for perf in self._scan('performances')
            if perf.gameweek == gameweek
        }

    def record_performance(self, performance: GameweekPerformance) -> bool:
        """Record a performance. Returns False if the identical row already exists.

        Raises:
            RuleViolation: If a different performance is already recorded
        """
        existing = self.get_performance(performance.player_id, performance.gameweek)
        if existing is not None:
            if existing == performance:
                return False
            raise RuleViolation(
                f'Performance for {performance.player_id} in gameweek '
                f'{performance.gameweek} is already recorded',
                player_id=performance.player_id,
                gameweek=performance.gameweek,
            )
        self._put('performances', (performance.player_id, performance.gameweek), performance)
        return True

    # -- gameweek scores ----------------------------------------------------

    def get_score(self, participant_id: str, gameweek: int) -> Optional[ParticipantGameweekScore]:
        return self._get('scores', (participant_id, gameweek))

    def put_score(self, score: ParticipantGameweekScore) -> None:
        """Upsert keyed by (participant, gameweek)."""
        self._put('scores', (score.participant_id, score.gameweek), score)

    def scores_for_gameweek(self, gameweek: int) -> list[ParticipantGameweekScore]:
        return [s for s in self._scan('scores') if s.gameweek == gameweek]

    def scores_for_participant(self, participant_id: str) -> list[ParticipantGameweekScore]:
        scores = [s for s in self._scan('scores') if s.participant_id == participant_id]
        return sorted(scores, key=lambda s: s.gameweek)

    # -- chips --------------------------------------------------------------

    def get_chip_definition(self, chip_def_id: str) -> Optional[ChipDefinition]:
        return self._get('chip_definitions', chip_def_id)

    def list_chip_definitions(self) -> list[ChipDefinition]:
        return sorted(self._scan('chip_definitions'), key=lambda c: c.id)

    def put_chip_definition(self, definition: ChipDefinition) -> None:
        self._put('chip_definitions', definition.id, definition)

    def get_inventory_entry(self, participant_id: str, chip_def_id: str) -> Optional[ChipInventoryEntry]:
        return self._get('inventory', (participant_id, chip_def_id))

    def inventory_of(self, participant_id: str) -> list[ChipInventoryEntry]:
        entries = self._scan(
            'inventory',
            index=('index', 'inventory', participant_id),
            where=lambda e: e.participant_id == participant_id,
        )
        return sorted(entries, key=lambda e: e.chip_def_id)

    def put_inventory_entry(self, entry: ChipInventoryEntry) -> None:
        if entry.quantity < 0:
            raise RuleViolation(
                f'Inventory for {entry.participant_id} / {entry.chip_def_id} cannot go negative',
                current=entry.quantity,
                required=0,
            )
        self._put('inventory', (entry.participant_id, entry.chip_def_id), entry)

    def add_effect(self, effect: ChipEffect) -> None:
        self._put('effects', effect.id, effect)

    def effects_for(self, participant_id: str) -> list[ChipEffect]:
        """Effects played by or against a participant."""
        effects = self._scan(
            'effects', index=('index', 'effects', participant_id), where=lambda e: e.involves(participant_id)
        )
        return sorted(effects, key=lambda e: e.created_at)

    def list_effects(self, gameweek: Optional[int] = None) -> list[ChipEffect]:
        effects = self._scan('effects')
        if gameweek is not None:
            effects = [e for e in effects if e.gameweek == gameweek]
        return sorted(effects, key=lambda e: e.created_at)

    def cooldowns_of(self, participant_id: str) -> list[ChipCooldown]:
        return self._scan(
            'cooldowns',
            index=('index', 'cooldowns', participant_id),
            where=lambda c: c.participant_id == participant_id,
        )

    def put_cooldown(self, cooldown: ChipCooldown) -> None:
        key = (cooldown.participant_id, cooldown.chip_type, cooldown.target_participant_id or '')
        self._put('cooldowns', key, cooldown)

    # -- reward grants ------------------------------------------------------

    def last_grant(self, participant_id: str) -> Optional[datetime]:
        return self._get('grants', participant_id)

    def record_grant(self, participant_id: str, granted_at: datetime) -> None:
        self._put('grants', participant_id, granted_at)

    # -- draft state --------------------------------------------------------

    def get_draft(self) -> DraftState:
        draft = self._get('draft', DRAFT_KEY)
        return draft if draft is not None else DraftState()

    def put_draft(self, draft: DraftState) -> None:
        self._put('draft', DRAFT_KEY, draft)


class InMemoryStore:
    """Process-local record store with optimistic row-level concurrency."""

    def __init__(self):
        self._tables: dict[str, dict[Any, Any]] = {name: {} for name in TABLES}
        self._versions: dict[tuple, int] = {}
        self._lock = threading.RLock()

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """Open a transaction; it commits when the block exits without an exception.

        Raises:
            Conflict: If a row or index this transaction read was changed
                by another transaction before commit
        """
        tx = Transaction(self)
        yield tx
        self._commit(tx)

    @classmethod
    def from_records(
        cls,
        players: Optional[list[Player]] = None,
        participants: Optional[list[Participant]] = None,
        chip_definitions: Optional[list[ChipDefinition]] = None,
        **kwargs,
    ) -> 'InMemoryStore':
        """Build a store seeded with records."""
        store = cls(**kwargs)
        with store.transaction() as tx:
            for participant in participants or []:
                tx.put_participant(participant)
            for player in players or []:
                tx.put_player(player)
            for definition in chip_definitions or []:
                tx.put_chip_definition(definition)
        return store

    # -- internals used by Transaction --------------------------------------

    def _version(self, key: tuple) -> int:
        with self._lock:
            return self._versions.get(key, 0)

    def _read(self, table: str, key: Any) -> tuple[Any, int]:
        with self._lock:
            record = self._tables[table].get(key)
            return copy.deepcopy(record), self._versions.get(('row', table, key), 0)

    def _scan(self, table: str) -> list[tuple[Any, Any, int]]:
        with self._lock:
            return [
                (key, copy.deepcopy(record), self._versions.get(('row', table, key), 0))
                for key, record in self._tables[table].items()
            ]

    def _bump(self, key: tuple) -> None:
        self._versions[key] = self._versions.get(key, 0) + 1

    def _commit(self, tx: Transaction) -> None:
        if not tx.has_writes:
            return
        with self._lock:
            for key, seen in tx._reads.items():
                if self._versions.get(key, 0) != seen:
                    logger.info(f'Commit conflict on {key[1]} {key[2]!r}')
                    raise Conflict(
                        f'Concurrent update to {key[1]} {key[2]!r}; retry the request',
                        table=key[1],
                    )
            # Stage the new tables; nothing changes in memory unless they persist
            staged = {name: dict(rows) for name, rows in self._tables.items()}
            touched = set()
            for (table, key), record in tx._writes.items():
                old = staged[table].get(key)
                touched.add(('row', table, key))
                touched.update(_index_keys(table, old))
                touched.update(_index_keys(table, record))
                if record is None:
                    staged[table].pop(key, None)
                else:
                    staged[table][key] = record
            self._persist(staged)
            self._tables = staged
            for version_key in touched:
                self._bump(version_key)

    def _persist(self, tables: dict[str, dict[Any, Any]]) -> None:
        """Hook for durable stores; called inside the commit lock with the staged tables.

        Raising here aborts the commit.
        """


class JsonFileStore(InMemoryStore):
    """Record store persisted to a single JSON document after every commit."""

    def __init__(self, path: Path | str):
        super().__init__()
        self.path = Path(path)
        if self.path.exists():
            self._load(load_json(self.path, schema=LeagueFile))
            logger.info(
                f'Loaded league from {self.path}: {len(self._tables["players"])} players, '
                f'{len(self._tables["participants"])} participants'
            )
        else:
            logger.info(f'No league file at {self.path}, starting empty')

    def _load(self, league: LeagueFile) -> None:
        tables = self._tables
        for rec in league.players:
            tables['players'][rec.id] = Player(**rec.model_dump())
        for rec in league.participants:
            tables['participants'][rec.id] = Participant(**rec.model_dump())
        for rec in league.performances:
            tables['performances'][(rec.player_id, rec.gameweek)] = GameweekPerformance(**rec.model_dump())
        for rec in league.scores:
            tables['scores'][(rec.participant_id, rec.gameweek)] = ParticipantGameweekScore(**rec.model_dump())
        for rec in league.chip_definitions:
            tables['chip_definitions'][rec.id] = ChipDefinition(**rec.model_dump())
        for rec in league.inventory:
            tables['inventory'][(rec.participant_id, rec.chip_def_id)] = ChipInventoryEntry(**rec.model_dump())
        for rec in league.effects:
            tables['effects'][rec.id] = ChipEffect(**rec.model_dump())
        for rec in league.cooldowns:
            key = (rec.participant_id, rec.chip_type, rec.target_participant_id or '')
            tables['cooldowns'][key] = ChipCooldown(**rec.model_dump())
        tables['grants'].update(league.grants)
        tables['draft'][DRAFT_KEY] = DraftState(**league.draft.model_dump())

    @staticmethod
    def _league_file(tables: dict[str, dict[Any, Any]]) -> LeagueFile:
        return LeagueFile(
            players=[asdict(p) for p in tables['players'].values()],
            participants=[asdict(p) for p in tables['participants'].values()],
            performances=[asdict(p) for p in tables['performances'].values()],
            scores=[asdict(s) for s in tables['scores'].values()],
            chip_definitions=[asdict(c) for c in tables['chip_definitions'].values()],
            inventory=[asdict(e) for e in tables['inventory'].values()],
            effects=[asdict(e) for e in tables['effects'].values()],
            cooldowns=[asdict(c) for c in tables['cooldowns'].values()],
            grants=dict(tables['grants']),
            draft=asdict(tables['draft'].get(DRAFT_KEY, DraftState())),
        )

    def _persist(self, tables: dict[str, dict[Any, Any]]) -> None:
        """
        Raises:
            RuleViolation: If the staged state does not fit the league file schema
            UpstreamUnavailable: If the league file cannot be written
        """
        try:
            league = self._league_file(tables)
        except ValidationError as e:
            logger.error(f'Refusing to save {self.path}: {e.error_count()} schema errors')
            raise RuleViolation(f'League state does not match the league file schema: {e}') from e
        try:
            save_json(self.path, league)
        except OSError as e:
            raise UpstreamUnavailable(f'Could not write league file {self.path}: {e}', path=str(self.path)) from e
