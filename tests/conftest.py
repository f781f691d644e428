"""Shared fixtures for the PFFL test suite."""

import random
from datetime import datetime, timezone

import pytest

from pffl.clock import FixedClock
from pffl.models import ChipDefinition, ChipInventoryEntry, GameweekPerformance, Participant, Player
from pffl.schemas import LeagueConfig
from pffl.store import InMemoryStore

# Saturday lunchtime, UTC
START = datetime(2025, 10, 4, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier:
    """Keeps every notification it is handed."""

    def __init__(self):
        self.events = []

    def notify(self, event):
        self.events.append(event)

    def kinds(self):
        return [e.kind for e in self.events]


class FailingNotifier:
    def notify(self, event):
        raise RuntimeError('notification service down')


def make_squad(owner_id, prefix=None):
    """A valid squad: GK, DEF, captain MID, vice-captain MID, FWD."""
    prefix = prefix or owner_id[0]
    return [
        Player(f'{prefix}-gk', f'{prefix.upper()} Keeper', 'GK', owner_id=owner_id),
        Player(f'{prefix}-def', f'{prefix.upper()} Defender', 'DEF', owner_id=owner_id),
        Player(f'{prefix}-mid1', f'{prefix.upper()} Playmaker', 'MID', owner_id=owner_id, is_captain=True),
        Player(f'{prefix}-mid2', f'{prefix.upper()} Runner', 'MID', owner_id=owner_id, is_vice_captain=True),
        Player(f'{prefix}-fwd', f'{prefix.upper()} Striker', 'FWD', owner_id=owner_id),
    ]


@pytest.fixture
def config():
    """Built-in defaults, independent of data/league_config.json."""
    return LeagueConfig()


@pytest.fixture
def clock():
    return FixedClock(START)


@pytest.fixture
def rng():
    return random.Random(42)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def chip_definitions(config):
    return [ChipDefinition(**record.model_dump()) for record in config.chip_catalogue]


@pytest.fixture
def make_player():
    """Factory for unowned players."""
    def _make(player_id='p1', position='MID', **overrides):
        return Player(id=player_id, name=overrides.pop('name', player_id.title()), position=position, **overrides)
    return _make


@pytest.fixture
def store(chip_definitions):
    """
    Alice and Bob own full, valid squads; Carol owns nothing.

    Unowned pool: free-gk, free-def, free-def2, free-mid, free-fwd.
    """
    free = [
        Player('free-gk', 'Free Keeper', 'GK'),
        Player('free-def', 'Free Defender', 'DEF'),
        Player('free-def2', 'Free Fullback', 'DEF'),
        Player('free-mid', 'Free Midfielder', 'MID'),
        Player('free-fwd', 'Free Forward', 'FWD'),
    ]
    return InMemoryStore.from_records(
        players=make_squad('alice') + make_squad('bob') + free,
        participants=[
            Participant('alice', 'Alice'),
            Participant('bob', 'Bob'),
            Participant('carol', 'Carol'),
        ],
        chip_definitions=chip_definitions,
    )


# Gameweek 1 base points. Alice: 20 starting, 28 total. Bob: 23 starting, 32 total.
GW1_POINTS = {
    'a-gk': 2, 'a-def': 3, 'a-mid1': 6, 'a-mid2': 4, 'a-fwd': 5,
    'b-gk': 1, 'b-def': 2, 'b-mid1': 8, 'b-mid2': 2, 'b-fwd': 10,
}


@pytest.fixture
def gw1_store(store):
    """The standard store with gameweek 1 performances recorded."""
    with store.transaction() as tx:
        for player_id, points in GW1_POINTS.items():
            tx.record_performance(GameweekPerformance(player_id=player_id, gameweek=1, points=points))
    return store


@pytest.fixture
def give_chip():
    """Add units of a chip definition to a participant's inventory."""
    def _give(store, participant_id, chip_def_id, quantity=1):
        with store.transaction() as tx:
            entry = tx.get_inventory_entry(participant_id, chip_def_id) or ChipInventoryEntry(
                participant_id, chip_def_id
            )
            entry.quantity += quantity
            tx.put_inventory_entry(entry)
    return _give
