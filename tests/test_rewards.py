"""Tests for the daily loot box."""

import random

import pytest

from pffl import constants
from pffl.errors import NotFound, PreconditionFailed
from pffl.models import ChipDefinition, Participant
from pffl.rewards import DAILY_LIMIT, RewardSelector, pick_rarity
from pffl.store import InMemoryStore

from conftest import START

TOP_BAND = {constants.LEGENDARY: 5, constants.EPIC: 15, constants.RARE: 25, constants.COMMON: 55}
MIDDLE_BAND = {constants.LEGENDARY: 6, constants.EPIC: 18, constants.RARE: 30, constants.COMMON: 46}
BOTTOM_BAND = {constants.LEGENDARY: 8, constants.EPIC: 20, constants.RARE: 35, constants.COMMON: 37}


class StubRandom(random.Random):
    """Returns a fixed value from random(); choice() still works."""

    def __init__(self, value):
        super().__init__(0)
        self.value = value

    def random(self):
        return self.value


@pytest.fixture
def selector(store, rng, clock, config):
    return RewardSelector(store, rng, clock, config)


def inventory_total(store, participant_id):
    with store.transaction() as tx:
        return sum(e.quantity for e in tx.inventory_of(participant_id))


class TestDropRates:
    """Tests for the rank-to-drop-rate bands."""

    @pytest.mark.parametrize('rank,expected', [
        (1, TOP_BAND),
        (5, TOP_BAND),
        (6, MIDDLE_BAND),
        (7, MIDDLE_BAND),
        (8, BOTTOM_BAND),
        (10, BOTTOM_BAND),
    ])
    def test_bands_for_ten_participants(self, selector, rank, expected):
        """Test band boundaries are strict: 5/10 is top, 7/10 is middle."""
        assert selector.drop_rates(rank, 10) == expected

    def test_no_participants(self, selector):
        """Test an empty table gets the top band."""
        assert selector.drop_rates(1, 0) == TOP_BAND

    def test_every_band_adds_up(self, config):
        """Test the default bands are all proper percentages."""
        for band in config.drop_rate_bands:
            assert sum(band.rates.values()) == 100


class TestPickRarity:
    """Tests for the cumulative rarity roll."""

    @pytest.mark.parametrize('roll,expected', [
        (0.0, constants.LEGENDARY),
        (0.049, constants.LEGENDARY),
        (0.05, constants.EPIC),
        (0.199, constants.EPIC),
        (0.2, constants.RARE),
        (0.449, constants.RARE),
        (0.45, constants.COMMON),
        (0.999, constants.COMMON),
    ])
    def test_cumulative_boundaries(self, roll, expected):
        """Test each tier owns a half-open slice of the roll, rarest first."""
        assert pick_rarity(TOP_BAND, StubRandom(roll)) == expected

    def test_bad_rates_fall_back_to_common(self):
        """Test rates that do not add up to 100."""
        rates = {constants.LEGENDARY: 50, constants.COMMON: 20}
        assert pick_rarity(rates, StubRandom(0.0)) == constants.COMMON

    def test_empty_tier_falls_back_to_common(self, store, clock, config):
        """Test a drawn rarity with no definitions."""
        definitions = [
            ChipDefinition('shield', 'Shield', constants.COMMON, constants.SHIELD),
            ChipDefinition('curse', 'Curse', constants.LEGENDARY, constants.CURSE),
        ]
        selector = RewardSelector(store, StubRandom(0.1), clock, config)
        assert selector.draw(1, 10, definitions).id == 'shield'

    def test_draw_without_definitions(self, store, clock, config):
        """Test drawing from an empty list."""
        selector = RewardSelector(store, StubRandom(0.5), clock, config)
        with pytest.raises(NotFound):
            selector.draw(1, 10, [])


class TestOpenLootBox:
    """Tests for RewardSelector.open_loot_box."""

    def test_grant(self, selector, store):
        """Test a box adds one unit and records the grant."""
        result = selector.open_loot_box('carol')
        assert result.quantity == 1
        assert result.granted_at == START
        assert result.total_participants == 3
        assert sum(result.drop_rates.values()) == 100
        assert inventory_total(store, 'carol') == 1
        with store.transaction() as tx:
            assert tx.last_grant('carol') == START

    def test_one_per_day(self, selector, store):
        """Test the second box on the same day."""
        selector.open_loot_box('alice')
        with pytest.raises(PreconditionFailed) as exc_info:
            selector.open_loot_box('alice')
        assert exc_info.value.details['reason'] == DAILY_LIMIT
        assert inventory_total(store, 'alice') == 1
        assert not selector.can_draw('alice')

    def test_limit_is_per_participant(self, selector):
        """Test that Alice's box does not use up Bob's."""
        selector.open_loot_box('alice')
        assert selector.can_draw('bob')
        selector.open_loot_box('bob')

    def test_next_calendar_day(self, selector, store, clock):
        """Test a box at 23:59 and another two minutes later."""
        clock.set(START.replace(hour=23, minute=59))
        selector.open_loot_box('alice')
        clock.advance(minutes=2)
        assert selector.can_draw('alice')
        selector.open_loot_box('alice')
        assert inventory_total(store, 'alice') == 2

    def test_not_a_rolling_window(self, selector, clock):
        """Test that 23 hours later on the same date is still refused."""
        clock.set(START.replace(hour=0, minute=30))
        selector.open_loot_box('alice')
        clock.advance(hours=23)
        with pytest.raises(PreconditionFailed):
            selector.open_loot_box('alice')

    def test_unknown_participant(self, selector):
        """Test a box for someone not in the league."""
        with pytest.raises(NotFound):
            selector.open_loot_box('dave')

    def test_rank_before_baseline(self, selector, store):
        """Test ranking by season points when no baseline exists yet."""
        with store.transaction() as tx:
            player = tx.get_player('b-fwd')
            player.season_points = 50
            tx.put_player(player)
        assert selector.open_loot_box('bob').rank == 1

    def test_rank_after_baseline(self, selector, store):
        """Test ranking by competition points once a baseline exists."""
        with store.transaction() as tx:
            for player in tx.list_players():
                player.baseline_points = 0
                if player.owner_id == 'alice':
                    player.season_points = 10
                tx.put_player(player)
        result = selector.open_loot_box('alice')
        assert result.rank == 1
        assert result.drop_rates == TOP_BAND

    def test_catalogue_installed_on_empty_store(self, rng, clock, config):
        """Test a league with no chip definitions gets the default catalogue."""
        store = InMemoryStore.from_records(participants=[Participant('alice', 'Alice')])
        result = RewardSelector(store, rng, clock, config).open_loot_box('alice')
        with store.transaction() as tx:
            ids = {d.id for d in tx.list_chip_definitions()}
        assert ids == {chip['id'] for chip in constants.CHIP_CATALOGUE}
        assert result.chip.id in ids

    def test_seeded_draws_repeat(self, store, clock, config):
        """Test that the same seed gives the same chip."""
        first = RewardSelector(store, random.Random(7), clock, config).draw(3, 3)
        second = RewardSelector(store, random.Random(7), clock, config).draw(3, 3)
        assert first == second

    def test_granted_chip_is_in_inventory(self, selector, store):
        """Test the drawn chip is the one that lands in inventory."""
        result = selector.open_loot_box('alice')
        with store.transaction() as tx:
            assert tx.get_inventory_entry('alice', result.chip.id).quantity == 1
