"""Tests for playing chips and their effect on scoring."""

from datetime import timedelta

import pytest

from pffl import constants
from pffl.chip_rules import CHIP_RULES, effect_applies
from pffl.chips import (
    COOLDOWN_ACTIVE,
    INSUFFICIENT_INVENTORY,
    INVALID_TARGET,
    TARGET_REQUIRED,
    UNKNOWN_CHIP_TYPE,
    ChipEffectEngine,
)
from pffl.errors import NotFound, RuleViolation
from pffl.models import ChipEffect
from pffl.scorer import ScoringEngine

from conftest import START


@pytest.fixture
def chips(store, config, clock, notifier):
    return ChipEffectEngine(store, config, clock, notifier)


def inventory_quantity(store, participant_id, chip_def_id):
    with store.transaction() as tx:
        entry = tx.get_inventory_entry(participant_id, chip_def_id)
        return entry.quantity if entry else 0


class TestUseChip:
    """Tests for ChipEffectEngine.use."""

    def test_no_inventory(self, chips):
        """Test playing a chip with none in stock."""
        result = chips.use(constants.SHIELD, 'alice', gameweek=1)
        assert not result.ok
        assert result.reason == INSUFFICIENT_INVENTORY
        assert result.error_kind == 'PreconditionFailed'
        assert (result.current, result.required) == (0, 1)

    def test_last_unit(self, chips, store, give_chip):
        """Test that exactly one unit can be spent, leaving zero."""
        give_chip(store, 'alice', 'shield')
        result = chips.use(constants.SHIELD, 'alice', gameweek=1)
        assert result.ok
        assert result.remaining == 0
        assert inventory_quantity(store, 'alice', 'shield') == 0

    def test_effect_and_cooldown(self, chips, store, give_chip):
        """Test the recorded effect window and the ordinary cooldown."""
        give_chip(store, 'alice', 'triple-captain')
        result = chips.use(constants.TRIPLE_CAPTAIN, 'alice', gameweek=3)
        effect = result.effect
        assert effect.source_participant_id == 'alice'
        assert effect.target_participant_id == 'alice'
        assert effect.gameweek == 3
        assert effect.created_at == START
        assert effect.active_until == START + timedelta(days=7)
        assert effect.chip_def_id == 'triple-captain'
        assert result.cooldown.cooldown_until == START + timedelta(hours=24)
        assert result.cooldown.target_participant_id is None

    def test_legendary_cooldown(self, chips, store, give_chip):
        """Test that a legendary chip cools down for a week."""
        give_chip(store, 'alice', 'captain-curse')
        result = chips.use(constants.CURSE, 'alice', 'bob', gameweek=1)
        assert result.cooldown.cooldown_until == START + timedelta(hours=168)
        assert result.cooldown.target_participant_id == 'bob'

    def test_target_notified(self, chips, store, give_chip, notifier):
        """Test a hostile chip notifies its target."""
        give_chip(store, 'alice', 'bench-banish')
        chips.use(constants.BANISH, 'alice', 'bob', gameweek=1)
        assert notifier.kinds() == [constants.CHIP_USED_ON_YOU]
        event = notifier.events[0]
        assert event.target_participant_id == 'bob'
        assert event.metadata['from_participant_id'] == 'alice'

    def test_self_chip_not_notified(self, chips, store, give_chip, notifier):
        """Test that playing a chip on yourself sends nothing."""
        give_chip(store, 'alice', 'bench-boost')
        chips.use(constants.BENCH_BOOST, 'alice', gameweek=1)
        assert notifier.events == []

    def test_cooldown_blocks_second_use(self, chips, store, give_chip, clock):
        """Test the cooldown, then its expiry."""
        give_chip(store, 'alice', 'shield', quantity=2)
        chips.use(constants.SHIELD, 'alice', gameweek=1)
        result = chips.use(constants.SHIELD, 'alice', gameweek=2)
        assert result.reason == COOLDOWN_ACTIVE
        assert result.required == START + timedelta(hours=24)
        assert inventory_quantity(store, 'alice', 'shield') == 1

        clock.advance(hours=24)
        assert chips.use(constants.SHIELD, 'alice', gameweek=2).remaining == 0

    def test_cooldown_checked_before_inventory(self, chips, store, give_chip):
        """Test the cooldown is reported even when the stock is also gone."""
        give_chip(store, 'alice', 'shield')
        chips.use(constants.SHIELD, 'alice', gameweek=1)
        assert chips.use(constants.SHIELD, 'alice', gameweek=1).reason == COOLDOWN_ACTIVE

    def test_targeted_cooldown_is_per_target(self, chips, store, give_chip):
        """Test a curse on Bob does not block a curse on Carol."""
        give_chip(store, 'alice', 'captain-curse', quantity=2)
        chips.use(constants.CURSE, 'alice', 'bob', gameweek=1)
        assert chips.use(constants.CURSE, 'alice', 'bob', gameweek=1).reason == COOLDOWN_ACTIVE
        assert chips.use(constants.CURSE, 'alice', 'carol', gameweek=1).remaining == 0

    def test_target_required(self, chips, store, give_chip):
        """Test a hostile chip without a target."""
        give_chip(store, 'alice', 'player-swap')
        result = chips.use(constants.SWAP, 'alice', gameweek=1)
        assert result.reason == TARGET_REQUIRED
        assert result.error_kind == 'ValidationError'
        assert inventory_quantity(store, 'alice', 'player-swap') == 1

    def test_cannot_target_yourself(self, chips, store, give_chip):
        """Test a hostile chip aimed at its own player."""
        give_chip(store, 'alice', 'player-swap')
        assert chips.use(constants.SWAP, 'alice', 'alice', gameweek=1).reason == INVALID_TARGET
        assert inventory_quantity(store, 'alice', 'player-swap') == 1

    def test_self_chip_on_someone_else(self, chips, store, give_chip):
        """Test a self-only chip aimed at another participant."""
        give_chip(store, 'alice', 'triple-captain')
        assert chips.use(constants.TRIPLE_CAPTAIN, 'alice', 'bob', gameweek=1).reason == INVALID_TARGET

    def test_unknown_target(self, chips, store, give_chip):
        """Test a target that is not in the league."""
        give_chip(store, 'alice', 'captain-curse')
        with pytest.raises(NotFound):
            chips.use(constants.CURSE, 'alice', 'dave', gameweek=1)

    def test_unknown_source(self, chips):
        """Test a source that is not in the league."""
        with pytest.raises(NotFound):
            chips.use(constants.SHIELD, 'dave', gameweek=1)

    def test_unknown_chip_type(self, chips):
        """Test a chip type with no rule."""
        result = chips.use('wildcard', 'alice', gameweek=1)
        assert not result.ok
        assert result.reason == UNKNOWN_CHIP_TYPE

    @pytest.mark.parametrize('gameweek', [0, 39])
    def test_gameweek_out_of_range(self, chips, store, give_chip, gameweek):
        """Test a chip aimed at a gameweek outside the season."""
        give_chip(store, 'alice', 'shield')
        with pytest.raises(RuleViolation):
            chips.use(constants.SHIELD, 'alice', gameweek=gameweek)
        assert inventory_quantity(store, 'alice', 'shield') == 1

    def test_inventory_and_active_effects(self, chips, store, give_chip, clock):
        """Test the read helpers."""
        give_chip(store, 'alice', 'shield', quantity=2)
        give_chip(store, 'alice', 'captain-curse')
        chips.use(constants.CURSE, 'alice', 'bob', gameweek=1)

        held = {item.definition.id: item.quantity for item in chips.inventory('alice')}
        assert held == {'shield': 2}
        assert len(chips.active_effects('bob')) == 1
        assert len(chips.active_effects('alice')) == 1

        clock.advance(days=8)
        assert chips.active_effects('bob') == []


class TestEffectWindow:
    """Tests for when an effect counts."""

    def make_effect(self, chip_type=constants.CURSE, gameweek=1):
        return ChipEffect('fx', 'alice', 'bob', chip_type, gameweek, START, START + timedelta(days=7))

    def test_applies_to_target(self):
        """Test the target is affected in the effect's gameweek."""
        assert effect_applies(self.make_effect(), 'bob', 1, START)
        assert not effect_applies(self.make_effect(), 'alice', 1, START)

    def test_swap_applies_to_source(self):
        """Test a swap also counts for the player who played it."""
        assert effect_applies(self.make_effect(constants.SWAP), 'alice', 1, START)

    def test_other_gameweek(self):
        """Test an effect does not leak into another gameweek."""
        assert not effect_applies(self.make_effect(), 'bob', 2, START)

    def test_expired(self):
        """Test an effect scored after active_until."""
        assert not effect_applies(self.make_effect(), 'bob', 1, START + timedelta(days=7, seconds=1))

    def test_every_chip_type_has_a_rule(self):
        """Test the rule table covers the catalogue."""
        assert set(CHIP_RULES) == set(constants.CHIP_TYPES)


class TestChipScoring:
    """Tests for chip adjustments in gameweek scores.

    Gameweek 1: Alice scores 28 (captain 6, lowest non-captain 2),
    Bob scores 32 (captain 8, best non-captain 10, worst player 1).
    """

    @pytest.fixture
    def play(self, gw1_store, config, clock, notifier, give_chip):
        engine = ChipEffectEngine(gw1_store, config, clock, notifier)

        def _play(chip_def_id, chip_type, source, target=None):
            give_chip(gw1_store, source, chip_def_id)
            return engine.use(chip_type, source, target, gameweek=1)
        return _play

    @pytest.fixture
    def score(self, gw1_store, config, clock):
        def _score():
            scores = ScoringEngine(gw1_store, config, clock).score_gameweek(1)
            return {s.participant_id: s for s in scores}
        return _score

    def test_no_chips(self, score):
        """Test the baseline totals."""
        scores = score()
        assert scores['alice'].total_points == 28
        assert scores['bob'].total_points == 32

    def test_triple_captain(self, play, score):
        """Test the captain counts three times."""
        play('triple-captain', constants.TRIPLE_CAPTAIN, 'alice')
        alice = score()['alice']
        assert alice.chip_points == 6
        assert alice.total_points == 34
        assert alice.breakdown['chip:triple_captain'] == 6

    def test_bench_boost(self, play, score):
        """Test the lowest non-captain counts twice."""
        play('bench-boost', constants.BENCH_BOOST, 'alice')
        assert score()['alice'].total_points == 30

    def test_shield_alone_scores_nothing(self, play, score):
        """Test a shield on its own changes nothing."""
        play('shield', constants.SHIELD, 'bob')
        assert score()['bob'].total_points == 32

    def test_curse(self, play, score):
        """Test the target loses its captain bonus."""
        play('captain-curse', constants.CURSE, 'alice', 'bob')
        scores = score()
        assert scores['bob'].chip_points == -8
        assert scores['bob'].total_points == 24
        assert scores['alice'].total_points == 28

    def test_banish(self, play, score):
        """Test the target's best non-captain is benched."""
        play('bench-banish', constants.BANISH, 'alice', 'bob')
        assert score()['bob'].total_points == 22

    def test_swap(self, play, score):
        """Test the source gains and the target loses the same delta."""
        play('player-swap', constants.SWAP, 'alice', 'bob')
        scores = score()
        assert scores['alice'].chip_points == 8
        assert scores['alice'].total_points == 36
        assert scores['bob'].chip_points == -8
        assert scores['bob'].total_points == 24

    def test_shield_blocks_curse(self, play, score):
        """Test a shielded target ignores a hostile chip."""
        play('shield', constants.SHIELD, 'bob')
        play('captain-curse', constants.CURSE, 'alice', 'bob')
        assert score()['bob'].total_points == 32

    def test_shield_blocks_whole_swap(self, play, score):
        """Test a blocked swap pays nothing to the source either."""
        play('shield', constants.SHIELD, 'bob')
        play('player-swap', constants.SWAP, 'alice', 'bob')
        scores = score()
        assert scores['alice'].total_points == 28
        assert scores['bob'].total_points == 32

    def test_expired_effect_ignored(self, play, score, clock):
        """Test scoring after the effect window has closed."""
        play('captain-curse', constants.CURSE, 'alice', 'bob')
        clock.advance(days=8)
        assert score()['bob'].total_points == 32

    def test_effect_for_other_gameweek_ignored(self, gw1_store, config, clock, notifier, give_chip, score):
        """Test a chip played for gameweek 2 leaves gameweek 1 alone."""
        give_chip(gw1_store, 'alice', 'captain-curse')
        ChipEffectEngine(gw1_store, config, clock, notifier).use(constants.CURSE, 'alice', 'bob', gameweek=2)
        assert score()['bob'].total_points == 32
