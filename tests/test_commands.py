"""Tests for command parsing, authorisation and response envelopes."""

import json

import pytest

from pffl import allocation, constants
from pffl.commands import (
    DRAFT_LOCKED,
    FORBIDDEN,
    Actor,
    Assign,
    League,
    UseChip,
    dispatch,
    parse_command,
)
from pffl.models import DraftState

from conftest import START

ADMIN = Actor(is_privileged=True)
ALICE = Actor('alice')
CAROL = Actor('carol')


@pytest.fixture
def league(store, config, clock, rng, notifier):
    return League(store, config, clock, rng, notifier)


@pytest.fixture
def gw1_league(gw1_store, config, clock, rng, notifier):
    return League(gw1_store, config, clock, rng, notifier)


def lock_draft(store):
    with store.transaction() as tx:
        tx.put_draft(DraftState(constants.DRAFT_COMPLETE, START))


class TestParsing:
    """Tests for turning request bodies into commands."""

    def test_parse_by_tag(self):
        """Test the type tag selects the command model."""
        command = parse_command({'type': 'Assign', 'player_id': 'p1', 'owner_id': 'alice'})
        assert isinstance(command, Assign)
        assert not command.as_captain

    def test_parse_chip(self):
        """Test a chip command with a target."""
        command = parse_command({
            'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'curse',
            'gameweek': 3, 'target_participant_id': 'bob',
        })
        assert isinstance(command, UseChip)
        assert command.target_participant_id == 'bob'

    @pytest.mark.parametrize('payload', [
        {'type': 'Wildcard', 'player_id': 'p1'},
        {'type': 'Transfer', 'player_out_id': 'a-fwd'},
        {'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'shield', 'gameweek': 0},
        {'type': 'Assign', 'player_id': 'p1'},
        {'type': 'Unassign', 'player_id': 'p1', 'extra': True},
        {'type': 'ScoreGameweek', 'gameweek': 0},
        {'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'wildcard', 'gameweek': 1},
        {'player_id': 'p1'},
        'Assign',
    ])
    def test_malformed_commands(self, league, payload):
        """Test malformed bodies come back as validation envelopes."""
        envelope = dispatch(league, ADMIN, payload)
        assert envelope['ok'] is False
        assert envelope['errorKind'] == 'ValidationError'
        assert envelope['details']['errors']
        json.dumps(envelope)


class TestAllocationCommands:
    """Tests for Assign, Unassign and SetCaptaincy."""

    def test_assign_own_squad(self, league):
        """Test a participant assigning a player to themselves."""
        envelope = dispatch(league, CAROL, {'type': 'Assign', 'player_id': 'free-def', 'owner_id': 'carol'})
        assert envelope['ok'] is True
        assert envelope['data']['player']['owner_id'] == 'carol'
        assert envelope['data']['composition']['size'] == 1
        json.dumps(envelope)

    def test_assign_for_someone_else(self, league):
        """Test Alice assigning a player to Carol."""
        envelope = dispatch(league, ALICE, {'type': 'Assign', 'player_id': 'free-def', 'owner_id': 'carol'})
        assert envelope['errorKind'] == 'PreconditionFailed'
        assert envelope['details']['reason'] == FORBIDDEN

    def test_admin_assigns_for_anyone(self, league):
        """Test the privileged caller can assign to any squad."""
        envelope = dispatch(league, ADMIN, {'type': 'Assign', 'player_id': 'free-def', 'owner_id': 'carol'})
        assert envelope['ok'] is True

    def test_rule_rejection_envelope(self, league):
        """Test a full squad is refused with counts for the client."""
        envelope = dispatch(league, ALICE, {'type': 'Assign', 'player_id': 'free-fwd', 'owner_id': 'alice'})
        assert envelope == {
            'ok': False,
            'errorKind': 'ValidationError',
            'message': 'Squad already has 5 players. Maximum allowed: 5',
            'details': {'reason': allocation.CAPACITY_EXCEEDED, 'current': 5, 'required': 5},
        }

    def test_assign_after_draft(self, league, store):
        """Test squads are locked once the draft is complete."""
        lock_draft(store)
        envelope = dispatch(league, CAROL, {'type': 'Assign', 'player_id': 'free-def', 'owner_id': 'carol'})
        assert envelope['details']['reason'] == DRAFT_LOCKED

    def test_unassign_after_draft(self, league, store):
        """Test players cannot be released after the draft."""
        lock_draft(store)
        envelope = dispatch(league, ALICE, {'type': 'Unassign', 'player_id': 'a-fwd'})
        assert envelope['details']['reason'] == DRAFT_LOCKED

    def test_unassign_own_player(self, league):
        """Test releasing one of your own players."""
        envelope = dispatch(league, ALICE, {'type': 'Unassign', 'player_id': 'a-fwd'})
        assert envelope['ok'] is True
        assert envelope['data']['player']['owner_id'] is None

    def test_unassign_other_squad(self, league):
        """Test Alice releasing Bob's player."""
        envelope = dispatch(league, ALICE, {'type': 'Unassign', 'player_id': 'b-fwd'})
        assert envelope['details']['reason'] == FORBIDDEN

    def test_unassign_unknown_player(self, league):
        """Test a player that does not exist."""
        envelope = dispatch(league, ADMIN, {'type': 'Unassign', 'player_id': 'nobody'})
        assert envelope['errorKind'] == 'NotFound'

    def test_captaincy_after_draft(self, league, store):
        """Test the captain can still change once squads are locked."""
        lock_draft(store)
        envelope = dispatch(league, ALICE, {'type': 'SetCaptaincy', 'player_id': 'a-fwd', 'as_captain': True})
        assert envelope['ok'] is True
        assert envelope['data']['composition']['captain_id'] == 'a-fwd'

    def test_captaincy_other_squad(self, league):
        """Test Alice changing Bob's captain."""
        envelope = dispatch(league, ALICE, {'type': 'SetCaptaincy', 'player_id': 'b-fwd', 'as_captain': True})
        assert envelope['details']['reason'] == FORBIDDEN


class TestTransferCommand:
    """Tests for Transfer."""

    def test_transfer_after_draft(self, league, store):
        """Test a like-for-like swap once squads are locked."""
        lock_draft(store)
        envelope = dispatch(league, ALICE, {
            'type': 'Transfer', 'player_out_id': 'a-fwd', 'player_in_id': 'free-fwd',
        })
        assert envelope['ok'] is True
        assert envelope['data']['player']['id'] == 'free-fwd'
        assert envelope['data']['composition']['size'] == 5
        json.dumps(envelope)

    def test_transfer_someone_elses_player(self, league):
        """Test Alice transferring out one of Bob's players."""
        envelope = dispatch(league, ALICE, {
            'type': 'Transfer', 'player_out_id': 'b-fwd', 'player_in_id': 'free-fwd',
        })
        assert envelope['details']['reason'] == FORBIDDEN

    def test_transfer_across_buckets(self, league):
        """Test a forward out and a defender in on a full squad."""
        envelope = dispatch(league, ALICE, {
            'type': 'Transfer', 'player_out_id': 'a-fwd', 'player_in_id': 'free-def',
        })
        assert envelope == {
            'ok': False,
            'errorKind': 'ValidationError',
            'message': 'Squad already has 2 GK/DEF players. Maximum allowed: 2',
            'details': {'reason': allocation.BUCKET_FULL, 'current': 2, 'required': 2},
        }


class TestAdminCommands:
    """Tests for the privileged commands."""

    @pytest.mark.parametrize('payload', [
        {'type': 'CompleteDraft'},
        {'type': 'UpdateBaseline'},
        {'type': 'AuditSquads'},
        {'type': 'ScoreGameweek', 'gameweek': 1},
    ])
    def test_participants_refused(self, league, payload):
        """Test an ordinary participant cannot run league-wide commands."""
        envelope = dispatch(league, ALICE, payload)
        assert envelope['errorKind'] == 'PreconditionFailed'
        assert envelope['details']['reason'] == FORBIDDEN

    def test_complete_draft_incomplete(self, league):
        """Test the incomplete squads are listed."""
        envelope = dispatch(league, ADMIN, {'type': 'CompleteDraft'})
        assert envelope['errorKind'] == 'PreconditionFailed'
        assert envelope['details']['reason'] == allocation.INCOMPLETE_SQUADS
        assert envelope['details']['incomplete'] == {'carol': 0}

    def test_audit(self, league):
        """Test the audit summary."""
        envelope = dispatch(league, ADMIN, {'type': 'AuditSquads'})
        data = envelope['data']
        assert data['total'] == 3
        assert data['invalid'] == 1
        assert data['all_valid'] is False
        assert list(data['violations']) == ['carol']
        json.dumps(envelope)

    def test_score_gameweek(self, gw1_league):
        """Test scores come back as plain JSON."""
        envelope = dispatch(gw1_league, ADMIN, {'type': 'ScoreGameweek', 'gameweek': 1})
        totals = {s['participant_id']: s['total_points'] for s in envelope['data']}
        assert totals == {'alice': 28, 'bob': 32, 'carol': 0}
        json.dumps(envelope)

    def test_update_baseline(self, league):
        """Test the baseline snapshot result."""
        envelope = dispatch(league, ADMIN, {'type': 'UpdateBaseline'})
        assert envelope['data']['players_updated'] == 15
        assert envelope['data']['competition_start_date'] == '2025-10-04'


class TestChipCommands:
    """Tests for OpenLootBox and UseChip."""

    def test_open_loot_box(self, league):
        """Test a participant opening their own box, then a second one."""
        envelope = dispatch(league, ALICE, {'type': 'OpenLootBox', 'participant_id': 'alice'})
        assert envelope['ok'] is True
        assert envelope['data']['chip']['id'] in {c['id'] for c in constants.CHIP_CATALOGUE}
        json.dumps(envelope)

        envelope = dispatch(league, ALICE, {'type': 'OpenLootBox', 'participant_id': 'alice'})
        assert envelope['errorKind'] == 'PreconditionFailed'
        assert envelope['details']['reason'] == 'daily_limit'

    def test_open_someone_elses_box(self, league):
        """Test Alice opening Bob's box."""
        envelope = dispatch(league, ALICE, {'type': 'OpenLootBox', 'participant_id': 'bob'})
        assert envelope['details']['reason'] == FORBIDDEN

    def test_use_chip(self, league, store, give_chip):
        """Test playing a curse through the dispatcher."""
        give_chip(store, 'alice', 'captain-curse')
        envelope = dispatch(league, ALICE, {
            'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'curse',
            'gameweek': 1, 'target_participant_id': 'bob',
        })
        assert envelope['ok'] is True
        assert envelope['data']['effect']['target_participant_id'] == 'bob'
        assert envelope['data']['remaining'] == 0
        json.dumps(envelope)

    def test_use_chip_without_stock(self, league):
        """Test the inventory refusal envelope."""
        envelope = dispatch(league, ALICE, {
            'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'shield', 'gameweek': 1,
        })
        assert envelope['errorKind'] == 'PreconditionFailed'
        assert envelope['details']['reason'] == 'insufficient_inventory'

    def test_use_chip_for_someone_else(self, league, store, give_chip):
        """Test Carol playing Alice's chip."""
        give_chip(store, 'alice', 'shield')
        envelope = dispatch(league, CAROL, {
            'type': 'UseChip', 'participant_id': 'alice', 'chip_type': 'shield', 'gameweek': 1,
        })
        assert envelope['details']['reason'] == FORBIDDEN
