"""Main scoring engine that ties the store, scoring math and chip rules together."""

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional

from .chip_rules import ScoringContext, chip_adjustments
from .clock import Clock, system_clock, utc_date
from .config import get_config
from .errors import NotFound
from .models import LeaderboardEntry, ParticipantGameweekScore
from .schemas import LeagueConfig
from .scoring import project_leaderboard, score_squad
from .store import InMemoryStore
from .utils import round_points
from .validators import check_gameweek, validate_all_scores, validate_performances

logger = logging.getLogger('pffl.scorer')


@dataclass
class BaselineResult:
    players_updated: int
    competition_start_date: date


class ScoringEngine:
    """Computes gameweek scores and the competition leaderboard."""

    def __init__(
        self,
        store: InMemoryStore,
        config: Optional[LeagueConfig] = None,
        clock: Clock = system_clock,
    ):
        self.store = store
        self.config = config or get_config()
        self.clock = clock

    def score_gameweek(self, gameweek: int) -> List[ParticipantGameweekScore]:
        """
        Score every participant for a gameweek and upsert the results.

        Re-running for the same gameweek overwrites the earlier rows, so the
        operation is idempotent. Chip effects active at scoring time are
        applied on top of the squad score.

        Args:
            gameweek: Gameweek number (>= 1)

        Returns:
            The stored score rows, one per participant

        Raises:
            RuleViolation: If gameweek is outside 1..max_gameweek
            Conflict: If squads or effects changed while scoring
        """
        check_gameweek(gameweek, self.config.max_gameweek)

        now = self.clock()
        scores = []
        with self.store.transaction() as tx:
            participants = tx.list_participants()
            performances = tx.performances_for(gameweek)
            squads = {p.id: tx.squad_of(p.id) for p in participants}
            effects = tx.list_effects(gameweek)
            ctx = ScoringContext(squads=squads, performances=performances)

            for participant in participants:
                score = score_squad(
                    participant.id,
                    gameweek,
                    squads[participant.id],
                    performances,
                    self.config.captain_multiplier,
                    self.config.vice_captain_multiplier,
                )
                adjustments = chip_adjustments(participant.id, gameweek, effects, ctx, now)
                for key, points in adjustments.items():
                    score.breakdown[key] = round_points(points)
                score.chip_points = round_points(sum(adjustments.values()))
                score.total_points = round_points(score.total_points + score.chip_points)
                score.calculated_at = now
                tx.put_score(score)
                scores.append(score)

        errors, warnings = validate_all_scores(scores, self.config.max_team_points)
        warnings += validate_performances(performances.values(), self.config.max_player_points)
        for message in errors:
            logger.error(message)
        for message in warnings:
            logger.warning(message)
        logger.info(
            f'Scored gameweek {gameweek}: {len(scores)} participants, '
            f'{len(performances)} performances, {len(effects)} chip effects'
        )
        return scores

    def leaderboard(self) -> List[LeaderboardEntry]:
        """
        Current competition standings, computed from player rows.

        Raises:
            PreconditionFailed: If baselines have not been set
        """
        with self.store.transaction() as tx:
            participants = tx.list_participants()
            players = tx.list_players()
        return project_leaderboard(
            participants,
            players,
            self.config.captain_multiplier,
            self.config.vice_captain_multiplier,
        )

    def update_baseline(self) -> BaselineResult:
        """
        Snapshot every player's season points as the competition baseline.

        Competition points restart from zero. season_points is never changed.
        """
        today = utc_date(self.clock())
        with self.store.transaction() as tx:
            players = tx.list_players()
            for player in players:
                player.baseline_points = player.season_points
                tx.put_player(player)
            draft = tx.get_draft()
            draft.competition_start_date = today
            tx.put_draft(draft)

        logger.info(f'Baseline updated for {len(players)} players, competition starts {today}')
        return BaselineResult(players_updated=len(players), competition_start_date=today)

    def participant_history(self, participant_id: str) -> List[ParticipantGameweekScore]:
        """
        A participant's scored gameweeks in order.

        Raises:
            NotFound: If the participant does not exist
        """
        with self.store.transaction() as tx:
            if tx.get_participant(participant_id) is None:
                raise NotFound(f'Participant {participant_id} not found', participant_id=participant_id)
            return tx.scores_for_participant(participant_id)

    def gameweek_table(self, gameweek: int) -> List[ParticipantGameweekScore]:
        """Stored scores for a gameweek, highest total first (ties by participant id)."""
        with self.store.transaction() as tx:
            scores = tx.scores_for_gameweek(gameweek)
        return sorted(scores, key=lambda s: (-s.total_points, s.participant_id))
