#!/usr/bin/env python3
"""
PFFL Gameweek Scorer CLI

Scores every participant for a gameweek from a JSON league file. Performances
can be ingested from a feed CSV first, or simulated for test leagues.

Usage:
    python score_gameweek.py --league data/league.json --gameweek 3
    python score_gameweek.py --league data/league.json --gameweek 3 --feed feeds/gw3.csv
    python score_gameweek.py --league data/league.json --gameweek 3 --simulate --seed 42 --leaderboard
"""

import argparse
import random
import sys
from pathlib import Path

from pffl import (
    JsonFileStore,
    LeagueError,
    PerformanceFeed,
    ScoringEngine,
    ingest_gameweek,
    simulate_gameweek,
)
from pffl.logging_config import setup_logging


def print_gameweek_table(scores, names: dict[str, str], gameweek: int) -> None:
    print("\n" + "=" * 60)
    print(f"GAMEWEEK {gameweek}")
    print("=" * 60)
    for rank, score in enumerate(scores, 1):
        name = names.get(score.participant_id, score.participant_id)
        chips = f"  (chips {score.chip_points:+.1f})" if score.chip_points else ""
        print(
            f"  {rank}. {name}: {score.total_points:.1f} pts "
            f"[starting {score.starting_points:.1f}, C +{score.captain_points:.1f}, "
            f"VC +{score.vice_captain_points:.1f}]{chips}"
        )


def print_leaderboard(entries) -> None:
    print("\n" + "=" * 60)
    print("COMPETITION LEADERBOARD")
    print("=" * 60)
    for entry in entries:
        print(f"  {entry.rank}. {entry.name}: {entry.competition_points:.1f} pts")
        for standing in entry.players:
            role = " (C)" if standing.is_captain else " (VC)" if standing.is_vice_captain else ""
            print(f"      {standing.name}{role}: {standing.weighted_points:.1f}")


def main():
    parser = argparse.ArgumentParser(description="PFFL gameweek scorer")
    parser.add_argument(
        "--league", "-l",
        default="data/league.json",
        help="Path to the league JSON file",
    )
    parser.add_argument(
        "--gameweek", "-w",
        type=int,
        required=True,
        help="Gameweek number to score",
    )
    parser.add_argument(
        "--feed", "-f",
        default=None,
        help="Performance feed CSV to ingest before scoring",
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Simulate performances for players without one",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for --simulate",
    )
    parser.add_argument(
        "--leaderboard",
        action="store_true",
        help="Print the competition leaderboard after scoring",
    )
    parser.add_argument(
        "--quiet", "-q",
        action="store_true",
        help="Suppress log output on the console",
    )

    args = parser.parse_args()
    logger = setup_logging(log_to_console=not args.quiet, run_name=f"gw{args.gameweek}")

    league_path = Path(args.league)
    if not league_path.exists():
        print(f"❌ League file not found: {league_path}")
        sys.exit(1)

    store = JsonFileStore(league_path)
    engine = ScoringEngine(store)

    try:
        if args.feed:
            result = ingest_gameweek(
                store, PerformanceFeed(args.feed), args.gameweek, engine.config.max_gameweek
            )
            print(f"Ingested {result.recorded} performances ({result.unchanged} unchanged)")
        if args.simulate:
            result = simulate_gameweek(
                store, args.gameweek, random.Random(args.seed), max_gameweek=engine.config.max_gameweek
            )
            print(f"Simulated {len(result.recorded)} performances")

        print(f"Scoring gameweek {args.gameweek}...")
        engine.score_gameweek(args.gameweek)

        with store.transaction() as tx:
            names = {p.id: p.name for p in tx.list_participants()}
        print_gameweek_table(engine.gameweek_table(args.gameweek), names, args.gameweek)

        if args.leaderboard:
            print_leaderboard(engine.leaderboard())
    except LeagueError as e:
        logger.error(f"{e.kind}: {e.message}")
        print(f"❌ {e.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
