#!/usr/bin/env python3
"""
Baseline Update Script

Snapshots every player's current season points as the competition baseline,
so competition points start from zero today. Run once when the competition
starts (or restarts).

Usage:
    python scripts/update_baseline.py --league data/league.json
    python scripts/update_baseline.py --league data/league.json --yes
"""

import argparse
import sys
from pathlib import Path

from pffl import JsonFileStore, ScoringEngine


def main():
    parser = argparse.ArgumentParser(description="Reset PFFL competition baselines")
    parser.add_argument(
        "--league", "-l",
        default="data/league.json",
        help="Path to the league JSON file",
    )
    parser.add_argument(
        "--yes", "-y",
        action="store_true",
        help="Skip the confirmation prompt",
    )
    args = parser.parse_args()

    league_path = Path(args.league)
    if not league_path.exists():
        print(f"❌ League file not found: {league_path}")
        sys.exit(1)

    if not args.yes:
        answer = input("This resets competition points for every participant. Continue? [y/N] ")
        if answer.strip().lower() != "y":
            print("Aborted")
            return

    result = ScoringEngine(JsonFileStore(league_path)).update_baseline()
    print(
        f"✓ Baseline set for {result.players_updated} players; "
        f"competition starts {result.competition_start_date.isoformat()}"
    )


if __name__ == "__main__":
    main()
