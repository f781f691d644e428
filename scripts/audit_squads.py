#!/usr/bin/env python3
"""
Squad Audit Script

Checks every participant's squad against the composition rules (5 players,
2 GK/DEF, 3 MID/FWD, one captain, one distinct vice-captain) and lists the
violations.

Usage:
    python scripts/audit_squads.py
    python scripts/audit_squads.py --league data/league.json --strict
"""

import argparse
import sys
from pathlib import Path

from pffl import AllocationManager, JsonFileStore


def main():
    parser = argparse.ArgumentParser(description="Audit PFFL squad compositions")
    parser.add_argument(
        "--league", "-l",
        default="data/league.json",
        help="Path to the league JSON file",
    )
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Exit with status 1 if any squad is invalid",
    )
    args = parser.parse_args()

    league_path = Path(args.league)
    if not league_path.exists():
        print(f"❌ League file not found: {league_path}")
        sys.exit(1)

    store = JsonFileStore(league_path)
    audit = AllocationManager(store).audit_squads()

    print(f"Audited {audit.total} squads: {audit.valid} valid, {audit.invalid} invalid")
    for participant_id in audit.invalid_participants():
        print(f"\n  {participant_id}:")
        for violation in audit.results[participant_id].violations:
            print(f"    - [{violation.rule}] {violation.message}")

    if audit.all_valid:
        print("\n✓ All squads are valid")
    elif args.strict:
        sys.exit(1)


if __name__ == "__main__":
    main()
