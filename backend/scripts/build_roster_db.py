#!/usr/bin/env python3
"""Build the roster DuckDB database, optionally seeded from CSV files.

Creates the accounts, teams, players, team_members and guardian_links tables
used by RosterRepository. Any of accounts.csv, teams.csv, players.csv found
in the seed directory are loaded into the matching table.

Usage:
    uv run python scripts/build_roster_db.py [seed_path] [--output path]

Default output: data/roster.duckdb (relative to repo root)
"""
import argparse
import sys
from pathlib import Path

import duckdb

from roster_enroll.repositories.roster_repository import create_schema

SEED_TABLES = ["accounts", "teams", "players"]


def build_roster_db(output_path: Path, seed_path: Path | None = None) -> Path:
    """Create a fresh database and load seed CSVs.

    Args:
        output_path: Where to write the .duckdb file (replaced if present)
        seed_path: Optional directory containing seed CSV files

    Returns:
        Path to the created database file
    """
    if output_path.exists():
        output_path.unlink()
        print(f"Removed existing {output_path}")
    output_path.parent.mkdir(parents=True, exist_ok=True)

    create_schema(output_path)

    if seed_path is None:
        print(f"Created empty schema in {output_path}")
        return output_path

    with duckdb.connect(str(output_path)) as conn:
        for table_name in SEED_TABLES:
            csv_file = seed_path / f"{table_name}.csv"
            if not csv_file.exists():
                continue
            try:
                # all_varchar keeps ids and jersey numbers like "00" intact
                conn.execute(f"""
                    INSERT INTO {table_name} BY NAME
                    SELECT * FROM read_csv('{csv_file}', header=true, all_varchar=true)
                """)
                row_count = conn.execute(f"SELECT COUNT(*) FROM {table_name}").fetchone()[0]
                print(f"  ✓ {table_name}: {row_count:,} rows")
            except duckdb.Error as e:
                print(f"  ✗ {table_name}: {e}")

        # Seeded emails are compared lowercase
        conn.execute("UPDATE accounts SET email = lower(trim(email))")

    return output_path


def main():
    repo_root = Path(__file__).parent.parent.parent  # backend/scripts -> backend -> repo root

    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("seed_path", nargs="?", type=Path, help="Directory with seed CSV files")
    parser.add_argument("--output", type=Path, default=repo_root / "data" / "roster.duckdb")
    args = parser.parse_args()

    if args.seed_path is not None and not args.seed_path.exists():
        print(f"Error: Seed path not found: {args.seed_path}")
        sys.exit(1)

    db_path = build_roster_db(args.output, args.seed_path)
    print(f"\nDone! Database ready at: {db_path}")


if __name__ == "__main__":
    main()
