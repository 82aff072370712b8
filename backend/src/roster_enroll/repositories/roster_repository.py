"""DuckDB-based data access for rosters, teams and accounts."""

import logging
import uuid
from pathlib import Path
from typing import Any, Optional

import duckdb

from roster_enroll.errors import AccountNotFoundError, PersistenceError, RosterNotFoundError
from roster_enroll.models.roster import Account, RosterRecord
from roster_enroll.utils.normalize import normalize_email

logger = logging.getLogger(__name__)

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id VARCHAR PRIMARY KEY,
        email VARCHAR NOT NULL,
        first_name VARCHAR,
        last_name VARCHAR,
        name VARCHAR,
        athlete_id VARCHAR,
        nickname VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS teams (
        id VARCHAR PRIMARY KEY,
        team_name VARCHAR NOT NULL,
        sport VARCHAR
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS players (
        id VARCHAR PRIMARY KEY,
        team_id VARCHAR NOT NULL,
        first_name VARCHAR NOT NULL,
        last_name VARCHAR NOT NULL,
        athlete_email VARCHAR,
        athlete_id VARCHAR,
        guardian_email VARCHAR,
        grade VARCHAR,
        jersey_number VARCHAR,
        position VARCHAR,
        nickname VARCHAR,
        linked_account_id VARCHAR,
        created_at TIMESTAMP DEFAULT current_timestamp
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS team_members (
        team_id VARCHAR NOT NULL,
        account_id VARCHAR NOT NULL,
        role VARCHAR NOT NULL,
        player_id VARCHAR,
        PRIMARY KEY (team_id, account_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS guardian_links (
        player_id VARCHAR NOT NULL,
        guardian_email VARCHAR NOT NULL,
        account_id VARCHAR,
        PRIMARY KEY (player_id, guardian_email)
    )
    """,
]

_PLAYER_COLUMNS = (
    "id, team_id, first_name, last_name, athlete_email, athlete_id, "
    "guardian_email, grade, jersey_number, position, nickname, "
    "linked_account_id, created_at"
)


def create_schema(database_path: str | Path) -> None:
    """Create all tables in the DuckDB file if they don't exist."""
    with duckdb.connect(str(database_path)) as conn:
        for statement in SCHEMA_SQL:
            conn.execute(statement)


class RosterRepository:
    """Data access layer - DuckDB queries, one connection per operation."""

    def __init__(self, database_path: str | Path, create: bool = False):
        """Initialize with path to DuckDB database.

        Args:
            database_path: Path to roster.duckdb
                          (created by scripts/build_roster_db.py)
            create: Create the file and schema when missing instead of failing

        Raises:
            FileNotFoundError: If the database doesn't exist and create is False
        """
        self._db_path = Path(database_path)

        if not self._db_path.exists():
            if not create:
                raise FileNotFoundError(
                    f"DuckDB database not found: {self._db_path}\n"
                    f"Run: cd backend && uv run python scripts/build_roster_db.py"
                )
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
        create_schema(self._db_path)

        with duckdb.connect(str(self._db_path)) as conn:
            tables = conn.execute("SHOW TABLES").fetchall()
        logger.info(f"RosterRepository: Using {self._db_path} ({len(tables)} tables)")

    @property
    def database_path(self) -> Path:
        return self._db_path

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self._db_path))

    def _query(self, sql: str, params: Optional[list] = None) -> list[dict[str, Any]]:
        """Execute query and return list of dicts keyed by column name."""
        with self._connect() as conn:
            cursor = conn.execute(sql, params or [])
            columns = [col[0] for col in cursor.description]
            rows = cursor.fetchall()
        return [dict(zip(columns, row)) for row in rows]

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    def add_team(self, team_id: str, team_name: str, sport: Optional[str] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO teams (id, team_name, sport) VALUES (?, ?, ?)",
                [team_id, team_name, sport],
            )

    def get_team(self, team_id: str) -> dict | None:
        """Get team info by ID.

        Returns dict with: id, team_name, sport
        """
        results = self._query("SELECT id, team_name, sport FROM teams WHERE id = ?", [team_id])
        return results[0] if results else None

    def get_team_members(self, team_id: str) -> list[dict]:
        """Members with access to a team.

        Returns list of dicts with: team_id, account_id, role, player_id
        """
        return self._query(
            """
            SELECT team_id, account_id, role, player_id
            FROM team_members
            WHERE team_id = ?
            ORDER BY role, account_id
            """,
            [team_id],
        )

    # ------------------------------------------------------------------
    # Roster
    # ------------------------------------------------------------------

    def list_jersey_numbers(self, team_id: str) -> set[str]:
        """Raw jersey numbers currently assigned on a team (blank values excluded)."""
        rows = self._query(
            """
            SELECT jersey_number
            FROM players
            WHERE team_id = ?
              AND jersey_number IS NOT NULL
              AND trim(jersey_number) <> ''
            """,
            [team_id],
        )
        return {row["jersey_number"] for row in rows}

    def list_roster(self, team_id: str) -> list[RosterRecord]:
        """All roster records for a team ordered by last, first name."""
        rows = self._query(
            f"""
            SELECT {_PLAYER_COLUMNS}
            FROM players
            WHERE team_id = ?
            ORDER BY lower(last_name), lower(first_name)
            """,
            [team_id],
        )
        return [RosterRecord.from_row(row) for row in rows]

    def get_roster(self, roster_id: str) -> RosterRecord | None:
        rows = self._query(f"SELECT {_PLAYER_COLUMNS} FROM players WHERE id = ?", [roster_id])
        return RosterRecord.from_row(rows[0]) if rows else None

    def insert_roster(self, record: RosterRecord) -> str:
        """Insert a new roster record and return the generated id."""
        roster_id = str(uuid.uuid4())
        row = record.to_row()
        columns = ["id", *row.keys()]
        placeholders = ", ".join("?" for _ in columns)
        with self._connect() as conn:
            conn.execute(
                f"INSERT INTO players ({', '.join(columns)}) VALUES ({placeholders})",
                [roster_id, *row.values()],
            )
        return roster_id

    def update_roster(self, record: RosterRecord) -> None:
        """Overwrite the mutable fields of an existing roster record.

        A null ``linked_account_id`` keeps the stored link.

        Raises:
            PersistenceError: If no record with ``record.id`` exists
        """
        if not record.id:
            raise PersistenceError("Cannot update a roster record without an id")
        row = record.to_row()
        linked = row.pop("linked_account_id")
        assignments = ", ".join(f"{col} = ?" for col in row)
        with self._connect() as conn:
            updated = conn.execute(
                f"""
                UPDATE players
                SET {assignments}, linked_account_id = COALESCE(?, linked_account_id)
                WHERE id = ?
                """,
                [*row.values(), linked, record.id],
            ).fetchone()
        if not updated or updated[0] == 0:
            raise PersistenceError(f"Roster record not found: {record.id}")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def add_account(self, account: Account) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO accounts (id, email, first_name, last_name, name, athlete_id, nickname)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    account.id,
                    normalize_email(account.email),
                    account.first_name,
                    account.last_name,
                    account.name,
                    account.athlete_id,
                    account.nickname,
                ],
            )

    def find_account_by_email(self, email: str) -> Account | None:
        """Exact, case-insensitive lookup across all accounts."""
        email = normalize_email(email)
        if not email:
            return None
        rows = self._query(
            """
            SELECT id, email, first_name, last_name, name, athlete_id, nickname
            FROM accounts
            WHERE lower(trim(email)) = ?
            LIMIT 1
            """,
            [email],
        )
        return Account.from_row(rows[0]) if rows else None

    # ------------------------------------------------------------------
    # Linking
    # ------------------------------------------------------------------

    def link_account_to_roster(self, team_id: str, roster_id: str, email: str) -> str:
        """Link a roster record to the account registered for ``email``.

        Sets ``players.linked_account_id`` and grants the account team access
        as a player. Running it again with the same arguments changes nothing.

        Returns:
            The linked account id

        Raises:
            AccountNotFoundError: No account for the email
            RosterNotFoundError: No such record on the team
        """
        account = self.find_account_by_email(email)
        if account is None:
            raise AccountNotFoundError(f"No account found for {normalize_email(email)}")

        with self._connect() as conn:
            conn.begin()
            try:
                player = conn.execute(
                    "SELECT linked_account_id FROM players WHERE id = ? AND team_id = ?",
                    [roster_id, team_id],
                ).fetchone()
                if player is None:
                    raise RosterNotFoundError(f"Roster record {roster_id} not found on team {team_id}")

                if player[0] != account.id:
                    conn.execute(
                        "UPDATE players SET linked_account_id = ? WHERE id = ?",
                        [account.id, roster_id],
                    )

                member = conn.execute(
                    "SELECT player_id FROM team_members WHERE team_id = ? AND account_id = ?",
                    [team_id, account.id],
                ).fetchone()
                if member is None:
                    conn.execute(
                        """
                        INSERT INTO team_members (team_id, account_id, role, player_id)
                        VALUES (?, ?, 'player', ?)
                        """,
                        [team_id, account.id, roster_id],
                    )
                elif member[0] is None:
                    conn.execute(
                        "UPDATE team_members SET player_id = ? WHERE team_id = ? AND account_id = ?",
                        [roster_id, team_id, account.id],
                    )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return account.id

    def link_guardian_to_roster(self, roster_id: str, guardian_email: str) -> Optional[str]:
        """Record a guardian email on a roster record.

        When the guardian has an account it is granted team access with the
        ``team_parent`` role.

        Returns:
            The guardian's account id, or None if they have no account yet

        Raises:
            RosterNotFoundError: No such roster record
        """
        guardian_email = normalize_email(guardian_email)
        account = self.find_account_by_email(guardian_email)
        account_id = account.id if account else None

        with self._connect() as conn:
            conn.begin()
            try:
                player = conn.execute(
                    "SELECT team_id FROM players WHERE id = ?", [roster_id]
                ).fetchone()
                if player is None:
                    raise RosterNotFoundError(f"Roster record {roster_id} not found")
                team_id = player[0]

                existing = conn.execute(
                    "SELECT account_id FROM guardian_links WHERE player_id = ? AND guardian_email = ?",
                    [roster_id, guardian_email],
                ).fetchone()
                if existing is None:
                    conn.execute(
                        "INSERT INTO guardian_links (player_id, guardian_email, account_id) VALUES (?, ?, ?)",
                        [roster_id, guardian_email, account_id],
                    )
                elif existing[0] != account_id and account_id is not None:
                    conn.execute(
                        "UPDATE guardian_links SET account_id = ? WHERE player_id = ? AND guardian_email = ?",
                        [account_id, roster_id, guardian_email],
                    )

                if account_id is not None:
                    member = conn.execute(
                        "SELECT 1 FROM team_members WHERE team_id = ? AND account_id = ?",
                        [team_id, account_id],
                    ).fetchone()
                    if member is None:
                        conn.execute(
                            """
                            INSERT INTO team_members (team_id, account_id, role, player_id)
                            VALUES (?, ?, 'team_parent', NULL)
                            """,
                            [team_id, account_id],
                        )
                conn.commit()
            except Exception:
                conn.rollback()
                raise
        return account_id

    def get_guardian_links(self, roster_id: str) -> list[dict]:
        """Guardian links for a roster record.

        Returns list of dicts with: player_id, guardian_email, account_id
        """
        return self._query(
            """
            SELECT player_id, guardian_email, account_id
            FROM guardian_links
            WHERE player_id = ?
            ORDER BY guardian_email
            """,
            [roster_id],
        )
