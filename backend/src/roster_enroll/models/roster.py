"""Roster record and account models."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from roster_enroll.utils.normalize import clean_optional, split_legacy_name


class Grade(str, Enum):
    """School grade of an athlete."""

    FRESHMAN = "9"
    SOPHOMORE = "10"
    JUNIOR = "11"
    SENIOR = "12"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Grade"]:
        """Parse a grade value; blank means unset.

        Raises:
            ValueError: If the value is not a known grade
        """
        value = clean_optional(value)
        if value is None:
            return None
        try:
            return cls(value)
        except ValueError:
            pass
        try:
            return cls[value.upper()]
        except KeyError:
            raise ValueError(f"Unknown grade: {value!r}")


@dataclass
class Account:
    """An identity record owned by the account directory. Read-only here."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    athlete_id: Optional[str] = None
    nickname: Optional[str] = None

    @property
    def name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "Account":
        """Build from a directory row.

        Rows predating the first/last split only carry a combined ``name``;
        it is split on the first space.
        """
        first = row.get("first_name") or ""
        last = row.get("last_name") or ""
        if not first and not last:
            first, last = split_legacy_name(row.get("name"))
        return cls(
            id=str(row.get("id") or ""),
            email=row.get("email") or "",
            first_name=first,
            last_name=last,
            athlete_id=row.get("athlete_id"),
            nickname=row.get("nickname"),
        )


@dataclass
class RosterRecord:
    """A player/athlete entry on a team roster."""

    team_id: str
    first_name: str
    last_name: str
    id: str = ""  # Empty until persisted
    athlete_email: Optional[str] = None
    athlete_id: Optional[str] = None
    guardian_email: Optional[str] = None
    grade: Optional[Grade] = None
    jersey_number: Optional[str] = None
    position: Optional[str] = None
    nickname: Optional[str] = None
    linked_account_id: Optional[str] = None
    created_at: Optional[datetime] = field(default=None, compare=False)

    @property
    def name(self) -> str:
        return f"{self.first_name.strip()} {self.last_name.strip()}".strip()

    @property
    def display_name(self) -> str:
        return f"{self.name} ({self.nickname})" if self.nickname else self.name

    @property
    def is_persisted(self) -> bool:
        return bool(self.id)

    @property
    def is_linked(self) -> bool:
        return self.linked_account_id is not None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RosterRecord":
        """Build from a ``players`` table row."""
        grade = row.get("grade")
        jersey = row.get("jersey_number")
        return cls(
            id=str(row.get("id") or ""),
            team_id=row.get("team_id") or "",
            first_name=row.get("first_name") or "",
            last_name=row.get("last_name") or "",
            athlete_email=row.get("athlete_email"),
            athlete_id=row.get("athlete_id"),
            guardian_email=row.get("guardian_email"),
            grade=Grade(grade) if grade else None,
            jersey_number=str(jersey) if jersey is not None else None,
            position=row.get("position"),
            nickname=row.get("nickname"),
            linked_account_id=row.get("linked_account_id"),
            created_at=row.get("created_at"),
        )

    def to_row(self) -> dict[str, Any]:
        """Column values for insert/update. Excludes ``id`` and ``created_at``."""
        return {
            "team_id": self.team_id,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "athlete_email": self.athlete_email,
            "athlete_id": self.athlete_id,
            "guardian_email": self.guardian_email,
            "grade": self.grade.value if self.grade else None,
            "jersey_number": self.jersey_number,
            "position": self.position,
            "nickname": self.nickname,
            "linked_account_id": self.linked_account_id,
        }
