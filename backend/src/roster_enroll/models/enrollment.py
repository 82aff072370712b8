"""Enrollment session state and outcome models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Literal, Optional

from roster_enroll.models.roster import Account, RosterRecord


class EnrollmentPhase(str, Enum):
    """Phases of an enrollment session."""

    LOOKUP = "LOOKUP"  # Email lookup, new enrollment only
    DETAILS = "DETAILS"  # Details form
    CLOSED = "CLOSED"  # Submitted or cancelled


class EnrollmentMode(str, Enum):
    NEW = "new"
    EDIT = "edit"


class ResolutionStatus(str, Enum):
    NOT_ATTEMPTED = "not_attempted"
    NO_MATCH = "no_match"
    MATCHED = "matched"


@dataclass(frozen=True)
class ResolvedIdentity:
    """Outcome of looking up an account by email.

    Carried through the session from the lookup phase to submit. Only a
    MATCHED identity has an ``account_id``.
    """

    status: ResolutionStatus = ResolutionStatus.NOT_ATTEMPTED
    account_id: Optional[str] = None
    email: str = ""  # Normalized email the lookup was made for
    account: Optional[Account] = field(default=None, compare=False)

    @classmethod
    def not_attempted(cls) -> "ResolvedIdentity":
        return cls()

    @classmethod
    def no_match(cls, email: str) -> "ResolvedIdentity":
        return cls(status=ResolutionStatus.NO_MATCH, email=email)

    @classmethod
    def matched(cls, account: Account, email: str) -> "ResolvedIdentity":
        return cls(
            status=ResolutionStatus.MATCHED,
            account_id=account.id,
            email=email,
            account=account,
        )

    @property
    def is_matched(self) -> bool:
        return self.status == ResolutionStatus.MATCHED


@dataclass(frozen=True)
class JerseySet:
    """Point-in-time snapshot of normalized jersey numbers taken on a team."""

    team_id: str
    numbers: frozenset[str] = frozenset()

    def __contains__(self, value: str) -> bool:
        return value in self.numbers

    def __len__(self) -> int:
        return len(self.numbers)


@dataclass(frozen=True)
class EnrollmentForm:
    """Editable fields of the details phase. Values are raw user input."""

    first_name: str = ""
    last_name: str = ""
    athlete_email: str = ""
    athlete_id: str = ""
    guardian_email: str = ""
    grade: str = ""
    jersey_number: str = ""
    position: str = ""
    nickname: str = ""

    @classmethod
    def from_record(cls, record: RosterRecord) -> "EnrollmentForm":
        return cls(
            first_name=record.first_name,
            last_name=record.last_name,
            athlete_email=record.athlete_email or "",
            athlete_id=record.athlete_id or "",
            guardian_email=record.guardian_email or "",
            grade=record.grade.value if record.grade else "",
            jersey_number=record.jersey_number or "",
            position=record.position or "",
            nickname=record.nickname or "",
        )


@dataclass(frozen=True)
class EnrollmentState:
    """Complete state of one enrollment session."""

    session_id: str
    team_id: str
    mode: EnrollmentMode
    phase: EnrollmentPhase
    form: EnrollmentForm = field(default_factory=EnrollmentForm)
    identity: ResolvedIdentity = field(default_factory=ResolvedIdentity)
    jerseys: Optional[JerseySet] = None
    original: Optional[RosterRecord] = None  # Record being edited

    @property
    def matched(self) -> bool:
        return self.identity.is_matched

    @property
    def is_closed(self) -> bool:
        return self.phase == EnrollmentPhase.CLOSED


@dataclass(frozen=True)
class Notice:
    """Transient message that does not change the session outcome."""

    level: Literal["info", "warning"]
    message: str


class LinkTarget(str, Enum):
    ATHLETE = "athlete"
    GUARDIAN = "guardian"


class LinkStatus(str, Enum):
    LINKED = "linked"
    SKIPPED = "skipped"  # No email to link
    FAILED = "failed"


@dataclass(frozen=True)
class LinkOutcome:
    """Result of one linking sub-operation."""

    target: LinkTarget
    status: LinkStatus
    email: Optional[str] = None
    message: str = ""


@dataclass
class EnrollmentResult:
    """The single outcome reported for a session."""

    success: bool
    roster_id: Optional[str] = None
    record: Optional[RosterRecord] = None
    reason: Optional[str] = None
    field_errors: dict[str, str] = field(default_factory=dict)
    notices: list[Notice] = field(default_factory=list)
    links: list[LinkOutcome] = field(default_factory=list)
