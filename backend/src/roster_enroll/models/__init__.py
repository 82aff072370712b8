"""Data models for roster enrollment."""

from roster_enroll.models.roster import Account, Grade, RosterRecord
from roster_enroll.models.enrollment import (
    EnrollmentForm,
    EnrollmentMode,
    EnrollmentPhase,
    EnrollmentResult,
    EnrollmentState,
    JerseySet,
    LinkOutcome,
    LinkStatus,
    LinkTarget,
    Notice,
    ResolutionStatus,
    ResolvedIdentity,
)

__all__ = [
    "Account",
    "Grade",
    "RosterRecord",
    "EnrollmentForm",
    "EnrollmentMode",
    "EnrollmentPhase",
    "EnrollmentResult",
    "EnrollmentState",
    "JerseySet",
    "LinkOutcome",
    "LinkStatus",
    "LinkTarget",
    "Notice",
    "ResolutionStatus",
    "ResolvedIdentity",
]
