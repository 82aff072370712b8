"""Enrollment state machine.

Two phases: LOOKUP (new enrollments only) and DETAILS. Edit sessions start in
DETAILS and never visit LOOKUP. Every transition here is a pure function of
the current state and the event payload; the results of directory and
database calls are passed in by EnrollmentService.

    LOOKUP --continue(email, identity)--> DETAILS
    LOOKUP --skip--> DETAILS
    DETAILS --back--> LOOKUP          (new enrollments only)
    DETAILS --submit--> CLOSED
"""

from dataclasses import replace
from typing import Optional

from roster_enroll.errors import (
    FormValidationError,
    InvalidTransitionError,
    SessionClosedError,
)
from roster_enroll.models.enrollment import (
    EnrollmentForm,
    EnrollmentMode,
    EnrollmentPhase,
    EnrollmentState,
    JerseySet,
    ResolutionStatus,
    ResolvedIdentity,
)
from roster_enroll.models.roster import Grade, RosterRecord
from roster_enroll.utils.normalize import clean_optional, looks_like_email, normalize_email

FORM_FIELDS = frozenset(EnrollmentForm.__dataclass_fields__)


def require_phase(state: EnrollmentState, phase: EnrollmentPhase, event: str) -> None:
    if state.is_closed:
        raise SessionClosedError(f"Session {state.session_id} is closed")
    if state.phase != phase:
        raise InvalidTransitionError(
            f"Cannot {event} in phase {state.phase.value} (expected {phase.value})"
        )


def start_new(session_id: str, team_id: str) -> EnrollmentState:
    return EnrollmentState(
        session_id=session_id,
        team_id=team_id,
        mode=EnrollmentMode.NEW,
        phase=EnrollmentPhase.LOOKUP,
    )


def start_edit(session_id: str, record: RosterRecord) -> EnrollmentState:
    """Open an existing record directly in the details phase.

    A linked record starts out matched to its current account so an
    unchanged resubmit keeps the link.
    """
    identity = ResolvedIdentity.not_attempted()
    if record.linked_account_id:
        identity = ResolvedIdentity(
            status=ResolutionStatus.MATCHED,
            account_id=record.linked_account_id,
            email=normalize_email(record.athlete_email),
        )
    return EnrollmentState(
        session_id=session_id,
        team_id=record.team_id,
        mode=EnrollmentMode.EDIT,
        phase=EnrollmentPhase.DETAILS,
        form=EnrollmentForm.from_record(record),
        identity=identity,
        original=record,
    )


def continue_with(state: EnrollmentState, email: str, identity: ResolvedIdentity) -> EnrollmentState:
    """LOOKUP -> DETAILS after resolution.

    The new identity replaces any earlier one. On a match the account's
    name and athlete id pre-fill the form.
    """
    require_phase(state, EnrollmentPhase.LOOKUP, "continue")

    form = replace(state.form, athlete_email=email.strip())
    if identity.is_matched and identity.account is not None:
        account = identity.account
        form = replace(
            form,
            first_name=account.first_name or form.first_name,
            last_name=account.last_name or form.last_name,
            athlete_id=account.athlete_id or form.athlete_id,
        )

    return replace(state, phase=EnrollmentPhase.DETAILS, form=form, identity=identity)


def skip(state: EnrollmentState) -> EnrollmentState:
    """LOOKUP -> DETAILS without resolution; drops any recorded identity."""
    require_phase(state, EnrollmentPhase.LOOKUP, "skip")
    return replace(
        state,
        phase=EnrollmentPhase.DETAILS,
        identity=ResolvedIdentity.not_attempted(),
    )


def back(state: EnrollmentState) -> EnrollmentState:
    """DETAILS -> LOOKUP, discarding the previous resolution."""
    require_phase(state, EnrollmentPhase.DETAILS, "go back")
    if state.mode == EnrollmentMode.EDIT:
        raise InvalidTransitionError("Edit sessions have no lookup phase")
    return replace(
        state,
        phase=EnrollmentPhase.LOOKUP,
        identity=ResolvedIdentity.not_attempted(),
        jerseys=None,
    )


def with_jerseys(state: EnrollmentState, jerseys: JerseySet) -> EnrollmentState:
    return replace(state, jerseys=jerseys)


def update_details(state: EnrollmentState, **changes: Optional[str]) -> EnrollmentState:
    """Apply form edits in the details phase.

    Changing the athlete email away from the one the current match was made
    for invalidates the match.

    Raises:
        InvalidTransitionError: Outside the details phase
        ValueError: Unknown field name
    """
    require_phase(state, EnrollmentPhase.DETAILS, "edit details")
    unknown = set(changes) - FORM_FIELDS
    if unknown:
        raise ValueError(f"Unknown form fields: {sorted(unknown)}")

    values = {name: value or "" for name, value in changes.items() if value is not None}
    form = replace(state.form, **values)

    identity = state.identity
    if identity.is_matched and normalize_email(form.athlete_email) != identity.email:
        identity = ResolvedIdentity.not_attempted()

    return replace(state, form=form, identity=identity)


def validate(form: EnrollmentForm) -> dict[str, str]:
    """Field errors for a details form. Empty when the form can be submitted."""
    errors: dict[str, str] = {}
    if not form.first_name.strip():
        errors["first_name"] = "Please enter a first name"
    if not form.last_name.strip():
        errors["last_name"] = "Please enter a last name"
    for name in ("athlete_email", "guardian_email"):
        value = getattr(form, name).strip()
        if value and not looks_like_email(value):
            errors[name] = "Please enter a valid email"
    try:
        Grade.parse(form.grade)
    except ValueError:
        errors["grade"] = "Please choose a valid grade"
    return errors


def build_record(state: EnrollmentState) -> RosterRecord:
    """Build the record to persist on submit.

    The linked account is the one recorded by resolution. On edit, with no
    recorded identity, the record keeps its existing link.

    Raises:
        FormValidationError: Required field missing or malformed
    """
    require_phase(state, EnrollmentPhase.DETAILS, "submit")
    errors = validate(state.form)
    if errors:
        raise FormValidationError(errors)

    form = state.form
    linked_account_id = state.identity.account_id if state.identity.is_matched else None
    if linked_account_id is None and state.original is not None:
        linked_account_id = state.original.linked_account_id

    return RosterRecord(
        id=state.original.id if state.original is not None else "",
        team_id=state.team_id,
        first_name=form.first_name.strip(),
        last_name=form.last_name.strip(),
        athlete_email=clean_optional(form.athlete_email),
        athlete_id=clean_optional(form.athlete_id),
        guardian_email=clean_optional(form.guardian_email),
        grade=Grade.parse(form.grade),
        jersey_number=clean_optional(form.jersey_number),
        position=clean_optional(form.position),
        nickname=clean_optional(form.nickname),
        linked_account_id=linked_account_id,
        created_at=state.original.created_at if state.original is not None else None,
    )


def close(state: EnrollmentState) -> EnrollmentState:
    """Terminal state; drops form contents, identity and snapshot."""
    return replace(
        state,
        phase=EnrollmentPhase.CLOSED,
        form=EnrollmentForm(),
        identity=ResolvedIdentity.not_attempted(),
        jerseys=None,
    )
