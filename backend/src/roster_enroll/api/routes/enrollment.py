"""REST endpoints for player enrollment sessions."""

import threading
import time
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from roster_enroll.config import settings
from roster_enroll.errors import InvalidTransitionError, RosterNotFoundError
from roster_enroll.models.enrollment import EnrollmentResult, EnrollmentState, LinkTarget, Notice
from roster_enroll.models.roster import RosterRecord
from roster_enroll.services.enrollment_service import EnrollmentService, EnrollmentSession

SESSION_CLEANUP_INTERVAL_SECONDS = 60

router = APIRouter(prefix="/api/enrollment", tags=["enrollment"])

# In-memory session storage with thread-safe access
_sessions: dict[str, EnrollmentSession] = {}
_sessions_lock = threading.Lock()
_cleanup_lock = threading.Lock()
_last_cleanup = 0.0


def _is_session_expired(session: EnrollmentSession, now: float) -> bool:
    return (now - session.last_access) >= settings.session_ttl_seconds


def _prune_expired_sessions(now: float | None = None) -> None:
    """Release expired sessions opportunistically."""
    global _last_cleanup
    now = now or time.time()
    if now - _last_cleanup < SESSION_CLEANUP_INTERVAL_SECONDS:
        return

    with _cleanup_lock:
        if now - _last_cleanup < SESSION_CLEANUP_INTERVAL_SECONDS:
            return

        with _sessions_lock:
            expired = [
                session_id
                for session_id, session in _sessions.items()
                if not session.lock.locked() and _is_session_expired(session, now)
            ]
            for session_id in expired:
                _sessions.pop(session_id).close()

        _last_cleanup = now


def _get_session(session_id: str) -> EnrollmentSession:
    _prune_expired_sessions()
    with _sessions_lock:
        session = _sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail="Session not found")
    now = time.time()
    if _is_session_expired(session, now):
        _release_session(session_id)
        raise HTTPException(status_code=404, detail="Session expired")
    session.last_access = now
    return session


def _release_session(session_id: str) -> None:
    with _sessions_lock:
        session = _sessions.pop(session_id, None)
    if session:
        session.close()


def _get_service(request: Request) -> EnrollmentService:
    return request.app.state.enrollment_service


class StartEnrollmentRequest(BaseModel):
    team_id: str
    roster_id: Optional[str] = None  # Set to edit an existing record


class ContinueRequest(BaseModel):
    email: str


class DetailsUpdateRequest(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    athlete_email: Optional[str] = None
    athlete_id: Optional[str] = None
    guardian_email: Optional[str] = None
    grade: Optional[str] = None
    jersey_number: Optional[str] = None
    position: Optional[str] = None
    nickname: Optional[str] = None


@router.post("/sessions", status_code=201)
async def start_enrollment(request: Request, body: StartEnrollmentRequest):
    """Start a new enrollment, or an edit session when roster_id is given."""
    _prune_expired_sessions()
    service = _get_service(request)

    if body.roster_id:
        try:
            session = await service.open_edit(body.roster_id, team_id=body.team_id)
        except RosterNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))
    else:
        session = await service.open_new(body.team_id)

    with _sessions_lock:
        _sessions[session.session_id] = session

    return _serialize_state(session.state)


@router.get("/sessions/{session_id}")
async def get_enrollment(session_id: str):
    session = _get_session(session_id)
    return _serialize_state(session.state)


@router.post("/sessions/{session_id}/continue")
async def continue_enrollment(session_id: str, body: ContinueRequest):
    """Look up the email, then move to the details phase."""
    session = _get_session(session_id)
    async with session.lock:
        try:
            state = await session.continue_with(body.email)
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))
    return _serialize_state(state)


@router.post("/sessions/{session_id}/skip")
async def skip_lookup(session_id: str):
    session = _get_session(session_id)
    async with session.lock:
        try:
            state = await session.skip()
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))
    return _serialize_state(state)


@router.post("/sessions/{session_id}/back")
async def back_to_lookup(session_id: str):
    session = _get_session(session_id)
    async with session.lock:
        try:
            state = session.back()
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))
    return _serialize_state(state)


@router.patch("/sessions/{session_id}/details")
async def update_details(session_id: str, body: DetailsUpdateRequest):
    """Update form fields. Returns a warning if the jersey looks taken."""
    session = _get_session(session_id)
    async with session.lock:
        try:
            notices = session.update_details(**body.model_dump(exclude_unset=True))
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))
    return {**_serialize_state(session.state), "notices": [_serialize_notice(n) for n in notices]}


@router.post("/sessions/{session_id}/submit")
async def submit_enrollment(session_id: str):
    """Validate, save and link. 422 on invalid fields, 502 if saving fails."""
    session = _get_session(session_id)
    async with session.lock:
        try:
            result = await session.submit()
        except InvalidTransitionError as e:
            raise HTTPException(status_code=409, detail=str(e))

    if result.field_errors:
        raise HTTPException(
            status_code=422,
            detail={"message": result.reason, "field_errors": result.field_errors},
        )

    _release_session(session_id)
    if not result.success:
        raise HTTPException(status_code=502, detail=result.reason)
    return _serialize_result(result)


@router.delete("/sessions/{session_id}", status_code=204)
async def cancel_enrollment(session_id: str):
    """Abandon a session. Nothing is saved."""
    _get_session(session_id)
    _release_session(session_id)


# =============================================================================
# Serialization
# =============================================================================


def _serialize_notice(notice: Notice) -> dict:
    return {"level": notice.level, "message": notice.message}


def serialize_record(record: RosterRecord) -> dict:
    return {
        "id": record.id,
        "team_id": record.team_id,
        "first_name": record.first_name,
        "last_name": record.last_name,
        "display_name": record.display_name,
        "athlete_email": record.athlete_email,
        "athlete_id": record.athlete_id,
        "guardian_email": record.guardian_email,
        "grade": record.grade.value if record.grade else None,
        "jersey_number": record.jersey_number,
        "position": record.position,
        "nickname": record.nickname,
        "linked_account_id": record.linked_account_id,
    }


def _serialize_state(state: EnrollmentState) -> dict:
    form = state.form
    return {
        "session_id": state.session_id,
        "team_id": state.team_id,
        "mode": state.mode.value,
        "phase": state.phase.value,
        "matched": state.matched,
        "identity": {
            "status": state.identity.status.value,
            "account_id": state.identity.account_id,
        },
        "form": {
            "first_name": form.first_name,
            "last_name": form.last_name,
            "athlete_email": form.athlete_email,
            "athlete_id": form.athlete_id,
            "guardian_email": form.guardian_email,
            "grade": form.grade,
            "jersey_number": form.jersey_number,
            "position": form.position,
            "nickname": form.nickname,
        },
        "roster_id": state.original.id if state.original is not None else None,
    }


def _serialize_result(result: EnrollmentResult) -> dict:
    return {
        "success": result.success,
        "roster_id": result.roster_id,
        "record": serialize_record(result.record) if result.record else None,
        "notices": [_serialize_notice(n) for n in result.notices],
        # Guardian outcomes stay server-side
        "links": [
            {"target": o.target.value, "status": o.status.value, "email": o.email}
            for o in result.links
            if o.target == LinkTarget.ATHLETE
        ],
    }
