"""Enrollment business logic service.

Executes the pure transitions in ``enrollment_machine`` against the
directory and roster store, strictly in the order
resolve -> persist -> athlete link -> guardian link.
"""

import asyncio
import logging
import time
import uuid
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import AsyncIterator, Optional

from roster_enroll.errors import (
    FormValidationError,
    PersistenceError,
    RosterNotFoundError,
)
from roster_enroll.models.enrollment import (
    EnrollmentMode,
    EnrollmentPhase,
    EnrollmentResult,
    EnrollmentState,
    LinkStatus,
    Notice,
)
from roster_enroll.models.roster import RosterRecord
from roster_enroll.services import enrollment_machine as machine
from roster_enroll.services.identity_resolver import IdentityResolver
from roster_enroll.services.jersey_registry import JerseyRegistry, jersey_warning
from roster_enroll.services.linking_orchestrator import LinkingOrchestrator, LinkReport

logger = logging.getLogger(__name__)


def new_session_id() -> str:
    return f"enr_{uuid.uuid4().hex[:12]}"


class EnrollmentService:
    """Core business logic for enrolling and editing roster records."""

    def __init__(self, repository, directory):
        """Initialize the enrollment service.

        Args:
            repository: Roster store (list_jersey_numbers, get_roster,
                        insert_roster, update_roster). Blocking calls.
            directory: Account directory (find_account_by_email,
                       link_account_to_roster, link_guardian_to_roster). Async.
        """
        self.repository = repository
        self.directory = directory
        self.resolver = IdentityResolver(directory)
        self.jerseys = JerseyRegistry(repository)
        self.linker = LinkingOrchestrator(directory)

    # ------------------------------------------------------------------
    # Session start
    # ------------------------------------------------------------------

    async def open_new(self, team_id: str, session_id: Optional[str] = None) -> "EnrollmentSession":
        state = machine.start_new(session_id or new_session_id(), team_id)
        logger.info(f"Enrollment {state.session_id}: new player on team {team_id}")
        return EnrollmentSession(service=self, state=state)

    async def open_edit(
        self,
        roster_id: str,
        team_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> "EnrollmentSession":
        """Open an existing record for editing.

        Raises:
            RosterNotFoundError: No such record (or not on ``team_id``)
        """
        record = await asyncio.to_thread(self.repository.get_roster, roster_id)
        if record is None or (team_id is not None and record.team_id != team_id):
            raise RosterNotFoundError(f"Roster record {roster_id} not found")

        state = machine.start_edit(session_id or new_session_id(), record)
        state = await self._enter_details(state)
        logger.info(f"Enrollment {state.session_id}: editing roster {roster_id}")
        return EnrollmentSession(service=self, state=state)

    @asynccontextmanager
    async def session(
        self, team_id: str, roster_id: Optional[str] = None
    ) -> AsyncIterator["EnrollmentSession"]:
        """Scoped session: released on exit, normal or cancelled."""
        if roster_id is None:
            enrollment = await self.open_new(team_id)
        else:
            enrollment = await self.open_edit(roster_id, team_id=team_id)
        try:
            yield enrollment
        finally:
            enrollment.close()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _enter_details(self, state: EnrollmentState) -> EnrollmentState:
        exclude = state.original.jersey_number if state.original is not None else None
        snapshot = await self.jerseys.load_taken(state.team_id, exclude=exclude)
        return machine.with_jerseys(state, snapshot)

    async def continue_with(self, state: EnrollmentState, email: str) -> EnrollmentState:
        machine.require_phase(state, EnrollmentPhase.LOOKUP, "continue")
        identity = await self.resolver.resolve(email)
        state = machine.continue_with(state, email, identity)
        return await self._enter_details(state)

    async def skip(self, state: EnrollmentState) -> EnrollmentState:
        state = machine.skip(state)
        return await self._enter_details(state)

    def back(self, state: EnrollmentState) -> EnrollmentState:
        return machine.back(state)

    def update_details(self, state: EnrollmentState, **changes) -> tuple[EnrollmentState, list[Notice]]:
        state = machine.update_details(state, **changes)
        warning = jersey_warning(state.form.jersey_number, state.jerseys)
        return state, [warning] if warning else []

    async def submit(self, state: EnrollmentState) -> tuple[EnrollmentState, EnrollmentResult]:
        """Validate, persist and link.

        Validation errors leave the session open. A persistence failure
        closes it without linking. Link failures never change the outcome.
        """
        try:
            record = machine.build_record(state)
        except FormValidationError as e:
            return state, EnrollmentResult(
                success=False,
                reason="Please fix the highlighted fields.",
                field_errors=e.errors,
            )

        notices = []
        warning = jersey_warning(record.jersey_number, state.jerseys)
        if warning:
            notices.append(warning)

        try:
            # Shielded so an abandoned request still links what it inserted
            record, report = await asyncio.shield(self._persist_and_link(state.mode, record))
        except PersistenceError as e:
            logger.error(f"Enrollment {state.session_id}: {e}")
            return machine.close(state), EnrollmentResult(success=False, reason=str(e), notices=notices)

        verb = "added to roster!" if state.mode == EnrollmentMode.NEW else "updated!"
        notices.insert(0, Notice(level="info", message=f"{record.name} {verb}"))
        notices.extend(report.notices)

        return machine.close(state), EnrollmentResult(
            success=True,
            roster_id=record.id,
            record=record,
            notices=notices,
            links=report.outcomes,
        )

    async def _persist_and_link(
        self, mode: EnrollmentMode, record: RosterRecord
    ) -> tuple[RosterRecord, LinkReport]:
        try:
            if mode == EnrollmentMode.NEW:
                roster_id = await asyncio.to_thread(self.repository.insert_roster, record)
                record.id = roster_id
                logger.info(
                    f"Inserted roster {roster_id} on team {record.team_id} "
                    f"(linked account: {record.linked_account_id})"
                )
            else:
                await asyncio.to_thread(self.repository.update_roster, record)
                logger.info(f"Updated roster {record.id} on team {record.team_id}")
        except PersistenceError:
            raise
        except Exception as e:
            action = "adding" if mode == EnrollmentMode.NEW else "updating"
            raise PersistenceError(f"Error {action} player: {e}") from e

        report = await self.linker.run(record)
        if report.athlete.status == LinkStatus.LINKED:
            # The relink may have moved the record to another account
            record = await self._reload(record)
        return record, report

    async def _reload(self, record: RosterRecord) -> RosterRecord:
        """Stored version of a record, or the given one if it can't be read."""
        try:
            stored = await asyncio.to_thread(self.repository.get_roster, record.id)
        except Exception as e:
            logger.warning(f"Could not reload roster {record.id} after linking: {e}")
            return record
        return stored if stored is not None else record


@dataclass
class EnrollmentSession:
    """One coach's enrollment flow. Holds the current immutable state."""

    service: EnrollmentService
    state: EnrollmentState
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    created_at: float = field(default_factory=time.time)
    last_access: float = field(default_factory=time.time)
    _submit_task: Optional[asyncio.Future] = field(default=None, init=False, repr=False)

    @property
    def session_id(self) -> str:
        return self.state.session_id

    async def continue_with(self, email: str) -> EnrollmentState:
        self.state = await self.service.continue_with(self.state, email)
        return self.state

    async def skip(self) -> EnrollmentState:
        self.state = await self.service.skip(self.state)
        return self.state

    def back(self) -> EnrollmentState:
        self.state = self.service.back(self.state)
        return self.state

    def update_details(self, **changes) -> list[Notice]:
        self.state, notices = self.service.update_details(self.state, **changes)
        return notices

    async def submit(self) -> EnrollmentResult:
        """Validate, save and link.

        The save runs at most once per session. A retry while it is in
        flight, or after the caller was cancelled, waits on the same task
        and gets the same result.
        """
        task = self._submit_task
        if task is None:
            task = asyncio.ensure_future(self.service.submit(self.state))
            task.add_done_callback(self._finish_submit)
            self._submit_task = task
        try:
            state, result = await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception:
            if self._submit_task is task:
                self._submit_task = None
            raise
        self._apply_submit(task, state)
        return result

    def _finish_submit(self, task: asyncio.Future) -> None:
        # Runs even when nobody awaits the task any more
        if task.cancelled() or task.exception() is not None:
            if self._submit_task is task:
                self._submit_task = None
            return
        state, _ = task.result()
        self._apply_submit(task, state)

    def _apply_submit(self, task: asyncio.Future, state: EnrollmentState) -> None:
        if self._submit_task is not task:
            return
        self.state = state
        if not state.is_closed:
            # Validation failed; allow another attempt
            self._submit_task = None

    def close(self) -> None:
        """Release form contents, identity and snapshot."""
        if not self.state.is_closed:
            logger.info(f"Enrollment {self.session_id}: closed without submit")
        self.state = machine.close(self.state)
