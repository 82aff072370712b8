"""Post-persist account linking for roster records.

Runs after a roster record is durably stored:

1. Athlete relink - whenever an athlete email is present, even if the account
   id was already embedded at insert. The directory call is idempotent and is
   the only path that grants the account team access.
2. Guardian link - whenever a guardian email is present. Best-effort.

The two run in that order and independently; a failure in one never skips
the other, and neither affects the enrollment outcome.
"""

import logging
from dataclasses import dataclass, field

from roster_enroll.errors import AccountNotFoundError
from roster_enroll.models.enrollment import LinkOutcome, LinkStatus, LinkTarget, Notice
from roster_enroll.models.roster import RosterRecord
from roster_enroll.utils.normalize import clean_optional

logger = logging.getLogger(__name__)


@dataclass
class LinkReport:
    """Outcomes of one orchestration pass plus the notices they produced."""

    athlete: LinkOutcome
    guardian: LinkOutcome
    notices: list[Notice] = field(default_factory=list)

    @property
    def outcomes(self) -> list[LinkOutcome]:
        return [self.athlete, self.guardian]


class LinkingOrchestrator:
    """Links a persisted roster record to athlete and guardian accounts."""

    def __init__(self, directory):
        """
        Args:
            directory: Account directory exposing async link_account_to_roster()
                       and link_guardian_to_roster()
        """
        self.directory = directory

    async def link_athlete(self, record: RosterRecord) -> LinkOutcome:
        email = clean_optional(record.athlete_email)
        if email is None:
            return LinkOutcome(target=LinkTarget.ATHLETE, status=LinkStatus.SKIPPED)

        try:
            await self.directory.link_account_to_roster(record.team_id, record.id, email)
        except AccountNotFoundError as e:
            logger.info(f"Athlete link skipped for roster {record.id}: {e}")
            return LinkOutcome(
                target=LinkTarget.ATHLETE,
                status=LinkStatus.FAILED,
                email=email,
                message=f"No account found for {email} yet. They will be linked once they sign up.",
            )
        except Exception as e:
            logger.warning(f"Athlete link failed for roster {record.id}: {e}")
            return LinkOutcome(
                target=LinkTarget.ATHLETE,
                status=LinkStatus.FAILED,
                email=email,
                message=f"Player saved, but linking to {email} failed: {e}",
            )

        logger.info(f"Linked roster {record.id} to account for {email}")
        return LinkOutcome(
            target=LinkTarget.ATHLETE,
            status=LinkStatus.LINKED,
            email=email,
            message=f"Linked to account for {email}.",
        )

    async def link_guardian(self, record: RosterRecord) -> LinkOutcome:
        email = clean_optional(record.guardian_email)
        if email is None:
            return LinkOutcome(target=LinkTarget.GUARDIAN, status=LinkStatus.SKIPPED)

        try:
            await self.directory.link_guardian_to_roster(record.id, email)
        except Exception as e:
            logger.warning(f"Guardian link failed for roster {record.id} (non-fatal): {e}")
            return LinkOutcome(
                target=LinkTarget.GUARDIAN,
                status=LinkStatus.FAILED,
                email=email,
                message=str(e),
            )

        logger.info(f"Linked guardian {email} to roster {record.id}")
        return LinkOutcome(target=LinkTarget.GUARDIAN, status=LinkStatus.LINKED, email=email)

    async def run(self, record: RosterRecord) -> LinkReport:
        """Run both link passes for a persisted record.

        Athlete outcomes become notices; guardian outcomes are only logged.
        """
        athlete = await self.link_athlete(record)
        guardian = await self.link_guardian(record)

        notices = []
        if athlete.status == LinkStatus.LINKED:
            notices.append(Notice(level="info", message=athlete.message))
        elif athlete.status == LinkStatus.FAILED:
            notices.append(Notice(level="warning", message=athlete.message))

        return LinkReport(athlete=athlete, guardian=guardian, notices=notices)
