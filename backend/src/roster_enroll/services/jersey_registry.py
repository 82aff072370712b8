"""Jersey number snapshot and collision check.

The snapshot is taken once per session and may go stale while other coaches
edit the same team. Collisions are therefore only ever a warning; true
uniqueness is left to the persistence layer.
"""

import asyncio
import logging
from typing import Iterable, Optional

from roster_enroll.models.enrollment import JerseySet, Notice
from roster_enroll.utils.normalize import normalize_jersey

logger = logging.getLogger(__name__)


def build_jersey_set(team_id: str, numbers: Iterable[str], exclude: Optional[str] = None) -> JerseySet:
    """Normalize raw jersey numbers into a snapshot.

    Args:
        team_id: Team the numbers belong to
        numbers: Raw values as stored
        exclude: The in-edit record's own current value, removed after loading
    """
    taken = {normalize_jersey(n) for n in numbers}
    taken.discard("")
    excluded = normalize_jersey(exclude)
    if excluded:
        taken.discard(excluded)
    return JerseySet(team_id=team_id, numbers=frozenset(taken))


def is_taken(candidate: Optional[str], taken: JerseySet | Iterable[str]) -> bool:
    """Whether a candidate jersey number is already in use. Blank is never taken."""
    value = normalize_jersey(candidate)
    if not value:
        return False
    if isinstance(taken, JerseySet):
        return value in taken
    return value in {normalize_jersey(n) for n in taken}


def jersey_warning(candidate: Optional[str], taken: Optional[JerseySet]) -> Optional[Notice]:
    """Advisory notice when a candidate collides with the snapshot."""
    if taken is None or not is_taken(candidate, taken):
        return None
    return Notice(
        level="warning",
        message=f"Jersey #{normalize_jersey(candidate)} is already assigned on this team.",
    )


class JerseyRegistry:
    """Loads jersey snapshots from the roster store."""

    def __init__(self, repository):
        """
        Args:
            repository: Roster store exposing list_jersey_numbers(team_id)
        """
        self.repository = repository

    async def load_taken(self, team_id: str, exclude: Optional[str] = None) -> JerseySet:
        """Load the team's taken numbers.

        A failed load yields an empty snapshot; the check is advisory.
        """
        try:
            numbers = await asyncio.to_thread(self.repository.list_jersey_numbers, team_id)
        except Exception as e:
            logger.warning(f"Could not load jersey numbers for team {team_id}: {e}")
            numbers = set()
        return build_jersey_set(team_id, numbers, exclude=exclude)
