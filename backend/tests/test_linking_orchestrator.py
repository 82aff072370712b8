"""Tests for post-persist athlete and guardian linking."""

import pytest
from unittest.mock import AsyncMock, call

from roster_enroll.errors import AccountNotFoundError, DirectoryUnavailableError
from roster_enroll.models.enrollment import LinkStatus, LinkTarget
from roster_enroll.models.roster import RosterRecord
from roster_enroll.services.linking_orchestrator import LinkingOrchestrator

pytestmark = pytest.mark.anyio


def _record(**overrides):
    fields = {
        "id": "p1",
        "team_id": "t1",
        "first_name": "Jo",
        "last_name": "Lin",
        "athlete_email": "jo.lin@example.edu",
        "guardian_email": "pat.lin@example.com",
    }
    fields.update(overrides)
    return RosterRecord(**fields)


@pytest.fixture
def directory():
    return AsyncMock()


async def test_athlete_then_guardian(directory):
    order = []
    directory.link_account_to_roster.side_effect = lambda *a: order.append("athlete")
    directory.link_guardian_to_roster.side_effect = lambda *a: order.append("guardian")

    report = await LinkingOrchestrator(directory).run(_record())

    assert order == ["athlete", "guardian"]
    directory.link_account_to_roster.assert_awaited_once_with("t1", "p1", "jo.lin@example.edu")
    directory.link_guardian_to_roster.assert_awaited_once_with("p1", "pat.lin@example.com")
    assert report.athlete.status == LinkStatus.LINKED
    assert report.guardian.status == LinkStatus.LINKED


async def test_relink_runs_even_when_already_linked(directory):
    """The relink is what grants team access, so it always runs."""
    await LinkingOrchestrator(directory).run(_record(linked_account_id="u1", guardian_email=None))

    directory.link_account_to_roster.assert_awaited_once()
    directory.link_guardian_to_roster.assert_not_awaited()


async def test_no_emails_no_calls(directory):
    report = await LinkingOrchestrator(directory).run(_record(athlete_email=None, guardian_email="  "))

    directory.link_account_to_roster.assert_not_awaited()
    directory.link_guardian_to_roster.assert_not_awaited()
    assert report.athlete.status == LinkStatus.SKIPPED
    assert report.guardian.status == LinkStatus.SKIPPED
    assert report.notices == []


async def test_athlete_failure_does_not_skip_guardian(directory):
    directory.link_account_to_roster.side_effect = DirectoryUnavailableError("timeout")

    report = await LinkingOrchestrator(directory).run(_record())

    directory.link_guardian_to_roster.assert_awaited_once()
    assert report.athlete.status == LinkStatus.FAILED
    assert report.guardian.status == LinkStatus.LINKED
    assert len(report.notices) == 1
    assert report.notices[0].level == "warning"
    assert "jo.lin@example.edu" in report.notices[0].message


async def test_athlete_without_account_is_a_notice(directory):
    directory.link_account_to_roster.side_effect = AccountNotFoundError("No account found")

    report = await LinkingOrchestrator(directory).run(_record(guardian_email=None))

    assert report.athlete.status == LinkStatus.FAILED
    assert "sign up" in report.notices[0].message


async def test_guardian_failure_is_silent(directory):
    directory.link_guardian_to_roster.side_effect = RuntimeError("rpc missing")

    report = await LinkingOrchestrator(directory).run(_record())

    assert report.guardian.status == LinkStatus.FAILED
    assert report.guardian.target == LinkTarget.GUARDIAN
    # Only the athlete success notice
    assert [n.level for n in report.notices] == ["info"]


async def test_relink_twice_same_calls(directory):
    orchestrator = LinkingOrchestrator(directory)
    record = _record(guardian_email=None)

    await orchestrator.run(record)
    await orchestrator.run(record)

    assert directory.link_account_to_roster.await_args_list == [
        call("t1", "p1", "jo.lin@example.edu"),
        call("t1", "p1", "jo.lin@example.edu"),
    ]
