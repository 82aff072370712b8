"""Tests for the DuckDB roster repository."""

import pytest

from roster_enroll.errors import AccountNotFoundError, PersistenceError, RosterNotFoundError
from roster_enroll.models.roster import Account, Grade, RosterRecord
from roster_enroll.repositories.roster_repository import RosterRepository


@pytest.fixture
def repo(tmp_path):
    repository = RosterRepository(tmp_path / "roster.duckdb", create=True)
    repository.add_team("t1", "Varsity Soccer", "soccer")
    repository.add_team("t2", "JV Soccer", "soccer")
    repository.add_account(Account(id="u1", email="Jo.Lin@Example.edu", first_name="Jo", last_name="Lin"))
    repository.add_account(Account(id="u3", email="pat.lin@example.com", first_name="Pat", last_name="Lin"))
    return repository


def _player(**overrides):
    fields = {"team_id": "t1", "first_name": "Jo", "last_name": "Lin", "jersey_number": "23"}
    fields.update(overrides)
    return RosterRecord(**fields)


def test_missing_database_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        RosterRepository(tmp_path / "missing.duckdb")


def test_insert_and_get(repo):
    roster_id = repo.insert_roster(_player(grade=Grade.SOPHOMORE, athlete_email="jo.lin@example.edu"))

    record = repo.get_roster(roster_id)
    assert record.id == roster_id
    assert record.name == "Jo Lin"
    assert record.grade == Grade.SOPHOMORE
    assert record.linked_account_id is None
    assert record.created_at is not None


def test_get_unknown_returns_none(repo):
    assert repo.get_roster("nope") is None


def test_update_keeps_link_when_none(repo):
    roster_id = repo.insert_roster(_player(linked_account_id="u1"))
    record = repo.get_roster(roster_id)
    record.jersey_number = "8"
    record.linked_account_id = None

    repo.update_roster(record)

    stored = repo.get_roster(roster_id)
    assert stored.jersey_number == "8"
    assert stored.linked_account_id == "u1"


def test_update_unknown_record(repo):
    with pytest.raises(PersistenceError):
        repo.update_roster(_player(id="missing"))
    with pytest.raises(PersistenceError):
        repo.update_roster(_player())


def test_list_jersey_numbers_skips_blank(repo):
    repo.insert_roster(_player(jersey_number="23"))
    repo.insert_roster(_player(first_name="Al", jersey_number=""))
    repo.insert_roster(_player(first_name="Bo", jersey_number=None))
    repo.insert_roster(_player(team_id="t2", jersey_number="7"))

    assert repo.list_jersey_numbers("t1") == {"23"}


def test_list_roster_ordered_by_name(repo):
    repo.insert_roster(_player(first_name="Zed", last_name="Adams"))
    repo.insert_roster(_player(first_name="amy", last_name="lee"))
    repo.insert_roster(_player(first_name="Bea", last_name="Lee"))

    names = [r.name for r in repo.list_roster("t1")]
    assert names == ["Zed Adams", "amy lee", "Bea Lee"]


def test_find_account_case_insensitive(repo):
    account = repo.find_account_by_email("  JO.LIN@example.EDU ")
    assert account is not None
    assert account.id == "u1"
    assert repo.find_account_by_email("") is None
    assert repo.find_account_by_email("nobody@example.edu") is None


class TestLinkAccount:
    def test_link_sets_account_and_membership(self, repo):
        roster_id = repo.insert_roster(_player())

        account_id = repo.link_account_to_roster("t1", roster_id, "jo.lin@example.edu")

        assert account_id == "u1"
        assert repo.get_roster(roster_id).linked_account_id == "u1"
        assert repo.get_team_members("t1") == [
            {"team_id": "t1", "account_id": "u1", "role": "player", "player_id": roster_id}
        ]

    def test_link_twice_same_as_once(self, repo):
        roster_id = repo.insert_roster(_player())

        repo.link_account_to_roster("t1", roster_id, "jo.lin@example.edu")
        repo.link_account_to_roster("t1", roster_id, "jo.lin@example.edu")

        assert len(repo.get_team_members("t1")) == 1
        assert repo.get_roster(roster_id).linked_account_id == "u1"

    def test_link_without_account(self, repo):
        roster_id = repo.insert_roster(_player())

        with pytest.raises(AccountNotFoundError):
            repo.link_account_to_roster("t1", roster_id, "nobody@example.edu")
        assert repo.get_roster(roster_id).linked_account_id is None

    def test_link_wrong_team(self, repo):
        roster_id = repo.insert_roster(_player())

        with pytest.raises(RosterNotFoundError):
            repo.link_account_to_roster("t2", roster_id, "jo.lin@example.edu")
        assert repo.get_team_members("t2") == []


class TestLinkGuardian:
    def test_guardian_with_account_gets_parent_access(self, repo):
        roster_id = repo.insert_roster(_player())

        account_id = repo.link_guardian_to_roster(roster_id, "Pat.Lin@example.com")

        assert account_id == "u3"
        assert repo.get_guardian_links(roster_id) == [
            {"player_id": roster_id, "guardian_email": "pat.lin@example.com", "account_id": "u3"}
        ]
        members = repo.get_team_members("t1")
        assert [(m["account_id"], m["role"]) for m in members] == [("u3", "team_parent")]

    def test_guardian_without_account_is_recorded(self, repo):
        roster_id = repo.insert_roster(_player())

        assert repo.link_guardian_to_roster(roster_id, "new.parent@example.com") is None
        assert repo.link_guardian_to_roster(roster_id, "new.parent@example.com") is None

        links = repo.get_guardian_links(roster_id)
        assert len(links) == 1
        assert links[0]["account_id"] is None
        assert repo.get_team_members("t1") == []

    def test_guardian_unknown_roster(self, repo):
        with pytest.raises(RosterNotFoundError):
            repo.link_guardian_to_roster("nope", "pat.lin@example.com")
