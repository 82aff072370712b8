"""Tests for roster and account models."""

import pytest

from roster_enroll.models.enrollment import EnrollmentForm, ResolvedIdentity, ResolutionStatus
from roster_enroll.models.roster import Account, Grade, RosterRecord


class TestGrade:
    @pytest.mark.parametrize(
        "value,expected",
        [("9", Grade.FRESHMAN), ("12", Grade.SENIOR), ("junior", Grade.JUNIOR), (" 10 ", Grade.SOPHOMORE)],
    )
    def test_parse(self, value, expected):
        assert Grade.parse(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_blank_is_unset(self, value):
        assert Grade.parse(value) is None

    def test_unknown_grade(self):
        with pytest.raises(ValueError):
            Grade.parse("8")


class TestAccount:
    def test_from_row_with_split_names(self):
        account = Account.from_row({"id": "u1", "email": "jo@example.edu", "first_name": "Jo", "last_name": "Lin"})
        assert account.name == "Jo Lin"

    def test_legacy_name_split_on_first_space(self):
        account = Account.from_row({"id": "u4", "email": "m@example.edu", "name": "Mary Ann Smith"})
        assert account.first_name == "Mary"
        assert account.last_name == "Ann Smith"

    def test_single_word_legacy_name(self):
        account = Account.from_row({"id": "u5", "email": "c@example.edu", "name": "Cher"})
        assert (account.first_name, account.last_name) == ("Cher", "")


class TestRosterRecord:
    def test_display_name_with_nickname(self):
        record = RosterRecord(team_id="t1", first_name="Michael", last_name="Ross", nickname="Big Mike")
        assert record.display_name == "Michael Ross (Big Mike)"

    def test_display_name_without_nickname(self):
        record = RosterRecord(team_id="t1", first_name="Jo", last_name="Lin")
        assert record.display_name == "Jo Lin"
        assert record.is_persisted is False
        assert record.is_linked is False

    def test_row_round_trip(self):
        record = RosterRecord(
            id="p1",
            team_id="t1",
            first_name="Jo",
            last_name="Lin",
            grade=Grade.SENIOR,
            jersey_number="12A",
            linked_account_id="u1",
        )
        row = record.to_row()
        assert "id" not in row
        assert row["grade"] == "12"

        assert RosterRecord.from_row({"id": "p1", **row}) == record

    def test_numeric_jersey_from_row_is_text(self):
        record = RosterRecord.from_row({"id": "p1", "team_id": "t1", "jersey_number": 7})
        assert record.jersey_number == "7"


class TestEnrollmentModels:
    def test_form_from_record(self):
        record = RosterRecord(team_id="t1", first_name="Jo", last_name="Lin", grade=Grade.JUNIOR)
        form = EnrollmentForm.from_record(record)
        assert form.grade == "11"
        assert form.athlete_email == ""

    def test_identity_equality_ignores_account(self):
        account = Account(id="u1", email="jo@example.edu")
        assert ResolvedIdentity.matched(account, "jo@example.edu") == ResolvedIdentity(
            status=ResolutionStatus.MATCHED, account_id="u1", email="jo@example.edu"
        )
