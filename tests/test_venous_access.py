"""Tests for venous access expiry (hospflow/services/venous_access.py)."""

from datetime import datetime, timedelta, timezone

from hospflow.services.venous_access import (
    AccessDate,
    access_placed_at,
    hospital_now,
    is_stale,
    parse_access_date,
)

BRT = timezone(timedelta(hours=-3))


class TestParseAccessDate:
    def test_slash_token(self):
        assert parse_access_date("MSD 22/01") == AccessDate(day=22, month=1)

    def test_dash_token(self):
        assert parse_access_date("jugular 3-11") == AccessDate(day=3, month=11)

    def test_first_token_wins(self):
        assert parse_access_date("MSD 22/01, MSE 10/01") == AccessDate(day=22, month=1)

    def test_no_token(self):
        assert parse_access_date("peripheral, left arm") is None

    def test_empty(self):
        assert parse_access_date("") is None
        assert parse_access_date(None) is None


class TestIsStale:
    def test_future_day_rolls_back_a_year(self, now):
        placed = access_placed_at("MSD 22/01", now)
        assert placed == datetime(2023, 1, 22, tzinfo=BRT)
        assert is_stale("MSD 22/01", now) is True

    def test_recent_access_not_stale(self, now):
        # 2024-01-18 00:00 is 58 hours before now
        assert is_stale("MSE 18/01", now) is False

    def test_boundary(self, now):
        # 17/01 is 82 hours old, 16/01 is 106 hours old
        assert is_stale("MSD 17/01", now) is False
        assert is_stale("MSD 16/01", now) is True

    def test_year_turn(self):
        now = datetime(2024, 1, 2, 10, 0, tzinfo=BRT)
        assert access_placed_at("MSD 30/12", now) == datetime(2023, 12, 30, tzinfo=BRT)
        assert is_stale("MSD 30/12", now) is False

    def test_no_token_is_not_stale(self, now):
        assert is_stale("peripheral, right arm", now) is False
        assert is_stale("", now) is False

    def test_impossible_date_is_not_stale(self, now):
        assert access_placed_at("MSD 31/02", now) is None
        assert is_stale("MSD 31/02", now) is False

    def test_zero_day_and_month_thirteen_are_not_stale(self, now):
        for text in ("MSD 00/05", "MSE 10/13"):
            assert access_placed_at(text, now) is None
            assert is_stale(text, now) is False

    def test_future_leap_day_rolls_into_non_leap_year(self, now):
        # 2024-02-29 is after now and 2023-02-29 does not exist
        assert access_placed_at("MSD 29/02", now) is None
        assert is_stale("MSD 29/02", now) is False

    def test_leap_day(self):
        now = datetime(2024, 3, 10, 8, 0, tzinfo=BRT)
        assert access_placed_at("MSE 29/02", now) == datetime(2024, 2, 29, tzinfo=BRT)
        assert is_stale("MSE 29/02", now) is True

    def test_custom_threshold(self, now):
        assert is_stale("MSE 18/01", now, max_hours=24) is True


def test_hospital_now_is_timezone_aware():
    assert hospital_now().tzinfo is not None
