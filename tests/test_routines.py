"""Tests for custom routines and per-date completion rewards."""

from datetime import date

import pytest

from profiles import get_profile
from routines import (
    applies_on, create_routine, delete_routine, list_routines, toggle_completion, weekday_name,
)

MONDAY = date(2026, 10, 19)
NEXT_MONDAY = date(2026, 10, 26)
TUESDAY = date(2026, 10, 20)


@pytest.fixture
def routine(db, student):
    return create_routine(db, student, "줄넘기 100번", ["수", "월"], "07:00")


class TestCreate:
    def test_days_in_calendar_order(self, routine):
        assert routine.days == ["월", "수"]
        assert routine.completed_days == {}

    @pytest.mark.parametrize("title, days, time", [
        ("  ", ["월"], "07:00"),
        ("줄넘기", [], "07:00"),
        ("줄넘기", ["Mon"], "07:00"),
        ("줄넘기", ["월"], ""),
    ])
    def test_invalid_input(self, db, student, title, days, time):
        with pytest.raises(ValueError):
            create_routine(db, student, title, days, time)


class TestSchedule:
    def test_weekday_name(self):
        assert weekday_name(MONDAY) == "월"
        assert weekday_name(date(2026, 10, 25)) == "일"

    def test_applies_on(self, routine):
        assert applies_on(routine, MONDAY)
        assert not applies_on(routine, TUESDAY)

    def test_list_for_date(self, db, student, routine):
        create_routine(db, student, "독서", ["화"], "20:00")

        assert [r.title for r in list_routines(db, student)] == ["줄넘기 100번", "독서"]
        assert [r.title for r in list_routines(db, student, MONDAY)] == ["줄넘기 100번"]
        assert list_routines(db, "someone-else") == []


class TestToggle:
    def test_reward_only_on_false_to_true(self, db, student, routine):
        results = [
            toggle_completion(db, student, routine.id, checked, MONDAY)[1]
            for checked in (False, True, False, True, True)
        ]

        assert results == [False, True, False, True, False]
        profile = get_profile(db, student)
        assert profile.skills["자기 주도 학습 능력"] == 20
        assert profile.skills["책임감"] == 10
        assert profile.xp == 0

    def test_dates_are_independent(self, db, student, routine):
        assert toggle_completion(db, student, routine.id, True, MONDAY)[1] is True
        updated, rewarded = toggle_completion(db, student, routine.id, True, NEXT_MONDAY)

        assert rewarded is True
        assert updated.completed_days == {"2026-10-19": True, "2026-10-26": True}

    def test_unchecking_keeps_key(self, db, student, routine):
        toggle_completion(db, student, routine.id, True, MONDAY)
        updated, _ = toggle_completion(db, student, routine.id, False, MONDAY)
        assert updated.completed_days == {"2026-10-19": False}

    def test_missing_routine(self, db, student):
        assert toggle_completion(db, student, "nope", True, MONDAY) == (None, False)

    def test_other_users_routine(self, db, student, routine):
        assert toggle_completion(db, "someone-else", routine.id, True, MONDAY) == (None, False)


class TestDelete:
    def test_delete(self, db, student, routine):
        assert delete_routine(db, student, routine.id) is True
        assert list_routines(db, student) == []
        assert delete_routine(db, student, routine.id) is False
