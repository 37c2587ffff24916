"""Tests for the mission state machine, generation and settlement."""

from datetime import datetime

import pytest

from database import SessionLocal
from genai_client import GenerationError
from missions import (
    InvalidMissionTransition, add_recommended_missions, generate_daily_missions,
    get_mission, list_missions, parse_generated_missions, request_completion,
    settle_all_completed, settle_mission, settle_pending_rewards, skill_delta_for,
    toggle_completion, transition,
)
from models import Mission, MissionState
from profiles import get_profile, get_public_profile
from schemas import GeneratedMission


def _mission(db, student_id, state=MissionState.created, title="동화책 한 권 읽기",
             category="읽기", reward_xp=30, reward_gold=10):
    mission = Mission(
        student_id=student_id,
        title=title,
        category=category,
        description="",
        reward_xp=reward_xp,
        reward_gold=reward_gold,
        state=state.value,
        generated_at=datetime.utcnow(),
    )
    db.add(mission)
    db.commit()
    db.refresh(mission)
    return mission


GENERATED = [
    {"title": "분수 문제 5개 풀기", "type": "수리", "description": "분수의 덧셈", "rewardXp": 20, "rewardGold": 5.0},
    {"title": "동시 한 편 쓰기", "type": "창작", "description": "계절에 대한 시", "rewardXp": 25, "rewardGold": 8},
    {"title": "체육 미션", "type": "체육", "description": "없는 종류", "rewardXp": 10, "rewardGold": 1},
]


class TestTransitions:
    @pytest.mark.parametrize("current, target", [
        (MissionState.created, MissionState.pending_approval),
        (MissionState.created, MissionState.completed),
        (MissionState.pending_approval, MissionState.completed),
        (MissionState.pending_approval, MissionState.created),
        (MissionState.completed, MissionState.rewarded),
        (MissionState.completed, MissionState.created),
    ])
    def test_allowed(self, current, target):
        mission = Mission(id="m1", state=current.value)
        transition(mission, target)
        assert mission.state == target.value

    @pytest.mark.parametrize("current, target", [
        (MissionState.created, MissionState.rewarded),
        (MissionState.pending_approval, MissionState.rewarded),
        (MissionState.pending_approval, MissionState.pending_approval),
        (MissionState.rewarded, MissionState.created),
        (MissionState.rewarded, MissionState.completed),
    ])
    def test_rejected(self, current, target):
        mission = Mission(id="m1", state=current.value)
        with pytest.raises(InvalidMissionTransition) as exc:
            transition(mission, target)
        assert exc.value.current == current.value
        assert mission.state == current.value

    def test_reopening_clears_completed_at(self):
        mission = Mission(id="m1", state=MissionState.created.value)
        transition(mission, MissionState.completed)
        assert mission.completed_at is not None
        transition(mission, MissionState.created)
        assert mission.completed_at is None

    def test_derived_flags(self):
        mission = Mission(state=MissionState.rewarded.value)
        assert mission.is_completed and mission.is_student_rewarded
        assert not mission.is_pending_approval


class TestSkillDelta:
    @pytest.mark.parametrize("category, skill", [("읽기", "문해력"), ("쓰기", "문해력"), ("수리", "수리력"), ("문제풀이", "수리력")])
    def test_category_skill(self, category, skill):
        assert skill_delta_for(category) == {"책임감": 5, skill: 10}

    @pytest.mark.parametrize("category", ["창작", "탐구"])
    def test_responsibility_only(self, category):
        assert skill_delta_for(category) == {"책임감": 5}


class TestSettlement:
    def test_pays_once(self, db, student):
        mission = _mission(db, student, MissionState.completed)

        assert settle_mission(db, mission.id, student, student) is True
        assert settle_mission(db, mission.id, student, student) is False

        profile = get_profile(db, student)
        assert (profile.xp, profile.gold) == (30, 10)
        assert profile.skills["문해력"] == 10
        assert profile.skills["책임감"] == 5
        assert get_mission(db, mission.id).state == MissionState.rewarded.value

    def test_stale_read_pays_once(self, db, student):
        mission = _mission(db, student, MissionState.completed)
        other = SessionLocal()
        try:
            # Both sessions see the mission as completed before either writes
            assert get_mission(other, mission.id).state == MissionState.completed.value

            assert settle_mission(db, mission.id, student, student) is True
            assert settle_mission(other, mission.id, student, student) is False
        finally:
            other.close()

        assert get_profile(db, student).xp == 30

    def test_not_completed_is_not_paid(self, db, student):
        mission = _mission(db, student, MissionState.pending_approval)

        assert settle_mission(db, mission.id, student, student) is False
        assert get_profile(db, student).xp == 0

    def test_missing_profile_keeps_mission_completed(self, db):
        mission = _mission(db, "ghost", MissionState.completed)

        assert settle_mission(db, mission.id, "ghost", "ghost") is False
        assert get_mission(db, mission.id).state == MissionState.completed.value

    def test_settled_reward_reaches_mirror(self, db, student):
        _mission(db, student, MissionState.completed, category="수리", reward_xp=120, reward_gold=0)

        assert settle_pending_rewards(db, student) == 1

        mirror = get_public_profile(db, student)
        assert mirror.xp == 120
        assert mirror.level == 2
        assert mirror.skills["수리력"] == 10

    def test_sweep_covers_every_student(self, db, make_student):
        first = make_student("학생1", "1111")
        second = make_student("학생2", "2222")
        _mission(db, first, MissionState.completed)
        _mission(db, second, MissionState.completed)
        _mission(db, second, MissionState.created)

        assert settle_all_completed(db) == 2
        assert settle_all_completed(db) == 0
        assert get_profile(db, second).gold == 10


class TestGeneration:
    def test_parse_drops_malformed(self):
        parsed = parse_generated_missions(GENERATED)
        assert [m.title for m in parsed] == ["분수 문제 5개 풀기", "동시 한 편 쓰기"]
        assert parsed[0].reward_gold == 5
        assert parse_generated_missions({"title": "not a list"}) == []

    def test_replaces_only_uncompleted(self, db, student, fake_genai):
        _mission(db, student, MissionState.created, title="old created")
        _mission(db, student, MissionState.pending_approval, title="old pending")
        _mission(db, student, MissionState.completed, title="old completed")
        _mission(db, student, MissionState.rewarded, title="old rewarded")
        fake_genai.missions = GENERATED

        created = generate_daily_missions(db, fake_genai, student, level=3)

        assert len(created) == 2
        titles = {m.title for m in list_missions(db, student)}
        assert titles == {"old completed", "old rewarded", "분수 문제 5개 풀기", "동시 한 편 쓰기"}
        assert all(m.state == MissionState.created.value for m in created)
        assert "레벨 3" in fake_genai.prompts[-1]

    def test_empty_answer_keeps_existing(self, db, student, fake_genai):
        _mission(db, student, MissionState.created, title="old created")
        fake_genai.missions = []

        assert generate_daily_missions(db, fake_genai, student, level=1) == []
        assert [m.title for m in list_missions(db, student)] == ["old created"]

    def test_failure_propagates(self, db, student, fake_genai):
        fake_genai.fail = True
        with pytest.raises(GenerationError):
            generate_daily_missions(db, fake_genai, student, level=1)

    def test_other_students_untouched(self, db, make_student, fake_genai):
        first = make_student("학생1", "1111")
        second = make_student("학생2", "2222")
        _mission(db, second, MissionState.created, title="keep me")
        fake_genai.missions = GENERATED

        generate_daily_missions(db, fake_genai, first, level=1)

        assert [m.title for m in list_missions(db, second)] == ["keep me"]


class TestTeacherActions:
    def test_toggle_flow(self, db, student):
        mission = _mission(db, student)

        assert toggle_completion(db, mission.id).state == MissionState.completed.value
        assert toggle_completion(db, mission.id).state == MissionState.created.value

    def test_toggle_approves_pending(self, db, student):
        mission = _mission(db, student)
        request_completion(db, mission.id, student)

        assert toggle_completion(db, mission.id).state == MissionState.completed.value

    def test_toggle_rewarded_rejected(self, db, student):
        mission = _mission(db, student, MissionState.rewarded)
        with pytest.raises(InvalidMissionTransition):
            toggle_completion(db, mission.id)

    def test_toggle_missing(self, db):
        assert toggle_completion(db, "nope") is None

    def test_request_completion_twice_rejected(self, db, student):
        mission = _mission(db, student)
        assert request_completion(db, mission.id, student).state == MissionState.pending_approval.value
        with pytest.raises(InvalidMissionTransition):
            request_completion(db, mission.id, student)

    def test_request_completion_other_student(self, db, student):
        mission = _mission(db, student)
        assert request_completion(db, mission.id, "someone-else") is None

    def test_add_recommended_batch(self, db, student):
        items = [GeneratedMission.model_validate(item) for item in GENERATED[:2]]

        created = add_recommended_missions(db, student, items)

        assert len(created) == 2
        assert all(m.is_recommended for m in list_missions(db, student))
