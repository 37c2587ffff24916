"""Tests for the progression engine (XP, gold, levels, skills)."""

import itertools

import pytest

from models import PublicStudentProfile
from profiles import get_profile, get_public_profile
from progression import (
    REWARDS, apply_reward, level_progress, update_student_profile, xp_for_next_level,
)


def _profile(**overrides):
    base = {"user_id": "u1", "role": "student", "display_name": "학생", "xp": 0, "gold": 0, "level": 1, "skills": {}}
    base.update(overrides)
    return base


class TestApplyReward:
    def test_first_journal_reward(self):
        result = apply_reward(
            _profile(),
            {"xp": 10, "gold": 5, "skills": {"문해력": 5, "창의력": 5}},
        )
        assert result["xp"] == 10
        assert result["level"] == 1
        assert result["gold"] == 5
        assert result["skills"] == {"문해력": 5, "창의력": 5}

    def test_crossing_one_threshold(self):
        result = apply_reward(_profile(xp=95), {"xp": 10})
        assert result["xp"] == 105
        assert result["level"] == 2

    def test_crossing_from_level_two(self):
        result = apply_reward(_profile(xp=105, level=2), {"xp": 100})
        assert result["xp"] == 205
        assert result["level"] == 3

    def test_big_reward_climbs_several_levels(self):
        result = apply_reward(_profile(), {"xp": 450})
        # 450 >= 100, 200, 300, 400 but < 500
        assert result["level"] == 5

    def test_exact_threshold_levels_up(self):
        assert apply_reward(_profile(), {"xp": 100})["level"] == 2

    def test_skills_not_in_delta_unchanged(self):
        result = apply_reward(_profile(skills={"수리력": 7, "책임감": 3}), {"skills": {"책임감": 5}})
        assert result["skills"] == {"수리력": 7, "책임감": 8}

    def test_missing_keys_default_to_zero(self):
        result = apply_reward({"user_id": "u1"}, {})
        assert (result["xp"], result["gold"], result["level"], result["skills"]) == (0, 0, 1, {})

    def test_other_fields_untouched(self):
        profile = _profile(display_name="김대수", is_deleted=False)
        result = apply_reward(profile, {"xp": 1})
        assert result["display_name"] == "김대수"
        assert result["role"] == "student"
        assert result["is_deleted"] is False
        assert result["last_update"] is not None

    def test_input_not_mutated(self):
        profile = _profile(skills={"문해력": 1})
        apply_reward(profile, {"xp": 500, "skills": {"문해력": 4}})
        assert profile["xp"] == 0
        assert profile["skills"] == {"문해력": 1}

    @pytest.mark.parametrize("delta", [{"xp": -1}, {"gold": -5}, {"skills": {"문해력": -1}}])
    def test_negative_delta_rejected(self, delta):
        with pytest.raises(ValueError):
            apply_reward(_profile(), delta)

    def test_never_decreases(self):
        for xp, level, gold, dxp, dgold in itertools.product((0, 99, 250), (1, 2, 3), (0, 7), (0, 1, 150), (0, 3)):
            profile = _profile(xp=xp, level=level, gold=gold, skills={"문해력": 4})
            result = apply_reward(profile, {"xp": dxp, "gold": dgold, "skills": {"문해력": 0, "창의력": 2}})
            assert result["level"] >= level
            assert result["xp"] >= xp
            assert result["gold"] >= gold
            assert result["skills"]["문해력"] >= 4
            assert result["xp"] < xp_for_next_level(result["level"])


class TestLevelProgress:
    def test_middle_of_band(self):
        info = level_progress({"xp": 150, "level": 2})
        assert info["xp_next_level"] == 200
        assert info["xp_to_next_level"] == 50
        assert info["xp_progress"] == 50.0

    def test_fresh_profile(self):
        info = level_progress({"xp": 0, "level": 1})
        assert info["xp_progress"] == 0.0
        assert info["xp_to_next_level"] == 100


class TestUpdateStudentProfile:
    def test_owner_update_writes_both_copies(self, db, student):
        result = update_student_profile(db, student, REWARDS["journal_entry"], student)

        assert result["xp"] == 10
        private = get_profile(db, student)
        mirror = get_public_profile(db, student)
        assert (private.xp, private.gold) == (10, 5)
        assert (mirror.xp, mirror.gold) == (10, 5)
        assert private.skills["문해력"] == 5
        assert mirror.skills["창의력"] == 5

    def test_other_actor_only_writes_mirror(self, db, student):
        update_student_profile(db, student, {"xp": 40}, "teacher-1")

        assert get_public_profile(db, student).xp == 40
        assert get_profile(db, student).xp == 0

    def test_other_actor_reads_from_mirror(self, db, student):
        update_student_profile(db, student, {"xp": 40}, "teacher-1")
        update_student_profile(db, student, {"xp": 70}, "teacher-1")

        mirror = get_public_profile(db, student)
        assert mirror.xp == 110
        assert mirror.level == 2

    def test_missing_profile_is_skipped(self, db):
        assert update_student_profile(db, "ghost", {"xp": 10}, "ghost") is None
        assert db.query(PublicStudentProfile).count() == 0

    def test_missing_mirror_for_other_actor_is_skipped(self, db, student):
        db.delete(get_public_profile(db, student))
        db.commit()

        assert update_student_profile(db, student, {"xp": 10}, "teacher-1") is None
        assert get_profile(db, student).xp == 0

    def test_owner_update_recreates_missing_mirror(self, db, student):
        db.delete(get_public_profile(db, student))
        db.commit()

        update_student_profile(db, student, {"gold": 3}, student)
        assert get_public_profile(db, student).gold == 3

    def test_owner_update_keeps_mirror_removal(self, db, student):
        mirror = get_public_profile(db, student)
        mirror.is_deleted = True
        mirror.display_name = "학생1 (졸업)"
        db.commit()

        update_student_profile(db, student, {"xp": 20}, student)

        db.expire_all()
        mirror = get_public_profile(db, student)
        assert mirror.is_deleted is True
        assert mirror.display_name == "학생1 (졸업)"
        assert mirror.xp == 20
        assert get_profile(db, student).is_deleted is False
