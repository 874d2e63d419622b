"""Tests for rigor_profile.resolve_rigor_profile(): depth band resolution."""
import pytest

from architect.models.blueprint import (
    AssessmentType,
    CognitiveLevel,
    DerivedStructuralKnobs,
    StudentLevel,
)
from architect.services.rigor_profile import resolve_rigor_profile

R = CognitiveLevel.REMEMBER
U = CognitiveLevel.UNDERSTAND
AP = CognitiveLevel.APPLY
AN = CognitiveLevel.ANALYZE
EV = CognitiveLevel.EVALUATE


class TestBaseBands:
    @pytest.mark.parametrize("level,floor,ceiling", [
        (StudentLevel.REMEDIAL, R, AP),
        (StudentLevel.STANDARD, U, AN),
        (StudentLevel.HONORS, AP, EV),
        (StudentLevel.AP, AN, EV),
    ])
    def test_band_per_student_level(self, level, floor, ceiling):
        profile = resolve_rigor_profile(level, AssessmentType.QUIZ, 45)
        assert (profile.depth_floor, profile.depth_ceiling) == (floor, ceiling)
        assert len(profile.trace) == 1


class TestAssessmentTypeAndTime:
    @pytest.mark.parametrize("atype", [AssessmentType.BELL_RINGER, AssessmentType.EXIT_TICKET])
    def test_shallow_types_cap_and_lower_floor(self, atype):
        profile = resolve_rigor_profile(StudentLevel.HONORS, atype, 45)
        assert profile.depth_ceiling == AP
        assert profile.depth_floor == R
        assert any(atype.value in line for line in profile.trace)

    def test_under_ten_minutes_caps_at_understand(self):
        profile = resolve_rigor_profile(StudentLevel.STANDARD, AssessmentType.QUIZ, 8)
        assert profile.depth_ceiling == U
        assert profile.depth_floor == U

    def test_under_twenty_minutes_caps_at_apply(self):
        profile = resolve_rigor_profile(StudentLevel.STANDARD, AssessmentType.QUIZ, 15)
        assert profile.depth_ceiling == AP

    def test_twenty_minutes_is_not_penalised(self):
        profile = resolve_rigor_profile(StudentLevel.STANDARD, AssessmentType.QUIZ, 20)
        assert profile.depth_ceiling == AN

    def test_floor_clamped_to_ceiling(self):
        profile = resolve_rigor_profile(StudentLevel.AP, AssessmentType.TEST, 5)
        assert profile.depth_ceiling == U
        assert profile.depth_floor == U
        assert any("Floor clamped" in line for line in profile.trace)


class TestKnobOverrides:
    def test_cap_lowers_ceiling_and_floor_follows(self):
        knobs = DerivedStructuralKnobs(cap_ceiling=AP)
        profile = resolve_rigor_profile(StudentLevel.AP, AssessmentType.TEST, 60, knobs)
        assert profile.depth_ceiling == AP
        assert profile.depth_floor == AP

    def test_raise_without_cap(self):
        knobs = DerivedStructuralKnobs(raise_ceiling=EV)
        profile = resolve_rigor_profile(StudentLevel.STANDARD, AssessmentType.QUIZ, 60, knobs)
        assert profile.depth_ceiling == EV
        assert profile.depth_floor == U

    def test_raise_never_lowers_ceiling(self):
        knobs = DerivedStructuralKnobs(raise_ceiling=U)
        profile = resolve_rigor_profile(StudentLevel.HONORS, AssessmentType.QUIZ, 60, knobs)
        assert profile.depth_ceiling == EV

    def test_cap_wins_over_raise_and_is_traced(self):
        knobs = DerivedStructuralKnobs(raise_ceiling=EV, cap_ceiling=AP)
        profile = resolve_rigor_profile(StudentLevel.STANDARD, AssessmentType.QUIZ, 60, knobs)
        assert profile.depth_ceiling == AP
        assert any("ignored" in line and "wins" in line for line in profile.trace)

    def test_floor_never_above_ceiling(self):
        for level in StudentLevel:
            for atype in AssessmentType:
                for minutes in (3, 12, 40):
                    for knobs in (None, DerivedStructuralKnobs(cap_ceiling=R), DerivedStructuralKnobs(raise_ceiling=EV)):
                        profile = resolve_rigor_profile(level, atype, minutes, knobs)
                        assert profile.depth_floor.rank <= profile.depth_ceiling.rank
