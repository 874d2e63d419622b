"""
Blueprint contracts shared by every planner stage.

Ordering of CognitiveLevel is load-bearing: ceiling/floor comparisons and the
time-budget degradation all go through ``rank`` / ``from_rank``.
"""
from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


class CognitiveLevel(str, Enum):
    REMEMBER = "remember"
    UNDERSTAND = "understand"
    APPLY = "apply"
    ANALYZE = "analyze"
    EVALUATE = "evaluate"

    @property
    def rank(self) -> int:
        return BLOOM_ORDER.index(self)

    @classmethod
    def from_rank(cls, rank: int) -> "CognitiveLevel":
        """Level at ``rank``, clamped into the scale."""
        return BLOOM_ORDER[min(max(rank, 0), len(BLOOM_ORDER) - 1)]


BLOOM_ORDER: tuple[CognitiveLevel, ...] = (
    CognitiveLevel.REMEMBER,
    CognitiveLevel.UNDERSTAND,
    CognitiveLevel.APPLY,
    CognitiveLevel.ANALYZE,
    CognitiveLevel.EVALUATE,
)


class QuestionType(str, Enum):
    MULTIPLE_CHOICE = "multiple_choice"
    TRUE_FALSE = "true_false"
    MATCHING = "matching"
    ORDERING = "ordering"
    FILL_BLANK = "fill_blank"
    SHORT_ANSWER = "short_answer"
    CONSTRUCTED_RESPONSE = "constructed_response"


class AssessmentType(str, Enum):
    BELL_RINGER = "bell_ringer"
    EXIT_TICKET = "exit_ticket"
    QUIZ = "quiz"
    TEST = "test"
    WORKSHEET = "worksheet"
    TEST_REVIEW = "test_review"


class StudentLevel(str, Enum):
    REMEDIAL = "remedial"
    STANDARD = "standard"
    HONORS = "honors"
    AP = "ap"


Difficulty = Literal["easy", "medium", "hard"]


def difficulty_for_level(level: CognitiveLevel) -> Difficulty:
    """remember → easy, understand/apply → medium, analyze/evaluate → hard."""
    if level.rank <= 0:
        return "easy"
    if level.rank <= 2:
        return "medium"
    return "hard"


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------


class AssessmentRequest(BaseModel):
    """Raw teacher request as it arrives from the UI."""

    subject: str
    topic: str | None = None
    grade_level: str | None = None
    assessment_type: AssessmentType
    student_level: StudentLevel = StudentLevel.STANDARD
    time_minutes: float = Field(gt=0)
    question_types: list[QuestionType] | None = None
    question_count: int | None = Field(default=None, ge=1)
    additional_details: str | None = None


class NormalizedRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    teacher_minutes: float = Field(gt=0)
    assessment_type: AssessmentType
    student_level: StudentLevel
    # Ordered set: teacher order, no duplicates.
    allowed_question_types: tuple[QuestionType, ...] = Field(min_length=1)
    free_text: str = ""
    question_count: int = Field(ge=1)
    subject: str = ""
    topic: str | None = None
    grade_level: str | None = None


# ---------------------------------------------------------------------------
# Constraints
# ---------------------------------------------------------------------------


class ConstraintType(str, Enum):
    TIME = "time"
    SAFETY = "safety"
    STRUCTURAL = "structural"
    CONTENT = "content"
    GRADING = "grading"
    META = "meta"
    STYLE = "style"


class Resolution(str, Enum):
    ACTIVE = "active"
    DROPPED = "dropped"
    SOFTENED = "softened"


class ClassifiedConstraint(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_text: str
    type: ConstraintType
    priority: int
    resolved: Resolution = Resolution.ACTIVE
    resolution_note: str | None = None


class DerivedStructuralKnobs(BaseModel):
    raise_ceiling: CognitiveLevel | None = None
    cap_ceiling: CognitiveLevel | None = None
    distribution_boost: dict[CognitiveLevel, float] = Field(default_factory=dict)
    prefer_multiple_choice: bool = False
    reduce_constructed_response: bool = False
    reduce_short_answer: bool = False
    clamp_answer_length: bool = False
    add_slots: dict[CognitiveLevel, int] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Plan
# ---------------------------------------------------------------------------


class Slot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    question_type: QuestionType
    cognitive_demand: CognitiveLevel
    difficulty: Difficulty
    pacing_seconds: int = Field(ge=0)


class BlueprintPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    assessment_type: AssessmentType
    question_count: int = Field(ge=1)
    depth_floor: CognitiveLevel
    depth_ceiling: CognitiveLevel
    slots: list[Slot]
    realized_distribution: dict[CognitiveLevel, int]
    total_estimated_seconds: int = Field(ge=0)
    adjustment_log: list[str] = Field(default_factory=list)
    within_budget: bool = True
    clamp_answer_length: bool = False

    @model_validator(mode="after")
    def _check_invariants(self) -> "BlueprintPlan":
        if self.depth_floor.rank > self.depth_ceiling.rank:
            raise ValueError(
                f"depth_floor {self.depth_floor.value} above depth_ceiling {self.depth_ceiling.value}"
            )
        realized = sum(self.realized_distribution.values())
        if not (realized == len(self.slots) == self.question_count):
            raise ValueError(
                f"distribution sum {realized}, slot count {len(self.slots)} and "
                f"question_count {self.question_count} disagree"
            )
        return self


def realized_distribution(slots: list[Slot] | tuple[Slot, ...]) -> dict[CognitiveLevel, int]:
    """Count slots per level, in canonical level order."""
    counts = {level: 0 for level in BLOOM_ORDER}
    for slot in slots:
        counts[slot.cognitive_demand] += 1
    return counts
