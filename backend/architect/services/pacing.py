"""Per-slot pacing estimates used by the plan builder and the time budget."""
from __future__ import annotations

from typing import Callable

from architect.models.blueprint import CognitiveLevel, QuestionType

SlotCostFn = Callable[[QuestionType, CognitiveLevel], int]

BASE_SECONDS: dict[QuestionType, int] = {
    QuestionType.MULTIPLE_CHOICE: 60,
    QuestionType.TRUE_FALSE: 30,
    QuestionType.MATCHING: 45,
    QuestionType.ORDERING: 60,
    QuestionType.FILL_BLANK: 90,
    QuestionType.SHORT_ANSWER: 150,
    QuestionType.CONSTRUCTED_RESPONSE: 360,
}

DEMAND_MULTIPLIER: dict[CognitiveLevel, float] = {
    CognitiveLevel.REMEMBER: 0.8,
    CognitiveLevel.UNDERSTAND: 1.0,
    CognitiveLevel.APPLY: 1.2,
    CognitiveLevel.ANALYZE: 1.5,
    CognitiveLevel.EVALUATE: 1.8,
}

# Minutes a student typically spends per type; used to infer a question count.
PACING_MINUTES: dict[QuestionType, float] = {
    QuestionType.MULTIPLE_CHOICE: 1.0,
    QuestionType.TRUE_FALSE: 0.5,
    QuestionType.MATCHING: 0.75,
    QuestionType.ORDERING: 1.0,
    QuestionType.FILL_BLANK: 1.5,
    QuestionType.SHORT_ANSWER: 2.5,
    QuestionType.CONSTRUCTED_RESPONSE: 6.0,
}
DEFAULT_PACING_MINUTES = 2.0


def round_half_up(value: float) -> int:
    return int(value + 0.5) if value >= 0 else -int(-value + 0.5)


def estimate_slot_seconds(question_type: QuestionType, cognitive_demand: CognitiveLevel) -> int:
    return round_half_up(BASE_SECONDS[question_type] * DEMAND_MULTIPLIER[cognitive_demand])


def seconds_to_minutes(seconds: float) -> int:
    """Whole-minute estimate, rounded half-up."""
    return round_half_up(seconds / 60)
