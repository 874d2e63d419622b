"""Maps a raw teacher request onto the canonical planning input."""
from __future__ import annotations

import logging

from architect.models.blueprint import (
    AssessmentRequest,
    AssessmentType,
    NormalizedRequest,
    QuestionType,
)
from architect.services.pacing import DEFAULT_PACING_MINUTES, PACING_MINUTES, round_half_up

logger = logging.getLogger("architect.request_normalizer")

DEFAULT_QUESTION_TYPES: dict[AssessmentType, tuple[QuestionType, ...]] = {
    AssessmentType.BELL_RINGER: (QuestionType.SHORT_ANSWER,),
    AssessmentType.EXIT_TICKET: (QuestionType.SHORT_ANSWER, QuestionType.MULTIPLE_CHOICE),
    AssessmentType.WORKSHEET: (
        QuestionType.MULTIPLE_CHOICE, QuestionType.SHORT_ANSWER, QuestionType.CONSTRUCTED_RESPONSE,
    ),
    AssessmentType.TEST: (
        QuestionType.MULTIPLE_CHOICE, QuestionType.SHORT_ANSWER, QuestionType.CONSTRUCTED_RESPONSE,
    ),
}
_FALLBACK_QUESTION_TYPES = (QuestionType.MULTIPLE_CHOICE, QuestionType.SHORT_ANSWER)


def default_question_types(assessment_type: AssessmentType) -> tuple[QuestionType, ...]:
    return DEFAULT_QUESTION_TYPES.get(assessment_type, _FALLBACK_QUESTION_TYPES)


def infer_question_count(minutes: float, question_types: tuple[QuestionType, ...]) -> int:
    """Time divided by the mean per-type pacing, rounded half-up, at least 1."""
    types = question_types or _FALLBACK_QUESTION_TYPES
    avg = sum(PACING_MINUTES.get(t, DEFAULT_PACING_MINUTES) for t in types) / len(types)
    return max(1, round_half_up(minutes / avg))


def _dedupe(types: list[QuestionType]) -> tuple[QuestionType, ...]:
    return tuple(dict.fromkeys(types))


def normalize_request(request: AssessmentRequest) -> NormalizedRequest:
    allowed = _dedupe(request.question_types or []) or default_question_types(request.assessment_type)
    question_count = request.question_count or infer_question_count(request.time_minutes, allowed)

    normalized = NormalizedRequest(
        teacher_minutes=request.time_minutes,
        assessment_type=request.assessment_type,
        student_level=request.student_level,
        allowed_question_types=allowed,
        free_text=(request.additional_details or "").strip(),
        question_count=question_count,
        subject=request.subject.strip(),
        topic=request.topic,
        grade_level=request.grade_level,
    )
    logger.debug(
        "[request_normalizer] %s/%s %g min → %d question(s), types=%s",
        normalized.assessment_type.value,
        normalized.student_level.value,
        normalized.teacher_minutes,
        normalized.question_count,
        [t.value for t in normalized.allowed_question_types],
    )
    return normalized
