"""
Rigor profile: resolves the cognitive depth band (floor, ceiling) for a plan.

Rules, applied in order:
  1. Student-level base band.
  2. Shallow assessment types (bell ringer, exit ticket) cap the ceiling at
     apply and lower the floor to remember.
  3. Time penalty: < 10 min caps at understand, < 20 min caps at apply.
  4. Constraint-engine knobs: cap_ceiling lowers the ceiling (floor follows);
     raise_ceiling raises it only when no cap is present. Cap always wins over
     raise, and an ignored raise is written to the trace.
  5. floor <= ceiling.
"""
from __future__ import annotations

import logging
from typing import NamedTuple

from architect.models.blueprint import (
    AssessmentType,
    CognitiveLevel,
    DerivedStructuralKnobs,
    StudentLevel,
)

logger = logging.getLogger(__name__)


class RigorProfile(NamedTuple):
    depth_floor: CognitiveLevel
    depth_ceiling: CognitiveLevel
    trace: list[str]


# | level    | floor      | ceiling  |
# |----------|------------|----------|
# | remedial | remember   | apply    |
# | standard | understand | analyze  |
# | honors   | apply      | evaluate |
# | ap       | analyze    | evaluate |
BASE_BAND: dict[StudentLevel, tuple[CognitiveLevel, CognitiveLevel]] = {
    StudentLevel.REMEDIAL: (CognitiveLevel.REMEMBER, CognitiveLevel.APPLY),
    StudentLevel.STANDARD: (CognitiveLevel.UNDERSTAND, CognitiveLevel.ANALYZE),
    StudentLevel.HONORS: (CognitiveLevel.APPLY, CognitiveLevel.EVALUATE),
    StudentLevel.AP: (CognitiveLevel.ANALYZE, CognitiveLevel.EVALUATE),
}

SHALLOW_ASSESSMENT_TYPES = frozenset({AssessmentType.BELL_RINGER, AssessmentType.EXIT_TICKET})

# (minutes strictly below, ceiling cap), checked top to bottom
TIME_CAPS: list[tuple[float, CognitiveLevel]] = [
    (10, CognitiveLevel.UNDERSTAND),
    (20, CognitiveLevel.APPLY),
]


def resolve_rigor_profile(
    student_level: StudentLevel,
    assessment_type: AssessmentType,
    teacher_minutes: float,
    knobs: DerivedStructuralKnobs | None = None,
) -> RigorProfile:
    trace: list[str] = []
    base_floor, base_ceiling = BASE_BAND.get(student_level, BASE_BAND[StudentLevel.STANDARD])
    floor, ceiling = base_floor.rank, base_ceiling.rank
    trace.append(f"Base band for {student_level.value}: {base_floor.value} → {base_ceiling.value}")

    if assessment_type in SHALLOW_ASSESSMENT_TYPES:
        if ceiling > CognitiveLevel.APPLY.rank:
            ceiling = CognitiveLevel.APPLY.rank
            trace.append(f'Assessment type "{assessment_type.value}" caps ceiling at "apply"')
        if floor > CognitiveLevel.REMEMBER.rank:
            floor = CognitiveLevel.REMEMBER.rank
            trace.append(f'Assessment type "{assessment_type.value}" lowers floor to "remember"')

    for limit, cap in TIME_CAPS:
        if teacher_minutes < limit:
            if ceiling > cap.rank:
                ceiling = cap.rank
                trace.append(f'Time < {limit:g} min: ceiling capped at "{cap.value}"')
            break

    if knobs is not None:
        if knobs.cap_ceiling is not None:
            if ceiling > knobs.cap_ceiling.rank:
                ceiling = knobs.cap_ceiling.rank
                trace.append(f'Constraint cap: ceiling → "{knobs.cap_ceiling.value}"')
            if floor > ceiling:
                floor = ceiling
                trace.append(f'Floor forced down to capped ceiling "{CognitiveLevel.from_rank(ceiling).value}"')
            if knobs.raise_ceiling is not None:
                trace.append(
                    f'Constraint raise to "{knobs.raise_ceiling.value}" ignored: '
                    f'cap at "{knobs.cap_ceiling.value}" wins'
                )
        elif knobs.raise_ceiling is not None and knobs.raise_ceiling.rank > ceiling:
            ceiling = knobs.raise_ceiling.rank
            trace.append(f'Constraint raise: ceiling → "{knobs.raise_ceiling.value}"')

    if floor > ceiling:
        floor = ceiling
        trace.append(f'Floor clamped to ceiling "{CognitiveLevel.from_rank(ceiling).value}"')

    profile = RigorProfile(
        depth_floor=CognitiveLevel.from_rank(floor),
        depth_ceiling=CognitiveLevel.from_rank(ceiling),
        trace=trace,
    )
    logger.debug(
        "[rigor_profile] %s → %s (%d rule(s))",
        profile.depth_floor.value, profile.depth_ceiling.value, len(trace),
    )
    return profile
