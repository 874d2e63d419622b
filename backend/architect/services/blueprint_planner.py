"""
Deterministic blueprint planner: Architect stage of the assessment pipeline.

Backend controls structure; the Writer fills content later.

Pipeline:
  1. resolve_rigor_profile()   -> base depth band (student level, type, time)
  2. run_constraint_engine()   -> arbitrated constraints + structural knobs
  3. resolve_rigor_profile()   -> final depth band with knob overrides
  4. boosted distribution      -> BASE_DISTRIBUTIONS[type] + distribution_boost
  5. allocate_bloom_counts()   -> exact integer count per level
  6. expand_slots()            -> ordered slots, types cycled, demand clamped to band
  7. enforce_time_budget()     -> fit the teacher's minutes
  8. optional refinement       -> Refined(plan) | Fallback(reason)

realized_distribution is always recounted from the final slots.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel

from architect.models.blueprint import (
    BLOOM_ORDER,
    AssessmentType,
    BlueprintPlan,
    ClassifiedConstraint,
    CognitiveLevel,
    DerivedStructuralKnobs,
    NormalizedRequest,
    QuestionType,
    Slot,
    difficulty_for_level,
    realized_distribution,
)
from architect.services.bloom_allocator import allocate_bloom_counts
from architect.services.constraint_engine import run_constraint_engine
from architect.services.pacing import SlotCostFn, estimate_slot_seconds
from architect.services.refinement import BlueprintRefiner, Refined
from architect.services.rigor_profile import RigorProfile, resolve_rigor_profile
from architect.services.time_budget import enforce_time_budget

logger = logging.getLogger("architect.blueprint_planner")


# ════════════════════════════════════════════════════════════
# A) Base cognitive distributions
# ════════════════════════════════════════════════════════════

_R, _U, _AP, _AN, _EV = BLOOM_ORDER

BASE_DISTRIBUTIONS: dict[AssessmentType, dict[CognitiveLevel, float]] = {
    # quick checks stay near recall
    AssessmentType.BELL_RINGER: {_R: 0.45, _U: 0.35, _AP: 0.20, _AN: 0.00, _EV: 0.00},
    AssessmentType.EXIT_TICKET: {_R: 0.30, _U: 0.40, _AP: 0.25, _AN: 0.05, _EV: 0.00},
    # practice leans on application
    AssessmentType.WORKSHEET:   {_R: 0.15, _U: 0.25, _AP: 0.40, _AN: 0.15, _EV: 0.05},
    AssessmentType.QUIZ:        {_R: 0.20, _U: 0.30, _AP: 0.25, _AN: 0.15, _EV: 0.10},
    # cumulative / summative formats spread upward
    AssessmentType.TEST_REVIEW: {_R: 0.15, _U: 0.25, _AP: 0.30, _AN: 0.20, _EV: 0.10},
    AssessmentType.TEST:        {_R: 0.10, _U: 0.20, _AP: 0.30, _AN: 0.25, _EV: 0.15},
}


def boosted_distribution(
    assessment_type: AssessmentType,
    boost: Mapping[CognitiveLevel, float] | None = None,
) -> dict[CognitiveLevel, float]:
    """Base distribution plus additive deltas, floored at zero."""
    base = BASE_DISTRIBUTIONS[assessment_type]
    boost = boost or {}
    return {level: max(0.0, base[level] + boost.get(level, 0.0)) for level in BLOOM_ORDER}


# ════════════════════════════════════════════════════════════
# B) Slot expansion
# ════════════════════════════════════════════════════════════


def type_cycle(
    allowed: tuple[QuestionType, ...] | list[QuestionType],
    knobs: DerivedStructuralKnobs,
) -> list[QuestionType]:
    """Order in which question types are dealt to slots."""
    cycle = list(allowed)

    for flag, qtype in (
        (knobs.reduce_constructed_response, QuestionType.CONSTRUCTED_RESPONSE),
        (knobs.reduce_short_answer, QuestionType.SHORT_ANSWER),
    ):
        if flag and qtype in cycle and len(cycle) > 1:
            cycle.remove(qtype)

    if knobs.prefer_multiple_choice and QuestionType.MULTIPLE_CHOICE in cycle:
        others = [t for t in cycle if t != QuestionType.MULTIPLE_CHOICE]
        cycle = [QuestionType.MULTIPLE_CHOICE]
        for t in others:
            cycle.append(t)
            cycle.append(QuestionType.MULTIPLE_CHOICE)
        if others:
            cycle.pop()  # MC, t1, MC, t2, ... with no MC pair at the seam

    return cycle


def _clamp(level: CognitiveLevel, floor: CognitiveLevel, ceiling: CognitiveLevel) -> CognitiveLevel:
    return CognitiveLevel.from_rank(min(max(level.rank, floor.rank), ceiling.rank))


def expand_slots(
    counts: Mapping[CognitiveLevel, int],
    allowed_types: tuple[QuestionType, ...],
    knobs: DerivedStructuralKnobs,
    depth_floor: CognitiveLevel,
    depth_ceiling: CognitiveLevel,
    cost_fn: SlotCostFn = estimate_slot_seconds,
) -> list[Slot]:
    """Expand per-level counts (plus requested extras) into ordered slots."""
    demands: list[CognitiveLevel] = []
    for level in BLOOM_ORDER:
        demands.extend([level] * (counts.get(level, 0) + knobs.add_slots.get(level, 0)))

    demands = sorted((_clamp(d, depth_floor, depth_ceiling) for d in demands), key=lambda d: d.rank)
    cycle = type_cycle(allowed_types, knobs)

    slots: list[Slot] = []
    for i, demand in enumerate(demands):
        qtype = cycle[i % len(cycle)]
        slots.append(Slot(
            id=f"q{i + 1}",
            question_type=qtype,
            cognitive_demand=demand,
            difficulty=difficulty_for_level(demand),
            pacing_seconds=cost_fn(qtype, demand),
        ))
    return slots


# ════════════════════════════════════════════════════════════
# C) Orchestration
# ════════════════════════════════════════════════════════════


class PlanningOutcome(BaseModel):
    plan: BlueprintPlan
    constraints: list[ClassifiedConstraint]
    knobs: DerivedStructuralKnobs
    rigor_trace: list[str]
    refinement_status: Literal["deterministic", "refined", "fallback"] = "deterministic"
    refinement_note: str | None = None


def build_deterministic_plan(
    request: NormalizedRequest,
    knobs: DerivedStructuralKnobs,
    profile: RigorProfile,
    cost_fn: SlotCostFn = estimate_slot_seconds,
) -> BlueprintPlan:
    distribution = boosted_distribution(request.assessment_type, knobs.distribution_boost)
    counts = allocate_bloom_counts(distribution, request.question_count)
    slots = expand_slots(
        counts,
        request.allowed_question_types,
        knobs,
        profile.depth_floor,
        profile.depth_ceiling,
        cost_fn,
    )
    logger.info(
        "[blueprint_planner] %d slot(s) planned, band %s → %s",
        len(slots), profile.depth_floor.value, profile.depth_ceiling.value,
    )

    budget = enforce_time_budget(
        slots,
        request.teacher_minutes,
        profile.depth_floor,
        profile.depth_ceiling,
        cost_fn,
    )
    if not budget.within_budget:
        logger.warning(
            "[blueprint_planner] plan still over budget: ~%d min vs %g min",
            budget.total_minutes, budget.budget_minutes,
        )

    return BlueprintPlan(
        assessment_type=request.assessment_type,
        question_count=len(budget.slots),
        depth_floor=profile.depth_floor,
        depth_ceiling=budget.depth_ceiling,
        slots=budget.slots,
        realized_distribution=realized_distribution(budget.slots),
        total_estimated_seconds=budget.total_seconds,
        adjustment_log=budget.adjustment_log,
        within_budget=budget.within_budget,
        clamp_answer_length=knobs.clamp_answer_length,
    )


def plan_blueprint(
    request: NormalizedRequest,
    *,
    cost_fn: SlotCostFn = estimate_slot_seconds,
    refiner: BlueprintRefiner | None = None,
) -> PlanningOutcome:
    """
    Plan a budget-fitted blueprint for one request.

    Args:
        request:  Normalized teacher request.
        cost_fn:  Per-slot pacing estimate, (question_type, demand) → seconds.
        refiner:  Optional external refinement step. Any failure there falls
                  back to the deterministic plan.

    Raises:
        FatalDistributionError: allocation invariant violated (logic defect).
    """
    base = resolve_rigor_profile(request.student_level, request.assessment_type, request.teacher_minutes)
    engine = run_constraint_engine(request.free_text, base.depth_ceiling)
    profile = resolve_rigor_profile(
        request.student_level,
        request.assessment_type,
        request.teacher_minutes,
        engine.knobs,
    )

    plan = build_deterministic_plan(request, engine.knobs, profile, cost_fn)
    outcome = PlanningOutcome(
        plan=plan,
        constraints=engine.resolved,
        knobs=engine.knobs,
        rigor_trace=profile.trace,
    )

    if refiner is None:
        return outcome

    result = refiner.refine(request, plan, engine.resolved, engine.knobs)
    if isinstance(result, Refined):
        return outcome.model_copy(update={"plan": result.plan, "refinement_status": "refined"})
    return outcome.model_copy(update={"refinement_status": "fallback", "refinement_note": result.reason})
