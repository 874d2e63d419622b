"""
Time Budget Enforcer: makes the teacher's time a hard constraint.

Budget = teacher_minutes + TIME_TOLERANCE_MINUTES. When the estimate is over
budget, three phases run in strict order, each re-estimating the total with
the caller's cost function after every single mutation:

  PHASE 1: Simplify item types (no cognitive loss)
    Walks TYPE_SIMPLIFICATION_LADDER rule by rule, converting matching slots
    left to right and stopping the moment the budget is met. A conversion the
    cost function does not price lower is skipped.

  PHASE 2: Lower the cognitive ceiling (cognitive loss)
    Lowers the ceiling one level at a time, never below the floor. Slots above
    the new ceiling are capped to it and take the difficulty tier of the new
    ceiling. A step the cost function prices higher ends the phase uncommitted.

  PHASE 3: Drop trailing slots (last resort)
    Removes the last slot until the budget fits or one slot remains.

Every phase is a pure function over an immutable _BudgetState; the caller's
slot list is never touched. Every mutation appends one adjustment-log line.
An unresolvable budget is reported with within_budget=False, never raised.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from architect.models.blueprint import (
    CognitiveLevel,
    QuestionType,
    Slot,
    difficulty_for_level,
)
from architect.services.pacing import SlotCostFn, estimate_slot_seconds, seconds_to_minutes

logger = logging.getLogger("architect.time_budget")

TIME_TOLERANCE_MINUTES = 1

# Ordered fastest-saving first.
TYPE_SIMPLIFICATION_LADDER: list[tuple[QuestionType, QuestionType]] = [
    (QuestionType.CONSTRUCTED_RESPONSE, QuestionType.SHORT_ANSWER),
    (QuestionType.SHORT_ANSWER, QuestionType.MULTIPLE_CHOICE),
    (QuestionType.ORDERING, QuestionType.MULTIPLE_CHOICE),
    (QuestionType.MATCHING, QuestionType.MULTIPLE_CHOICE),
    (QuestionType.FILL_BLANK, QuestionType.MULTIPLE_CHOICE),
]


@dataclass(frozen=True)
class TimeBudgetResult:
    slots: list[Slot]
    depth_ceiling: CognitiveLevel
    total_seconds: int
    total_minutes: int
    budget_minutes: float
    adjustment_log: list[str]
    within_budget: bool
    # Running total (seconds) after each mutation, starting with the input total.
    seconds_trace: list[int]


@dataclass(frozen=True)
class _BudgetState:
    slots: tuple[Slot, ...]
    ceiling: CognitiveLevel
    total_seconds: int
    log: tuple[str, ...] = ()
    trace: tuple[int, ...] = ()

    @property
    def minutes(self) -> int:
        return seconds_to_minutes(self.total_seconds)


def _total_seconds(slots: tuple[Slot, ...], cost_fn: SlotCostFn) -> int:
    return sum(cost_fn(s.question_type, s.cognitive_demand) for s in slots)


def _commit(
    state: _BudgetState,
    slots: tuple[Slot, ...],
    total: int,
    message: str,
    ceiling: CognitiveLevel | None = None,
) -> _BudgetState:
    line = f"{message} ({state.minutes}→{seconds_to_minutes(total)} min)"
    logger.debug("[time_budget] %s", line)
    return replace(
        state,
        slots=slots,
        ceiling=ceiling or state.ceiling,
        total_seconds=total,
        log=state.log + (line,),
        trace=state.trace + (total,),
    )


# ---------------------------------------------------------------------------
# Phases
# ---------------------------------------------------------------------------


def simplify_types(state: _BudgetState, budget: float, cost_fn: SlotCostFn) -> _BudgetState:
    """Phase 1: greedy, leftmost-first type downgrades."""
    for from_type, to_type in TYPE_SIMPLIFICATION_LADDER:
        for i in range(len(state.slots)):
            if state.minutes <= budget:
                return state
            slot = state.slots[i]
            if slot.question_type != from_type:
                continue
            pacing = cost_fn(to_type, slot.cognitive_demand)
            converted = slot.model_copy(update={"question_type": to_type, "pacing_seconds": pacing})
            slots = state.slots[:i] + (converted,) + state.slots[i + 1:]
            total = _total_seconds(slots, cost_fn)
            if total >= state.total_seconds:
                continue
            state = _commit(
                state, slots, total,
                f"Phase 1: {slot.id} {from_type.value} → {to_type.value}",
            )
    return state


def lower_ceiling(
    state: _BudgetState,
    budget: float,
    depth_floor: CognitiveLevel,
    cost_fn: SlotCostFn,
) -> _BudgetState:
    """Phase 2: step the ceiling down towards the floor, capping slots above it."""
    while state.minutes > budget and state.ceiling.rank > depth_floor.rank:
        previous = state.ceiling
        ceiling = CognitiveLevel.from_rank(previous.rank - 1)
        tier = difficulty_for_level(ceiling)

        capped = 0
        slots: list[Slot] = []
        for slot in state.slots:
            if slot.cognitive_demand.rank > ceiling.rank:
                slot = slot.model_copy(update={
                    "cognitive_demand": ceiling,
                    "difficulty": tier,
                    "pacing_seconds": cost_fn(slot.question_type, ceiling),
                })
                capped += 1
            slots.append(slot)

        new_slots = tuple(slots)
        total = _total_seconds(new_slots, cost_fn)
        if total > state.total_seconds:
            logger.info(
                "[time_budget] Phase 2 stopped at %s: lowering to %s would raise the estimate %ds → %ds",
                previous.value, ceiling.value, state.total_seconds, total,
            )
            break
        state = _commit(
            state, new_slots, total,
            f"Phase 2: lowered ceiling {previous.value} → {ceiling.value}, capped {capped} slot(s)",
            ceiling=ceiling,
        )
    return state


def drop_trailing_slots(state: _BudgetState, budget: float, cost_fn: SlotCostFn) -> _BudgetState:
    """Phase 3: remove slots from the end, keeping at least one."""
    while state.minutes > budget and len(state.slots) > 1:
        dropped = state.slots[-1]
        slots = state.slots[:-1]
        state = _commit(
            state, slots, _total_seconds(slots, cost_fn),
            f"Phase 3: dropped {dropped.id} ({dropped.question_type.value}/{dropped.cognitive_demand.value}), "
            f"question count {len(state.slots)}→{len(slots)}",
        )
    return state


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def enforce_time_budget(
    slots: list[Slot] | tuple[Slot, ...],
    teacher_minutes: float,
    depth_floor: CognitiveLevel,
    depth_ceiling: CognitiveLevel,
    cost_fn: SlotCostFn = estimate_slot_seconds,
) -> TimeBudgetResult:
    """
    Fit ``slots`` inside ``teacher_minutes`` (+ tolerance).

    Args:
        slots:           Candidate slots from the plan builder (not modified).
        teacher_minutes: The teacher's declared time limit.
        depth_floor:     Phase 2 never lowers the ceiling below this.
        depth_ceiling:   Current ceiling; may come back lower.
        cost_fn:         (question_type, cognitive_demand) → seconds.
    """
    budget = teacher_minutes + TIME_TOLERANCE_MINUTES
    start = tuple(slots)
    initial_total = _total_seconds(start, cost_fn)
    state = _BudgetState(slots=start, ceiling=depth_ceiling, total_seconds=initial_total, trace=(initial_total,))

    if state.minutes > budget:
        logger.info(
            "[time_budget] estimate %d min over budget %g min: degrading %d slot(s)",
            state.minutes, budget, len(start),
        )
        state = simplify_types(state, budget, cost_fn)
        state = lower_ceiling(state, budget, depth_floor, cost_fn)
        state = drop_trailing_slots(state, budget, cost_fn)

        if state.minutes > budget:
            line = (
                f"Budget unresolved: ~{state.minutes} min still exceeds the {budget:g} min budget "
                f"with {len(state.slots)} slot(s) at ceiling {state.ceiling.value}"
            )
            state = replace(state, log=state.log + (line,))
            logger.warning("[time_budget] %s", line)

    return TimeBudgetResult(
        slots=list(state.slots),
        depth_ceiling=state.ceiling,
        total_seconds=state.total_seconds,
        total_minutes=state.minutes,
        budget_minutes=budget,
        adjustment_log=list(state.log),
        within_budget=state.minutes <= budget,
        seconds_trace=list(state.trace),
    )
