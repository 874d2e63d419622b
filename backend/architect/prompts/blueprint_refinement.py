"""Prompt templates for external blueprint refinement."""

REFINEMENT_SYSTEM_PROMPT = """You are ARCHITECT: a deterministic assessment planner.
You NEVER write questions. You ONLY adjust the shape of an existing blueprint plan.
Writer and Gatekeeper depend on the exact structure you return."""

REFINEMENT_PROMPT = """Refine the deterministic blueprint below for style and balance.

NORMALIZED REQUEST
{request_json}

DETERMINISTIC PLAN
{plan_json}

ACTIVE CONSTRAINTS (already arbitrated by priority)
{active_constraints}

SOFTENED CONSTRAINTS (honour in weakened form)
{softened_constraints}

DROPPED CONSTRAINTS (overridden; do not apply)
{dropped_constraints}

DERIVED STRUCTURAL KNOBS
{knobs_json}

RULES
- Return a single JSON object with any subset of these fields:
  "depth_floor", "depth_ceiling", "slots", "realized_distribution",
  "question_count", "total_estimated_seconds", "adjustment_log", "within_budget".
- Fields you omit keep their deterministic values.
- If you return "slots", also return "realized_distribution" and "question_count"
  that agree with them exactly.
- Every slot: {{"id": "q1", "question_type": string, "cognitive_demand": string,
  "difficulty": "easy|medium|hard", "pacing_seconds": integer}}.
- cognitive_demand must lie between depth_floor and depth_ceiling.
- Do NOT exceed the teacher's time budget.
- Do NOT wrap the JSON in code fences. No commentary before or after the JSON."""
