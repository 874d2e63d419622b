"""
External refinement merge: optional LLM pass over the deterministic plan.

The outcome is a two-variant result:

  Refined(plan)     response parsed, shallow-overwritten onto the plan, and the
                    merged plan still validates as a BlueprintPlan with every
                    slot inside [depth_floor, depth_ceiling]
  Fallback(reason)  anything else: timeout, network error, empty text, bad
                    or over-nested JSON, non-object JSON, no known fields,
                    invariant failure, slot outside the depth band

refine() never raises past the caller; the deterministic plan is kept on
every Fallback.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Union

from openai import APITimeoutError
from pydantic import ValidationError

from architect.models.blueprint import (
    BlueprintPlan,
    ClassifiedConstraint,
    DerivedStructuralKnobs,
    NormalizedRequest,
    Resolution,
)
from architect.prompts.blueprint_refinement import REFINEMENT_PROMPT, REFINEMENT_SYSTEM_PROMPT

logger = logging.getLogger("architect.refinement")

DEFAULT_MODEL = "gemini-2.5-flash"

_FENCE_OPEN_RE = re.compile(r"^```[a-zA-Z0-9_-]*\s*")
_FENCE_CLOSE_RE = re.compile(r"\s*```$")


@dataclass(frozen=True)
class Refined:
    plan: BlueprintPlan
    fields: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Fallback:
    reason: str


RefinementOutcome = Union[Refined, Fallback]


def _clean_json(content: str) -> str:
    """Strip markdown fences."""
    content = content.strip()
    content = _FENCE_OPEN_RE.sub("", content)
    content = _FENCE_CLOSE_RE.sub("", content)
    return content.strip()


def _describe_constraints(constraints: list[ClassifiedConstraint], state: Resolution) -> str:
    lines = []
    for c in constraints:
        if c.resolved != state:
            continue
        line = f'- [{c.type.value.upper()} p={c.priority}] "{c.source_text}"'
        if c.resolution_note:
            line += f": {c.resolution_note}"
        lines.append(line)
    return "\n".join(lines) or "- none"


def build_refinement_prompt(
    request: NormalizedRequest,
    plan: BlueprintPlan,
    constraints: list[ClassifiedConstraint],
    knobs: DerivedStructuralKnobs,
) -> str:
    return REFINEMENT_PROMPT.format(
        request_json=request.model_dump_json(indent=2),
        plan_json=plan.model_dump_json(indent=2),
        active_constraints=_describe_constraints(constraints, Resolution.ACTIVE),
        softened_constraints=_describe_constraints(constraints, Resolution.SOFTENED),
        dropped_constraints=_describe_constraints(constraints, Resolution.DROPPED),
        knobs_json=knobs.model_dump_json(indent=2, exclude_defaults=True),
    )


def merge_refinement(plan: BlueprintPlan, raw: str) -> RefinementOutcome:
    """Shallow-overwrite ``plan`` with the fields present in ``raw``."""
    content = _clean_json(raw or "")
    if not content:
        return Fallback("empty refinement response")

    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        return Fallback(f"unparseable refinement response: {exc.msg} at char {exc.pos}")
    except RecursionError:
        return Fallback("unparseable refinement response: nested too deeply")

    if not isinstance(data, dict):
        return Fallback(f"refinement response is a JSON {type(data).__name__}, not an object")

    updates = {k: v for k, v in data.items() if k in BlueprintPlan.model_fields}
    if not updates:
        return Fallback("refinement response contains no blueprint fields")

    merged = {**plan.model_dump(mode="json"), **updates}
    try:
        refined = BlueprintPlan.model_validate(merged)
    except ValidationError as exc:
        return Fallback(f"refined plan is not well-formed: {exc.error_count()} error(s)")

    outside = [
        s.id for s in refined.slots
        if not refined.depth_floor.rank <= s.cognitive_demand.rank <= refined.depth_ceiling.rank
    ]
    if outside:
        return Fallback(
            f"refined slot(s) {', '.join(outside)} outside depth band "
            f"{refined.depth_floor.value}..{refined.depth_ceiling.value}"
        )

    return Refined(plan=refined, fields=sorted(updates))


class BlueprintRefiner:
    """
    Sends the deterministic plan to a chat-completions style client.

    The client carries the timeout and retry bound (see core.deps.get_llm_client);
    this class only decides what to do with the answer.
    """

    def __init__(
        self,
        client,
        model: str = DEFAULT_MODEL,
        temperature: float = 0.2,
        max_tokens: int = 4096,
    ):
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def _complete(self, prompt: str) -> str:
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": REFINEMENT_SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        return response.choices[0].message.content or ""

    def refine(
        self,
        request: NormalizedRequest,
        plan: BlueprintPlan,
        constraints: list[ClassifiedConstraint],
        knobs: DerivedStructuralKnobs,
    ) -> RefinementOutcome:
        prompt = build_refinement_prompt(request, plan, constraints, knobs)

        try:
            raw = self._complete(prompt)
        except APITimeoutError:
            outcome: RefinementOutcome = Fallback("refinement call timed out")
        except Exception as exc:
            outcome = Fallback(f"refinement call failed: {exc.__class__.__name__}: {exc}")
        else:
            try:
                outcome = merge_refinement(plan, raw)
            except Exception as exc:
                outcome = Fallback(f"refinement merge failed: {exc.__class__.__name__}: {exc}")

        if isinstance(outcome, Fallback):
            logger.warning("[refinement] keeping deterministic plan: %s", outcome.reason)
        else:
            logger.info("[refinement] merged field(s): %s", ", ".join(outcome.fields))
        return outcome
