"""
Tests for refinement: prompt building, merge validation and the fallback
paths of BlueprintRefiner.

All tests run fully offline: LLM clients are MagicMocks.
"""
import json
from unittest.mock import MagicMock

import httpx
import pytest
from openai import APITimeoutError

from architect.models.blueprint import (
    AssessmentType,
    BlueprintPlan,
    ClassifiedConstraint,
    CognitiveLevel,
    ConstraintType,
    DerivedStructuralKnobs,
    NormalizedRequest,
    QuestionType,
    Resolution,
    Slot,
    StudentLevel,
    realized_distribution,
)
from architect.services.refinement import (
    BlueprintRefiner,
    Fallback,
    Refined,
    _clean_json,
    build_refinement_prompt,
    merge_refinement,
)


# ── Helper builders ───────────────────────────────────────────────────────────

def _plan() -> BlueprintPlan:
    slots = [
        Slot(id="q1", question_type=QuestionType.MULTIPLE_CHOICE, cognitive_demand=CognitiveLevel.UNDERSTAND,
             difficulty="medium", pacing_seconds=60),
        Slot(id="q2", question_type=QuestionType.SHORT_ANSWER, cognitive_demand=CognitiveLevel.APPLY,
             difficulty="medium", pacing_seconds=180),
    ]
    return BlueprintPlan(
        assessment_type=AssessmentType.QUIZ,
        question_count=2,
        depth_floor=CognitiveLevel.UNDERSTAND,
        depth_ceiling=CognitiveLevel.ANALYZE,
        slots=slots,
        realized_distribution=realized_distribution(slots),
        total_estimated_seconds=240,
    )


def _request() -> NormalizedRequest:
    return NormalizedRequest(
        teacher_minutes=10,
        assessment_type=AssessmentType.QUIZ,
        student_level=StudentLevel.STANDARD,
        allowed_question_types=(QuestionType.MULTIPLE_CHOICE, QuestionType.SHORT_ANSWER),
        free_text="make grading quick but also more rigorous",
        question_count=2,
        subject="Chemistry",
    )


def _constraints() -> list[ClassifiedConstraint]:
    return [
        ClassifiedConstraint(source_text="make grading quick but also more rigorous",
                             type=ConstraintType.GRADING, priority=30),
        ClassifiedConstraint(source_text="make grading quick but also more rigorous",
                             type=ConstraintType.META, priority=20, resolved=Resolution.SOFTENED,
                             resolution_note="Softened (priority 20)"),
    ]


def _mock_client(content=None, side_effect=None) -> MagicMock:
    client = MagicMock()
    if side_effect is not None:
        client.chat.completions.create.side_effect = side_effect
    else:
        client.chat.completions.create.return_value = MagicMock(
            choices=[MagicMock(message=MagicMock(content=content))]
        )
    return client


def _refine(client) -> object:
    refiner = BlueprintRefiner(client, model="test-model")
    return refiner.refine(_request(), _plan(), _constraints(), DerivedStructuralKnobs(prefer_multiple_choice=True))


# ── JSON cleaning ─────────────────────────────────────────────────────────────

class TestCleanJson:
    def test_strips_json_fence(self):
        assert _clean_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strips_bare_fence(self):
        assert _clean_json('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_json_untouched(self):
        assert _clean_json('  {"a": 1}  ') == '{"a": 1}'


# ── Prompt ───────────────────────────────────────────────────────────────────

class TestPrompt:
    def test_prompt_embeds_request_plan_constraints_and_knobs(self):
        prompt = build_refinement_prompt(
            _request(), _plan(), _constraints(), DerivedStructuralKnobs(prefer_multiple_choice=True),
        )
        assert "Chemistry" in prompt
        assert '"q2"' in prompt
        assert "[GRADING p=30]" in prompt
        assert "[META p=20]" in prompt
        assert "Softened (priority 20)" in prompt
        assert "prefer_multiple_choice" in prompt
        assert "DROPPED CONSTRAINTS" in prompt

    def test_empty_sections_say_none(self):
        prompt = build_refinement_prompt(_request(), _plan(), [], DerivedStructuralKnobs())
        assert prompt.count("- none") == 3


# ── Merge ────────────────────────────────────────────────────────────────────

class TestMerge:
    def test_partial_response_overwrites_only_present_fields(self):
        plan = _plan()
        outcome = merge_refinement(plan, '{"adjustment_log": ["balanced item order"]}')
        assert isinstance(outcome, Refined)
        assert outcome.fields == ["adjustment_log"]
        assert outcome.plan.adjustment_log == ["balanced item order"]
        assert outcome.plan.slots == plan.slots
        assert outcome.plan.depth_ceiling == plan.depth_ceiling

    def test_fenced_response_accepted(self):
        outcome = merge_refinement(_plan(), '```json\n{"depth_ceiling": "apply"}\n```')
        assert isinstance(outcome, Refined)
        assert outcome.plan.depth_ceiling == CognitiveLevel.APPLY

    def test_unknown_fields_ignored(self):
        outcome = merge_refinement(_plan(), '{"depth_ceiling": "evaluate", "commentary": "nice"}')
        assert isinstance(outcome, Refined)
        assert outcome.fields == ["depth_ceiling"]

    def test_full_slot_replacement(self):
        plan = _plan()
        slots = [s.model_dump(mode="json") for s in reversed(plan.slots)]
        raw = json.dumps({"slots": slots})
        outcome = merge_refinement(plan, raw)
        assert isinstance(outcome, Refined)
        assert [s.id for s in outcome.plan.slots] == ["q2", "q1"]

    @pytest.mark.parametrize("raw", ["", "   ", "```json\n```"])
    def test_empty_response_falls_back(self, raw):
        assert isinstance(merge_refinement(_plan(), raw), Fallback)

    def test_unparseable_response_falls_back(self):
        outcome = merge_refinement(_plan(), "Sure! Here is your plan: {depth_ceiling: apply")
        assert isinstance(outcome, Fallback)
        assert "unparseable" in outcome.reason

    def test_non_object_falls_back(self):
        outcome = merge_refinement(_plan(), "[1, 2, 3]")
        assert isinstance(outcome, Fallback)
        assert "list" in outcome.reason

    def test_no_known_fields_falls_back(self):
        assert isinstance(merge_refinement(_plan(), '{"notes": "looks fine"}'), Fallback)

    def test_count_mismatch_falls_back(self):
        outcome = merge_refinement(_plan(), '{"question_count": 5}')
        assert isinstance(outcome, Fallback)
        assert "not well-formed" in outcome.reason

    def test_floor_above_ceiling_falls_back(self):
        assert isinstance(merge_refinement(_plan(), '{"depth_floor": "evaluate"}'), Fallback)

    def test_unknown_enum_value_falls_back(self):
        assert isinstance(merge_refinement(_plan(), '{"depth_ceiling": "create"}'), Fallback)

    def test_deeply_nested_response_falls_back(self):
        outcome = merge_refinement(_plan(), "[" * 200000 + "]" * 200000)
        assert isinstance(outcome, Fallback)
        assert "unparseable" in outcome.reason

    def test_ceiling_below_existing_slot_falls_back(self):
        outcome = merge_refinement(_plan(), '{"depth_ceiling": "understand"}')
        assert isinstance(outcome, Fallback)
        assert "q2" in outcome.reason

    def test_slot_below_floor_falls_back(self):
        slots = [s.model_dump(mode="json") for s in _plan().slots]
        slots[0]["cognitive_demand"] = "remember"
        outcome = merge_refinement(_plan(), json.dumps({"slots": slots}))
        assert isinstance(outcome, Fallback)
        assert "outside depth band" in outcome.reason

    def test_deterministic_plan_untouched(self):
        plan = _plan()
        before = plan.model_dump()
        merge_refinement(plan, '{"adjustment_log": ["x"], "within_budget": false}')
        assert plan.model_dump() == before


# ── Refiner ──────────────────────────────────────────────────────────────────

class TestBlueprintRefiner:
    def test_successful_refinement(self):
        client = _mock_client('{"within_budget": true, "adjustment_log": ["merged"]}')
        outcome = _refine(client)
        assert isinstance(outcome, Refined)
        assert outcome.plan.adjustment_log == ["merged"]

    def test_request_shape(self):
        client = _mock_client('{"adjustment_log": []}')
        _refine(client)
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "test-model"
        assert [m["role"] for m in kwargs["messages"]] == ["system", "user"]
        assert "DETERMINISTIC PLAN" in kwargs["messages"][1]["content"]

    def test_timeout_falls_back(self):
        timeout = APITimeoutError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))
        outcome = _refine(_mock_client(side_effect=timeout))
        assert isinstance(outcome, Fallback)
        assert outcome.reason == "refinement call timed out"

    def test_network_error_falls_back(self):
        outcome = _refine(_mock_client(side_effect=ConnectionError("connection reset")))
        assert isinstance(outcome, Fallback)
        assert "connection reset" in outcome.reason

    def test_none_content_falls_back(self):
        outcome = _refine(_mock_client(content=None))
        assert isinstance(outcome, Fallback)

    def test_bad_json_falls_back(self):
        outcome = _refine(_mock_client("```json\n{not json}\n```"))
        assert isinstance(outcome, Fallback)

    def test_deeply_nested_response_never_raises(self):
        outcome = _refine(_mock_client("[" * 200000 + "]" * 200000))
        assert isinstance(outcome, Fallback)

    def test_fallback_is_logged(self, caplog):
        with caplog.at_level("WARNING", logger="architect.refinement"):
            _refine(_mock_client("garbage"))
        assert any("keeping deterministic plan" in r.getMessage() for r in caplog.records)
