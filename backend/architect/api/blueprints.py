import logging

from fastapi import APIRouter, HTTPException
from pydantic import ValidationError

from architect.core.config import get_settings
from architect.core.deps import get_llm_client, get_refinement_model
from architect.models.blueprint import AssessmentRequest
from architect.services.bloom_allocator import FatalDistributionError
from architect.services.blueprint_planner import PlanningOutcome, plan_blueprint
from architect.services.refinement import BlueprintRefiner
from architect.services.request_normalizer import normalize_request
from architect.services.telemetry import emit_event, instrument

logger = logging.getLogger("architect.api.blueprints")
router = APIRouter(prefix="/api/v1/blueprints", tags=["blueprints"])


def _build_refiner() -> BlueprintRefiner | None:
    settings = get_settings()
    if not settings.refinement_enabled:
        return None
    return BlueprintRefiner(get_llm_client(settings), model=get_refinement_model(settings))


@router.post("/plan", response_model=PlanningOutcome)
@instrument(route="/api/v1/blueprints/plan", version="v1")
def plan_v1(request: AssessmentRequest):
    try:
        normalized = normalize_request(request)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))

    try:
        outcome = plan_blueprint(normalized, refiner=_build_refiner())
    except FatalDistributionError as e:
        logger.exception("blueprint planning failed for type=%s", normalized.assessment_type.value)
        raise HTTPException(status_code=500, detail=str(e))

    emit_event(
        "blueprint_planned",
        route="/api/v1/blueprints/plan",
        version="v1",
        assessment_type=normalized.assessment_type.value,
        question_count=outcome.plan.question_count,
        within_budget=outcome.plan.within_budget,
        refinement_status=outcome.refinement_status,
    )
    return outcome
