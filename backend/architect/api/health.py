from fastapi import APIRouter

from architect.core.config import get_settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
    settings = get_settings()
    return {
        "status": "ok",
        "llm_provider": settings.llm_provider,
        "refinement_enabled": settings.refinement_enabled,
    }
