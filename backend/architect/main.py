from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from architect.api import blueprints, health
from architect.core.config import get_settings

API_VERSION = "0.1.0"
DEV_ORIGINS = ["http://localhost:5173"]

settings = get_settings()

app = FastAPI(
    title=settings.app_name,
    description="Turns a teacher's assessment request into a time-budgeted question blueprint",
    version=API_VERSION,
)

# Planner endpoints are stateless POSTs; the frontend origin is the only caller.
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, *DEV_ORIGINS],
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(blueprints.router)


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "plan": f"{blueprints.router.prefix}/plan",
    }
