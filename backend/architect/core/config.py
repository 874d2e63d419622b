from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # Application
    app_name: str = "Assessment Architect"
    debug: bool = False

    # LLM provider for optional blueprint refinement
    llm_provider: str = "gemini"
    openai_api_key: str = ""
    gemini_api_key: str = ""

    # Refinement: off unless explicitly enabled; always bounded
    refinement_enabled: bool = False
    refinement_model: str = ""
    refinement_timeout_seconds: float = 20.0
    refinement_max_retries: int = 1

    # CORS
    frontend_url: str = "http://localhost:5173"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    return Settings()
