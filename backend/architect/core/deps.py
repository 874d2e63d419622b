import logging
import os

from openai import OpenAI

from architect.core.config import Settings, get_settings

_prompt_logger = logging.getLogger("architect.llm_prompts")

DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "gemini": "gemini-2.5-flash",
}


# ── Gemini adapter ───────────────────────────────────────────────────────────
# BlueprintRefiner only knows chat.completions.create(...). These shims give a
# Gemini call the same shape. System messages map to the system instruction
# and the JSON reply is returned as choices[0].message.content.

class _GeminiMessage:
    def __init__(self, content: str):
        self.content = content


class _GeminiChoice:
    def __init__(self, content: str):
        self.message = _GeminiMessage(content)


class _GeminiResponse:
    def __init__(self, text: str):
        self.choices = [_GeminiChoice(text)]


class _GeminiCompletions:
    def __init__(self, api_key: str, timeout_seconds: float):
        self._api_key = api_key
        self._timeout_ms = int(timeout_seconds * 1000)

    def create(
        self,
        model=None,
        messages=None,
        temperature=0.7,
        max_tokens=None,
        **kwargs,
    ):
        from google import genai
        from google.genai import types

        system_parts = [
            m["content"] for m in (messages or []) if m.get("role") == "system"
        ]
        user_parts = [
            m["content"] for m in (messages or []) if m.get("role") != "system"
        ]

        system_instruction = "\n\n".join(system_parts) or None
        user_prompt = "\n\n".join(user_parts)
        model = model if model and model.startswith("gemini") else DEFAULT_MODELS["gemini"]

        if os.environ.get("DEBUG_LLM_PROMPTS", "").lower() in ("1", "true"):
            _prompt_logger.warning(
                "\n\n%s\n"
                "── SYSTEM ──────────────────────────────────────────────\n%s\n"
                "── USER ────────────────────────────────────────────────\n%s\n"
                "── CONFIG ──────────────────────────────────────────────\n"
                "  model=%s  temp=%s  max_tokens=%s  timeout_ms=%s\n"
                "%s",
                "=" * 60,
                system_instruction or "(none)",
                user_prompt,
                model,
                temperature,
                max_tokens or 2048,
                self._timeout_ms,
                "=" * 60,
            )

        client = genai.Client(
            api_key=self._api_key,
            http_options=types.HttpOptions(timeout=self._timeout_ms),
        )

        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=temperature,
            max_output_tokens=max_tokens or 2048,
            response_mime_type="application/json",
            # Disable thinking: prevents preamble text before JSON output
            thinking_config=types.ThinkingConfig(thinking_budget=0),
        )
        response = client.models.generate_content(
            model=model,
            contents=user_prompt,
            config=config,
        )
        return _GeminiResponse(response.text or "")


class _GeminiChat:
    def __init__(self, api_key: str, timeout_seconds: float):
        self.completions = _GeminiCompletions(api_key, timeout_seconds)


class GeminiClientAdapter:
    def __init__(self, api_key: str, timeout_seconds: float = 20.0):
        self.chat = _GeminiChat(api_key, timeout_seconds)


def get_llm_client(settings: Settings | None = None):
    """Return the active LLM client, bounded by the refinement timeout."""
    if settings is None:
        settings = get_settings()
    if settings.llm_provider == "openai":
        return OpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.refinement_timeout_seconds,
            max_retries=settings.refinement_max_retries,
        )
    return GeminiClientAdapter(
        api_key=settings.gemini_api_key,
        timeout_seconds=settings.refinement_timeout_seconds,
    )


def get_refinement_model(settings: Settings | None = None) -> str:
    if settings is None:
        settings = get_settings()
    return settings.refinement_model or DEFAULT_MODELS.get(settings.llm_provider, DEFAULT_MODELS["gemini"])
