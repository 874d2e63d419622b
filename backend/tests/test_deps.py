"""Tests for settings and the LLM client factory. No network calls."""
from unittest.mock import MagicMock, patch

from openai import OpenAI

from architect.core.config import Settings
from architect.core.deps import GeminiClientAdapter, get_llm_client, get_refinement_model


class TestSettings:
    def test_defaults(self, monkeypatch):
        for var in ("LLM_PROVIDER", "REFINEMENT_ENABLED", "REFINEMENT_TIMEOUT_SECONDS", "REFINEMENT_MAX_RETRIES"):
            monkeypatch.delenv(var, raising=False)
        settings = Settings(_env_file=None)
        assert settings.app_name == "Assessment Architect"
        assert settings.llm_provider == "gemini"
        assert settings.refinement_enabled is False
        assert settings.refinement_timeout_seconds == 20.0
        assert settings.refinement_max_retries == 1

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("REFINEMENT_ENABLED", "true")
        monkeypatch.setenv("REFINEMENT_TIMEOUT_SECONDS", "7.5")
        settings = Settings(_env_file=None)
        assert settings.refinement_enabled is True
        assert settings.refinement_timeout_seconds == 7.5


class TestClientFactory:
    def test_openai_client_is_bounded(self):
        settings = Settings(
            _env_file=None, llm_provider="openai", openai_api_key="sk-test",
            refinement_timeout_seconds=5.0, refinement_max_retries=0,
        )
        client = get_llm_client(settings)
        assert isinstance(client, OpenAI)
        assert client.timeout == 5.0
        assert client.max_retries == 0

    def test_gemini_is_default(self):
        client = get_llm_client(Settings(_env_file=None, llm_provider="gemini", gemini_api_key="g-test"))
        assert isinstance(client, GeminiClientAdapter)

    def test_refinement_model_defaults_per_provider(self):
        assert get_refinement_model(Settings(_env_file=None, llm_provider="openai")) == "gpt-4o-mini"
        assert get_refinement_model(Settings(_env_file=None, llm_provider="gemini")) == "gemini-2.5-flash"
        assert get_refinement_model(Settings(_env_file=None, refinement_model="custom-model")) == "custom-model"


class TestGeminiAdapter:
    def test_routes_chat_completion_to_gemini(self):
        genai_client = MagicMock()
        genai_client.models.generate_content.return_value = MagicMock(text='{"adjustment_log": []}')

        with patch("google.genai.Client", return_value=genai_client) as client_cls:
            adapter = GeminiClientAdapter(api_key="g-test", timeout_seconds=4)
            response = adapter.chat.completions.create(
                model="gemini-2.5-flash",
                messages=[
                    {"role": "system", "content": "be terse"},
                    {"role": "user", "content": "refine this"},
                ],
                temperature=0.2,
                max_tokens=512,
            )

        assert response.choices[0].message.content == '{"adjustment_log": []}'
        assert client_cls.call_args.kwargs["http_options"].timeout == 4000
        call = genai_client.models.generate_content.call_args.kwargs
        assert call["model"] == "gemini-2.5-flash"
        assert call["contents"] == "refine this"
        assert call["config"].system_instruction == "be terse"

    def test_non_gemini_model_name_replaced(self):
        genai_client = MagicMock()
        genai_client.models.generate_content.return_value = MagicMock(text=None)

        with patch("google.genai.Client", return_value=genai_client):
            response = GeminiClientAdapter(api_key="g-test").chat.completions.create(
                model="gpt-4o-mini", messages=[{"role": "user", "content": "x"}],
            )

        assert genai_client.models.generate_content.call_args.kwargs["model"] == "gemini-2.5-flash"
        assert response.choices[0].message.content == ""
