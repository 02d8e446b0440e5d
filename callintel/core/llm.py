import os

import instructor
from openai import AsyncOpenAI


class LLMFactory:
    """Builds the structured-output client used for call analysis."""

    @staticmethod
    def get_client() -> instructor.AsyncInstructor:
        """
        Returns an async instructor-patched OpenAI client.
        Point LLM_BASE_URL at any OpenAI-compatible provider (Ollama, vLLM, ...).
        """
        client = AsyncOpenAI(
            base_url=os.getenv("LLM_BASE_URL", "https://api.openai.com/v1"),
            api_key=os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", "")) or "unset",
        )
        return instructor.from_openai(client, mode=instructor.Mode.JSON)

    @staticmethod
    def get_model_name() -> str:
        return os.getenv("LLM_MODEL", "gpt-4o-mini")

    @staticmethod
    def is_configured() -> bool:
        """An API key is required; local providers accept any non-placeholder value."""
        api_key = os.getenv("LLM_API_KEY", os.getenv("OPENAI_API_KEY", ""))
        return bool(api_key) and api_key != "change_me"
