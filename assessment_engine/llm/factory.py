from __future__ import annotations

from typing import Optional

from assessment_engine.llm.client import LLMClient
from assessment_engine.llm.gemini import GeminiClient
from assessment_engine.llm.groq import GroqClient
from assessment_engine.llm.mock import MockLLMClient
from assessment_engine.settings import Settings


def get_llm_client(provider: str, settings: Settings) -> Optional[LLMClient]:
    """Build the configured client, or None when the provider is off or has no key."""
    p = (provider or "").strip().lower()
    if p in ("mock", "dev"):
        return MockLLMClient()
    if p == "gemini":
        if not settings.gemini_api_key:
            return None
        return GeminiClient(api_key=settings.gemini_api_key, api_url=settings.gemini_api_url)
    if p == "groq":
        if not settings.groq_api_key:
            return None
        return GroqClient(api_key=settings.groq_api_key, base_url=settings.groq_base_url)
    return None
