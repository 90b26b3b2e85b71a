from __future__ import annotations

import os
from typing import Any

import httpx

from assessment_engine.llm.client import LLMClient
from assessment_engine.llm.types import LLMRequest, LLMResponse


class GroqClient(LLMClient):
    """Groq chat completions (OpenAI-compatible surface).

    Default base URL: https://api.groq.com/openai/v1
    """

    provider = "groq"

    def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
        self.api_key = api_key or os.getenv("GROQ_API_KEY")
        self.base_url = base_url or os.getenv("GROQ_BASE_URL") or "https://api.groq.com/openai/v1"

    async def generate(self, req: LLMRequest) -> LLMResponse:
        if not self.api_key:
            raise RuntimeError("GROQ_API_KEY is not set")

        payload: dict[str, Any] = {
            "model": req.model,
            "messages": [{"role": m.role, "content": m.content} for m in req.messages],
            "temperature": req.temperature,
            "max_tokens": req.max_output_tokens,
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        async with httpx.AsyncClient(timeout=req.timeout_seconds) as client:
            r = await client.post(f"{self.base_url}/chat/completions", json=payload, headers=headers)
            r.raise_for_status()
            data = r.json()

        choices = data.get("choices") or []
        text = ((choices[0] or {}).get("message") or {}).get("content") or "" if choices else ""

        usage = data.get("usage") or {}
        return LLMResponse(
            text=text,
            raw=data,
            input_tokens=usage.get("prompt_tokens"),
            output_tokens=usage.get("completion_tokens"),
        )
