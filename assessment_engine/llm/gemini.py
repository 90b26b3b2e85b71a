from __future__ import annotations

import os
from typing import Any

import httpx

from assessment_engine.llm.client import LLMClient
from assessment_engine.llm.types import LLMRequest, LLMResponse

DEFAULT_GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta/models"


class GeminiClient(LLMClient):
    """Google Gemini ``generateContent`` over REST.

    ``api_url`` may be a full ``...:generateContent`` endpoint; otherwise the
    URL is built from the request's model name.
    """

    provider = "gemini"

    def __init__(self, api_key: str | None = None, api_url: str | None = None) -> None:
        self.api_key = api_key or os.getenv("GEMINI_API_KEY")
        self.api_url = api_url or os.getenv("GEMINI_API_URL")

    def _url(self, model: str) -> str:
        if self.api_url:
            return self.api_url
        return f"{DEFAULT_GEMINI_BASE_URL}/{model}:generateContent"

    async def generate(self, req: LLMRequest) -> LLMResponse:
        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY is not set")

        contents = [
            {"role": "model" if m.role == "assistant" else "user", "parts": [{"text": m.content}]}
            for m in req.messages
            if m.role in ("user", "assistant")
        ]
        payload: dict[str, Any] = {
            "contents": contents,
            "generationConfig": {
                "temperature": req.temperature,
                "maxOutputTokens": req.max_output_tokens,
            },
        }
        if req.system_prompt:
            payload["systemInstruction"] = {"parts": [{"text": req.system_prompt}]}

        async with httpx.AsyncClient(timeout=req.timeout_seconds) as client:
            r = await client.post(self._url(req.model), params={"key": self.api_key}, json=payload)
            r.raise_for_status()
            data = r.json()

        text = ""
        candidates = data.get("candidates") or []
        if candidates:
            for part in ((candidates[0] or {}).get("content") or {}).get("parts", []) or []:
                text += part.get("text", "")

        usage = data.get("usageMetadata") or {}
        return LLMResponse(
            text=text,
            raw=data,
            input_tokens=usage.get("promptTokenCount"),
            output_tokens=usage.get("candidatesTokenCount"),
        )
