from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, Field


class LLMMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class LLMRequest(BaseModel):
    messages: list[LLMMessage]
    model: str

    # Grading wants stable scores, so default to a cold, short completion.
    temperature: float = 0.0
    max_output_tokens: int = 400
    timeout_seconds: float = 60.0

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def system_prompt(self) -> str:
        return "\n".join(m.content for m in self.messages if m.role == "system").strip()


class LLMResponse(BaseModel):
    text: str
    raw: Optional[dict[str, Any]] = None

    input_tokens: int | None = None
    output_tokens: int | None = None
