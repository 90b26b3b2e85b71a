from __future__ import annotations

from abc import ABC, abstractmethod

from assessment_engine.llm.types import LLMRequest, LLMResponse


class LLMClient(ABC):
    provider: str = "unknown"

    @abstractmethod
    async def generate(self, req: LLMRequest) -> LLMResponse:
        raise NotImplementedError
