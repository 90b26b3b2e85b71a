from __future__ import annotations

from assessment_engine.llm.client import LLMClient
from assessment_engine.llm.types import LLMRequest, LLMResponse


class MockLLMClient(LLMClient):
    """Deterministic stand-in for local development.

    Scores written answers by length of the ``Answer:`` line, in the same
    ``Score:``/``Feedback:`` shape a real evaluator is asked for.
    """

    provider = "mock"

    async def generate(self, req: LLMRequest) -> LLMResponse:
        user = next((m.content for m in reversed(req.messages) if m.role == "user"), "")
        answer = ""
        for line in user.splitlines():
            if line.startswith("Answer:"):
                answer = line[len("Answer:"):].strip()
        score = min(100, len(answer.split()) * 5)
        text = f"Score: {score}\nFeedback: (mock) {len(answer.split())} words evaluated."
        return LLMResponse(text=text, raw={"provider": "mock"})
