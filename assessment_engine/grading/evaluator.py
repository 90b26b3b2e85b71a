"""
Written-answer quality evaluation.

The grader only sees ``TextQualityEvaluator``; the LLM-backed implementation
never raises into the grading path and degrades to a zero score instead.
"""

from __future__ import annotations

import logging
import re
from abc import ABC, abstractmethod
from typing import Optional

from pydantic import BaseModel, Field

from assessment_engine.llm.client import LLMClient
from assessment_engine.llm.types import LLMMessage, LLMRequest

logger = logging.getLogger(__name__)

EVALUATION_UNAVAILABLE = "AI evaluation unavailable."
EVALUATION_FAILED = "AI evaluation failed."

SYSTEM_PROMPT = (
    "You are an exam evaluator. Give a score (0-100) and a short, polite, constructive "
    "feedback (no JSON, no harsh language, just plain text)."
)

_SCORE_RE = re.compile(r"Score:\s*(\d+)", re.IGNORECASE)
_FEEDBACK_RE = re.compile(r"Feedback:\s*([\s\S]*)", re.IGNORECASE)


class TextEvaluation(BaseModel):
    quality_score: int = Field(0, ge=0, le=100)
    feedback: str = ""


class TextQualityEvaluator(ABC):
    @abstractmethod
    async def evaluate(self, question_text: str, answer_text: str) -> TextEvaluation:
        raise NotImplementedError


def build_prompt(question_text: str, answer_text: str) -> str:
    return (
        "Evaluate the following answer for the question.\n"
        f"Question: {question_text}\n"
        f"Answer: {answer_text}\n"
        "Criteria: relevance, completeness, clarity, grammar.\n"
        "Respond in this format: 'Score: <number>\nFeedback: <your feedback here>'"
    )


def parse_evaluation(text: str) -> TextEvaluation:
    score_match = _SCORE_RE.search(text or "")
    feedback_match = _FEEDBACK_RE.search(text or "")
    score = int(score_match.group(1)) if score_match else 0
    feedback = feedback_match.group(1).strip() if feedback_match else (text or "").strip()
    return TextEvaluation(quality_score=max(0, min(100, score)), feedback=feedback)


class LLMTextQualityEvaluator(TextQualityEvaluator):
    def __init__(self, client: Optional[LLMClient], model: str, timeout_seconds: float = 60.0) -> None:
        self.client = client
        self.model = model
        self.timeout_seconds = timeout_seconds

    async def evaluate(self, question_text: str, answer_text: str) -> TextEvaluation:
        if self.client is None:
            return TextEvaluation(quality_score=0, feedback=EVALUATION_UNAVAILABLE)

        req = LLMRequest(
            model=self.model,
            timeout_seconds=self.timeout_seconds,
            messages=[
                LLMMessage(role="system", content=SYSTEM_PROMPT),
                LLMMessage(role="user", content=build_prompt(question_text, answer_text)),
            ],
        )
        try:
            resp = await self.client.generate(req)
        except Exception as e:
            logger.warning(f"Written answer evaluation via {self.client.provider} failed: {e}")
            return TextEvaluation(quality_score=0, feedback=EVALUATION_FAILED)

        return parse_evaluation(resp.text)
