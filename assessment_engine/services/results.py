from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException

from assessment_engine.grading.answers import WRITTEN_MIN_QUALITY
from assessment_engine.grading.evaluator import TextQualityEvaluator
from assessment_engine.grading.scoring import DEFAULT_PASSING_SCORE, score_attempt
from assessment_engine.models import (
    AssessmentResult,
    PreviewResult,
    PreviewScoreRequest,
    ResultDetailResponse,
    ScoreOutcome,
    SubmitResultRequest,
    utcnow,
)
from assessment_engine.services.profiles import resolve_candidate_name
from assessment_engine.storage.repo import AssessmentRepository

logger = logging.getLogger(__name__)


class ResultService:
    """Scores submitted attempts and persists them as results."""

    def __init__(
        self,
        repo: AssessmentRepository,
        evaluator: TextQualityEvaluator,
        *,
        default_passing_score: int = DEFAULT_PASSING_SCORE,
        min_quality: int = WRITTEN_MIN_QUALITY,
    ) -> None:
        self.repo = repo
        self.evaluator = evaluator
        self.default_passing_score = default_passing_score
        self.min_quality = min_quality

    async def _score(self, test_id: str, answers) -> tuple[str, ScoreOutcome]:
        test = await self.repo.get_test(test_id)
        outcome = await score_attempt(
            test,
            answers,
            self.evaluator,
            default_passing_score=self.default_passing_score,
            min_quality=self.min_quality,
        )
        return test.name, outcome

    async def submit(self, req: SubmitResultRequest) -> AssessmentResult:
        if not req.invitation_id:
            raise HTTPException(status_code=400, detail="Missing invitationId")
        invitation = await self.repo.get_invitation(req.invitation_id)
        test_name, outcome = await self._score(req.test_id, req.answers)

        now = utcnow()
        email = req.candidate_email or invitation.email
        result = AssessmentResult(
            test_id=req.test_id,
            test_name=req.test_name or test_name,
            invitation_id=req.invitation_id,
            candidate_id=req.candidate_id,
            student_id=req.student_id,
            candidate_email=email,
            candidate_name=req.candidate_name,
            created_by=invitation.created_by,
            duration=req.duration,
            tab_switch_count=req.tab_switch_count,
            completion_date=now,
            created_at=now,
            updated_at=now,
        )
        result.apply_outcome(outcome)
        await self.repo.insert_result(result)
        await self.repo.mark_invitation_completed(req.invitation_id, now)
        if email:
            await self.repo.record_candidate_completion(email, invitation.created_by, req.candidate_name, result.score)

        logger.info(f"Result {result.result_id} saved for invitation {req.invitation_id} (score {result.score})")
        return result

    async def preview(self, req: PreviewScoreRequest, employee_id: str, employee_email: Optional[str]) -> PreviewResult:
        test_name, outcome = await self._score(req.test_id, req.answers)
        employee = await self.repo.get_employee(employee_id)

        result = PreviewResult(
            test_id=req.test_id,
            test_name=req.test_name or test_name,
            employee_id=employee_id,
            employee_name=employee.full_name if employee else None,
            employee_email=(employee.email if employee else None) or employee_email,
            duration=req.duration,
            tab_switch_count=req.tab_switch_count,
        )
        result.apply_outcome(outcome)
        await self.repo.insert_preview_result(result)
        logger.info(f"Preview result {result.result_id} saved for employee {employee_id}")
        return result

    async def get_detail(self, result_id: str, user_id: Optional[str]) -> ResultDetailResponse:
        result = await self.repo.get_result(result_id)
        if user_id and result.created_by and result.created_by != user_id:
            raise HTTPException(status_code=404, detail="Result not found")

        name = await resolve_candidate_name(self.repo, result)
        try:
            test = await self.repo.get_test(result.test_id)
            total_questions = sum(1 for _ in test.iter_questions())
        except HTTPException:
            # The test may have been deleted after the attempt.
            total_questions = len(result.answers)

        return ResultDetailResponse(
            result=result.model_copy(update={"candidate_name": name}),
            total_questions=total_questions,
        )
