from __future__ import annotations

from fastapi import APIRouter, Depends

from assessment_engine.api.auth import TokenPayload, get_current_user
from assessment_engine.models import (
    PreviewScoreRequest,
    ResultDetailResponse,
    ScoredAttempt,
    ScoreResponse,
    SubmitResultRequest,
)
from assessment_engine.services.results import ResultService
from assessment_engine.wiring import get_result_service

router = APIRouter(prefix="/assessment", tags=["results"])


def _score_response(result: ScoredAttempt, message: str) -> ScoreResponse:
    return ScoreResponse(
        message=message,
        result_id=result.result_id,
        score=result.score,
        status=result.status,
        evaluated_answers=result.answers,
        total_points=result.total_points,
        earned_points=result.earned_points,
        correct_answers=result.correct_answers,
    )


@router.post("/preview-results", response_model=ScoreResponse)
async def preview_results(
    req: PreviewScoreRequest,
    user: TokenPayload = Depends(get_current_user),
    results: ResultService = Depends(get_result_service),
) -> ScoreResponse:
    result = await results.preview(req, user.user_id, user.email)
    return _score_response(result, "Preview result saved")


@router.post("/results", response_model=ScoreResponse)
async def submit_result(
    req: SubmitResultRequest, results: ResultService = Depends(get_result_service)
) -> ScoreResponse:
    result = await results.submit(req)
    return _score_response(result, "Result saved")


@router.get("/results/{result_id}", response_model=ResultDetailResponse)
async def get_result(
    result_id: str,
    user: TokenPayload = Depends(get_current_user),
    results: ResultService = Depends(get_result_service),
) -> ResultDetailResponse:
    return await results.get_detail(result_id, user.user_id)
