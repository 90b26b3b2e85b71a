from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from assessment_engine.api.auth import TokenPayload, get_current_user
from assessment_engine.models import DeclareResponse
from assessment_engine.workers.declaration import DeclarationCoordinator, DeclarationStalledError
from assessment_engine.wiring import get_coordinator

router = APIRouter(prefix="/assessment", tags=["declarations"])


@router.post("/results/{result_id}/declare", response_model=DeclareResponse)
async def declare_result(
    result_id: str,
    user: TokenPayload = Depends(get_current_user),
    coordinator: DeclarationCoordinator = Depends(get_coordinator),
) -> DeclareResponse:
    outcome = await coordinator.declare_one(result_id, user.user_id)
    message = "Result declared and email sent" if outcome.email_sent else "Result declared"
    return DeclareResponse(message=message, declared_count=1, emails_sent=int(outcome.email_sent))


@router.post("/tests/{test_id}/declare-results", response_model=DeclareResponse)
async def declare_test_results(
    test_id: str,
    user: TokenPayload = Depends(get_current_user),
    coordinator: DeclarationCoordinator = Depends(get_coordinator),
):
    try:
        summary = await coordinator.declare_all(test_id, user.user_id)
    except DeclarationStalledError as e:
        body = DeclareResponse(
            success=False,
            message=f"Failed to declare all results: {e}",
            declared_count=e.declared_count,
            emails_sent=e.emails_sent,
        )
        return JSONResponse(status_code=500, content=body.model_dump(by_alias=True))

    if summary.batches == 0:
        return DeclareResponse(message="No new results to declare")
    message = f"Successfully declared {summary.declared_count} results. {summary.emails_sent} emails sent."
    if summary.incomplete:
        message += " Some results could not be declared; retry to declare the rest."
    return DeclareResponse(
        message=message,
        declared_count=summary.declared_count,
        emails_sent=summary.emails_sent,
    )
