from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from assessment_engine.models import CreateSessionRequest, SessionPatch, SessionResponse
from assessment_engine.services.sessions import SessionManager
from assessment_engine.wiring import get_session_manager

router = APIRouter(prefix="/assessment/sessions", tags=["sessions"])

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}


def _no_cache(response: Response) -> None:
    response.headers.update(NO_CACHE_HEADERS)


@router.post("/{token}", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
async def create_session(
    token: str,
    req: CreateSessionRequest,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session, created = await sessions.create(
        token, req.test_id, req.duration_seconds, invitation_id=req.invitation_id
    )
    _no_cache(response)
    if not created:
        response.status_code = status.HTTP_200_OK
        return SessionResponse(session=session, message="Session resumed")
    return SessionResponse(session=session, message="Session created")


@router.get("/{token}", response_model=SessionResponse)
async def get_session(
    token: str, response: Response, sessions: SessionManager = Depends(get_session_manager)
) -> SessionResponse:
    session = await sessions.get(token)
    _no_cache(response)
    return SessionResponse(session=session)


@router.patch("/{token}", response_model=SessionResponse)
async def patch_session(
    token: str,
    patch: SessionPatch,
    response: Response,
    sessions: SessionManager = Depends(get_session_manager),
) -> SessionResponse:
    session = await sessions.patch(token, patch)
    _no_cache(response)
    return SessionResponse(session=session, message="Session updated")
