"""
Exam session lifecycle: idempotent create, fetch, and allow-listed patching.

A session is closed once ``completedAt`` or ``terminatedAt`` is set; both
markers are write-once from then on.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import HTTPException

from assessment_engine.models import TERMINAL_FIELDS, ExamSession, SessionPatch, utcnow
from assessment_engine.storage.repo import AssessmentRepository

logger = logging.getLogger(__name__)


class SessionManager:
    def __init__(self, repo: AssessmentRepository) -> None:
        self.repo = repo

    async def create(
        self,
        token: str,
        test_id: Optional[str],
        duration_seconds: Optional[int],
        invitation_id: Optional[str] = None,
    ) -> tuple[ExamSession, bool]:
        """Create the session for ``token`` or return the existing one unchanged.

        Returns the session and whether it was created by this call.
        """
        if not test_id or not duration_seconds:
            raise HTTPException(status_code=400, detail="Missing testId or durationSeconds")
        if duration_seconds < 0:
            raise HTTPException(status_code=400, detail="durationSeconds must be positive")

        candidate = ExamSession.start(token, test_id, duration_seconds, invitation_id=invitation_id)
        session, created = await self.repo.insert_session_if_absent(candidate)
        if created:
            logger.info(f"Session created for token {token} (test {test_id}, {duration_seconds}s)")
        else:
            logger.info(f"Session resumed for token {token}")
        return session, created

    async def get(self, token: str) -> ExamSession:
        return await self.repo.get_session(token)

    async def patch(self, token: str, patch: SessionPatch) -> ExamSession:
        existing = await self.repo.get_session(token)

        requested = patch.model_dump(exclude_unset=True)
        fields: dict[str, Any] = {
            k: v for k, v in requested.items() if k not in TERMINAL_FIELDS and v is not None
        }
        terminal = {k: requested[k] for k in TERMINAL_FIELDS if requested.get(k) is not None}

        if terminal and existing.is_closed:
            logger.info(f"Session {token} already closed; ignoring {', '.join(sorted(terminal))}")
            terminal = {}
        if len(terminal) > 1:
            # Markers are mutually exclusive; a termination outranks completion.
            terminal = {"terminated_at": terminal["terminated_at"]}

        fields["last_activity_at"] = utcnow()
        return await self.repo.update_session(token, fields, terminal)
