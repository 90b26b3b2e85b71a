from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Iterable, Optional

from assessment_engine.models import (
    AssessmentResult,
    AssessmentTest,
    Employee,
    ExamSession,
    Invitation,
    PreviewResult,
    ResultStatus,
)


class AssessmentRepository(ABC):
    """Document-store access for the assessment core.

    Implementations hold no business rules. Lookups of a missing record raise
    ``HTTPException(404)``; everything else surfaces store errors unchanged.
    """

    # -- sessions -----------------------------------------------------------

    @abstractmethod
    async def insert_session_if_absent(self, session: ExamSession) -> tuple[ExamSession, bool]:
        """Atomically insert ``session`` unless its token exists.

        Returns the stored session and whether this call created it.
        """
        raise NotImplementedError

    @abstractmethod
    async def get_session(self, token: str) -> ExamSession:
        raise NotImplementedError

    @abstractmethod
    async def update_session(
        self, token: str, fields: dict[str, Any], terminal: dict[str, Optional[datetime]]
    ) -> ExamSession:
        """Apply a session patch.

        ``fields`` are plain overwrites except ``tab_switch_count``, which never
        decreases. ``terminal`` markers are applied only while the session is
        still open, as a single conditional write.
        """
        raise NotImplementedError

    # -- tests ----------------------------------------------------------------

    @abstractmethod
    async def get_test(self, test_id: str) -> AssessmentTest:
        raise NotImplementedError

    # -- results --------------------------------------------------------------

    @abstractmethod
    async def insert_result(self, result: AssessmentResult) -> AssessmentResult:
        raise NotImplementedError

    @abstractmethod
    async def insert_preview_result(self, result: PreviewResult) -> PreviewResult:
        raise NotImplementedError

    @abstractmethod
    async def get_result(self, result_id: str) -> AssessmentResult:
        raise NotImplementedError

    @abstractmethod
    async def list_undeclared_results(
        self, test_id: str, limit: int, exclude: Iterable[str] = ()
    ) -> list[AssessmentResult]:
        """Up to ``limit`` results of ``test_id`` not yet declared, skipping ids in ``exclude``."""
        raise NotImplementedError

    @abstractmethod
    async def claim_declaration(
        self, result_id: str, status: ResultStatus, declared_by: Optional[str], declared_at: datetime
    ) -> bool:
        """Mark a result declared if nobody has yet. Returns False when already declared."""
        raise NotImplementedError

    # -- invitations / candidates / employers --------------------------------

    @abstractmethod
    async def get_invitation(self, invitation_id: str) -> Invitation:
        raise NotImplementedError

    @abstractmethod
    async def mark_invitation_completed(self, invitation_id: str, completed_at: datetime) -> None:
        raise NotImplementedError

    @abstractmethod
    async def record_candidate_completion(
        self, email: str, created_by: Optional[str], name: Optional[str], score: int
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    async def set_candidate_status(self, email: str, created_by: Optional[str], status: ResultStatus) -> None:
        raise NotImplementedError

    @abstractmethod
    async def get_employee(self, user_id: str) -> Optional[Employee]:
        raise NotImplementedError

    @abstractmethod
    async def find_profile(self, collection: str, field: str, value: str) -> Optional[dict[str, Any]]:
        """Read-only lookup in a profile collection (``candidates`` / ``students``)."""
        raise NotImplementedError
