from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from fastapi import HTTPException

from assessment_engine.models import (
    AssessmentResult,
    AssessmentTest,
    Employee,
    ExamSession,
    Invitation,
    PreviewResult,
    ResultStatus,
    utcnow,
)
from assessment_engine.storage.repo import AssessmentRepository


class InMemoryAssessmentRepository(AssessmentRepository):
    def __init__(self) -> None:
        self.sessions: Dict[str, ExamSession] = {}
        self.tests: Dict[str, AssessmentTest] = {}
        self.results: Dict[str, AssessmentResult] = {}
        self.preview_results: Dict[str, PreviewResult] = {}
        self.invitations: Dict[str, Invitation] = {}
        self.employees: Dict[str, Employee] = {}
        self.candidates: Dict[tuple[str, Optional[str]], Dict[str, Any]] = {}
        self.profiles: Dict[str, List[Dict[str, Any]]] = {"candidates": [], "students": []}

    # Seeding helpers for records owned by other parts of the platform

    def add_test(self, test: AssessmentTest) -> AssessmentTest:
        self.tests[test.test_id] = test
        return test

    def add_invitation(self, invitation: Invitation) -> Invitation:
        self.invitations[invitation.invitation_id] = invitation
        return invitation

    def add_employee(self, employee: Employee) -> Employee:
        self.employees[employee.user_id] = employee
        return employee

    def add_profile(self, collection: str, profile: Dict[str, Any]) -> Dict[str, Any]:
        self.profiles.setdefault(collection, []).append(profile)
        return profile

    # -- sessions -----------------------------------------------------------

    async def insert_session_if_absent(self, session: ExamSession) -> tuple[ExamSession, bool]:
        # No await between the check and the write, so this is atomic on the loop.
        existing = self.sessions.get(session.token)
        if existing is not None:
            return existing, False
        self.sessions[session.token] = session
        return session, True

    async def get_session(self, token: str) -> ExamSession:
        session = self.sessions.get(token)
        if session is None:
            raise HTTPException(status_code=404, detail="Session not found")
        return session

    async def update_session(
        self, token: str, fields: dict[str, Any], terminal: dict[str, Optional[datetime]]
    ) -> ExamSession:
        session = await self.get_session(token)
        update = dict(fields)
        if update.get("tab_switch_count") is not None:
            update["tab_switch_count"] = max(session.tab_switch_count, update["tab_switch_count"])
        if terminal and not session.is_closed:
            update.update(terminal)
        update["updated_at"] = utcnow()

        updated = session.model_copy(update=update)
        self.sessions[token] = updated
        return updated

    # -- tests ----------------------------------------------------------------

    async def get_test(self, test_id: str) -> AssessmentTest:
        test = self.tests.get(test_id)
        if test is None:
            raise HTTPException(status_code=404, detail="Test not found")
        return test

    # -- results --------------------------------------------------------------

    async def insert_result(self, result: AssessmentResult) -> AssessmentResult:
        self.results[result.result_id] = result
        return result

    async def insert_preview_result(self, result: PreviewResult) -> PreviewResult:
        self.preview_results[result.result_id] = result
        return result

    async def get_result(self, result_id: str) -> AssessmentResult:
        result = self.results.get(result_id)
        if result is None:
            raise HTTPException(status_code=404, detail="Result not found")
        return result

    async def list_undeclared_results(
        self, test_id: str, limit: int, exclude: Iterable[str] = ()
    ) -> list[AssessmentResult]:
        skip = set(exclude)
        pending = [
            r
            for r in self.results.values()
            if r.test_id == test_id and r.results_declared is not True and r.result_id not in skip
        ]
        return pending[:limit]

    async def claim_declaration(
        self, result_id: str, status: ResultStatus, declared_by: Optional[str], declared_at: datetime
    ) -> bool:
        result = await self.get_result(result_id)
        if result.results_declared:
            return False
        self.results[result_id] = result.model_copy(
            update={
                "results_declared": True,
                "status": status,
                "declared_at": declared_at,
                "declared_by": declared_by,
                "updated_at": declared_at,
            }
        )
        return True

    # -- invitations / candidates / employers --------------------------------

    async def get_invitation(self, invitation_id: str) -> Invitation:
        invitation = self.invitations.get(invitation_id)
        if invitation is None:
            raise HTTPException(status_code=404, detail="Invitation not found")
        return invitation

    async def mark_invitation_completed(self, invitation_id: str, completed_at: datetime) -> None:
        invitation = await self.get_invitation(invitation_id)
        self.invitations[invitation_id] = invitation.model_copy(
            update={"status": "Completed", "completed_at": completed_at}
        )

    async def record_candidate_completion(
        self, email: str, created_by: Optional[str], name: Optional[str], score: int
    ) -> None:
        now = utcnow()
        key = (email, created_by)
        candidate = self.candidates.get(key)
        if candidate is None:
            self.candidates[key] = {
                "name": name or email.split("@")[0],
                "email": email,
                "testsAssigned": 1,
                "testsCompleted": 1,
                "averageScore": score,
                "status": "Completed",
                "createdBy": created_by,
                "createdAt": now,
                "updatedAt": now,
            }
            return
        candidate["testsCompleted"] = candidate.get("testsCompleted", 0) + 1
        candidate["status"] = "Completed"
        candidate["lastCompletedAt"] = now
        candidate["updatedAt"] = now

    async def set_candidate_status(self, email: str, created_by: Optional[str], status: ResultStatus) -> None:
        candidate = self.candidates.get((email, created_by))
        if candidate is not None:
            candidate["status"] = status.value
            candidate["updatedAt"] = utcnow()

    async def get_employee(self, user_id: str) -> Optional[Employee]:
        return self.employees.get(user_id)

    async def find_profile(self, collection: str, field: str, value: str) -> Optional[dict[str, Any]]:
        for profile in self.profiles.get(collection, []):
            if str(profile.get(field)) == str(value):
                return profile
        return None
