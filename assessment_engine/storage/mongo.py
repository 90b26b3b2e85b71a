from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from bson import ObjectId
from fastapi import HTTPException
from motor.motor_asyncio import AsyncIOMotorClient
from pydantic import BaseModel
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from assessment_engine.models import (
    AssessmentResult,
    AssessmentTest,
    Employee,
    ExamSession,
    Invitation,
    PreviewResult,
    ResultStatus,
    ScoredAttempt,
    utcnow,
)
from assessment_engine.storage.repo import AssessmentRepository

logger = logging.getLogger(__name__)

SESSIONS = "assessment_sessions"
RESULTS = "assessment_results"
PREVIEW_RESULTS = "assessment_preview_results"
TESTS = "assessment_tests"
INVITATIONS = "assessment_invitations"
CANDIDATES = "assessment_candidates"
EMPLOYEES = "employees"


def _alias(model: type[BaseModel], name: str) -> str:
    return model.model_fields[name].alias or name


def _doc_id(value: str) -> Any:
    # Records created by the rest of the platform are keyed by ObjectId.
    return ObjectId(value) if ObjectId.is_valid(value) else value


def _plain(doc: dict[str, Any]) -> dict[str, Any]:
    return {k: str(v) if isinstance(v, ObjectId) else v for k, v in doc.items()}


class MongoAssessmentRepository(AssessmentRepository):
    def __init__(self, mongo_uri: str, db_name: str, client: Optional[Any] = None) -> None:
        self.client = client or AsyncIOMotorClient(mongo_uri)
        self.db = self.client[db_name]
        self.sessions = self.db[SESSIONS]
        self.results = self.db[RESULTS]
        self.preview_results = self.db[PREVIEW_RESULTS]
        self.tests = self.db[TESTS]
        self.invitations = self.db[INVITATIONS]
        self.candidates = self.db[CANDIDATES]
        self.employees = self.db[EMPLOYEES]

    async def ensure_indexes(self) -> None:
        await self.sessions.create_index([("token", ASCENDING)], unique=True)
        await self.results.create_index([("testId", ASCENDING), ("resultsDeclared", ASCENDING)])
        logger.info("MongoDB indexes ensured")

    def close(self) -> None:
        self.client.close()

    # -- sessions -----------------------------------------------------------

    async def insert_session_if_absent(self, session: ExamSession) -> tuple[ExamSession, bool]:
        doc = session.model_dump(mode="json", by_alias=True)
        try:
            res = await self.sessions.update_one({"token": session.token}, {"$setOnInsert": doc}, upsert=True)
            created = res.upserted_id is not None
        except DuplicateKeyError:
            # Lost a concurrent upsert race on the unique token index.
            created = False
        return await self.get_session(session.token), created

    async def get_session(self, token: str) -> ExamSession:
        doc = await self.sessions.find_one({"token": token})
        if not doc:
            raise HTTPException(status_code=404, detail="Session not found")
        return ExamSession.model_validate(doc)

    async def update_session(
        self, token: str, fields: dict[str, Any], terminal: dict[str, Optional[datetime]]
    ) -> ExamSession:
        current = await self.get_session(token)
        now = utcnow()

        merged = current.model_copy(update={**fields, **terminal, "updated_at": now}).model_dump(
            mode="json", by_alias=True
        )
        set_doc = {_alias(ExamSession, k): merged[_alias(ExamSession, k)] for k in fields if k != "tab_switch_count"}
        set_doc[_alias(ExamSession, "updated_at")] = merged[_alias(ExamSession, "updated_at")]

        update: dict[str, Any] = {"$set": set_doc}
        if fields.get("tab_switch_count") is not None:
            update["$max"] = {"tabSwitchCount": fields["tab_switch_count"]}
        await self.sessions.update_one({"token": token}, update)

        if terminal:
            terminal_doc = {_alias(ExamSession, k): merged[_alias(ExamSession, k)] for k in terminal}
            # Matches only while both markers are still unset (null or missing).
            await self.sessions.update_one(
                {"token": token, "completedAt": None, "terminatedAt": None},
                {"$set": terminal_doc},
            )

        return await self.get_session(token)

    # -- tests ----------------------------------------------------------------

    async def get_test(self, test_id: str) -> AssessmentTest:
        doc = await self.tests.find_one({"_id": _doc_id(test_id)})
        if not doc:
            raise HTTPException(status_code=404, detail="Test not found")
        return AssessmentTest.model_validate({**_plain(doc), "testId": str(doc["_id"])})

    # -- results --------------------------------------------------------------
    # Results share the platform's collection, where ``_id`` is the only key
    # every document has. ``resultId`` is never stored; it is ``str(_id)``.

    @staticmethod
    def _result_doc(result: ScoredAttempt) -> dict[str, Any]:
        doc = result.model_dump(mode="json", by_alias=True)
        doc["_id"] = _doc_id(doc.pop("resultId"))
        return doc

    @staticmethod
    def _to_result(doc: dict[str, Any]) -> AssessmentResult:
        return AssessmentResult.model_validate({**_plain(doc), "resultId": str(doc["_id"])})

    async def insert_result(self, result: AssessmentResult) -> AssessmentResult:
        await self.results.insert_one(self._result_doc(result))
        return result

    async def insert_preview_result(self, result: PreviewResult) -> PreviewResult:
        await self.preview_results.insert_one(self._result_doc(result))
        return result

    async def get_result(self, result_id: str) -> AssessmentResult:
        doc = await self.results.find_one({"_id": _doc_id(result_id)})
        if not doc:
            raise HTTPException(status_code=404, detail="Result not found")
        return self._to_result(doc)

    async def list_undeclared_results(
        self, test_id: str, limit: int, exclude: Iterable[str] = ()
    ) -> list[AssessmentResult]:
        query: dict[str, Any] = {"testId": test_id, "resultsDeclared": {"$ne": True}}
        skip = [_doc_id(i) for i in exclude]
        if skip:
            query["_id"] = {"$nin": skip}
        docs = await self.results.find(query).limit(limit).to_list(length=limit)
        return [self._to_result(d) for d in docs]

    async def claim_declaration(
        self, result_id: str, status: ResultStatus, declared_by: Optional[str], declared_at: datetime
    ) -> bool:
        stamp = declared_at.isoformat()
        res = await self.results.update_one(
            {"_id": _doc_id(result_id), "resultsDeclared": {"$ne": True}},
            {
                "$set": {
                    "resultsDeclared": True,
                    "status": status.value,
                    "declaredAt": stamp,
                    "declaredBy": declared_by,
                    "updatedAt": stamp,
                }
            },
        )
        return res.modified_count == 1

    # -- invitations / candidates / employers --------------------------------

    async def get_invitation(self, invitation_id: str) -> Invitation:
        doc = await self.invitations.find_one({"_id": _doc_id(invitation_id)})
        if not doc:
            raise HTTPException(status_code=404, detail="Invitation not found")
        return Invitation.model_validate({**_plain(doc), "invitationId": str(doc["_id"])})

    async def mark_invitation_completed(self, invitation_id: str, completed_at: datetime) -> None:
        await self.invitations.update_one(
            {"_id": _doc_id(invitation_id)},
            {"$set": {"status": "Completed", "completedAt": completed_at.isoformat()}},
        )

    async def record_candidate_completion(
        self, email: str, created_by: Optional[str], name: Optional[str], score: int
    ) -> None:
        now = utcnow().isoformat()
        await self.candidates.update_one(
            {"email": email, "createdBy": created_by},
            {
                "$inc": {"testsCompleted": 1},
                "$set": {"status": "Completed", "lastCompletedAt": now, "updatedAt": now},
                "$setOnInsert": {
                    "name": name or email.split("@")[0],
                    "testsAssigned": 1,
                    "averageScore": score,
                    "createdAt": now,
                },
            },
            upsert=True,
        )

    async def set_candidate_status(self, email: str, created_by: Optional[str], status: ResultStatus) -> None:
        await self.candidates.update_one(
            {"email": email, "createdBy": created_by},
            {"$set": {"status": status.value, "updatedAt": utcnow().isoformat()}},
        )

    async def get_employee(self, user_id: str) -> Optional[Employee]:
        doc = await self.employees.find_one({"_id": _doc_id(user_id)})
        if not doc:
            return None
        return Employee.model_validate({**_plain(doc), "userId": str(doc["_id"])})

    async def find_profile(self, collection: str, field: str, value: str) -> Optional[dict[str, Any]]:
        query = {"_id": _doc_id(value)} if field == "id" else {field: value}
        doc = await self.db[collection].find_one(query)
        return _plain(doc) if doc else None
