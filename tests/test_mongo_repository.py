import asyncio
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from fastapi import HTTPException
from mongomock_motor import AsyncMongoMockClient
from pymongo.errors import DuplicateKeyError

from assessment_engine.models import AssessmentResult, ResultStatus, SessionPatch, utcnow
from assessment_engine.services.sessions import SessionManager
from assessment_engine.storage.mongo import MongoAssessmentRepository


@pytest.fixture
async def mongo_repo():
    repo = MongoAssessmentRepository("mongodb://localhost", "assessments_test", client=AsyncMongoMockClient())
    await repo.ensure_indexes()
    return repo


@pytest.fixture
def sessions(mongo_repo):
    return SessionManager(mongo_repo)


async def test_create_is_idempotent_on_token(sessions, mongo_repo):
    first, created = await sessions.create("tok-1", "test-1", 3600)
    second, again = await sessions.create("tok-1", "other-test", 60)

    assert created is True
    assert again is False
    assert second.started_at == first.started_at
    assert second.test_id == "test-1"
    assert await mongo_repo.sessions.count_documents({"token": "tok-1"}) == 1


async def test_concurrent_creates_store_one_session(sessions, mongo_repo):
    (a, a_created), (b, b_created) = await asyncio.gather(
        sessions.create("tok-1", "test-1", 3600),
        sessions.create("tok-1", "test-1", 3600),
    )

    assert [a_created, b_created].count(True) == 1
    assert a.started_at == b.started_at
    assert await mongo_repo.sessions.count_documents({"token": "tok-1"}) == 1


async def test_lost_upsert_race_returns_existing_session(sessions, mongo_repo, monkeypatch):
    original, _ = await sessions.create("tok-1", "test-1", 3600)

    async def duplicate(*args, **kwargs):
        raise DuplicateKeyError("E11000 duplicate key error")

    monkeypatch.setattr(mongo_repo.sessions, "update_one", duplicate)
    session, created = await sessions.create("tok-1", "test-1", 3600)

    assert created is False
    assert session.started_at == original.started_at


async def test_tab_switch_count_uses_max(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    await sessions.patch("tok-1", SessionPatch(tab_switch_count=4))
    updated = await sessions.patch("tok-1", SessionPatch(tab_switch_count=2, notes="kept"))

    assert updated.tab_switch_count == 4
    assert updated.notes == "kept"


async def test_terminal_marker_only_lands_on_open_session(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    terminated_at = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)

    closed = await sessions.patch("tok-1", SessionPatch(terminated_at=terminated_at))
    later = await sessions.patch(
        "tok-1", SessionPatch(completed_at=datetime(2030, 5, 1, 13, 0, tzinfo=timezone.utc))
    )

    assert closed.terminated_at == terminated_at
    assert later.terminated_at == terminated_at
    assert later.completed_at is None


async def test_unknown_session_is_404(mongo_repo):
    with pytest.raises(HTTPException) as exc:
        await mongo_repo.get_session("missing")
    assert exc.value.status_code == 404


async def test_result_is_stored_under_its_id(mongo_repo):
    result = AssessmentResult(test_id="test-1", score=80, candidate_email="cand@example.com")
    await mongo_repo.insert_result(result)

    doc = await mongo_repo.results.find_one({"_id": result.result_id})
    assert doc is not None
    assert "resultId" not in doc
    fetched = await mongo_repo.get_result(result.result_id)
    assert fetched.result_id == result.result_id
    assert fetched.score == 80


async def test_platform_results_without_result_id_are_declarable(mongo_repo):
    oid = ObjectId()
    await mongo_repo.results.insert_one({"_id": oid, "testId": "test-1", "score": 90})

    pending = await mongo_repo.list_undeclared_results("test-1", 20)
    assert [r.result_id for r in pending] == [str(oid)]

    now = utcnow()
    assert await mongo_repo.claim_declaration(str(oid), ResultStatus.passed, "emp-1", now) is True
    assert await mongo_repo.claim_declaration(str(oid), ResultStatus.passed, "emp-1", now) is False

    declared = await mongo_repo.get_result(str(oid))
    assert declared.results_declared is True
    assert declared.status == ResultStatus.passed
    assert declared.declared_by == "emp-1"
    assert await mongo_repo.list_undeclared_results("test-1", 20) == []


async def test_listing_skips_excluded_results(mongo_repo):
    first = ObjectId()
    second = ObjectId()
    await mongo_repo.results.insert_many(
        [
            {"_id": first, "testId": "test-1", "score": 10},
            {"_id": second, "testId": "test-1", "score": 20},
            {"_id": ObjectId(), "testId": "test-2", "score": 30},
        ]
    )

    pending = await mongo_repo.list_undeclared_results("test-1", 20, exclude=[str(first)])

    assert [r.result_id for r in pending] == [str(second)]


async def test_get_test_by_object_id(mongo_repo):
    oid = ObjectId()
    await mongo_repo.tests.insert_one({"_id": oid, "name": "Backend Fundamentals", "passingScore": 65})

    test = await mongo_repo.get_test(str(oid))

    assert test.test_id == str(oid)
    assert test.passing_score == 65
    with pytest.raises(HTTPException) as exc:
        await mongo_repo.get_test(str(ObjectId()))
    assert exc.value.status_code == 404
