import asyncio
from datetime import datetime, timedelta, timezone

import pytest
from fastapi import HTTPException

from assessment_engine.models import SessionPatch
from assessment_engine.services.sessions import SessionManager


@pytest.fixture
def sessions(repo):
    return SessionManager(repo)


async def test_create_sets_expiry_from_duration(sessions):
    session, created = await sessions.create("tok-1", "test-1", 3600)

    assert created is True
    assert session.expires_at - session.started_at == timedelta(seconds=3600)
    assert session.tab_switch_count == 0
    assert session.answers == {}
    assert not session.is_closed


async def test_create_is_idempotent(sessions):
    first, _ = await sessions.create("tok-1", "test-1", 3600)
    second, created = await sessions.create("tok-1", "other-test", 60)

    assert created is False
    assert second.started_at == first.started_at
    assert second.expires_at == first.expires_at
    assert second.test_id == "test-1"


async def test_concurrent_creates_share_one_session(sessions, repo):
    (a, a_created), (b, b_created) = await asyncio.gather(
        sessions.create("tok-1", "test-1", 3600),
        sessions.create("tok-1", "test-1", 3600),
    )

    assert [a_created, b_created].count(True) == 1
    assert a.started_at == b.started_at
    assert list(repo.sessions) == ["tok-1"]


async def test_resume_keeps_progress(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    await sessions.patch("tok-1", SessionPatch(answers={"q1": "PUT"}, current_question=2))

    resumed, created = await sessions.create("tok-1", "test-1", 3600)
    assert created is False
    assert resumed.answers == {"q1": "PUT"}
    assert resumed.current_question == 2


@pytest.mark.parametrize("test_id,duration", [(None, 3600), ("test-1", None), ("", 3600), ("test-1", 0)])
async def test_create_requires_test_and_duration(sessions, test_id, duration):
    with pytest.raises(HTTPException) as exc:
        await sessions.create("tok-1", test_id, duration)
    assert exc.value.status_code == 400


async def test_get_unknown_token_is_404(sessions):
    with pytest.raises(HTTPException) as exc:
        await sessions.get("missing")
    assert exc.value.status_code == 404


async def test_patch_unknown_token_is_404(sessions):
    with pytest.raises(HTTPException) as exc:
        await sessions.patch("missing", SessionPatch(notes="hi"))
    assert exc.value.status_code == 404


async def test_patch_ignores_fields_outside_allow_list(sessions):
    original, _ = await sessions.create("tok-1", "test-1", 3600)
    patch = SessionPatch.model_validate(
        {
            "answers": {"q1": "PUT"},
            "startedAt": "2000-01-01T00:00:00Z",
            "expiresAt": "2999-01-01T00:00:00Z",
            "durationSeconds": 1,
        }
    )

    updated = await sessions.patch("tok-1", patch)

    assert updated.answers == {"q1": "PUT"}
    assert updated.started_at == original.started_at
    assert updated.expires_at == original.expires_at
    assert updated.duration_seconds == 3600


async def test_patch_stamps_last_activity(sessions):
    original, _ = await sessions.create("tok-1", "test-1", 3600)
    updated = await sessions.patch("tok-1", SessionPatch(notes="scratch"))

    assert updated.notes == "scratch"
    assert updated.last_activity_at >= original.last_activity_at


async def test_tab_switch_count_never_decreases(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    await sessions.patch("tok-1", SessionPatch(tab_switch_count=3))
    updated = await sessions.patch("tok-1", SessionPatch(tab_switch_count=1))

    assert updated.tab_switch_count == 3


async def test_terminal_markers_are_write_once(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    completed_at = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)

    closed = await sessions.patch("tok-1", SessionPatch(completed_at=completed_at))
    assert closed.completed_at == completed_at
    assert closed.is_closed

    later = await sessions.patch(
        "tok-1",
        SessionPatch(
            terminated_at=completed_at + timedelta(minutes=5),
            completed_at=completed_at + timedelta(minutes=5),
            notes="after close",
        ),
    )
    assert later.completed_at == completed_at
    assert later.terminated_at is None
    # Non-terminal fields still apply after close.
    assert later.notes == "after close"


async def test_termination_wins_when_both_markers_arrive(sessions):
    await sessions.create("tok-1", "test-1", 3600)
    now = datetime(2030, 5, 1, 12, 0, tzinfo=timezone.utc)

    updated = await sessions.patch("tok-1", SessionPatch(completed_at=now, terminated_at=now))

    assert updated.terminated_at == now
    assert updated.completed_at is None


async def test_expiry_is_reported_not_enforced(sessions):
    session, _ = await sessions.create("tok-1", "test-1", 60)
    assert session.is_expired(session.started_at + timedelta(seconds=61))

    updated = await sessions.patch("tok-1", SessionPatch(answers={"q1": "late"}))
    assert updated.answers == {"q1": "late"}
