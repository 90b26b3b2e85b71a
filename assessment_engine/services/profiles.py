from __future__ import annotations

import logging
from typing import Any, Optional

from assessment_engine.models import AssessmentResult
from assessment_engine.storage.repo import AssessmentRepository

logger = logging.getLogger(__name__)

# (collection, profile field, result attribute), tried in order
NAME_LOOKUP_CHAIN: list[tuple[str, str, str]] = [
    ("candidates", "id", "candidate_id"),
    ("students", "id", "candidate_id"),
    ("students", "id", "student_id"),
    ("candidates", "id", "student_id"),
    ("candidates", "email", "candidate_email"),
    ("students", "email", "candidate_email"),
]

_NAME_PARTS = ("salutation", "firstName", "middleName", "lastName")


def looks_synthetic(name: Optional[str], email: Optional[str]) -> bool:
    """True when the stored name is missing or was derived from the email."""
    if not name:
        return True
    if not email:
        return False
    if name == email:
        return True
    return " " not in name and name == email.split("@")[0]


def display_name(profile: dict[str, Any]) -> Optional[str]:
    parts = [
        profile[key].strip()
        for key in _NAME_PARTS
        if isinstance(profile.get(key), str) and profile[key].strip()
    ]
    if parts:
        return " ".join(parts)
    name = profile.get("name")
    if isinstance(name, str) and name.strip():
        return name.strip()
    return None


async def find_candidate_profile(repo: AssessmentRepository, result: AssessmentResult) -> Optional[dict[str, Any]]:
    for collection, field, attr in NAME_LOOKUP_CHAIN:
        value = getattr(result, attr)
        if not value:
            continue
        try:
            profile = await repo.find_profile(collection, field, value)
        except Exception as e:
            logger.warning(f"Profile lookup {collection}.{field}={value} failed: {e}")
            continue
        if profile:
            return profile
    return None


async def resolve_candidate_name(repo: AssessmentRepository, result: AssessmentResult) -> str:
    """Best human-readable name for a result's candidate, for display and email."""
    if not looks_synthetic(result.candidate_name, result.candidate_email):
        return result.candidate_name or ""

    profile = await find_candidate_profile(repo, result)
    if profile:
        name = display_name(profile)
        if name:
            return name
    return result.candidate_email or result.candidate_name or "Candidate"
