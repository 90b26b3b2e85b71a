from __future__ import annotations

from functools import lru_cache

from assessment_engine.grading.evaluator import LLMTextQualityEvaluator, TextQualityEvaluator
from assessment_engine.llm.factory import get_llm_client
from assessment_engine.services.notifications import (
    LoggingNotificationSender,
    NotificationSender,
    SmtpNotificationSender,
)
from assessment_engine.services.results import ResultService
from assessment_engine.services.sessions import SessionManager
from assessment_engine.settings import settings
from assessment_engine.storage.inmemory import InMemoryAssessmentRepository
from assessment_engine.storage.mongo import MongoAssessmentRepository
from assessment_engine.storage.repo import AssessmentRepository
from assessment_engine.workers.declaration import DeclarationCoordinator


@lru_cache
def get_repo() -> AssessmentRepository:
    backend = (settings.storage_backend or "inmemory").lower()
    if backend == "mongo":
        return MongoAssessmentRepository(settings.mongodb_uri, settings.mongodb_db)
    return InMemoryAssessmentRepository()


@lru_cache
def get_evaluator() -> TextQualityEvaluator:
    client = get_llm_client(settings.evaluator_provider, settings)
    return LLMTextQualityEvaluator(
        client, model=settings.evaluator_model, timeout_seconds=settings.evaluator_timeout_seconds
    )


@lru_cache
def get_notifier() -> NotificationSender:
    if not settings.smtp_host:
        return LoggingNotificationSender()
    return SmtpNotificationSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        sender=settings.mail_from,
        use_ssl=settings.smtp_use_ssl,
    )


def get_session_manager() -> SessionManager:
    return SessionManager(get_repo())


def get_result_service() -> ResultService:
    return ResultService(
        get_repo(),
        get_evaluator(),
        default_passing_score=settings.default_passing_score,
        min_quality=settings.written_answer_min_quality,
    )


def get_coordinator() -> DeclarationCoordinator:
    return DeclarationCoordinator(
        get_repo(),
        get_notifier(),
        batch_size=settings.declare_batch_size,
        max_batches=settings.declare_max_batches,
        time_budget_seconds=settings.declare_time_budget_seconds,
        default_passing_score=settings.default_passing_score,
    )
