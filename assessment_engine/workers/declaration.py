"""
Result declaration.

``Undeclared -> Declared`` happens once per result: the claim is a conditional
write, so overlapping drains or a concurrent individual declare cannot
declare the same result twice. Notification runs strictly after the claim
has committed and never undoes it.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Optional

from fastapi import HTTPException
from pydantic import BaseModel

from assessment_engine.grading.scoring import DEFAULT_PASSING_SCORE, decide_status
from assessment_engine.models import AssessmentResult, AssessmentTest, Employee, utcnow
from assessment_engine.observability import get_tracer
from assessment_engine.services.notifications import NotificationSender, render_result_email
from assessment_engine.services.profiles import resolve_candidate_name
from assessment_engine.storage.repo import AssessmentRepository

logger = logging.getLogger(__name__)

BATCH_SIZE = 20


class DeclarationStalledError(RuntimeError):
    """The drain declared nothing it was given, or ran past its batch/time cap."""

    def __init__(self, message: str, declared_count: int, emails_sent: int) -> None:
        super().__init__(message)
        self.declared_count = declared_count
        self.emails_sent = emails_sent


class ItemOutcome(BaseModel):
    declared: bool = False
    email_sent: bool = False


class DeclarationSummary(BaseModel):
    declared_count: int = 0
    emails_sent: int = 0
    failed_count: int = 0
    batches: int = 0

    @property
    def incomplete(self) -> bool:
        # Failed results stay undeclared for the next run.
        return self.failed_count > 0


def _signature(declarer: Optional[Employee]) -> str:
    if declarer is None:
        return ""
    return "\n".join(p for p in (declarer.full_name, declarer.company_name) if p)


class DeclarationCoordinator:
    def __init__(
        self,
        repo: AssessmentRepository,
        notifier: NotificationSender,
        *,
        batch_size: int = BATCH_SIZE,
        max_batches: int = 500,
        time_budget_seconds: float = 300.0,
        default_passing_score: int = DEFAULT_PASSING_SCORE,
    ) -> None:
        self.repo = repo
        self.notifier = notifier
        self.batch_size = batch_size
        self.max_batches = max_batches
        self.time_budget_seconds = time_budget_seconds
        self.default_passing_score = default_passing_score

    async def declare_all(self, test_id: str, declared_by: Optional[str]) -> DeclarationSummary:
        """Drain every undeclared result of ``test_id`` in sequential, concurrently-processed batches.

        A result is fetched at most once per drain: ids already attempted are
        excluded from later fetches, so results that keep failing cannot hide
        the ones behind them.
        """
        test = await self.repo.get_test(test_id)
        if declared_by and test.created_by and test.created_by != declared_by:
            raise HTTPException(status_code=404, detail="Test not found")
        declarer = await self.repo.get_employee(declared_by) if declared_by else None
        signature = _signature(declarer)

        summary = DeclarationSummary()
        attempted: set[str] = set()
        started = time.monotonic()
        tracer = get_tracer()

        with tracer.start_as_current_span("declare.drain") as span:
            span.set_attribute("test.id", test_id)

            while True:
                batch = await self.repo.list_undeclared_results(test_id, self.batch_size, exclude=attempted)
                batch = [r for r in batch if r.result_id not in attempted]
                if not batch:
                    break

                elapsed = time.monotonic() - started
                if summary.batches >= self.max_batches or elapsed > self.time_budget_seconds:
                    raise self._stalled(
                        f"Declaration for test {test_id} exceeded its cap after "
                        f"{summary.batches} batches / {elapsed:.1f}s",
                        summary,
                    )

                summary.batches += 1
                attempted.update(r.result_id for r in batch)
                with tracer.start_as_current_span("declare.batch") as batch_span:
                    batch_span.set_attribute("declare.batch.number", summary.batches)
                    batch_span.set_attribute("declare.batch.size", len(batch))
                    outcomes = await asyncio.gather(
                        *(self._declare(result, test, declared_by, signature) for result in batch),
                        return_exceptions=True,
                    )

                for result, outcome in zip(batch, outcomes):
                    if isinstance(outcome, BaseException):
                        logger.error(f"Failed to declare result {result.result_id}: {outcome!r}")
                        summary.failed_count += 1
                        continue
                    if outcome.declared:
                        summary.declared_count += 1
                    if outcome.email_sent:
                        summary.emails_sent += 1

            span.set_attribute("declare.declared_count", summary.declared_count)
            span.set_attribute("declare.emails_sent", summary.emails_sent)
            span.set_attribute("declare.failed_count", summary.failed_count)

        if summary.failed_count and summary.declared_count == 0:
            raise self._stalled(
                f"Declaration for test {test_id} failed for all {summary.failed_count} pending results",
                summary,
            )
        if summary.failed_count:
            logger.warning(
                f"Declaration for test {test_id} left {summary.failed_count} results undeclared after failures"
            )

        logger.info(
            f"Declaration complete for test {test_id}: {summary.declared_count} results declared, "
            f"{summary.emails_sent} emails sent in {summary.batches} batches"
        )
        return summary

    async def declare_one(self, result_id: str, declared_by: Optional[str]) -> ItemOutcome:
        result = await self.repo.get_result(result_id)
        if declared_by and result.created_by and result.created_by != declared_by:
            raise HTTPException(status_code=404, detail="Result not found")
        if result.results_declared:
            raise HTTPException(status_code=400, detail="Result has already been declared")

        test = await self.repo.get_test(result.test_id)
        declarer = await self.repo.get_employee(declared_by) if declared_by else None

        outcome = await self._declare(result, test, declared_by, _signature(declarer))
        if not outcome.declared:
            raise HTTPException(status_code=400, detail="Result has already been declared")
        return outcome

    async def _declare(
        self, result: AssessmentResult, test: AssessmentTest, declared_by: Optional[str], signature: str
    ) -> ItemOutcome:
        with get_tracer().start_as_current_span("declare.item") as span:
            span.set_attribute("result.id", result.result_id)

            # Passing score may have changed since submission.
            passing_score = test.effective_passing_score(self.default_passing_score)
            status = decide_status(result.score, passing_score)

            if not await self.repo.claim_declaration(result.result_id, status, declared_by, utcnow()):
                logger.info(f"Result {result.result_id} was already declared; skipping")
                return ItemOutcome(declared=False)

            if result.candidate_email:
                try:
                    await self.repo.set_candidate_status(result.candidate_email, result.created_by, status)
                except Exception as e:
                    logger.error(f"Failed to update candidate status for {result.candidate_email}: {e}")

            email_sent = await self._notify(result, test, status, passing_score, signature)
            span.set_attribute("result.email_sent", email_sent)
            return ItemOutcome(declared=True, email_sent=email_sent)

    async def _notify(self, result, test, status, passing_score, signature) -> bool:
        if not result.candidate_email:
            logger.warning(f"Result {result.result_id} has no candidate email; notification skipped")
            return False

        name = await resolve_candidate_name(self.repo, result)
        email = render_result_email(
            candidate_name=name,
            test_name=test.name or result.test_name or "",
            score=result.score,
            status=status,
            passing_score=passing_score,
            duration=result.duration,
            signature=signature,
        )
        try:
            return await self.notifier.send(result.candidate_email, email.subject, email.text, email.html)
        except Exception as e:
            logger.error(f"Failed to send result email to {result.candidate_email}: {e}")
            return False

    @staticmethod
    def _stalled(message: str, summary: DeclarationSummary) -> DeclarationStalledError:
        logger.error(message)
        return DeclarationStalledError(message, summary.declared_count, summary.emails_sent)
