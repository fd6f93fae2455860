"""Design job orchestration.

Turns a submit request into a processing record plus one detached asyncio
task that runs the generation pipeline and settles the record.

## Failure handling

Nothing is retried. A failed pipeline run is terminal for its job:

1. The error is classified. A rate-limited run gets its own user-facing
   message; every other error uses its own message.
2. The record is settled as failed so subscribers can show the outcome.
   A successful run whose result cannot be stored is handled the same way,
   with a StorageError.
3. The failure is reported once on the on_failure side-channel (an alert
   or toast in the caller's UI).
4. Under FailurePolicy.DELETE the record is deleted after a short grace
   delay. Under FailurePolicy.RETAIN it stays, inspectable and deletable by
   the user.

Jobs are not cancelled when their record is deleted. The late settlement
then hits an unknown id and the store ignores it.
"""

import asyncio
import inspect
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Union
from uuid import UUID

import structlog

from restyle.core.config import FailurePolicy
from restyle.models.design import DesignRecord
from restyle.models.style import get_style
from restyle.services.design_store import DesignStore
from restyle.services.exceptions import RateLimitedError, ServiceError, StorageError
from restyle.services.pipeline import GenerationPipeline

logger = structlog.get_logger(__name__)

RATE_LIMIT_MESSAGE = "API Rate Limit Exceeded: Please try again later."
RATE_LIMIT_ALERT = "Rate limit exceeded. Please try again later."
GENERIC_FAILURE_ALERT = "Design generation failed. Please try again."


@dataclass(frozen=True)
class JobFailure:
    """Failure report delivered to the caller's side-channel."""

    design_id: UUID
    error_message: str  # stored on the failed record
    alert_message: str  # short text for a one-shot alert
    rate_limited: bool
    error_type: str


FailureCallback = Callable[[JobFailure], Union[None, Awaitable[None]]]


def classify_failure(error: BaseException) -> tuple[str, bool]:
    """Map a pipeline error to (record error message, rate_limited)."""
    if isinstance(error, RateLimitedError):
        return RATE_LIMIT_MESSAGE, True
    if isinstance(error, (ServiceError, ValueError)):
        return str(error) or type(error).__name__, False
    return f"Design generation failed: {type(error).__name__}", False


class DesignJobOrchestrator:
    """Creates design records and runs their generation jobs in the background."""

    def __init__(
        self,
        store: DesignStore,
        pipeline: GenerationPipeline,
        failure_policy: FailurePolicy = FailurePolicy.DELETE,
        failure_grace_seconds: float = 2.0,
        on_failure: Optional[FailureCallback] = None,
    ):
        """Initialize orchestrator.

        Args:
            store: Design store; the only place job state is written
            pipeline: Upload + generate pipeline run once per job
            failure_policy: Delete failed designs after the grace delay, or retain them
            failure_grace_seconds: Delay before a failed design is deleted
            on_failure: Side-channel for failure alerts (sync or async callable)
        """
        self.store = store
        self.pipeline = pipeline
        self.failure_policy = failure_policy
        self.failure_grace_seconds = failure_grace_seconds
        self.on_failure = on_failure
        self._tasks: dict[UUID, asyncio.Task] = {}

    @property
    def active_jobs(self) -> int:
        return len(self._tasks)

    def submit(self, image: bytes, style_name: str, prompt: str) -> UUID:
        """Create a processing design and start its job.

        Returns as soon as the record exists; the network work happens in a
        detached task. Must be called with a running event loop.

        Args:
            image: Encoded room photo
            style_name: Display name of the requested style
            prompt: Style instruction sent to the workflow

        Returns:
            Id of the new design

        Raises:
            RuntimeError: If no event loop is running
            ValueError: If image is empty
        """
        loop = asyncio.get_running_loop()
        if not image:
            raise ValueError("image cannot be empty")

        record = DesignRecord(original_image=image, style_name=style_name, prompt=prompt)
        design_id = self.store.create_processing(record)

        task = loop.create_task(
            self._run_job(design_id, record.original_image, prompt),
            name=f"design-job-{design_id}",
        )
        self._tasks[design_id] = task
        task.add_done_callback(lambda t: self._on_job_done(design_id, t))

        logger.info("job.submitted", design_id=str(design_id), style_name=style_name)
        return design_id

    def submit_style(self, image: bytes, style_id: str, prompt: Optional[str] = None) -> UUID:
        """Submit using a catalog style; prompt defaults to the style's own prompt.

        Raises:
            KeyError: If style_id is not in the catalog
        """
        style = get_style(style_id)
        return self.submit(image, style.name, prompt or style.prompt)

    async def wait_for_jobs(self) -> None:
        """Wait until every in-flight job (including failure cleanup) has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks.values()), return_exceptions=True)

    async def shutdown(self) -> None:
        """Cancel in-flight jobs. Their records stay processing until recovered."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("job.shutdown", cancelled_jobs=len(tasks))

    def _on_job_done(self, design_id: UUID, task: asyncio.Task) -> None:
        self._tasks.pop(design_id, None)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            # Grace-period cleanup raised; the failed record is left in place
            logger.error(
                "job.crashed",
                design_id=str(design_id),
                error_type=type(exc).__name__,
                error_message=str(exc),
                exc_info=exc,
            )

    async def _run_job(self, design_id: UUID, image: bytes, prompt: str) -> None:
        start_time = time.time()
        log = logger.bind(design_id=str(design_id))

        try:
            generated = await self.pipeline.run(image, prompt, design_id=design_id)
        except asyncio.CancelledError:
            log.info("job.cancelled")
            raise
        except Exception as e:
            await self._handle_failure(design_id, e)
            return

        try:
            self.store.complete_with_result(design_id, generated)
        except Exception as e:
            log.error(
                "job.settlement_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            await self._handle_failure(
                design_id, StorageError(f"Generated design could not be saved: {e}")
            )
            return

        log.info("job.succeeded", duration_seconds=time.time() - start_time)

    async def _handle_failure(self, design_id: UUID, error: Exception) -> None:
        log = logger.bind(design_id=str(design_id))
        error_message, rate_limited = classify_failure(error)

        log.error(
            "job.failed",
            error_type=type(error).__name__,
            error_message=str(error),
            rate_limited=rate_limited,
            policy=self.failure_policy.value,
            exc_info=not isinstance(error, (ServiceError, ValueError)),
        )

        try:
            settled = self.store.complete_with_error(design_id, error_message)
        except Exception as e:
            # Row stays processing; recover_interrupted fails it on next start
            log.error(
                "job.settlement_failed",
                error_type=type(e).__name__,
                error_message=str(e),
                exc_info=True,
            )
            settled = False

        await self._report_failure(
            JobFailure(
                design_id=design_id,
                error_message=error_message,
                alert_message=RATE_LIMIT_ALERT if rate_limited else GENERIC_FAILURE_ALERT,
                rate_limited=rate_limited,
                error_type=type(error).__name__,
            )
        )

        # Record gone (deleted while the job ran) or not writable
        if not settled:
            return

        if self.failure_policy == FailurePolicy.DELETE:
            await asyncio.sleep(self.failure_grace_seconds)
            if self.store.delete(design_id):
                log.info("job.failed_design_deleted", grace_seconds=self.failure_grace_seconds)

    async def _report_failure(self, failure: JobFailure) -> None:
        if self.on_failure is None:
            return
        try:
            result = self.on_failure(failure)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.error(
                "job.failure_report_failed",
                design_id=str(failure.design_id),
                error_type=type(e).__name__,
                error_message=str(e),
            )
