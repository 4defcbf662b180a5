"""Bounded retry loop around timed agent invocations."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from dataclasses import replace
from datetime import UTC, datetime
from typing import TypeVar

from asi_workflows.workflow.invoker import AgentInvoker
from asi_workflows.workflow.models import (
    AttemptFailure,
    AttemptSuccess,
    FailureKind,
    InvocationAttempt,
    Persona,
    SchemaT,
    WorkflowError,
    WorkflowRequest,
    WorkflowResult,
)
from asi_workflows.workflow.personas import PersonaRegistry
from asi_workflows.workflow.timeout import race_with_timeout

logger = logging.getLogger(__name__)

DEFAULT_BASE_DELAY_SECONDS = 0.5

T = TypeVar("T")


class RetryController:
    """Runs a workflow request through sequential attempts.

    Success returns immediately. Timeouts, empty outputs and transient backend
    failures are retried after ``base_delay_seconds * 2**attempt`` until
    ``max_retries`` is spent; every other failure is final at once.
    """

    def __init__(
        self,
        *,
        invoker: AgentInvoker,
        registry: PersonaRegistry,
        base_delay_seconds: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.invoker = invoker
        self.registry = registry
        self.base_delay_seconds = base_delay_seconds
        self._sleep = sleep

    async def run(
        self,
        request: WorkflowRequest[SchemaT],
        *,
        cancel_event: asyncio.Event | None = None,
    ) -> WorkflowResult[SchemaT]:
        if request.max_retries < 0:
            raise WorkflowError(
                FailureKind.CONFIGURATION_ERROR,
                f"max_retries must be >= 0, got {request.max_retries}.",
            )
        persona = self._persona_for(request)
        attempts: list[InvocationAttempt] = []

        for attempt_number in range(request.max_retries + 1):
            started_at = datetime.now(UTC)
            try:
                _raise_if_cancelled(cancel_event)
                success = await _with_cancel(
                    race_with_timeout(
                        self.invoker.invoke(persona, request.schema, request.input),
                        request.timeout_ms,
                    ),
                    cancel_event,
                )
            except WorkflowError as error:
                attempts.append(
                    InvocationAttempt(
                        attempt_number=attempt_number,
                        started_at=started_at,
                        finished_at=datetime.now(UTC),
                        outcome=AttemptFailure(kind=error.kind, message=error.message),
                    ),
                )
                if not error.retryable or attempt_number >= request.max_retries:
                    logger.warning(
                        "Workflow %s failed after %d attempt(s): %s",
                        request.workflow_id,
                        len(attempts),
                        error,
                    )
                    error.attempts = tuple(attempts)
                    raise

                delay = self.backoff_delay(attempt_number)
                logger.warning(
                    "Workflow %s attempt %d failed (%s); retrying in %.2fs",
                    request.workflow_id,
                    attempt_number,
                    error.kind.value,
                    delay,
                )
                try:
                    await _with_cancel(self._sleep(delay), cancel_event)
                except WorkflowError as cancelled:
                    cancelled.attempts = tuple(attempts)
                    raise
                continue

            attempts.append(
                InvocationAttempt(
                    attempt_number=attempt_number,
                    started_at=started_at,
                    finished_at=datetime.now(UTC),
                    outcome=success,
                ),
            )
            logger.info(
                "Workflow %s succeeded on attempt %d as %s",
                request.workflow_id,
                attempt_number,
                persona.display_name,
            )
            return _result(success, attempts)

        # range() always yields at least one attempt, which either returns or raises.
        raise AssertionError("unreachable")

    def backoff_delay(self, attempt_number: int) -> float:
        return self.base_delay_seconds * (2**attempt_number)

    def _persona_for(self, request: WorkflowRequest[SchemaT]) -> Persona:
        persona = self.registry.resolve(request.workflow_id)
        if request.instructions_override is not None:
            persona = replace(persona, instructions=request.instructions_override)
        if request.agent_name_override is not None:
            persona = replace(persona, display_name=request.agent_name_override)
        return persona


def _result(
    success: AttemptSuccess[SchemaT],
    attempts: list[InvocationAttempt],
) -> WorkflowResult[SchemaT]:
    return WorkflowResult(parsed=success.parsed, raw=success.raw, attempts=tuple(attempts))


def _raise_if_cancelled(cancel_event: asyncio.Event | None) -> None:
    if cancel_event is not None and cancel_event.is_set():
        raise WorkflowError(FailureKind.CANCELLED, "Workflow run was cancelled.")


async def _with_cancel(operation: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
    """Await ``operation`` but give up as soon as ``cancel_event`` is set."""

    if cancel_event is None:
        return await operation

    task = asyncio.ensure_future(operation)
    waiter = asyncio.create_task(cancel_event.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()
    task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await task
    raise WorkflowError(FailureKind.CANCELLED, "Workflow run was cancelled.")
