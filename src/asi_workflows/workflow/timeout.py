"""Deadline guard for a single workflow attempt."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Awaitable
from typing import TypeVar

from asi_workflows.workflow.models import FailureKind, WorkflowError

T = TypeVar("T")


async def race_with_timeout(operation: Awaitable[T], timeout_ms: int) -> T:
    """Await ``operation`` unless ``timeout_ms`` elapses first.

    On expiry the operation task is cancelled and abandoned; the underlying transport
    call is not guaranteed to be aborted.
    """

    if timeout_ms <= 0:
        if inspect.iscoroutine(operation):
            operation.close()
        raise WorkflowError(
            FailureKind.CONFIGURATION_ERROR,
            f"timeout_ms must be > 0, got {timeout_ms}.",
        )
    try:
        return await asyncio.wait_for(operation, timeout=timeout_ms / 1000)
    except TimeoutError as error:
        raise WorkflowError(
            FailureKind.TIMEOUT,
            f"Agent request timed out after {timeout_ms} ms.",
        ) from error
