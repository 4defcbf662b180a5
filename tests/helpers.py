"""Scripted backends and payload builders shared by the test modules."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

from asi_workflows.workflow.backend import BackendError, BackendRequest, BackendResponse
from asi_workflows.workflow.models import FailureKind

Step = str | BaseException | Callable[[BackendRequest], Any]


def document_payload(**metadata_overrides: Any) -> dict[str, Any]:
    metadata = {
        "docId": "WI-014",
        "title": "Glass handling",
        "type": "work_instruction",
        "status": "draft",
        "revision": "0",
        "issueDate": "2026-10-19",
        "processOwner": "Operations Manager",
        "isoClauses": ["7.5", "8.1"],
        "relatedDocs": ["FRM-003"],
    }
    metadata.update(metadata_overrides)
    return {
        "metadata": metadata,
        "sections": [
            {"title": "Purpose", "content": "Safe handling of glass panels."},
            {"title": "Procedure", "content": "Use suction lifters rated for the load."},
        ],
        "changeSummary": ["Initial issue"],
        "adminIssuanceChecklist": ["Review clause mapping"],
        "questions": [],
    }


class ScriptedBackend:
    """Backend that replays one scripted step per call.

    A step is output text, an exception to raise, or a callable returning either.
    The last step repeats once the script is exhausted.
    """

    def __init__(self, *steps: Step) -> None:
        if not steps:
            raise ValueError("ScriptedBackend needs at least one step.")
        self.steps = list(steps)
        self.requests: list[BackendRequest] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def create_response(self, request: BackendRequest) -> BackendResponse:
        self.requests.append(request)
        step = self.steps[min(len(self.requests), len(self.steps)) - 1]
        if callable(step) and not isinstance(step, BaseException):
            step = step(request)
            if asyncio.iscoroutine(step):
                step = await step
        if isinstance(step, BaseException):
            raise step
        return BackendResponse(output_text=step)


class SleepRecorder:
    """Stand-in for ``asyncio.sleep`` that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def transient(message: str = "HTTP 503 service unavailable") -> BackendError:
    return BackendError(message, kind=FailureKind.RETRYABLE_TRANSIENT)
