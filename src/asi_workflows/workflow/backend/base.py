"""Backend interface for model invocation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from asi_workflows.workflow.models import FailureKind


@dataclass(frozen=True, slots=True)
class BackendRequest:
    """One single-turn, schema-constrained model request."""

    model: str
    instructions: str
    agent_name: str
    input_text: str
    schema_name: str
    response_format: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BackendResponse:
    """Model output text; empty when the backend produced nothing."""

    output_text: str
    status_code: int | None = None


class BackendError(RuntimeError):
    """Backend failure with its retry classification."""

    def __init__(self, message: str, *, kind: FailureKind) -> None:
        super().__init__(message)
        self.kind = kind


class ModelBackend(Protocol):
    """Protocol implemented by model backends."""

    async def create_response(self, request: BackendRequest) -> BackendResponse:
        """Dispatch one request and return the raw output text."""
