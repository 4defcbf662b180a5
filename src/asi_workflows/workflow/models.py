"""Domain models for structured workflow execution."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel

DEFAULT_TIMEOUT_MS = 30_000
DEFAULT_MAX_RETRIES = 2

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class FailureKind(str, Enum):
    """Normalized failure classes used by retry policy."""

    TIMEOUT = "timeout"
    NO_OUTPUT = "no_output"
    RETRYABLE_TRANSIENT = "retryable_transient"
    NON_RETRYABLE = "non_retryable"
    CONFIGURATION_ERROR = "configuration_error"
    CANCELLED = "cancelled"


RETRYABLE_KINDS: frozenset[FailureKind] = frozenset(
    {
        FailureKind.TIMEOUT,
        FailureKind.NO_OUTPUT,
        FailureKind.RETRYABLE_TRANSIENT,
    },
)


class WorkflowError(RuntimeError):
    """Classified workflow failure.

    Raised by the timeout guard and the invoker for a single attempt, and re-raised by
    the retry controller as the terminal failure with ``attempts`` filled in.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        *,
        attempts: tuple[InvocationAttempt, ...] = (),
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.attempts = attempts

    @property
    def retryable(self) -> bool:
        return self.kind in RETRYABLE_KINDS

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


@dataclass(frozen=True, slots=True)
class Persona:
    """Display identity and instruction text presented to the model."""

    key: str
    display_name: str
    instructions: str


@dataclass(frozen=True, slots=True)
class WorkflowRequest(Generic[SchemaT]):
    """Inputs for one workflow run."""

    workflow_id: str
    input: str
    schema: type[SchemaT]
    timeout_ms: int = DEFAULT_TIMEOUT_MS
    max_retries: int = DEFAULT_MAX_RETRIES
    instructions_override: str | None = None
    agent_name_override: str | None = None


@dataclass(frozen=True, slots=True)
class AttemptSuccess(Generic[SchemaT]):
    """Schema-conformant output of one attempt."""

    parsed: SchemaT
    raw: str


@dataclass(frozen=True, slots=True)
class AttemptFailure:
    """Classified failure of one attempt."""

    kind: FailureKind
    message: str


@dataclass(frozen=True, slots=True)
class InvocationAttempt:
    """Per-attempt telemetry, never persisted."""

    attempt_number: int
    started_at: datetime
    finished_at: datetime
    outcome: AttemptSuccess | AttemptFailure

    @property
    def succeeded(self) -> bool:
        return isinstance(self.outcome, AttemptSuccess)


@dataclass(frozen=True, slots=True)
class WorkflowResult(Generic[SchemaT]):
    """Validated workflow output.

    ``raw`` is the canonical serialization of ``parsed``.
    """

    parsed: SchemaT
    raw: str
    attempts: tuple[InvocationAttempt, ...] = field(default=())
