"""Model backend implementations."""

from asi_workflows.workflow.backend.base import (
    BackendError,
    BackendRequest,
    BackendResponse,
    ModelBackend,
)
from asi_workflows.workflow.backend.openai_backend import OpenAIResponsesBackend

__all__ = [
    "BackendError",
    "BackendRequest",
    "BackendResponse",
    "ModelBackend",
    "OpenAIResponsesBackend",
]
