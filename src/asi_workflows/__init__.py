"""Structured AI-workflow execution core."""

from asi_workflows.workflow.models import (
    FailureKind,
    Persona,
    WorkflowError,
    WorkflowRequest,
    WorkflowResult,
)
from asi_workflows.workflow.personas import PersonaRegistry, resolve_persona
from asi_workflows.workflow.services import WorkflowService

__version__ = "0.1.0"

__all__ = [
    "FailureKind",
    "Persona",
    "PersonaRegistry",
    "WorkflowError",
    "WorkflowRequest",
    "WorkflowResult",
    "WorkflowService",
    "__version__",
    "resolve_persona",
]
