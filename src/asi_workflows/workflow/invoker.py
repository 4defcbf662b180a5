"""Single-shot agent invocation with schema-constrained output."""

from __future__ import annotations

import logging

from asi_workflows.workflow.backend.base import BackendError, BackendRequest, ModelBackend
from asi_workflows.workflow.models import (
    AttemptSuccess,
    FailureKind,
    Persona,
    SchemaT,
    WorkflowError,
)
from asi_workflows.workflow.schemas import parse_output_text, response_format, validate_output

logger = logging.getLogger(__name__)


class AgentInvoker:
    """Builds one request, dispatches it and validates the reply.

    Failures are classified and raised as ``WorkflowError``; the invoker never
    decides whether to retry.
    """

    def __init__(self, *, backend: ModelBackend, api_key: str | None, model: str) -> None:
        self.backend = backend
        self.api_key = api_key
        self.model = model

    async def invoke(
        self,
        persona: Persona,
        schema: type[SchemaT],
        input_text: str,
    ) -> AttemptSuccess[SchemaT]:
        if not self.api_key:
            raise WorkflowError(FailureKind.CONFIGURATION_ERROR, "Missing OPENAI_API_KEY.")

        request = BackendRequest(
            model=self.model,
            instructions=persona.instructions,
            agent_name=persona.display_name,
            input_text=input_text,
            schema_name=schema.__name__,
            response_format=response_format(schema),
        )
        try:
            response = await self.backend.create_response(request)
        except BackendError as error:
            raise WorkflowError(error.kind, str(error)) from error
        except WorkflowError:
            raise
        except Exception as error:  # noqa: BLE001
            logger.exception("Unclassified backend failure for persona %s", persona.key)
            raise WorkflowError(
                FailureKind.NON_RETRYABLE,
                f"Agent request failed: {error}",
            ) from error

        if not response.output_text.strip():
            raise WorkflowError(FailureKind.NO_OUTPUT, "Agent returned no output.")

        payload = parse_output_text(response.output_text)
        parsed, raw = validate_output(schema, payload)
        return AttemptSuccess(parsed=parsed, raw=raw)
