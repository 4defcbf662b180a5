"""Workflow service façade used by callers and the CLI."""

from __future__ import annotations

import asyncio

from pydantic import BaseModel

from asi_workflows.config import Settings
from asi_workflows.workflow.backend import ModelBackend, OpenAIResponsesBackend
from asi_workflows.workflow.invoker import AgentInvoker
from asi_workflows.workflow.models import (
    FailureKind,
    WorkflowError,
    WorkflowRequest,
    WorkflowResult,
)
from asi_workflows.workflow.personas import PersonaRegistry
from asi_workflows.workflow.retry import RetryController
from asi_workflows.workflow.schemas import SCHEMAS_BY_PERSONA


class WorkflowService:
    """Wires settings, persona registry, backend, invoker and retry controller."""

    def __init__(
        self,
        *,
        settings: Settings,
        registry: PersonaRegistry,
        backend: ModelBackend,
        controller: RetryController,
        owns_backend: bool = False,
    ) -> None:
        self.settings = settings
        self.registry = registry
        self.backend = backend
        self.controller = controller
        self._owns_backend = owns_backend

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        backend: ModelBackend | None = None,
    ) -> WorkflowService:
        settings.validate()
        registry = PersonaRegistry(settings.persona_bindings)
        owns_backend = backend is None
        if backend is None:
            backend = OpenAIResponsesBackend(
                api_key=settings.model.api_key,
                base_url=settings.model.base_url,
            )
        invoker = AgentInvoker(
            backend=backend,
            api_key=settings.model.api_key,
            model=settings.model.model,
        )
        controller = RetryController(
            invoker=invoker,
            registry=registry,
            base_delay_seconds=settings.retry.base_delay_seconds,
        )
        return cls(
            settings=settings,
            registry=registry,
            backend=backend,
            controller=controller,
            owns_backend=owns_backend,
        )

    async def run(  # noqa: PLR0913
        self,
        workflow_id: str,
        input_text: str,
        *,
        schema: type[BaseModel] | None = None,
        timeout_ms: int | None = None,
        max_retries: int | None = None,
        instructions_override: str | None = None,
        agent_name_override: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> WorkflowResult:
        """Run one workflow; ``schema`` defaults to the resolved persona's schema."""

        resolved_schema = schema or self.default_schema(workflow_id)
        request = WorkflowRequest(
            workflow_id=workflow_id,
            input=input_text,
            schema=resolved_schema,
            timeout_ms=timeout_ms if timeout_ms is not None else self.settings.retry.timeout_ms,
            max_retries=(
                max_retries if max_retries is not None else self.settings.retry.max_retries
            ),
            instructions_override=instructions_override,
            agent_name_override=agent_name_override,
        )
        return await self.controller.run(request, cancel_event=cancel_event)

    def default_schema(self, workflow_id: str) -> type[BaseModel]:
        persona = self.registry.resolve(workflow_id)
        schema = SCHEMAS_BY_PERSONA.get(persona.key)
        if schema is None:
            raise WorkflowError(
                FailureKind.CONFIGURATION_ERROR,
                f"No default schema for workflow {workflow_id!r} "
                f"(persona {persona.key!r}); pass a schema explicitly.",
            )
        return schema

    async def aclose(self) -> None:
        if self._owns_backend and isinstance(self.backend, OpenAIResponsesBackend):
            await self.backend.aclose()

    async def __aenter__(self) -> WorkflowService:
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.aclose()
