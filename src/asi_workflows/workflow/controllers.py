"""Controllers for workflow CLI commands."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from asi_workflows.config import Settings
from asi_workflows.workflow.backend import ModelBackend
from asi_workflows.workflow.models import WorkflowError, WorkflowResult
from asi_workflows.workflow.personas import PersonaRegistry
from asi_workflows.workflow.schemas import SCHEMAS_BY_PERSONA, resolve_schema, response_format
from asi_workflows.workflow.services import WorkflowService


@dataclass(slots=True)
class WorkflowRunCommand:
    """CLI input for one workflow run."""

    workflow_id: str
    input_text: str | None
    input_file: Path | None
    schema: str | None
    timeout_ms: int | None
    max_retries: int | None


@dataclass(slots=True)
class WorkflowSchemaCommand:
    """CLI input for schema rendering."""

    name: str


@dataclass(slots=True)
class WorkflowCliResult:
    """Command report to render in CLI."""

    lines: list[str]
    success: bool


class WorkflowCliController:
    """Coordinates persona listing, schema rendering and workflow runs."""

    def __init__(
        self,
        *,
        backend_factory: Callable[[Settings], ModelBackend] | None = None,
    ) -> None:
        self.backend_factory = backend_factory

    def personas(self) -> WorkflowCliResult:
        try:
            settings = Settings.from_env()
            registry = PersonaRegistry(settings.persona_bindings)
        except ValueError as error:
            return WorkflowCliResult(lines=[f"Configuration error: {error}"], success=False)
        lines = ["Personas:"]
        for persona in registry.personas():
            schema = SCHEMAS_BY_PERSONA.get(persona.key)
            schema_name = schema.__name__ if schema is not None else "-"
            lines.append(
                f"  {persona.key} name={persona.display_name!r} default_schema={schema_name}",
            )
        bindings = registry.bindings()
        lines.append("Bindings:" if bindings else "Bindings: none")
        lines.extend(f"  {workflow_id} -> {persona_key}" for workflow_id, persona_key in bindings)
        lines.append(f"Fallback: {registry.fallback.key}")
        return WorkflowCliResult(lines=lines, success=True)

    def schema(self, command: WorkflowSchemaCommand) -> list[str]:
        schema = resolve_schema(command.name)
        return [json.dumps(response_format(schema), indent=2, sort_keys=True)]

    def run(self, command: WorkflowRunCommand) -> WorkflowCliResult:
        if command.input_file is not None:
            input_text = command.input_file.read_text("utf-8")
        else:
            input_text = command.input_text or ""
        if not input_text.strip():
            return WorkflowCliResult(lines=["Input text is required."], success=False)

        try:
            settings = Settings.from_env()
            schema = resolve_schema(command.schema) if command.schema else None
            result = asyncio.run(self._run(settings, command, input_text, schema))
        except ValueError as error:
            return WorkflowCliResult(lines=[f"Configuration error: {error}"], success=False)
        except WorkflowError as error:
            return WorkflowCliResult(
                lines=[
                    f"Workflow failed: kind={error.kind.value} "
                    f"attempts={len(error.attempts)}: {error.message}",
                ],
                success=False,
            )
        return WorkflowCliResult(lines=[result.raw], success=True)

    async def _run(
        self,
        settings: Settings,
        command: WorkflowRunCommand,
        input_text: str,
        schema: type | None,
    ) -> WorkflowResult:
        backend = self.backend_factory(settings) if self.backend_factory else None
        async with WorkflowService.from_settings(settings, backend=backend) as service:
            return await service.run(
                command.workflow_id,
                input_text,
                schema=schema,
                timeout_ms=command.timeout_ms,
                max_retries=command.max_retries,
            )
