"""CLI entrypoint for asi-workflows."""

import logging
from pathlib import Path

import rich_click as click

from asi_workflows import __version__
from asi_workflows.workflow.controllers import (
    WorkflowCliController,
    WorkflowRunCommand,
    WorkflowSchemaCommand,
)
from asi_workflows.workflow.schemas import SCHEMAS_BY_NAME

click.rich_click.USE_MARKDOWN = True
WORKFLOW_CONTROLLER = WorkflowCliController()


@click.group()
@click.version_option(version=__version__, prog_name="asi-workflows")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
def asi_workflows(verbose: bool) -> None:
    """Structured AI workflow CLI."""

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@asi_workflows.command("personas")
def personas() -> None:
    """List personas and configured workflow id bindings."""

    result = WORKFLOW_CONTROLLER.personas()
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Invalid persona configuration.")


@asi_workflows.command("schema")
@click.argument("name", type=click.Choice(sorted(SCHEMAS_BY_NAME), case_sensitive=False))
def schema(name: str) -> None:
    """Print the strict JSON schema sent to the model for NAME."""

    _emit_lines(WORKFLOW_CONTROLLER.schema(WorkflowSchemaCommand(name=name)))


@asi_workflows.command("run")
@click.option("--workflow-id", required=True, help="Workflow identifier; selects the persona.")
@click.option("--input", "input_text", default=None, help="Prompt text sent as the user turn.")
@click.option(
    "--input-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Read prompt text from a file instead of --input.",
)
@click.option(
    "--schema",
    "schema_name",
    type=click.Choice(sorted(SCHEMAS_BY_NAME), case_sensitive=False),
    default=None,
    help="Output schema. Defaults to the persona's schema.",
)
@click.option(
    "--timeout-ms",
    type=click.IntRange(min=1),
    default=None,
    help="Per-attempt timeout. If omitted, ASI_WORKFLOW_TIMEOUT_MS is used.",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retries after the first attempt. If omitted, ASI_WORKFLOW_MAX_RETRIES is used.",
)
def run(  # noqa: PLR0913
    workflow_id: str,
    input_text: str | None,
    input_file: Path | None,
    schema_name: str | None,
    timeout_ms: int | None,
    max_retries: int | None,
) -> None:
    """Run one workflow and print the validated JSON result."""

    result = WORKFLOW_CONTROLLER.run(
        WorkflowRunCommand(
            workflow_id=workflow_id,
            input_text=input_text,
            input_file=input_file,
            schema=schema_name,
            timeout_ms=timeout_ms,
            max_retries=max_retries,
        ),
    )
    _emit_lines(result.lines)
    if not result.success:
        raise click.ClickException("Workflow run failed.")


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    asi_workflows()
